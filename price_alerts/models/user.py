"""User model referenced by alert owners."""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import uuid
from price_alerts.core.database import Base


class User(Base):
    """Alert owner. Accounts are managed outside the evaluator."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    telegram_chat_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships
    alerts = relationship("Alert", back_populates="user", cascade="all, delete-orphan")
