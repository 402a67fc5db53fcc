"""Price alert model."""
from sqlalchemy import Column, String, DateTime, Boolean, Numeric, ForeignKey
from sqlalchemy.orm import relationship, validates
from datetime import datetime, timezone
import uuid
from price_alerts.core.database import Base


class Alert(Base):
    """A user-defined price threshold on a single symbol."""

    __tablename__ = "price_alerts"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    symbol = Column(String, nullable=False, index=True)
    operator = Column(String, nullable=False)  # greater_than, less_than, ..., crosses_up, crosses_down
    threshold = Column(Numeric(18, 6), nullable=False)
    active = Column(Boolean, default=True, nullable=False, index=True)
    # Only ever advanced by the evaluator
    last_triggered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships
    user = relationship("User", back_populates="alerts")

    @validates("symbol")
    def normalize_symbol(self, key, value):
        return value.strip().upper() if value else value

    def __repr__(self) -> str:
        return f"<Alert {self.id} {self.symbol} {self.operator} {self.threshold}>"
