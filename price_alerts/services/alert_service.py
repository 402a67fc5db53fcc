"""Alert service for loading alerts and recording triggers."""
from typing import List
from datetime import datetime
from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession
from price_alerts.models import Alert
import logging

logger = logging.getLogger(__name__)


class AlertService:
    """Service for the evaluator's view of the alert store."""

    @staticmethod
    async def get_active_alerts(db: AsyncSession) -> List[Alert]:
        """Get all alerts with active=True, ordered by symbol."""
        result = await db.execute(
            select(Alert)
            .where(Alert.active.is_(True))
            .order_by(Alert.symbol, Alert.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def mark_triggered(
        db: AsyncSession,
        alert_id: str,
        triggered_at: datetime
    ) -> bool:
        """
        Advance an alert's last_triggered_at.

        The update is conditional so the stored timestamp never moves
        backwards, even if two writers race.

        Args:
            db: Database session
            alert_id: Alert ID
            triggered_at: Trigger time of the current run

        Returns:
            True if the row was updated, False if the alert is missing or
            already carries a later timestamp
        """
        stmt = (
            update(Alert)
            .where(Alert.id == alert_id)
            .where(or_(
                Alert.last_triggered_at.is_(None),
                Alert.last_triggered_at <= triggered_at
            ))
            .values(last_triggered_at=triggered_at)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        await db.commit()

        if result.rowcount == 0:
            logger.warning(f"Alert {alert_id} not advanced to {triggered_at.isoformat()} (missing or newer timestamp)")
            return False
        return True
