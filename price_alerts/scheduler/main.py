"""Alert evaluation scheduler with fixed cadence."""
import logging
import asyncio
import signal
from datetime import datetime, timezone
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from price_alerts.core.config import settings
from price_alerts.core.database import init_db
from price_alerts.core.redis import close_redis
from price_alerts.workers import AlertEvaluator

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Time given to an in-flight run to reach a checkpoint before it is cancelled
SHUTDOWN_GRACE_SECONDS = 10


class AlertScheduler:
    """Scheduler running one evaluation tick per interval."""

    def __init__(self, evaluator: Optional[AlertEvaluator] = None):
        logger.info("Initializing AlertScheduler...")
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.evaluator = evaluator or AlertEvaluator()
        self._current_tick: Optional[asyncio.Task] = None
        logger.info("AlertScheduler initialized")

    async def evaluate_alerts(self):
        """Scheduled job: one evaluation tick."""
        self._current_tick = asyncio.current_task()
        try:
            await self.evaluator.run_once()
        except asyncio.CancelledError:
            logger.info("Evaluation tick cancelled")
            raise
        except Exception as e:
            logger.error(f"Error running alert evaluation: {e}", exc_info=True)
        finally:
            self._current_tick = None

    def start(self):
        """Start the scheduler with the evaluation job."""
        logger.info("="*60)
        logger.info("Starting alert scheduler...")
        logger.info(f"Log level: {settings.log_level}")
        logger.info(f"Evaluation interval: every {settings.evaluation_interval_seconds} seconds")
        logger.info(f"Cooldown window: {settings.cooldown_seconds} seconds")
        logger.info(f"Lock: {settings.lock_key} (ttl {settings.effective_lock_ttl_seconds}s)")
        logger.info(f"Notifier: {settings.notifier_backend}")
        logger.info("="*60)

        # Ticks never overlap within one instance; missed ticks collapse into one
        self.scheduler.add_job(
            self.evaluate_alerts,
            trigger=IntervalTrigger(seconds=settings.evaluation_interval_seconds),
            id="evaluate_alerts",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc)
        )

        self.scheduler.start()
        logger.info("Scheduler started successfully")

    async def shutdown(self):
        """Stop scheduling, let the running tick release its lock, close resources."""
        logger.info("Shutting down alert scheduler...")
        self.evaluator.request_shutdown()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

        tick = self._current_tick
        if tick is not None and not tick.done():
            try:
                await asyncio.wait_for(asyncio.shield(tick), timeout=SHUTDOWN_GRACE_SECONDS)
            except asyncio.TimeoutError:
                logger.warning("Evaluation tick did not stop in time, cancelling it")
                tick.cancel()
                await asyncio.gather(tick, return_exceptions=True)
            except asyncio.CancelledError:
                # The tick was cancelled underneath us; nothing left to wait for
                pass

        await self.evaluator.close()
        await close_redis()
        logger.info("Alert scheduler stopped")

    async def run(self):
        """Run scheduler until SIGINT or SIGTERM."""
        self.start()

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:
                # add_signal_handler is unavailable on Windows event loops
                pass

        try:
            await stop.wait()
        finally:
            await self.shutdown()


async def main():
    """Main entry point for scheduler."""
    if settings.database_url.startswith("sqlite"):
        await init_db()
    scheduler = AlertScheduler()
    await scheduler.run()


def cli():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    cli()
