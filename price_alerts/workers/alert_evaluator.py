"""Alert evaluator: one cluster-wide pass over all active price alerts."""
import logging
import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Set

from price_alerts.core.config import settings
from price_alerts.core.database import AsyncSessionLocal
from price_alerts.models import Alert
from price_alerts.notifications import Notifier, TriggerEvent, build_notifier
from price_alerts.providers import QuoteProvider
from price_alerts.providers.alpaca import AlpacaQuoteProvider
from price_alerts.providers.models import Quote
from price_alerts.services import (
    AlertService,
    PriceCache,
    RedisLock,
    holds,
    is_eligible,
    parse_operator,
)

logger = logging.getLogger(__name__)

# Fraction of the lock TTL kept free at the end of a run
LOCK_SAFETY_MARGIN = 0.1


@dataclass
class EvaluationResult:
    """Summary of a single evaluation run."""
    acquired: bool = False
    aborted: bool = False
    cancelled: bool = False
    expired: bool = False
    alerts_loaded: int = 0
    symbols_requested: int = 0
    symbols_failed: List[str] = field(default_factory=list)
    alerts_evaluated: int = 0
    alerts_skipped: int = 0
    debounced: int = 0
    triggered: List[str] = field(default_factory=list)
    persist_failures: int = 0


class EvaluationCancelled(Exception):
    """Raised inside a run when shutdown was requested."""
    pass


class LockDeadlineReached(Exception):
    """Raised inside a run when the remaining lock TTL is too short to continue."""
    pass


class AlertEvaluator:
    """Evaluate active alerts against live quotes and fire due triggers."""

    def __init__(
        self,
        provider: Optional[QuoteProvider] = None,
        notifier: Optional[Notifier] = None,
        lock: Optional[RedisLock] = None,
        price_cache: Optional[PriceCache] = None,
        config=None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = config or settings
        self.provider = provider or AlpacaQuoteProvider()
        self.notifier = notifier or build_notifier(self.settings)
        self.lock = lock or RedisLock()
        self.price_cache = price_cache or PriceCache(
            max_age=timedelta(seconds=self.settings.effective_price_cache_max_age_seconds)
        )
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        self.lock_key = self.settings.lock_key
        self.lock_ttl = timedelta(seconds=self.settings.effective_lock_ttl_seconds)
        self.cooldown = timedelta(seconds=self.settings.cooldown_seconds)

        self._shutdown = asyncio.Event()
        self._pending: Set[asyncio.Task] = set()
        self._deadline: Optional[float] = None

    def request_shutdown(self):
        """Ask the current and future runs to stop at the next checkpoint."""
        self._shutdown.set()

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown.is_set()

    def _check_shutdown(self):
        if self._shutdown.is_set():
            raise EvaluationCancelled()

    def _time_left(self) -> float:
        """Seconds until the run must be finished to stay inside the lock TTL."""
        return self._deadline - asyncio.get_running_loop().time()

    def _check_deadline(self, needed: float = 0.0):
        """Stop the run unless ``needed`` seconds still fit before the deadline."""
        if self._time_left() < needed:
            raise LockDeadlineReached()

    def _bounded_timeout(self, timeout: float) -> float:
        """Cap a call timeout to the time left under the lock."""
        self._check_deadline()
        return min(timeout, self._time_left())

    async def run_once(self) -> EvaluationResult:
        """
        Run one evaluation pass.

        Only one instance in the cluster gets past the lock. Every other
        caller returns immediately without touching the alert store. This
        method never raises, except for asyncio.CancelledError when the
        surrounding task is cancelled; the lock is released in either case.

        Returns:
            EvaluationResult describing what happened
        """
        result = EvaluationResult()
        if self._shutdown.is_set():
            result.cancelled = True
            return result

        # Taken before the acquire so the deadline never trails the Redis expiry
        started = asyncio.get_running_loop().time()
        try:
            acquired = await self.lock.try_acquire(self.lock_key, self.lock_ttl)
        except Exception as e:
            logger.error(f"Could not reach lock backend, skipping run: {e}", exc_info=True)
            result.aborted = True
            return result

        if not acquired:
            logger.debug("Another instance is processing alerts")
            return result

        result.acquired = True
        self._deadline = started + self.lock_ttl.total_seconds() * (1 - LOCK_SAFETY_MARGIN)
        try:
            await self._evaluate(result)
        except EvaluationCancelled:
            result.cancelled = True
            logger.info("Shutdown requested, stopping evaluation run early")
        except LockDeadlineReached:
            result.expired = True
            logger.warning(
                f"Lock {self.lock_key} TTL nearly used up, stopping run early; "
                f"remaining alerts are evaluated next tick"
            )
        except Exception as e:
            result.aborted = True
            logger.error(f"Unexpected error during alert evaluation: {e}", exc_info=True)
        finally:
            await self._release_lock()

        logger.info(
            f"Evaluation run finished: {result.alerts_loaded} alerts, "
            f"{len(result.triggered)} triggered, {result.debounced} debounced, "
            f"{len(result.symbols_failed)} symbols unavailable"
        )
        return result

    async def _evaluate(self, result: EvaluationResult):
        """Body of a run, executed while holding the lock."""
        now = self.clock()
        self._check_shutdown()

        load_timeout = self._bounded_timeout(self.settings.store_timeout_seconds)
        try:
            alerts = await asyncio.wait_for(self._load_alerts(), timeout=load_timeout)
        except Exception as e:
            result.aborted = True
            logger.error(f"Failed to load active alerts, aborting run: {str(e) or type(e).__name__}", exc_info=True)
            return

        result.alerts_loaded = len(alerts)
        if not alerts:
            logger.debug("No active alerts")
            return

        self._check_shutdown()

        alerts_by_symbol = self.group_by_symbol(alerts)
        result.symbols_requested = len(alerts_by_symbol)

        quotes = await self._fetch_quotes(alerts_by_symbol.keys())
        self._check_shutdown()

        prices: Dict[str, Decimal] = {}
        for symbol, symbol_alerts in alerts_by_symbol.items():
            quote = quotes.get(symbol)
            if isinstance(quote, Quote):
                prices[symbol] = quote.midpoint
                continue
            reason = getattr(quote, "reason", "missing from response")
            logger.warning(f"Skipping {len(symbol_alerts)} alert(s) for {symbol}: quote unavailable ({reason})")
            result.symbols_failed.append(symbol)
            result.alerts_skipped += len(symbol_alerts)

        prior_prices = await self._load_prior_prices(alerts_by_symbol, prices, now)

        # Alerts are evaluated one at a time within a run
        for symbol, price in prices.items():
            for alert in alerts_by_symbol[symbol]:
                await self._evaluate_alert(alert, price, prior_prices.get(symbol), now, result)

        self._check_deadline()
        await self._store_prices(prices, now)

    @staticmethod
    def group_by_symbol(alerts: Iterable[Alert]) -> Dict[str, List[Alert]]:
        """Group alerts by upper-cased symbol."""
        grouped: Dict[str, List[Alert]] = defaultdict(list)
        for alert in alerts:
            if not alert.symbol:
                logger.warning(f"Alert {alert.id} has no symbol, ignoring")
                continue
            grouped[alert.symbol.upper()].append(alert)
        return dict(grouped)

    async def _load_alerts(self) -> List[Alert]:
        async with AsyncSessionLocal() as db:
            return await AlertService.get_active_alerts(db)

    async def _fetch_quotes(self, symbols: Iterable[str]) -> Dict:
        """Fetch quotes for the symbol set; a whole-batch failure yields no quotes."""
        symbols = set(symbols)
        timeout = self._bounded_timeout(self.settings.quote_timeout_seconds)
        try:
            return await asyncio.wait_for(
                self.provider.get_latest_quotes(symbols),
                timeout=timeout
            )
        except Exception as e:
            logger.warning(f"Quote fetch failed for {len(symbols)} symbol(s): {str(e) or type(e).__name__}")
            return {}

    async def _load_prior_prices(
        self,
        alerts_by_symbol: Dict[str, List[Alert]],
        prices: Dict[str, Decimal],
        now: datetime
    ) -> Dict[str, Decimal]:
        """Prior midpoints, only for quoted symbols with crossing alerts."""
        needed = []
        for symbol in prices:
            for alert in alerts_by_symbol[symbol]:
                try:
                    if parse_operator(alert.operator).needs_prior_price:
                        needed.append(symbol)
                        break
                except ValueError:
                    continue
        if not needed:
            return {}

        try:
            return await self.price_cache.get_prices(needed, now)
        except Exception as e:
            logger.warning(f"Could not read prior prices, crossing alerts skipped this run: {e}")
            return {}

    async def _store_prices(self, prices: Dict[str, Decimal], now: datetime):
        try:
            await self.price_cache.set_prices(prices, now)
        except Exception as e:
            logger.warning(f"Could not record observed prices: {e}")

    async def _evaluate_alert(
        self,
        alert: Alert,
        price: Decimal,
        prior_price: Optional[Decimal],
        now: datetime,
        result: EvaluationResult
    ):
        """Check one alert and fire it if due."""
        try:
            operator = parse_operator(alert.operator)
            threshold = alert.threshold if isinstance(alert.threshold, Decimal) else Decimal(str(alert.threshold))
            if not threshold.is_finite():
                raise ValueError(f"non-finite threshold {alert.threshold!r}")
        except (ValueError, ArithmeticError) as e:
            logger.warning(f"Skipping alert {alert.id}: {e}")
            result.alerts_skipped += 1
            return

        result.alerts_evaluated += 1

        if not holds(operator, threshold, price, prior_price):
            return

        if not is_eligible(alert.last_triggered_at, now, self.cooldown):
            result.debounced += 1
            logger.debug(f"Alert {alert.id} in cooldown since {alert.last_triggered_at}")
            return

        self._check_shutdown()
        # Dispatch only when the persist that follows still fits under the lock
        self._check_deadline(self.settings.store_timeout_seconds)

        logger.info(
            f"Alert triggered for user {alert.user_id}: {alert.symbol} {operator.value} "
            f"{threshold}, current price: {price}"
        )
        event = TriggerEvent(
            alert_id=alert.id,
            user_id=alert.user_id,
            symbol=alert.symbol.upper(),
            operator=operator.value,
            threshold=threshold,
            observed_price=price,
            triggered_at=now
        )

        # Notify before persisting; a crash in between can re-notify
        self._dispatch(event)
        result.triggered.append(alert.id)

        if not await self._persist_trigger(alert.id, now):
            result.persist_failures += 1

    async def _persist_trigger(self, alert_id: str, now: datetime) -> bool:
        try:
            await asyncio.wait_for(
                self._mark_triggered(alert_id, now),
                timeout=self.settings.store_timeout_seconds
            )
            return True
        except Exception as e:
            logger.error(
                f"Failed to record trigger for alert {alert_id}, it may notify again: "
                f"{str(e) or type(e).__name__}",
                exc_info=True
            )
            return False

    async def _mark_triggered(self, alert_id: str, now: datetime) -> bool:
        async with AsyncSessionLocal() as db:
            return await AlertService.mark_triggered(db, alert_id, now)

    def _dispatch(self, event: TriggerEvent):
        """Hand the event to the notifier without waiting for delivery."""
        task = asyncio.create_task(self._deliver(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event: TriggerEvent):
        try:
            await self.notifier.send(event)
        except Exception as e:
            logger.error(f"Error sending alert {event.alert_id} to user {event.user_id}: {e}", exc_info=True)

    async def _release_lock(self):
        try:
            await self.lock.release(self.lock_key)
        except Exception as e:
            # TTL frees it eventually
            logger.warning(f"Failed to release lock {self.lock_key}: {e}")

    async def drain_notifications(self, timeout: Optional[float] = None) -> int:
        """
        Wait for in-flight notifications.

        Returns:
            Number of deliveries still pending after the timeout
        """
        if not self._pending:
            return 0
        _, pending = await asyncio.wait(set(self._pending), timeout=timeout)
        return len(pending)

    async def close(self, timeout: float = 10.0):
        """Flush notifications and release collaborators."""
        remaining = await self.drain_notifications(timeout=timeout)
        if remaining:
            logger.warning(f"{remaining} notification(s) still pending at shutdown")
        await self.provider.close()
        await self.notifier.close()
