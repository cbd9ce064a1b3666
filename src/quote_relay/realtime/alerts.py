"""Price-alert evaluation: the ACTIVE -> TRIGGERED transition.

CROSSES_ABOVE / CROSSES_BELOW are evaluated exactly like ABOVE / BELOW: no
previous price is kept per alert, so "crossing" means "is now at or past the
target".
"""
import asyncio
import logging
import weakref
from collections.abc import Awaitable, Callable

from quote_relay.db.models import Alert, AlertCondition, AlertStatus
from quote_relay.errors import AlreadyTerminal
from quote_relay.realtime.broadcaster import Broadcaster
from quote_relay.schemas import AlertCheckResult, AlertTriggeredEvent, Quote
from quote_relay.stores import AlertStoreABC
from quote_relay.utils import utcnow

logger = logging.getLogger(__name__)

QuoteFetcher = Callable[[str], Awaitable[Quote]]

_AT_OR_ABOVE = frozenset({AlertCondition.ABOVE, AlertCondition.CROSSES_ABOVE})


def condition_met(condition: AlertCondition, price: float, target_price: float) -> bool:
    if condition in _AT_OR_ABOVE:
        return price >= target_price
    return price <= target_price


class AlertEvaluator:
    """Checks ACTIVE alerts against quotes and triggers each at most once.

    Decide-and-write runs under a per-alert lock in this process; the store's
    conditional write settles races with other processes (first write wins).
    """

    def __init__(
        self,
        store: AlertStoreABC,
        broadcaster: Broadcaster,
        fetch_quote: QuoteFetcher,
    ) -> None:
        self._store = store
        self._broadcaster = broadcaster
        self._fetch_quote = fetch_quote
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, alert_id: int) -> asyncio.Lock:
        lock = self._locks.get(alert_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[alert_id] = lock
        return lock

    async def evaluate(self, quote: Quote) -> list[AlertTriggeredEvent]:
        """Evaluate every ACTIVE alert on the quote's symbol; return the triggers."""
        alerts = await self._store.list_active(quote.symbol)
        events: list[AlertTriggeredEvent] = []
        for alert in alerts:
            event = await self._try_trigger(alert, quote.price)
            if event is not None:
                events.append(event)
        return events

    async def check_user_alerts(self, user_id: int) -> list[AlertCheckResult]:
        """Check all of a user's ACTIVE alerts now, one quote fetch per symbol."""
        alerts = await self._store.list_active_for_user(user_id)
        by_symbol: dict[str, list[Alert]] = {}
        for alert in alerts:
            by_symbol.setdefault(alert.symbol, []).append(alert)

        symbols = list(by_symbol)
        quotes = await asyncio.gather(
            *(self._fetch_quote(s) for s in symbols), return_exceptions=True
        )

        results: list[AlertCheckResult] = []
        for symbol, quote in zip(symbols, quotes):
            if isinstance(quote, Exception):
                logger.error("Failed to get quote for %s: %s", symbol, quote)
                results.extend(_check_result(a) for a in by_symbol[symbol])
                continue
            for alert in by_symbol[symbol]:
                event = await self._try_trigger(alert, quote.price)
                results.append(_check_result(alert, quote.price, event))
        return results

    async def _try_trigger(
        self, alert: Alert, price: float
    ) -> AlertTriggeredEvent | None:
        async with self._lock_for(alert.id):
            if not condition_met(alert.condition, price, alert.target_price):
                return None
            triggered_at = utcnow()
            try:
                await self._store.mark_triggered(alert.id, triggered_at)
            except AlreadyTerminal:
                logger.debug("Alert %s already terminal; skipping", alert.id)
                return None
            except Exception:  # pylint: disable=broad-except
                logger.exception("Failed to mark alert %s triggered", alert.id)
                return None

        event = AlertTriggeredEvent(
            id=alert.id,
            symbol=alert.symbol,
            condition=AlertCondition(alert.condition).value,
            target_price=alert.target_price,
            current_price=price,
            triggered_at=triggered_at,
        )
        logger.info(
            "Alert %s triggered: %s %s %s, current: %s",
            alert.id,
            alert.symbol,
            event.condition,
            alert.target_price,
            price,
        )
        self._broadcaster.publish_alert_triggered(alert.user_id, event)
        return event


def _check_result(
    alert: Alert,
    current_price: float | None = None,
    event: AlertTriggeredEvent | None = None,
) -> AlertCheckResult:
    return AlertCheckResult(
        id=alert.id,
        symbol=alert.symbol,
        condition=AlertCondition(alert.condition).value,
        target_price=alert.target_price,
        status=(AlertStatus.TRIGGERED if event else AlertStatus(alert.status)).value,
        triggered=event is not None,
        current_price=current_price,
        triggered_at=event.triggered_at if event else alert.triggered_at,
    )
