"""Composition root for the real-time engine."""
import logging

from quote_relay.auth import IdentityVerifier
from quote_relay.providers.core import MarketDataProviderABC
from quote_relay.realtime.alerts import AlertEvaluator
from quote_relay.realtime.broadcaster import Broadcaster
from quote_relay.realtime.connection import DEFAULT_QUEUE_SIZE, ConnectionManager
from quote_relay.realtime.poller import DEFAULT_POLL_INTERVAL, QuotePoller
from quote_relay.realtime.registry import (MAX_SYMBOLS_PER_CONNECTION,
                                           SubscriptionRegistry)
from quote_relay.schemas import ConnectionStats, Quote
from quote_relay.stores import AlertStoreABC

logger = logging.getLogger(__name__)


class RealtimeService:
    """Wires connections, registry, poller, broadcaster and alert evaluator.

    Each fetched quote is published to the symbol's subscribers first and then
    handed to the alert evaluator.
    """

    def __init__(
        self,
        provider: MarketDataProviderABC,
        alert_store: AlertStoreABC,
        verifier: IdentityVerifier,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_symbols: int = MAX_SYMBOLS_PER_CONNECTION,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self.poller = QuotePoller(provider, self._on_quote, interval=poll_interval)
        self.registry = SubscriptionRegistry(self.poller, max_symbols=max_symbols)
        self.broadcaster = Broadcaster(self.registry)
        self.alerts = AlertEvaluator(alert_store, self.broadcaster, self.poller.fetch)
        self.connections = ConnectionManager(self.registry, verifier, queue_size=queue_size)

    async def _on_quote(self, quote: Quote, initial: bool) -> None:
        self.broadcaster.publish_price(quote.symbol, quote, initial=initial)
        await self.alerts.evaluate(quote)

    def stats(self) -> ConnectionStats:
        return self.registry.stats()

    async def close(self) -> None:
        """Stop all polling. Connections end when the server closes their sockets."""
        await self.registry.close()
        logger.info("Real-time engine stopped")
