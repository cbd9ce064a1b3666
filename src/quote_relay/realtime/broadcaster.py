"""Fan-out of server events to the connections of a symbol or user channel."""
import logging
from collections.abc import Iterable

from quote_relay.realtime.connection import Connection
from quote_relay.realtime.registry import SubscriptionRegistry
from quote_relay.schemas import (AlertTriggeredEvent, NewsItem, Notification,
                                 PortfolioSnapshot, PortfolioUpdate, Quote,
                                 ServerMessage)

logger = logging.getLogger(__name__)


class Broadcaster:
    """Delivers each message to the channel members present at publish time.

    Every publish returns the number of connections the message was queued for.
    """

    def __init__(self, registry: SubscriptionRegistry) -> None:
        self._registry = registry

    @staticmethod
    def _deliver(connections: Iterable[Connection], message: ServerMessage) -> int:
        return sum(1 for connection in connections if connection.send(message))

    def publish_price(self, symbol: str, quote: Quote, initial: bool = False) -> int:
        message = ServerMessage(event="price:update", data=quote.to_price_update(initial))
        return self._deliver(self._registry.subscribers(symbol), message)

    def publish_alert_triggered(self, user_id: int, event: AlertTriggeredEvent) -> int:
        """Send ``alert:triggered`` to the user's alert channel and a generic
        ``notification`` to all of the user's connections."""
        payload = event.to_payload()
        delivered = self._deliver(
            self._registry.alert_connections(user_id),
            ServerMessage(event="alert:triggered", data=payload),
        )
        notification = Notification(
            type="alert_triggered",
            title="Price Alert Triggered",
            message=(
                f"{event.symbol} is now {event.condition.lower()} ${event.target_price:g}"
            ),
            data=payload,
        )
        delivered += self._deliver(
            self._registry.user_connections(user_id),
            ServerMessage(event="notification", data=notification.to_payload()),
        )
        logger.info(
            "Alert notification sent to user %s: %s %s %s",
            user_id,
            event.symbol,
            event.condition,
            event.target_price,
        )
        return delivered

    def publish_portfolio_update(self, user_id: int, payload: PortfolioSnapshot) -> int:
        update = PortfolioUpdate(**payload.model_dump())
        return self._deliver(
            self._registry.portfolio_connections(user_id),
            ServerMessage(event="portfolio:update", data=update.to_payload()),
        )

    def broadcast_news(self, news: NewsItem) -> int:
        return self._deliver(
            self._registry.connections(),
            ServerMessage(event="news:breaking", data=news.to_payload()),
        )
