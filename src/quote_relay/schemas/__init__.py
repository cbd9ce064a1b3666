"""Pydantic schemas for quotes and WebSocket/HTTP payloads. Not persisted to DB."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from quote_relay.utils import utcnow


class CamelModel(BaseModel):
    """Immutable model serialized with camelCase keys (the dashboard's wire format)."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    def to_payload(self) -> dict[str, Any]:
        """Dump to a JSON-ready dict with camelCase keys, omitting unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Quote(BaseModel):
    """Upstream price/volume snapshot for one symbol."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    price: float
    change: float = 0.0
    change_percent: float = 0.0
    volume: int = 0
    timestamp: datetime = Field(default_factory=utcnow)
    high: float | None = None
    low: float | None = None
    open: float | None = None
    previous_close: float | None = None

    def to_price_update(self, initial: bool = False) -> dict[str, Any]:
        """Build the ``price:update`` payload; day fields only on initial delivery."""
        update: PriceUpdate = PriceUpdate(
            symbol=self.symbol,
            price=self.price,
            change=self.change,
            change_percent=self.change_percent,
            volume=self.volume,
            timestamp=self.timestamp,
        )
        if initial:
            update = InitialPriceUpdate(
                **update.model_dump(),
                high=self.high or 0.0,
                low=self.low or 0.0,
                open=self.open or 0.0,
                previous_close=self.previous_close or 0.0,
            )
        return update.to_payload()


class PriceUpdate(CamelModel):
    symbol: str
    price: float
    change: float
    change_percent: float
    volume: int
    timestamp: datetime


class InitialPriceUpdate(PriceUpdate):
    """First delivery for a newly activated symbol carries the day range."""

    high: float
    low: float
    open: float
    previous_close: float


class ServerMessage(BaseModel):
    """Outbound WebSocket frame: ``{"event": ..., "data": {...}}``."""

    model_config = ConfigDict(frozen=True)

    event: str
    data: dict[str, Any] = Field(default_factory=dict)


class ConnectedEvent(CamelModel):
    connection_id: str
    authenticated: bool
    user_id: int | None = None


class AlertTriggeredEvent(CamelModel):
    """Payload of ``alert:triggered``."""

    id: int
    symbol: str
    condition: str
    target_price: float
    current_price: float
    triggered_at: datetime


class Notification(CamelModel):
    """Generic user notification, shown regardless of channel."""

    type: str
    title: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)


class PortfolioSnapshot(CamelModel):
    """Portfolio totals computed by the analytics surface."""

    total_value: float
    total_gain: float
    total_gain_percent: float
    day_change: float
    day_change_percent: float


class PortfolioUpdate(PortfolioSnapshot):
    timestamp: datetime = Field(default_factory=utcnow)


class NewsItem(CamelModel):
    """Breaking-news payload pushed to every connection."""

    title: str
    summary: str
    source: str
    url: str
    symbols: list[str] | None = None
    timestamp: datetime = Field(default_factory=utcnow)


class AlertCheckResult(CamelModel):
    """Outcome of a manual alert check for one alert."""

    id: int
    symbol: str
    condition: str
    target_price: float
    status: str
    triggered: bool
    current_price: float | None = None
    triggered_at: datetime | None = None


class AlertStats(CamelModel):
    active: int = 0
    triggered: int = 0
    cancelled: int = 0
    total: int = 0


class ConnectionStats(CamelModel):
    total_connections: int
    authenticated_connections: int
    active_symbols: int
    symbol_subscriptions: dict[str, int]


class DeliveryReceipt(CamelModel):
    delivered: int


__all__ = [
    "AlertCheckResult",
    "AlertStats",
    "AlertTriggeredEvent",
    "CamelModel",
    "ConnectedEvent",
    "ConnectionStats",
    "DeliveryReceipt",
    "InitialPriceUpdate",
    "NewsItem",
    "Notification",
    "PortfolioSnapshot",
    "PortfolioUpdate",
    "PriceUpdate",
    "Quote",
    "ServerMessage",
]
