"""Database models for the quote relay.

Only price alerts are persisted here; users, watchlists and alert CRUD belong
to the dashboard API. Quotes are never stored.
"""
from datetime import datetime
from enum import Enum

from sqlmodel import Field, SQLModel

from quote_relay.utils import utcnow


class AlertCondition(str, Enum):
    """Price condition an alert watches for."""

    ABOVE = "ABOVE"
    BELOW = "BELOW"
    CROSSES_ABOVE = "CROSSES_ABOVE"
    CROSSES_BELOW = "CROSSES_BELOW"


class AlertStatus(str, Enum):
    """Alert lifecycle. TRIGGERED and CANCELLED are terminal."""

    ACTIVE = "ACTIVE"
    TRIGGERED = "TRIGGERED"
    CANCELLED = "CANCELLED"


class Alert(SQLModel, table=True):
    """Price alert for a user on one symbol."""

    __tablename__ = "price_alert"  # type: ignore[assignment]

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    symbol: str = Field(index=True)
    condition: AlertCondition
    target_price: float
    status: AlertStatus = Field(default=AlertStatus.ACTIVE, index=True)
    note: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    triggered_at: datetime | None = None  # set only on ACTIVE -> TRIGGERED
