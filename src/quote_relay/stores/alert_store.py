"""Alert store: reads ACTIVE alerts and writes the TRIGGERED transition."""
import asyncio
from abc import ABC, abstractmethod
from datetime import datetime

from sqlalchemy import func, update
from sqlalchemy.engine import Engine
from sqlmodel import select

from quote_relay.db.models import Alert, AlertStatus
from quote_relay.db.sessions import session_scope
from quote_relay.errors import AlreadyTerminal


class AlertStoreABC(ABC):
    """Persistence contract consumed by the alert evaluator.

    ``mark_triggered`` must be a conditional write: it succeeds only while the
    alert is still ACTIVE and raises AlreadyTerminal otherwise, so the first
    writer wins even across processes.
    """

    @abstractmethod
    async def list_active(self, symbol: str) -> list[Alert]:
        """Return ACTIVE alerts on a symbol."""

    @abstractmethod
    async def list_active_for_user(self, user_id: int) -> list[Alert]:
        """Return a user's ACTIVE alerts across all symbols."""

    @abstractmethod
    async def mark_triggered(self, alert_id: int, triggered_at: datetime) -> None:
        """Transition ACTIVE -> TRIGGERED. Raises AlreadyTerminal if not ACTIVE."""

    @abstractmethod
    async def count_by_status(self, user_id: int) -> dict[AlertStatus, int]:
        """Count a user's alerts per status."""


class SQLAlertStore(AlertStoreABC):
    """SQLModel-backed store. Sync sessions run in a worker thread."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def _list_active_sync(self, symbol: str) -> list[Alert]:
        with session_scope(self._engine) as session:
            stmt = select(Alert).where(
                Alert.symbol == symbol, Alert.status == AlertStatus.ACTIVE
            )
            return list(session.exec(stmt).all())

    def _list_active_for_user_sync(self, user_id: int) -> list[Alert]:
        with session_scope(self._engine) as session:
            stmt = (
                select(Alert)
                .where(Alert.user_id == user_id, Alert.status == AlertStatus.ACTIVE)
                .order_by(Alert.symbol, Alert.id)
            )
            return list(session.exec(stmt).all())

    def _mark_triggered_sync(self, alert_id: int, triggered_at: datetime) -> None:
        stmt = (
            update(Alert)
            .where(Alert.id == alert_id, Alert.status == AlertStatus.ACTIVE)
            .values(
                status=AlertStatus.TRIGGERED,
                triggered_at=triggered_at,
                updated_at=triggered_at,
            )
        )
        with self._engine.begin() as conn:
            result = conn.execute(stmt)
        if result.rowcount != 1:
            raise AlreadyTerminal(alert_id)

    def _count_by_status_sync(self, user_id: int) -> dict[AlertStatus, int]:
        with session_scope(self._engine) as session:
            stmt = (
                select(Alert.status, func.count())
                .where(Alert.user_id == user_id)
                .group_by(Alert.status)
            )
            counts = {status: 0 for status in AlertStatus}
            for status, count in session.exec(stmt).all():
                counts[AlertStatus(status)] = count
            return counts

    async def list_active(self, symbol: str) -> list[Alert]:
        return await asyncio.to_thread(self._list_active_sync, symbol)

    async def list_active_for_user(self, user_id: int) -> list[Alert]:
        return await asyncio.to_thread(self._list_active_for_user_sync, user_id)

    async def mark_triggered(self, alert_id: int, triggered_at: datetime) -> None:
        await asyncio.to_thread(self._mark_triggered_sync, alert_id, triggered_at)

    async def count_by_status(self, user_id: int) -> dict[AlertStatus, int]:
        return await asyncio.to_thread(self._count_by_status_sync, user_id)
