"""Shared fixtures for the quote relay tests."""
import asyncio
from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import jwt
import pytest

from quote_relay.auth import JwtIdentityVerifier
from quote_relay.db.models import Alert, AlertCondition, AlertStatus
from quote_relay.db.sessions import create_db_engine, init_db, session_scope
from quote_relay.providers.core import MarketDataProviderABC
from quote_relay.realtime import Connection, RealtimeService
from quote_relay.schemas import Quote, ServerMessage
from quote_relay.stores import SQLAlertStore

JWT_SECRET = "test-secret-for-quote-relay-0123456789"

# Long enough that only the immediate fetch happens during a test.
IDLE_INTERVAL = 3600.0


def make_quote(symbol: str, price: float, **kwargs) -> Quote:
    defaults = {
        "change": 1.5,
        "change_percent": 0.75,
        "volume": 1_000,
        "high": price + 2,
        "low": price - 2,
        "open": price - 1,
        "previous_close": price - 1.5,
    }
    defaults.update(kwargs)
    return Quote(symbol=symbol, price=price, **defaults)


def make_token(user_id, secret: str = JWT_SECRET) -> str:
    return jwt.encode({"userId": user_id}, secret, algorithm="HS256")


def drain(connection: Connection) -> list[ServerMessage]:
    """Pop everything queued for a connection."""
    messages = []
    while not connection.queue.empty():
        messages.append(connection.queue.get_nowait())
    return messages


def events(messages: list[ServerMessage], name: str) -> list[ServerMessage]:
    return [m for m in messages if m.event == name]


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the loop until predicate() holds; fail on timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def provider():
    """Mock market data provider returning a fixed quote per symbol."""
    mock = MagicMock(spec=MarketDataProviderABC)

    async def _quote(symbol: str) -> Quote:
        return make_quote(symbol, 100.0)

    mock.get_quote = AsyncMock(side_effect=_quote)
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def engine():
    """In-memory SQLite engine with tables created."""
    db_engine = create_db_engine("sqlite://")
    init_db(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def alert_store(engine):
    return SQLAlertStore(engine)


@pytest.fixture
def add_alert(engine):
    """Insert an alert row and return it."""

    def _add(
        symbol: str = "AAPL",
        condition: AlertCondition = AlertCondition.ABOVE,
        target_price: float = 200.0,
        user_id: int = 1,
        status: AlertStatus = AlertStatus.ACTIVE,
    ) -> Alert:
        alert = Alert(
            user_id=user_id,
            symbol=symbol,
            condition=condition,
            target_price=target_price,
            status=status,
        )
        with session_scope(engine) as session:
            session.add(alert)
            session.flush()
            session.refresh(alert)
        return alert

    return _add


@pytest.fixture
def get_alert(engine):
    def _get(alert_id: int) -> Alert:
        with session_scope(engine) as session:
            return session.get(Alert, alert_id)

    return _get


@pytest.fixture
def verifier():
    return JwtIdentityVerifier(JWT_SECRET)


@pytest.fixture
async def service(provider, alert_store, verifier):
    """Real-time engine over the mock provider; polling stopped at teardown."""
    svc = RealtimeService(provider, alert_store, verifier, poll_interval=IDLE_INTERVAL)
    yield svc
    await svc.close()
