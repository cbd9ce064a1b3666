"""Subscription registry: who is listening to what.

All mutations (register, subscribe, unsubscribe, disconnect, channel joins)
run under a single asyncio.Lock with no I/O inside, so concurrent requests
from many connections never lose an update. Each symbol's subscriber set and
its poll handle live in the same entry: a handle exists iff the set is
non-empty.
"""
import asyncio
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from quote_relay.errors import AuthRequired, ValidationError
from quote_relay.providers.core import normalize_stock_symbol
from quote_relay.realtime.connection import Connection
from quote_relay.realtime.poller import PollHandle, QuotePoller
from quote_relay.schemas import ConnectionStats

logger = logging.getLogger(__name__)

MAX_SYMBOLS_PER_CONNECTION = 20
_SYMBOL_RE = re.compile(r"^[A-Z0-9.\-^=]{1,20}$")


def normalize_symbols(symbols: Any, *, strict: bool = True) -> list[str]:
    """Upper-case a client symbol list, de-duplicated, in order.

    In strict mode a malformed list raises. Otherwise malformed input is
    skipped: a non-list yields no symbols and bad entries are dropped.

    Raises:
        ValidationError: strict mode and not a list, empty, or a bad entry.
    """
    if not isinstance(symbols, list) or not symbols:
        if strict:
            raise ValidationError("Invalid symbols array")
        return []
    normalized: list[str] = []
    for raw in symbols:
        if not isinstance(raw, str):
            if strict:
                raise ValidationError("Invalid symbols array")
            continue
        symbol = normalize_stock_symbol(raw)
        if not _SYMBOL_RE.match(symbol):
            if strict:
                raise ValidationError(f"Invalid symbol: {raw!r}")
            continue
        if symbol not in normalized:
            normalized.append(symbol)
    return normalized


@dataclass(eq=False)
class SymbolSubscription:
    symbol: str
    subscribers: set[str] = field(default_factory=set)
    handle: PollHandle | None = None


class SubscriptionRegistry:
    """Serialized coordinator of symbol and user channel memberships."""

    def __init__(
        self,
        poller: QuotePoller,
        max_symbols: int = MAX_SYMBOLS_PER_CONNECTION,
    ) -> None:
        self._poller = poller
        self._max_symbols = max_symbols
        self._lock = asyncio.Lock()
        self._connections: dict[str, Connection] = {}
        self._symbols: dict[str, SymbolSubscription] = {}
        self._user_rooms: dict[int, set[str]] = {}
        self._alert_rooms: dict[int, set[str]] = {}
        self._portfolio_rooms: dict[int, set[str]] = {}

    @property
    def max_symbols(self) -> int:
        return self._max_symbols

    # --- mutations ---------------------------------------------------------

    async def register(self, connection: Connection) -> None:
        """Add a live connection; authenticated ones join their user room."""
        async with self._lock:
            self._connections[connection.id] = connection
            if connection.user_id is not None:
                self._user_rooms.setdefault(connection.user_id, set()).add(connection.id)

    async def subscribe(self, connection_id: str, symbols: Any) -> list[str]:
        """Subscribe a connection to symbols, all or nothing.

        Starts a poll task for every symbol that had no subscribers.

        Returns:
            The normalized symbols applied.

        Raises:
            ValidationError: malformed list, unknown connection, or the
                connection would exceed the per-connection symbol cap.
        """
        normalized = normalize_symbols(symbols)
        async with self._lock:
            connection = self._require(connection_id)
            if len(connection.symbols | set(normalized)) > self._max_symbols:
                raise ValidationError(
                    f"Maximum {self._max_symbols} symbols per connection"
                )
            for symbol in normalized:
                entry = self._symbols.get(symbol)
                if entry is None:
                    entry = self._symbols[symbol] = SymbolSubscription(symbol)
                entry.subscribers.add(connection_id)
                connection.symbols.add(symbol)
                if entry.handle is None:
                    entry.handle = self._poller.start(symbol)
        logger.debug("Connection %s subscribed to prices: %s", connection_id, ", ".join(normalized))
        return normalized

    async def unsubscribe(self, connection_id: str, symbols: Any) -> list[str]:
        """Drop symbols from a connection.

        Malformed entries and symbols the connection never had are ignored.
        """
        normalized = normalize_symbols(symbols, strict=False)
        async with self._lock:
            connection = self._connections.get(connection_id)
            if connection is not None:
                for symbol in normalized:
                    if symbol in connection.symbols:
                        connection.symbols.discard(symbol)
                        self._release(symbol, connection_id)
        logger.debug("Connection %s unsubscribed from prices: %s", connection_id, ", ".join(normalized))
        return normalized

    async def on_disconnect(self, connection_id: str) -> bool:
        """Remove a connection from every symbol and channel.

        Returns:
            False if the connection was already gone.
        """
        async with self._lock:
            connection = self._connections.pop(connection_id, None)
            if connection is None:
                return False
            connection.closed = True
            for symbol in list(connection.symbols):
                self._release(symbol, connection_id)
            connection.symbols.clear()
            if connection.user_id is not None:
                for rooms in (self._user_rooms, self._alert_rooms, self._portfolio_rooms):
                    self._leave(rooms, connection.user_id, connection_id)
            connection.in_alerts = connection.in_portfolio = False
        return True

    async def join_alerts_channel(self, connection_id: str, user_id: int | None) -> None:
        if user_id is None:
            raise AuthRequired("Authentication required for alert notifications")
        async with self._lock:
            connection = self._require(connection_id)
            self._alert_rooms.setdefault(user_id, set()).add(connection_id)
            connection.in_alerts = True
        logger.debug("Connection %s subscribed to alert notifications", connection_id)

    async def join_portfolio_channel(self, connection_id: str, user_id: int | None) -> None:
        if user_id is None:
            raise AuthRequired("Authentication required for portfolio updates")
        async with self._lock:
            connection = self._require(connection_id)
            self._portfolio_rooms.setdefault(user_id, set()).add(connection_id)
            connection.in_portfolio = True
        logger.debug("Connection %s subscribed to portfolio updates", connection_id)

    async def close(self) -> None:
        """Stop every poll task (shutdown)."""
        async with self._lock:
            for entry in self._symbols.values():
                entry.handle = None
            self._symbols.clear()
            for connection in self._connections.values():
                connection.symbols.clear()
        await self._poller.close()

    def _require(self, connection_id: str) -> Connection:
        connection = self._connections.get(connection_id)
        if connection is None:
            raise ValidationError("Connection is not registered")
        return connection

    def _release(self, symbol: str, connection_id: str) -> None:
        """Drop one subscriber; tear down polling when the last one leaves."""
        entry = self._symbols.get(symbol)
        if entry is None:
            return
        entry.subscribers.discard(connection_id)
        if entry.subscribers:
            return
        del self._symbols[symbol]
        if entry.handle is not None:
            self._poller.stop(entry.handle)
            entry.handle = None

    @staticmethod
    def _leave(rooms: dict[int, set[str]], user_id: int, connection_id: str) -> None:
        members = rooms.get(user_id)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del rooms[user_id]

    # --- snapshots (no awaits, so consistent within one event-loop step) ---

    def _resolve(self, ids: Iterable[str]) -> list[Connection]:
        return [self._connections[c] for c in ids if c in self._connections]

    def subscribers(self, symbol: str) -> list[Connection]:
        entry = self._symbols.get(symbol)
        return self._resolve(entry.subscribers) if entry else []

    def user_connections(self, user_id: int) -> list[Connection]:
        return self._resolve(self._user_rooms.get(user_id, ()))

    def alert_connections(self, user_id: int) -> list[Connection]:
        return self._resolve(self._alert_rooms.get(user_id, ()))

    def portfolio_connections(self, user_id: int) -> list[Connection]:
        return self._resolve(self._portfolio_rooms.get(user_id, ()))

    def connections(self) -> list[Connection]:
        return list(self._connections.values())

    def subscriber_count(self, symbol: str) -> int:
        entry = self._symbols.get(symbol)
        return len(entry.subscribers) if entry else 0

    def has_poll_task(self, symbol: str) -> bool:
        entry = self._symbols.get(symbol)
        return entry is not None and entry.handle is not None

    def poll_handle(self, symbol: str) -> PollHandle | None:
        entry = self._symbols.get(symbol)
        return entry.handle if entry else None

    def active_symbols(self) -> list[str]:
        return sorted(self._symbols)

    def stats(self) -> ConnectionStats:
        connections = self._connections.values()
        return ConnectionStats(
            total_connections=len(self._connections),
            authenticated_connections=sum(1 for c in connections if c.authenticated),
            active_symbols=len(self._symbols),
            symbol_subscriptions={
                symbol: len(entry.subscribers) for symbol, entry in self._symbols.items()
            },
        )
