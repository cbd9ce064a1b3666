"""Client connections: handshake identity, inbound protocol, guaranteed cleanup."""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from fastapi import WebSocket, WebSocketDisconnect

from quote_relay.auth import IdentityVerifier, extract_bearer
from quote_relay.errors import AuthRequired, InvalidCredential, ValidationError
from quote_relay.schemas import ConnectedEvent, ServerMessage

if TYPE_CHECKING:
    from quote_relay.realtime.registry import SubscriptionRegistry

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 256


@dataclass(eq=False)
class Connection:
    """One live client session and its outbound message queue."""

    id: str
    user_id: int | None = None
    symbols: set[str] = field(default_factory=set)
    in_alerts: bool = False
    in_portfolio: bool = False
    closed: bool = False
    queue: asyncio.Queue[ServerMessage] = field(
        default_factory=lambda: asyncio.Queue(maxsize=DEFAULT_QUEUE_SIZE)
    )

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None

    def send(self, message: ServerMessage) -> bool:
        """Enqueue without blocking; a full queue drops the message."""
        if self.closed:
            return False
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Outbound queue full for %s; dropped %s", self.id, message.event)
            return False
        return True

    def send_event(self, event: str, data: dict[str, Any] | None = None) -> bool:
        return self.send(ServerMessage(event=event, data=data or {}))


def parse_frame(raw: str) -> tuple[str, Any]:
    """Parse ``{"event": str, "data": ...}``; raises ValidationError otherwise."""
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError("Malformed message: not JSON") from exc
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        raise ValidationError("Malformed message: expected {event, data}")
    return frame["event"], frame.get("data")


def _symbols_arg(data: Any) -> Any:
    return data.get("symbols") if isinstance(data, dict) else None


class ConnectionManager:
    """Resolves identity at handshake and delegates requests to the registry.

    ``disconnect`` runs the registry cleanup exactly once per connection,
    whichever path (client close, server error, shutdown) gets there first.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        verifier: IdentityVerifier,
        *,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self._registry = registry
        self._verifier = verifier
        self._queue_size = queue_size

    def _resolve_user(self, credential: str | None) -> int | None:
        if not credential:
            return None
        try:
            return self._verifier.verify(credential).user_id
        except InvalidCredential as exc:
            # Public price data stays available to anonymous clients.
            logger.debug("Rejected credential at handshake: %s", exc)
            return None

    async def connect(self, credential: str | None = None) -> Connection:
        """Create and register a connection, then queue the ``connected`` event."""
        connection = Connection(
            id=uuid4().hex,
            user_id=self._resolve_user(credential),
            queue=asyncio.Queue(maxsize=self._queue_size),
        )
        await self._registry.register(connection)
        connection.send_event(
            "connected",
            ConnectedEvent(
                connection_id=connection.id,
                authenticated=connection.authenticated,
                user_id=connection.user_id,
            ).to_payload(),
        )
        logger.info(
            "WebSocket connected: %s (authenticated: %s)",
            connection.id,
            connection.authenticated,
        )
        return connection

    async def handle_message(self, connection: Connection, event: str, data: Any) -> None:
        """Dispatch one inbound event; client errors go back as ``error``."""
        try:
            if event == "subscribe:prices":
                symbols = await self._registry.subscribe(connection.id, _symbols_arg(data))
                connection.send_event("subscribed:prices", {"symbols": symbols})
            elif event == "unsubscribe:prices":
                symbols = await self._registry.unsubscribe(connection.id, _symbols_arg(data))
                connection.send_event("unsubscribed:prices", {"symbols": symbols})
            elif event == "subscribe:alerts":
                await self._registry.join_alerts_channel(connection.id, connection.user_id)
                connection.send_event("subscribed:alerts")
            elif event == "subscribe:portfolio":
                await self._registry.join_portfolio_channel(connection.id, connection.user_id)
                connection.send_event("subscribed:portfolio")
            else:
                raise ValidationError(f"Unknown event: {event}")
        except (ValidationError, AuthRequired) as exc:
            connection.send_event("error", {"message": str(exc)})

    async def disconnect(self, connection: Connection, reason: str = "") -> None:
        if connection.closed:
            return
        connection.closed = True
        await self._registry.on_disconnect(connection.id)
        logger.info("WebSocket disconnected: %s (%s)", connection.id, reason or "closed")

    async def serve(self, websocket: WebSocket) -> None:
        """Run one WebSocket session until the client leaves.

        The credential comes from ``?token=`` or an ``Authorization: Bearer``
        header. A writer task drains the outbound queue while this coroutine
        reads inbound frames.
        """
        await websocket.accept()
        credential = websocket.query_params.get("token") or extract_bearer(
            websocket.headers.get("authorization")
        )
        connection = await self.connect(credential)
        writer = asyncio.create_task(
            self._pump(websocket, connection), name=f"ws-writer:{connection.id}"
        )
        reason = "client disconnect"
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    event, data = parse_frame(raw)
                except ValidationError as exc:
                    connection.send_event("error", {"message": str(exc)})
                    continue
                await self.handle_message(connection, event, data)
        except WebSocketDisconnect:
            pass
        except Exception as exc:  # pylint: disable=broad-except
            reason = "server error"
            logger.exception("WebSocket session error for %s: %s", connection.id, exc)
            try:
                await websocket.close(code=1011, reason="Server error")
            except Exception:  # pylint: disable=broad-except
                logger.debug("Close after error failed for %s", connection.id)
        finally:
            await self.disconnect(connection, reason)
            writer.cancel()
            await asyncio.gather(writer, return_exceptions=True)

    @staticmethod
    async def _pump(websocket: WebSocket, connection: Connection) -> None:
        try:
            while True:
                message = await connection.queue.get()
                await websocket.send_json(message.model_dump(mode="json"))
        except (WebSocketDisconnect, RuntimeError) as exc:
            logger.debug("Writer for %s stopped: %s", connection.id, exc)
