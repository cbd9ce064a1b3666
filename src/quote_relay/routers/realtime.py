"""WebSocket endpoint for real-time events plus connection stats/health."""
from fastapi import APIRouter, WebSocket

from quote_relay.deps import RealtimeServiceDep, RealtimeServiceWs
from quote_relay.schemas import ConnectionStats

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, service: RealtimeServiceWs) -> None:
    """Real-time events over WebSocket.

    Authenticate with ``/ws?token=<jwt>`` or an ``Authorization: Bearer`` header;
    anonymous clients may still subscribe to prices. Frames are JSON
    ``{"event": ..., "data": {...}}``, e.g.
    ``{"event": "subscribe:prices", "data": {"symbols": ["AAPL", "MSFT"]}}``.
    """
    await service.connections.serve(websocket)


@router.get("/websocket/stats", response_model=ConnectionStats)
async def get_websocket_stats(service: RealtimeServiceDep) -> ConnectionStats:
    """Connection counts and per-symbol subscriber counts."""
    return service.stats()


@router.get("/websocket/health")
async def get_websocket_health(service: RealtimeServiceDep) -> dict[str, object]:
    """Report whether the real-time engine is running."""
    return {
        "healthy": True,
        "message": "WebSocket server is running",
        "activeSymbols": service.registry.active_symbols(),
    }
