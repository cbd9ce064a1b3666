"""FastAPI dependency injection: app.state holds singletons; Depends() resolves them.

Lifespan (main.py) creates the provider, alert store and real-time engine once
and attaches them to app.state; these getters are used by Depends().
"""
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, WebSocket

from quote_relay.auth import Identity, IdentityVerifier, extract_bearer
from quote_relay.errors import InvalidCredential
from quote_relay.realtime import RealtimeService
from quote_relay.services import MarketService
from quote_relay.stores import AlertStoreABC


def get_realtime_service(request: Request) -> RealtimeService:
    """Resolve the real-time engine from app.state (created at startup)."""
    return request.app.state.realtime


def get_realtime_service_ws(websocket: WebSocket) -> RealtimeService:
    """Resolve the real-time engine for WebSocket routes."""
    return websocket.scope["app"].state.realtime


def get_stocks_service(request: Request) -> MarketService:
    """Resolve the pass-through stocks MarketService from app.state."""
    return request.app.state.stocks_service


def get_alert_store(request: Request) -> AlertStoreABC:
    """Resolve the alert store from app.state."""
    return request.app.state.alert_store


def get_identity(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> Identity:
    """Require a valid bearer token; 401 otherwise."""
    token = extract_bearer(authorization)
    if token is None:
        raise HTTPException(
            401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    verifier: IdentityVerifier = request.app.state.identity_verifier
    try:
        return verifier.verify(token)
    except InvalidCredential as exc:
        raise HTTPException(
            401,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


# Type aliases for route injection
RealtimeServiceDep = Annotated[RealtimeService, Depends(get_realtime_service)]
RealtimeServiceWs = Annotated[RealtimeService, Depends(get_realtime_service_ws)]
StocksService = Annotated[MarketService, Depends(get_stocks_service)]
AlertStoreDep = Annotated[AlertStoreABC, Depends(get_alert_store)]
CurrentIdentity = Annotated[Identity, Depends(get_identity)]
