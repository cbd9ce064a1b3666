"""API routers.

Includes routes for:
- /ws - WebSocket for price, alert and portfolio events
- /websocket - connection stats and health
- /alerts - manual alert check and alert stats for the caller
- /portfolio - push portfolio snapshots to the caller's portfolio channel
- /news - broadcast breaking news to every connection
- /stocks - pass-through stock quotes
"""
from quote_relay.routers.alerts import router as alerts_router
from quote_relay.routers.news import router as news_router
from quote_relay.routers.portfolio import router as portfolio_router
from quote_relay.routers.realtime import router as realtime_router
from quote_relay.routers.stocks import router as stocks_router

__all__ = [
    "alerts_router",
    "news_router",
    "portfolio_router",
    "realtime_router",
    "stocks_router",
]
