"""Main module for the quote relay service."""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from quote_relay.auth import JwtIdentityVerifier
from quote_relay.config import Settings, get_settings
from quote_relay.db.sessions import create_db_engine, init_db
from quote_relay.providers import (AlphaVantageProvider, MarketDataProviderABC,
                                   ProviderErrorMapper, YFinanceProvider)
from quote_relay.providers.core import normalize_stock_symbol
from quote_relay.realtime import RealtimeService
from quote_relay.routers import (alerts_router, news_router,
                                 portfolio_router, realtime_router,
                                 stocks_router)
from quote_relay.services import MarketService
from quote_relay.stores import SQLAlertStore
from quote_relay.utils import configure_logging

logger = logging.getLogger(__name__)


def build_provider(settings: Settings) -> MarketDataProviderABC:
    """Alpha Vantage when an API key is configured, Yahoo Finance otherwise."""
    if settings.alpha_vantage_api_key:
        return AlphaVantageProvider(
            settings.alpha_vantage_api_key,
            base_url=settings.alpha_vantage_base_url,
            timeout=settings.provider_timeout_seconds,
        )
    return YFinanceProvider()


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Create provider, store and real-time engine at startup; stop them on shutdown."""
    settings = get_settings()
    engine = create_db_engine(settings.database_url, echo=settings.sql_echo)
    init_db(engine)

    provider = build_provider(settings)
    alert_store = SQLAlertStore(engine)
    verifier = JwtIdentityVerifier(settings.jwt_secret, (settings.jwt_algorithm,))
    realtime = RealtimeService(
        provider,
        alert_store,
        verifier,
        poll_interval=settings.poll_interval_seconds,
        max_symbols=settings.max_symbols_per_connection,
        queue_size=settings.outbound_queue_size,
    )

    fastapi_app.state.realtime = realtime
    fastapi_app.state.alert_store = alert_store
    fastapi_app.state.identity_verifier = verifier
    fastapi_app.state.stocks_service = MarketService(
        provider,
        ProviderErrorMapper(resource_name="Stock", api_name=type(provider).__name__),
        symbol_normalizer=normalize_stock_symbol,
    )
    logger.info(
        "Quote relay started (provider=%s, poll interval=%ss)",
        type(provider).__name__,
        settings.poll_interval_seconds,
    )

    yield

    await realtime.close()
    try:
        await provider.close()
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning("Error closing provider %s: %s", type(provider).__name__, exc)
    engine.dispose()


app = FastAPI(
    title="Quote Relay",
    description="Real-time quote distribution and price alerts for the market dashboard",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(realtime_router)
app.include_router(alerts_router)
app.include_router(portfolio_router)
app.include_router(news_router)
app.include_router(stocks_router)


@app.get("/")
def health():
    """Return health check status."""
    return {"status": "ok"}


def run():
    """Run the server (uvicorn). Entry point for `start`."""
    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        "quote_relay.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


def run_dev():
    """Run the development server with auto-reload and debug logging."""
    settings = get_settings()
    configure_logging("DEBUG")
    uvicorn.run(
        "quote_relay.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=True,
        log_config=None,
    )
