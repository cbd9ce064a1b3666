"""Service layer: provider orchestration and exception-to-HTTP mapping."""
from quote_relay.services.market_service import MarketService

__all__ = ["MarketService"]
