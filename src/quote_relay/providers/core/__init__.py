"""Core provider abstractions."""
from quote_relay.providers.core.error_mapper import ProviderErrorMapper
from quote_relay.providers.core.market_provider_abc import MarketDataProviderABC
from quote_relay.providers.core.utils import normalize_stock_symbol, round2

__all__ = [
    "MarketDataProviderABC",
    "ProviderErrorMapper",
    "normalize_stock_symbol",
    "round2",
]
