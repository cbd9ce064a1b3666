"""Market data providers polled by the real-time engine.

- YFinanceProvider: Yahoo Finance (default, no API key)
- AlphaVantageProvider: Alpha Vantage GLOBAL_QUOTE (when an API key is configured)

Example:
    async with YFinanceProvider() as provider:
        quote = await provider.get_quote("AAPL")
        print(f"{quote.symbol}: ${quote.price}")
"""
from quote_relay.providers.alpha_vantage import AlphaVantageProvider
from quote_relay.providers.core import MarketDataProviderABC, ProviderErrorMapper
from quote_relay.providers.yfinance import YFinanceProvider

__all__ = [
    "AlphaVantageProvider",
    "MarketDataProviderABC",
    "ProviderErrorMapper",
    "YFinanceProvider",
]
