"""Yahoo Finance market data provider for stocks."""
import asyncio
from typing import Any

import yfinance as yf

from quote_relay.providers.core import (MarketDataProviderABC,
                                        normalize_stock_symbol, round2)
from quote_relay.schemas import Quote
from quote_relay.utils import utcnow


class YFinanceProvider(MarketDataProviderABC):
    """Market data provider for stocks via Yahoo Finance.

    No API key required. yfinance is synchronous, so each lookup runs in a
    worker thread.
    """

    def _extract(self, ticker: yf.Ticker, symbol: str) -> dict[str, Any]:
        """Pull last price, previous close, volume and day range; raises if no price."""
        info = getattr(ticker, "fast_info", None)
        price = None
        if info is not None:
            price = info.get("lastPrice") or info.get("regularMarketPrice")
        if price is not None:
            return {
                "price": price,
                "previous_close": info.get("previousClose"),
                "volume": info.get("lastVolume"),
                "open": info.get("open"),
                "high": info.get("dayHigh"),
                "low": info.get("dayLow"),
            }
        full = ticker.info
        price = full.get("currentPrice") or full.get("regularMarketPrice")
        if price is None:
            raise ValueError(f"Stock '{symbol}' not found or has no price data")
        return {
            "price": price,
            "previous_close": full.get("previousClose"),
            "volume": full.get("volume"),
            "open": full.get("open"),
            "high": full.get("dayHigh"),
            "low": full.get("dayLow"),
        }

    def _fetch_quote_sync(self, symbol: str) -> Quote:
        """Fetch a single quote synchronously (run in thread)."""
        ticker = yf.Ticker(symbol)
        try:
            raw = self._extract(ticker, symbol)
        except ValueError:
            raise
        except Exception as e:
            raise ValueError(f"Failed to fetch quote for '{symbol}': {e}") from e

        price = float(raw["price"])
        previous_close = raw["previous_close"]
        change = price - float(previous_close) if previous_close else 0.0
        change_percent = (change / float(previous_close) * 100) if previous_close else 0.0
        return Quote(
            symbol=symbol,
            price=round2(price),
            change=round2(change),
            change_percent=round2(change_percent),
            volume=int(raw["volume"] or 0),
            timestamp=utcnow(),
            high=round2(raw["high"]),
            low=round2(raw["low"]),
            open=round2(raw["open"]),
            previous_close=round2(previous_close),
        )

    async def get_quote(self, symbol: str) -> Quote:
        """Fetch the current quote for a stock symbol."""
        sym = normalize_stock_symbol(symbol)
        return await asyncio.to_thread(self._fetch_quote_sync, sym)
