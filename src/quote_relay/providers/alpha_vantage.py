"""Alpha Vantage market data provider (GLOBAL_QUOTE endpoint)."""
import logging

import httpx

from quote_relay.providers.core import (MarketDataProviderABC,
                                        normalize_stock_symbol, round2)
from quote_relay.schemas import Quote
from quote_relay.utils import utcnow

logger = logging.getLogger(__name__)


def _to_float(raw: dict[str, str], key: str) -> float:
    return float(raw.get(key) or 0)


class AlphaVantageProvider(MarketDataProviderABC):
    """Market data provider for stocks via the Alpha Vantage REST API.

    Alpha Vantage reports errors and rate limiting inside a 200 response
    ("Error Message" / "Note" / "Information"); those are raised as ValueError
    or RuntimeError so callers see a failed fetch.
    """

    BASE_URL = "https://www.alphavantage.co/query"

    def __init__(
        self,
        api_key: str,
        base_url: str = BASE_URL,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Alpha Vantage provider.

        Args:
            api_key: Alpha Vantage API key.
            base_url: Query endpoint (overridable for tests/proxies).
            timeout: Request timeout in seconds.
            client: Optional preconfigured httpx client (e.g. with a mock transport).
        """
        self._api_key = api_key
        self._base_url = base_url
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    async def get_quote(self, symbol: str) -> Quote:
        """Fetch the current quote for a stock symbol.

        Args:
            symbol: Stock ticker (e.g., "AAPL").

        Returns:
            Quote built from the "Global Quote" object.
        """
        sym = normalize_stock_symbol(symbol)
        response = await self._client.get(
            self._base_url,
            params={"function": "GLOBAL_QUOTE", "symbol": sym, "apikey": self._api_key},
        )
        response.raise_for_status()
        data = response.json()

        if "Error Message" in data:
            raise ValueError(f"Stock '{sym}' not found: {data['Error Message']}")
        if "Note" in data or "Information" in data:
            logger.warning("Alpha Vantage rate limit reached while fetching %s", sym)
            raise RuntimeError("Alpha Vantage rate limit reached")

        raw = data.get("Global Quote") or {}
        if not raw.get("05. price"):
            raise ValueError(f"Stock '{sym}' not found or has no price data")

        change_percent = (raw.get("10. change percent") or "0%").rstrip("%")
        return Quote(
            symbol=sym,
            price=round2(_to_float(raw, "05. price")),
            change=round2(_to_float(raw, "09. change")),
            change_percent=round2(float(change_percent or 0)),
            volume=int(raw.get("06. volume") or 0),
            timestamp=utcnow(),
            high=round2(_to_float(raw, "03. high")),
            low=round2(_to_float(raw, "04. low")),
            open=round2(_to_float(raw, "02. open")),
            previous_close=round2(_to_float(raw, "08. previous close")),
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
