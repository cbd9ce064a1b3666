"""Pass-through quote service: provider call plus exception-to-HTTP mapping."""
import asyncio
from collections.abc import Callable

import httpx

from quote_relay.providers.core import (MarketDataProviderABC,
                                        ProviderErrorMapper)
from quote_relay.schemas import Quote

# Exceptions from providers we map to HTTP; all others propagate (e.g. bugs, BaseException).
_PROVIDER_EXCEPTIONS: tuple[type[Exception], ...] = (
    ValueError,
    KeyError,
    TypeError,
    RuntimeError,
    TimeoutError,
    OSError,
    asyncio.TimeoutError,
    httpx.HTTPError,
)


class MarketService:
    """Service over a market data provider; maps provider errors to HTTP."""

    def __init__(
        self,
        provider: MarketDataProviderABC,
        error_mapper: ProviderErrorMapper,
        *,
        symbol_normalizer: Callable[[str], str] | None = None,
    ) -> None:
        """Initialize with provider and error mapping config.

        Args:
            provider: The market data provider (e.g. YFinanceProvider).
            error_mapper: Maps provider exceptions to HTTP (resource_name, api_name).
            symbol_normalizer: Optional normalizer for symbols (e.g. str.upper for stocks).
        """
        self._provider = provider
        self._error_mapper = error_mapper
        self._normalize = symbol_normalizer or (lambda s: s)

    async def get_quote(self, symbol: str) -> Quote:
        """Get current quote. Raises HTTPException on provider errors."""
        norm = self._normalize(symbol)
        try:
            return await self._provider.get_quote(norm)
        except _PROVIDER_EXCEPTIONS as e:
            self._error_mapper.raise_http(e, symbol=norm)
