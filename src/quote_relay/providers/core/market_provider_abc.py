"""Abstract base class for market data providers."""
from abc import ABC, abstractmethod

from quote_relay.schemas import Quote


class MarketDataProviderABC(ABC):
    """Upstream quote source polled by the real-time engine.

    Implementations may cache or rate-limit internally; callers treat any
    exception from get_quote as transient.
    """

    @abstractmethod
    async def get_quote(self, symbol: str) -> Quote:
        """Fetch the current quote for a symbol.

        Args:
            symbol: Normalized (upper-case) ticker, e.g. "AAPL".

        Returns:
            A Quote with price, change, volume and the day range when known.
        """

    async def close(self) -> None:
        """Clean up resources (connections, clients).

        Override in subclasses if cleanup is needed.
        """

    async def __aenter__(self) -> "MarketDataProviderABC":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        """Async context manager exit - calls close()."""
        await self.close()
