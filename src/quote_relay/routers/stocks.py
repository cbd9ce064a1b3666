"""Stock quote routes (pass-through to the configured provider)."""
from fastapi import APIRouter

from quote_relay.deps import StocksService
from quote_relay.schemas import Quote

router = APIRouter(prefix="/stocks", tags=["stocks"])


@router.get("/{symbol}", response_model=Quote)
async def get_stock_quote(symbol: str, service: StocksService) -> Quote:
    """Get the current quote for a stock symbol.

    Args:
        symbol: Stock ticker (e.g., "AAPL", "MSFT", "GOOGL").
    """
    return await service.get_quote(symbol)
