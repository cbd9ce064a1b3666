"""Portfolio push route: analytics elsewhere, delivery here."""
from fastapi import APIRouter

from quote_relay.deps import CurrentIdentity, RealtimeServiceDep
from quote_relay.schemas import DeliveryReceipt, PortfolioSnapshot

router = APIRouter(prefix="/portfolio", tags=["portfolio"])


@router.post("/updates", response_model=DeliveryReceipt)
async def push_portfolio_update(
    snapshot: PortfolioSnapshot,
    identity: CurrentIdentity,
    service: RealtimeServiceDep,
) -> DeliveryReceipt:
    """Send a ``portfolio:update`` to the caller's portfolio-channel connections."""
    delivered = service.broadcaster.publish_portfolio_update(identity.user_id, snapshot)
    return DeliveryReceipt(delivered=delivered)
