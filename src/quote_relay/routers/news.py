"""Breaking-news push route: every live connection receives ``news:breaking``."""
import logging

from fastapi import APIRouter

from quote_relay.deps import CurrentIdentity, RealtimeServiceDep
from quote_relay.schemas import DeliveryReceipt, NewsItem

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/news", tags=["news"])


@router.post("", response_model=DeliveryReceipt)
async def push_breaking_news(
    news: NewsItem,
    identity: CurrentIdentity,
    service: RealtimeServiceDep,
) -> DeliveryReceipt:
    """Broadcast a news item to all connections, anonymous ones included."""
    delivered = service.broadcaster.broadcast_news(news)
    logger.info("News from user %s delivered to %d connections", identity.user_id, delivered)
    return DeliveryReceipt(delivered=delivered)
