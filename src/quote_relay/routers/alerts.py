"""Alert routes for the authenticated caller."""
from fastapi import APIRouter

from quote_relay.db.models import AlertStatus
from quote_relay.deps import AlertStoreDep, CurrentIdentity, RealtimeServiceDep
from quote_relay.schemas import AlertCheckResult, AlertStats

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.post("/check", response_model=list[AlertCheckResult])
async def check_alerts(
    identity: CurrentIdentity, service: RealtimeServiceDep
) -> list[AlertCheckResult]:
    """Check every ACTIVE alert of the caller against the latest quotes.

    Alerts whose condition holds are triggered (once) and notified over the
    WebSocket exactly as the periodic check would.
    """
    return await service.alerts.check_user_alerts(identity.user_id)


@router.get("/stats", response_model=AlertStats)
async def get_alert_stats(identity: CurrentIdentity, store: AlertStoreDep) -> AlertStats:
    """Count the caller's alerts by status."""
    counts = await store.count_by_status(identity.user_id)
    return AlertStats(
        active=counts[AlertStatus.ACTIVE],
        triggered=counts[AlertStatus.TRIGGERED],
        cancelled=counts[AlertStatus.CANCELLED],
        total=sum(counts.values()),
    )
