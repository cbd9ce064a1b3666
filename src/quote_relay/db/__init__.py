"""Database package: alert model and session management."""
from quote_relay.db.models import Alert, AlertCondition, AlertStatus

__all__ = ["Alert", "AlertCondition", "AlertStatus"]
