"""Alert persistence adapters used by the alert evaluator."""
from quote_relay.stores.alert_store import AlertStoreABC, SQLAlertStore

__all__ = ["AlertStoreABC", "SQLAlertStore"]
