"""Real-time quote distribution and alert triggering.

ConnectionManager -> SubscriptionRegistry -> QuotePoller -> Broadcaster and
AlertEvaluator. RealtimeService builds and wires them.
"""
from quote_relay.realtime.alerts import AlertEvaluator, condition_met
from quote_relay.realtime.broadcaster import Broadcaster
from quote_relay.realtime.connection import Connection, ConnectionManager
from quote_relay.realtime.poller import PollHandle, QuotePoller
from quote_relay.realtime.registry import SubscriptionRegistry, normalize_symbols
from quote_relay.realtime.service import RealtimeService

__all__ = [
    "AlertEvaluator",
    "Broadcaster",
    "Connection",
    "ConnectionManager",
    "PollHandle",
    "QuotePoller",
    "RealtimeService",
    "SubscriptionRegistry",
    "condition_met",
    "normalize_symbols",
]
