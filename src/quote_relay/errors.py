"""Error taxonomy for the real-time quote and alert engine.

Validation and auth errors go back to the originating connection as an
``error`` event. Upstream and transition errors are recovered locally.
"""


class RealtimeError(Exception):
    """Base class for errors raised by the real-time engine."""


class ValidationError(RealtimeError):
    """A client request was malformed or exceeded a limit (e.g. symbol cap)."""


class AuthRequired(RealtimeError):
    """A channel join was attempted without an authenticated identity."""


class InvalidCredential(RealtimeError):
    """A bearer credential could not be verified."""


class UpstreamUnavailable(RealtimeError):
    """A quote fetch from the market-data provider failed."""

    def __init__(self, symbol: str, cause: BaseException | None = None) -> None:
        self.symbol = symbol
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Quote for '{symbol}' unavailable{detail}")


class TransitionConflict(RealtimeError):
    """An alert state transition lost to a concurrent or earlier transition."""


class AlreadyTerminal(TransitionConflict):
    """The alert is missing or no longer ACTIVE, so it cannot be triggered."""

    def __init__(self, alert_id: int) -> None:
        self.alert_id = alert_id
        super().__init__(f"Alert {alert_id} is not active")
