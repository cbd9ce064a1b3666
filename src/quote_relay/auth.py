"""Bearer-token identity verification. Tokens are issued by the dashboard API."""
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

import jwt

from quote_relay.errors import InvalidCredential


@dataclass(frozen=True)
class Identity:
    """Authenticated user attached to a connection or request."""

    user_id: int


class IdentityVerifier(Protocol):
    """Turns a bearer credential into an Identity or raises InvalidCredential."""

    def verify(self, credential: str) -> Identity: ...


class JwtIdentityVerifier:
    """Verifies HMAC-signed JWTs whose payload carries an integer ``userId``."""

    def __init__(self, secret: str, algorithms: Sequence[str] = ("HS256",)) -> None:
        self._secret = secret
        self._algorithms = list(algorithms)

    def verify(self, credential: str) -> Identity:
        try:
            payload = jwt.decode(credential, self._secret, algorithms=self._algorithms)
        except jwt.InvalidTokenError as exc:
            raise InvalidCredential(str(exc)) from exc
        user_id = payload.get("userId")
        if isinstance(user_id, bool) or not isinstance(user_id, int):
            raise InvalidCredential("Token payload has no integer userId")
        return Identity(user_id=user_id)


def extract_bearer(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
