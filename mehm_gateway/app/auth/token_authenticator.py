"""
Bearer token authentication for the Mehm API Gateway.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from jose import JWTError, jwt

from shared.errors import (
    InvalidCredentialFormatError,
    InvalidCredentialsError,
    UnauthenticatedError,
)
from shared.logging import get_logger


@dataclass(frozen=True)
class Identity:
    """Verified caller attributes derived from a bearer token."""

    id: str
    username: str
    email: str
    is_admin: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "isAdmin": self.is_admin,
        }


class TokenAuthenticator:
    """Verifies HMAC-signed JWTs locally against the process-wide secret."""

    def __init__(self, secret_key: str, algorithms: Optional[Iterable[str]] = None) -> None:
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._secret_key = secret_key
        self.algorithms = list(algorithms or ["HS256"])
        self.logger = get_logger("gateway.auth.token")

    def authenticate(self, authorization: Optional[str]) -> Identity:
        """Authenticate a raw ``Authorization`` header value.

        The header must contain exactly one ``Bearer`` delimiter followed by a
        non-empty token. The token's signature and standard claims (``exp``,
        ``nbf``) are verified; the audience is not.
        """
        if not authorization:
            raise UnauthenticatedError()

        credentials = authorization.split("Bearer")
        if len(credentials) != 2:
            raise InvalidCredentialFormatError()

        token = credentials[1].strip()
        if not token:
            raise InvalidCredentialsError()

        claims = self._decode(token)
        return self._identity_from_claims(claims)

    def _decode(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(
                token,
                self._secret_key,
                algorithms=self.algorithms,
                options={"verify_aud": False},
            )
        except JWTError as exc:
            self.logger.info("Token verification failed", error=str(exc))
            raise InvalidCredentialsError(details={"error": str(exc)}) from exc

    def _identity_from_claims(self, claims: Dict[str, Any]) -> Identity:
        user_id = claims.get("id")
        username = claims.get("username", "")
        email = claims.get("email", "")
        admin = claims.get("admin", False)

        if not isinstance(user_id, str) or not user_id:
            raise InvalidCredentialsError(details={"claim": "id"})
        if not isinstance(username, str) or not isinstance(email, str):
            raise InvalidCredentialsError(details={"claim": "username/email"})
        if not isinstance(admin, bool):
            raise InvalidCredentialsError(details={"claim": "admin"})

        return Identity(id=user_id, username=username, email=email, is_admin=admin)
