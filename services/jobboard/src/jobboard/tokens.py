from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt
from common.utils import now_utc

from jobboard.errors import InvalidTokenError

BEARER_PREFIX = "Bearer "
DEFAULT_ISSUER = "jobboard"
TOKEN_TTL = timedelta(hours=24)
SIGNING_ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "iss", "iat", "exp"]


@dataclass(frozen=True)
class VerifiedClaims:
    subject: str
    issuer: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class IssuedToken:
    token: str
    claims: VerifiedClaims


def extract_bearer(header_value: str | None) -> str | None:
    """Return the token carried by an ``Authorization`` header value, if any.

    This only strips the prefix; it says nothing about whether the token is valid.
    """
    if not header_value or not header_value.startswith(BEARER_PREFIX):
        return None
    token = header_value[len(BEARER_PREFIX) :].strip()
    return token or None


class TokenService:
    """Issues and verifies HMAC-signed identity tokens.

    The signing key is held in memory for the lifetime of the process and is
    never written anywhere.
    """

    def __init__(
        self,
        signing_key: str,
        *,
        issuer: str = DEFAULT_ISSUER,
        ttl: timedelta = TOKEN_TTL,
    ) -> None:
        if not signing_key:
            raise ValueError("signing_key must be a non-empty string.")
        self._signing_key = signing_key
        self.issuer = issuer
        self.ttl = ttl

    def issue(self, subject: str, *, now: datetime | None = None) -> IssuedToken:
        if not subject or not subject.strip():
            raise ValueError("Token subject must be a non-empty string.")
        # JWT timestamps have second precision.
        issued_at = (now or now_utc()).astimezone(UTC).replace(microsecond=0)
        expires_at = issued_at + self.ttl
        token = jwt.encode(
            {
                "sub": subject,
                "iss": self.issuer,
                "iat": issued_at,
                "exp": expires_at,
            },
            self._signing_key,
            algorithm=SIGNING_ALGORITHM,
        )
        return IssuedToken(
            token=token,
            claims=VerifiedClaims(
                subject=subject,
                issuer=self.issuer,
                issued_at=issued_at,
                expires_at=expires_at,
            ),
        )

    def verify(self, token: str) -> VerifiedClaims:
        try:
            payload = jwt.decode(
                token,
                self._signing_key,
                algorithms=[SIGNING_ALGORITHM],
                issuer=self.issuer,
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.PyJWTError as exc:
            raise InvalidTokenError() from exc

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject.strip():
            raise InvalidTokenError()

        expires_at = datetime.fromtimestamp(payload["exp"], UTC)
        # PyJWT accepts exp == now; expiry has to be strictly in the future.
        if expires_at <= now_utc():
            raise InvalidTokenError()

        return VerifiedClaims(
            subject=subject,
            issuer=payload["iss"],
            issued_at=datetime.fromtimestamp(payload["iat"], UTC),
            expires_at=expires_at,
        )
