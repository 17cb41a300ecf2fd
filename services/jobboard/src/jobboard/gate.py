from __future__ import annotations

import json
import logging
from typing import Protocol

from fastapi.concurrency import run_in_threadpool

from jobboard.errors import InvalidTokenError
from jobboard.models import UserRecord, VerifiedIdentity
from jobboard.tokens import TokenService, extract_bearer

LOGGER = logging.getLogger("jobboard.auth")


class IdentityDirectory(Protocol):
    def find_user_by_email(self, email: str) -> UserRecord | None: ...


class AuthenticationGate:
    """Turns an ``Authorization`` header into a verified identity.

    A missing or bad token is not an error here: the request continues
    unauthenticated and the authorization policy decides whether that matters.
    """

    def __init__(self, tokens: TokenService, directory: IdentityDirectory) -> None:
        self.tokens = tokens
        self.directory = directory

    async def authenticate(
        self,
        authorization_header: str | None,
        *,
        request_id: str | None = None,
    ) -> VerifiedIdentity | None:
        token = extract_bearer(authorization_header)
        if token is None:
            return None

        try:
            claims = self.tokens.verify(token)
        except InvalidTokenError:
            self._log_failure(request_id, reason="invalid_token")
            return None

        user = await run_in_threadpool(self.directory.find_user_by_email, claims.subject)
        if user is None:
            self._log_failure(request_id, reason="unknown_subject")
            return None

        return VerifiedIdentity(subject=user.email, role=user.role, user_id=user.id)

    @staticmethod
    def _log_failure(request_id: str | None, *, reason: str) -> None:
        LOGGER.info(
            json.dumps(
                {
                    "event": "authentication_failed",
                    "request_id": request_id,
                    "reason": reason,
                }
            )
        )
