from __future__ import annotations

from datetime import timedelta

import jwt
import pytest
from common.utils import now_utc
from jobboard.errors import InvalidTokenError
from jobboard.tokens import TokenService, extract_bearer

pytestmark = pytest.mark.unit

SIGNING_KEY = "unit-test-signing-key-0123456789abcdefghijkl"


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(SIGNING_KEY)


@pytest.mark.parametrize(
    "subject",
    ["seeker@example.com", "employer+jobs@example.org", "ünïcode@example.com", "x"],
)
def test_verify_returns_the_issued_subject(tokens: TokenService, subject: str) -> None:
    issued = tokens.issue(subject)

    claims = tokens.verify(issued.token)

    assert claims.subject == subject
    assert claims.issuer == "jobboard"
    assert claims.expires_at == issued.claims.expires_at
    assert claims.expires_at - claims.issued_at == timedelta(hours=24)


@pytest.mark.parametrize("subject", ["a@example.com", "b@example.com", "admin@example.com"])
def test_altered_signature_is_rejected(tokens: TokenService, subject: str) -> None:
    header, payload, signature = tokens.issue(subject).token.split(".")
    tampered_signature = ("A" if signature[0] != "A" else "B") + signature[1:]

    with pytest.raises(InvalidTokenError):
        tokens.verify(".".join([header, payload, tampered_signature]))


def test_altered_payload_is_rejected(tokens: TokenService) -> None:
    _, _, signature = tokens.issue("seeker@example.com").token.split(".")
    forged = jwt.encode(
        {
            "sub": "employer@example.com",
            "iss": "jobboard",
            "iat": now_utc(),
            "exp": now_utc() + timedelta(hours=1),
        },
        "some-other-key-that-is-long-enough-for-hs256",
        algorithm="HS256",
    )
    header, payload, _ = forged.split(".")

    with pytest.raises(InvalidTokenError):
        tokens.verify(".".join([header, payload, signature]))


def test_expired_token_is_rejected(tokens: TokenService) -> None:
    issued = tokens.issue("seeker@example.com", now=now_utc() - timedelta(days=2))

    with pytest.raises(InvalidTokenError) as exc_info:
        tokens.verify(issued.token)

    assert exc_info.value.detail == "Invalid or expired token"


def test_token_from_another_key_is_rejected(tokens: TokenService) -> None:
    other = TokenService("a-completely-different-signing-key-9876543210")

    with pytest.raises(InvalidTokenError):
        tokens.verify(other.issue("seeker@example.com").token)


def test_token_from_another_issuer_is_rejected(tokens: TokenService) -> None:
    other = TokenService(SIGNING_KEY, issuer="someone-else")

    with pytest.raises(InvalidTokenError):
        tokens.verify(other.issue("seeker@example.com").token)


def test_token_without_subject_is_rejected(tokens: TokenService) -> None:
    token = jwt.encode(
        {"iss": "jobboard", "iat": now_utc(), "exp": now_utc() + timedelta(hours=1)},
        SIGNING_KEY,
        algorithm="HS256",
    )

    with pytest.raises(InvalidTokenError):
        tokens.verify(token)


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c", "Bearer xyz"])
def test_malformed_tokens_are_rejected(tokens: TokenService, token: str) -> None:
    with pytest.raises(InvalidTokenError):
        tokens.verify(token)


def test_issue_rejects_blank_subject(tokens: TokenService) -> None:
    with pytest.raises(ValueError):
        tokens.issue("   ")


def test_empty_signing_key_is_rejected() -> None:
    with pytest.raises(ValueError):
        TokenService("")


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("Bearer abc.def.ghi", "abc.def.ghi"),
        ("Bearer   padded  ", "padded"),
        ("Bearer ", None),
        ("bearer abc", None),
        ("Basic dXNlcjpwYXNz", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_bearer(header: str | None, expected: str | None) -> None:
    assert extract_bearer(header) == expected
