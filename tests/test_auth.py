from __future__ import annotations

from datetime import timedelta

import pytest
from jose import jwt

from credit_transfer.api.auth import JWTClaimsResolver, bearer_token
from credit_transfer.errors import Unauthenticated
from credit_transfer.models.base import utcnow


SECRET = "test-secret"


def _token(claims: dict, secret: str = SECRET) -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.mark.asyncio
async def test_resolves_subject_and_lowercases_email():
    resolver = JWTClaimsResolver(secret=SECRET, audience="authenticated")
    token = _token(
        {
            "sub": "user-1",
            "email": "Someone@Example.COM",
            "aud": "authenticated",
            "exp": utcnow() + timedelta(minutes=5),
        }
    )

    user = await resolver.resolve(token)

    assert user.user_id == "user-1"
    assert user.email == "someone@example.com"


@pytest.mark.asyncio
async def test_audience_is_only_checked_when_configured():
    resolver = JWTClaimsResolver(secret=SECRET)

    user = await resolver.resolve(_token({"sub": "user-1", "aud": "anything"}))

    assert user.user_id == "user-1"
    assert user.email is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "claims, secret, message",
    [
        ({"sub": "u", "aud": "authenticated"}, "wrong-secret", "Invalid token"),
        ({"sub": "u", "aud": "someone-else"}, SECRET, "Invalid token"),
        ({"aud": "authenticated"}, SECRET, "Invalid token"),
        (
            {"sub": "u", "aud": "authenticated", "exp": utcnow() - timedelta(minutes=1)},
            SECRET,
            "Session expired",
        ),
    ],
)
async def test_rejected_tokens(claims, secret, message):
    resolver = JWTClaimsResolver(secret=SECRET, audience="authenticated")

    with pytest.raises(Unauthenticated, match=message):
        await resolver.resolve(_token(claims, secret))


def test_resolver_requires_secret():
    with pytest.raises(ValueError):
        JWTClaimsResolver(secret="")


@pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer ", "bearer abc"])
def test_bearer_token_rejects_malformed_headers(header):
    with pytest.raises(Unauthenticated):
        bearer_token(header)


def test_bearer_token_extracts_token():
    assert bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"
