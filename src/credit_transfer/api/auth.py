"""
Bearer-token authentication for the gateway.

Authentication only establishes who the caller is; what they may do with
a given transfer is decided later by the transfer service.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel

from ..errors import Unauthenticated


class AuthenticatedUser(BaseModel):
    user_id: str
    email: Optional[str] = None


class AuthClaimsResolver(ABC):
    @abstractmethod
    async def resolve(self, token: str) -> AuthenticatedUser:
        """Turn a bearer token into the caller's identity or raise Unauthenticated."""
        ...


class JWTClaimsResolver(AuthClaimsResolver):
    """
    Verifies tokens signed by the identity provider with a shared secret
    (`sub` is the user id, `email` the verified address).
    """

    def __init__(self, secret: str, algorithm: str = "HS256", audience: Optional[str] = None) -> None:
        if not secret:
            raise ValueError("JWT secret must be configured")
        self._secret = secret
        self._algorithm = algorithm
        self._audience = audience

    async def resolve(self, token: str) -> AuthenticatedUser:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                audience=self._audience,
                options={"verify_aud": self._audience is not None},
            )
        except ExpiredSignatureError as exc:
            raise Unauthenticated("Session expired") from exc
        except JWTError as exc:
            raise Unauthenticated("Invalid token") from exc

        user_id = payload.get("sub")
        if not user_id:
            raise Unauthenticated("Invalid token")
        email = payload.get("email")
        return AuthenticatedUser(
            user_id=str(user_id),
            email=email.lower() if isinstance(email, str) and email else None,
        )


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthenticated()
    token = authorization[len("Bearer "):].strip()
    if not token:
        raise Unauthenticated()
    return token
