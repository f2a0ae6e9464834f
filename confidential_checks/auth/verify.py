"""
verify.py
---------
Purpose:
    Resolve the acting account from the session token.

Notes:
    - Session tokens are HS256 JWTs issued by the wallet login flow; the
      `sub` claim is the account address.
    - A missing or invalid token yields an anonymous, not-connected actor.
      Reads stay available; mutating operations refuse to run for it.
"""

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from confidential_checks.config import settings
from confidential_checks.infrastructure.observability.logging import get_logger
from confidential_checks.models.domain.check_domain import Actor

logger = get_logger(__name__)

_security = HTTPBearer(auto_error=False)


def verify_session_token(token: str) -> dict:
    if not settings.SESSION_JWT_SECRET:
        raise jwt.InvalidTokenError("SESSION_JWT_SECRET not configured")
    return jwt.decode(
        token,
        settings.SESSION_JWT_SECRET,
        algorithms=["HS256"],
        audience=settings.SESSION_JWT_AUDIENCE,
        options={"verify_exp": True, "require": ["sub", "exp"]},
    )


def actor_dependency(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
) -> Actor:
    if credentials is None:
        return Actor()

    try:
        claims = verify_session_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        logger.warning("Rejected session token", error=str(e))
        return Actor()

    return Actor(address=claims["sub"], connected=True)
