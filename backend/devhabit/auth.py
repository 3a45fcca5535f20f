"""
DevHabit Backend — Bearer Token Authentication
================================================

What:  Resolves the current user from `Authorization: Bearer <jwt>`.
How:   PyJWT verifies signature, expiry, issuer and audience; the `sub`
       claim is the user ID every query is scoped by.

Tokens are issued elsewhere; this service only validates them.
"""

import logging
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from devhabit.config import settings
from devhabit.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)

# auto_error=False so a missing header goes through our problem+json handler
bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            settings.jwt_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError(message="The access token has expired")
    except jwt.InvalidTokenError as e:
        logger.info("Rejected bearer token: %s", str(e))
        raise UnauthorizedError(message="The access token is invalid")


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """FastAPI dependency returning the authenticated user's ID."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError()
    payload = decode_token(credentials.credentials)
    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise UnauthorizedError(message="The access token has no subject")
    return user_id
