"""
verify.py
---------
Purpose:
    Bearer JWT verification against the identity provider's JWKS.

Notes:
    - Signing keys are fetched lazily and cached by PyJWKClient.
    - Provides `auth_dependency` for protected routes; the `sub` claim is the user id.
"""

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

_jwk_client = PyJWKClient(settings.jwks_url(), cache_keys=True)
_security = HTTPBearer()


def verify_jwt(token: str) -> dict:
    try:
        signing_key = _jwk_client.get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=settings.AUTH_ALGORITHMS,
            audience=settings.AUTH_AUDIENCE,
            options={"verify_exp": True, "require": ["sub", "exp"]},
        )
    except jwt.PyJWTError as e:
        logger.warning("JWT verification failed", error=str(e), error_type=type(e).__name__)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication token: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def auth_dependency(credentials: HTTPAuthorizationCredentials = Depends(_security)) -> dict:
    return verify_jwt(credentials.credentials)
