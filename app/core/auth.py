from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import get_settings
from app.core.errors import APIError, ErrorCodes, access_denied_error, authentication_error

ROLE_ADMIN = "ROLE_ADMIN"
ROLE_USER = "ROLE_USER"

JWT_ALGORITHM = "HS256"

bearer_scheme = HTTPBearer(auto_error=False)


def _signing_secret() -> str:
    secret = get_settings().effective_jwt_secret
    if not secret:
        raise APIError(
            status_code=500,
            code=ErrorCodes.INTERNAL_SERVER_ERROR,
            message="JWT secret not configured",
        )
    return secret


def create_access_token(subject: str, roles: Iterable[str], now: Optional[datetime] = None) -> str:
    """Issue a signed token carrying the subject's roles."""
    settings = get_settings()
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "roles": list(roles),
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=settings.jwt_expiration_minutes),
    }
    if settings.jwt_issuer:
        payload["iss"] = settings.jwt_issuer
    return jwt.encode(payload, _signing_secret(), algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> dict:
    """Verify JWT token and return payload."""
    settings = get_settings()
    decode_kwargs = {
        "key": _signing_secret(),
        "algorithms": [JWT_ALGORITHM],
        "options": {"require": ["sub", "exp"]},
    }
    # Only check the issuer if one is configured
    if settings.jwt_issuer:
        decode_kwargs["issuer"] = settings.jwt_issuer

    try:
        return jwt.decode(token, **decode_kwargs)
    except jwt.ExpiredSignatureError:
        raise authentication_error("Token has expired", code=ErrorCodes.TOKEN_EXPIRED)
    except jwt.InvalidTokenError:
        raise authentication_error("Invalid token")


def require_roles(*required_roles: str):
    """Require a bearer token holding at least one of ``required_roles``."""
    def dependency(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> dict:
        if not credentials:
            raise authentication_error("Missing authorization header")

        payload = verify_token(credentials.credentials)
        token_roles: List[str] = payload.get("roles") or []
        if not any(role in token_roles for role in required_roles):
            raise access_denied_error(list(required_roles))

        return payload

    return dependency


require_user = require_roles(ROLE_USER, ROLE_ADMIN)
require_admin = require_roles(ROLE_ADMIN)
