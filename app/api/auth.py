import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.schemas import LoginRequest, TokenResponse
from app.core.auth import create_access_token
from app.core.config import get_settings
from app.core.errors import ErrorCodes, authentication_error
from app.db import get_db
from app.services.users import authenticate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(request: LoginRequest, db: Session = Depends(get_db)) -> TokenResponse:
    """Exchange email and password for a bearer token."""
    logger.info(f"Login attempt for email: {request.email}")
    user = authenticate(db, request.email, request.password)
    if user is None:
        logger.warning(f"Authentication failed for email: {request.email}")
        raise authentication_error("Invalid credentials", code=ErrorCodes.INVALID_CREDENTIALS)

    roles = user.role_names
    token = create_access_token(user.email, roles)
    logger.info(f"Login successful for user: {user.email} with roles: {roles}")
    return TokenResponse(token=token, expires_in=get_settings().jwt_expiration_minutes * 60)
