"""Authentication dependency and session endpoint"""

from fastapi import APIRouter, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from app.config import settings
from app.db import get_db
from app.db.models import User
from app.errors import UnauthorizedError
from app.schemas import SessionToken
from app.services import create_access_token, decode_access_token, ensure_user, get_user_by_id
from app.services.api_key_service import looks_like_api_key, validate_api_key
from app.structured_logging import set_request_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])
security = HTTPBearer(auto_error=False)  # Missing header is our 401, not FastAPI's 403


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Dependency to get the current authenticated user.

    Accepts an ``sk_`` API key or a JWT (identity provider first, then a
    locally-issued session token). The account row is created on first
    contact from the token's email claim.
    """
    if not credentials or not credentials.credentials:
        raise UnauthorizedError("Missing authorization header")
    token = credentials.credentials

    if looks_like_api_key(token):
        api_key = await validate_api_key(db, token)
        if not api_key:
            raise UnauthorizedError("Invalid API key")
        user = await get_user_by_id(db, api_key.user_id)
    else:
        claims = decode_access_token(token)
        if not claims:
            raise UnauthorizedError("Invalid or expired token")
        user = await ensure_user(db, claims.user_id, claims.email)

    if not user:
        logger.warning("Authenticated token has no matching account")
        raise UnauthorizedError("User not found")

    set_request_context(user_id=user.id)
    return user


@router.post("/session", response_model=SessionToken)
async def create_session(current_user: User = Depends(get_current_user)):
    """Exchange any valid bearer credential for a locally-signed session token"""
    token = create_access_token(current_user.id, current_user.email)
    return SessionToken(
        access_token=token,
        expires_in=settings.access_token_expire_minutes * 60,
    )
