"""Authentication service - bearer token decoding and account bootstrap"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
import logging
import uuid

from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.models import User

logger = logging.getLogger(__name__)

SESSION_TOKEN_ISSUER = "tier-advisor"


@dataclass(frozen=True)
class TokenClaims:
    """Identity asserted by a verified bearer token."""
    user_id: str
    email: Optional[str] = None
    source: str = "identity_provider"  # identity_provider | session


def create_access_token(user_id: str, email: Optional[str] = None) -> str:
    """Create a locally-signed session token"""
    expire = datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode = {
        "sub": user_id,
        "email": email,
        "iss": SESSION_TOKEN_ISSUER,
        "exp": expire,
        "iat": datetime.utcnow(),
        "jti": str(uuid.uuid4()),  # Unique token ID
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _decode_identity_provider_token(token: str) -> Optional[TokenClaims]:
    try:
        payload = jwt.decode(
            token,
            settings.identity_provider_jwt_secret,
            algorithms=["HS256"],
            audience=settings.identity_provider_audience,
            options={"require_aud": True},
        )
    except JWTError:
        return None
    user_id = payload.get("sub")
    if not user_id:
        return None
    return TokenClaims(user_id=user_id, email=payload.get("email"))


def _decode_session_token(token: str) -> Optional[TokenClaims]:
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=SESSION_TOKEN_ISSUER,
        )
    except JWTError:
        return None
    user_id = payload.get("sub")
    if not user_id:
        return None
    return TokenClaims(user_id=user_id, email=payload.get("email"), source="session")


def decode_access_token(token: str) -> Optional[TokenClaims]:
    """Verify a bearer JWT. Identity-provider tokens first, then local session tokens."""
    return _decode_identity_provider_token(token) or _decode_session_token(token)


async def get_user_by_id(db: AsyncSession, user_id: str) -> Optional[User]:
    """Get a user by ID"""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """Get a user by email"""
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def ensure_user(db: AsyncSession, user_id: str, email: Optional[str]) -> Optional[User]:
    """Return the account row, creating it on first contact.

    Returns None when the row is missing and no email is known to create it.
    """
    user = await get_user_by_id(db, user_id)
    if user:
        return user
    if not email:
        logger.warning("Cannot create account %s without an email", user_id)
        return None

    user = User(id=user_id, email=email)
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # Concurrent first contact created the same row
        await db.rollback()
        return await get_user_by_id(db, user_id)
    await db.refresh(user)
    logger.info("Created account %s", user_id)
    return user
