"""
API key issuance and validation.

Keys look like ``sk_<64 hex chars>`` (256 bits of randomness). Only the
SHA-256 hash and a 10-character display prefix are stored; the raw key is
handed back once, at creation, and cannot be recovered afterwards.
"""

import hashlib
import logging
import secrets
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import and_, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import ApiKey, OrderStatus, PaymentOrder

logger = logging.getLogger(__name__)

API_KEY_PREFIX = "sk_"
API_KEY_BYTES = 32
DISPLAY_PREFIX_LENGTH = 10


def generate_api_key() -> str:
    return API_KEY_PREFIX + secrets.token_hex(API_KEY_BYTES)


def hash_api_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode()).hexdigest()


def looks_like_api_key(token: str) -> bool:
    return token.startswith(API_KEY_PREFIX)


def build_api_key(
    user_id: str,
    name: Optional[str] = None,
    payment_order_id: Optional[str] = None,
) -> Tuple[str, ApiKey]:
    """Generate a key and its (unsaved) row. The caller adds and commits it."""
    raw_key = generate_api_key()
    api_key = ApiKey(
        user_id=user_id,
        payment_order_id=payment_order_id,
        name=name,
        key_hash=hash_api_key(raw_key),
        key_prefix=raw_key[:DISPLAY_PREFIX_LENGTH],
        is_active=True,
    )
    return raw_key, api_key


async def create_api_key(
    db: AsyncSession,
    user_id: str,
    name: Optional[str] = None,
    payment_order_id: Optional[str] = None,
) -> Tuple[str, ApiKey]:
    """Create and persist a new key. The raw key is only returned here."""
    raw_key, api_key = build_api_key(user_id, name=name, payment_order_id=payment_order_id)
    db.add(api_key)
    await db.commit()
    await db.refresh(api_key)
    logger.info("API key %s... issued for user %s", api_key.key_prefix, user_id)
    return raw_key, api_key


async def validate_api_key(db: AsyncSession, raw_key: str) -> Optional[ApiKey]:
    """Look a presented key up by hash. Unknown or revoked keys return None."""
    result = await db.execute(
        select(ApiKey).where(
            and_(
                ApiKey.key_hash == hash_api_key(raw_key),
                ApiKey.is_active == True,
            )
        )
    )
    api_key = result.scalar_one_or_none()
    if not api_key:
        return None

    api_key.last_used_at = datetime.utcnow()
    await db.commit()
    return api_key


async def list_api_keys(db: AsyncSession, user_id: str) -> List[ApiKey]:
    result = await db.execute(
        select(ApiKey).where(ApiKey.user_id == user_id).order_by(ApiKey.created_at.desc())
    )
    return list(result.scalars().all())


async def delete_api_key(db: AsyncSession, key_id: str, user_id: str) -> bool:
    result = await db.execute(
        delete(ApiKey).where(and_(ApiKey.id == key_id, ApiKey.user_id == user_id))
    )
    await db.commit()
    return result.rowcount > 0


async def has_completed_order(db: AsyncSession, user_id: str) -> bool:
    result = await db.execute(
        select(PaymentOrder.id)
        .where(
            and_(
                PaymentOrder.user_id == user_id,
                PaymentOrder.status == OrderStatus.COMPLETED.value,
            )
        )
        .limit(1)
    )
    return result.first() is not None
