"""
API key management - only for accounts with a completed payment.

  GET    /api/api-keys       — List your API keys (never the secret)
  POST   /api/api-keys       — Mint an additional key
  DELETE /api/api-keys/{id}  — Delete a key
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import get_current_user
from app.db import get_db
from app.db.models import User
from app.errors import ForbiddenError, NotFoundError
from app.schemas import ApiKeyCreate, ApiKeyCreated, ApiKeyList, ApiKeyResponse
from app.services.api_key_service import (
    create_api_key, delete_api_key, has_completed_order, list_api_keys,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api-keys", tags=["API Keys"])


async def require_paid_user(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> User:
    if not await has_completed_order(db, current_user.id):
        raise ForbiddenError("API keys only available after payment")
    return current_user


@router.get("", response_model=ApiKeyList)
async def list_keys(
    current_user: User = Depends(require_paid_user),
    db: AsyncSession = Depends(get_db),
):
    keys = await list_api_keys(db, current_user.id)
    return ApiKeyList(keys=[ApiKeyResponse.model_validate(k) for k in keys])


@router.post("", response_model=ApiKeyCreated, status_code=status.HTTP_201_CREATED)
async def create_key(
    body: ApiKeyCreate,
    current_user: User = Depends(require_paid_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a key. The raw key is only shown in this response."""
    raw_key, api_key = await create_api_key(db, current_user.id, name=body.name)
    return ApiKeyCreated(
        **ApiKeyResponse.model_validate(api_key).model_dump(),
        key=raw_key,
    )


@router.delete("/{key_id}")
async def delete_key(
    key_id: str,
    current_user: User = Depends(require_paid_user),
    db: AsyncSession = Depends(get_db),
):
    if not await delete_api_key(db, key_id, current_user.id):
        raise NotFoundError("API key not found")
    logger.info("API key %s deleted by user %s", key_id, current_user.id)
    return {"success": True}
