"""Conversation management endpoints"""

import math

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import get_current_user
from app.db import get_db
from app.db.models import User
from app.schemas import (
    ConversationCreate, ConversationDetail, ConversationList, ConversationResponse,
    ConversationUpdate, Envelope, MessageResponse, Pagination,
)
from app.services import conversation_service

router = APIRouter(prefix="/conversations", tags=["Conversations"])


@router.get("", response_model=ConversationList)
async def list_conversations(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    archived: bool = False,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conversations, total = await conversation_service.list_conversations(
        db, current_user.id, limit=limit, offset=offset, archived=archived
    )
    return ConversationList(
        data=[ConversationResponse.model_validate(c) for c in conversations],
        pagination=Pagination(
            page=offset // limit + 1,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit),
        ),
    )


@router.post("", response_model=Envelope[ConversationResponse], status_code=status.HTTP_201_CREATED)
async def create_conversation(
    body: ConversationCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conversation = await conversation_service.create_conversation(
        db, current_user.id, title=body.title, model=body.model, system_prompt=body.system_prompt
    )
    return Envelope[ConversationResponse](
        data=ConversationResponse.model_validate(conversation),
        message="Conversation created successfully",
    )


@router.get("/{conversation_id}", response_model=Envelope[ConversationDetail])
async def get_conversation(
    conversation_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conversation = await conversation_service.get_conversation(db, conversation_id, current_user.id)
    messages = await conversation_service.list_messages(db, conversation.id)
    return Envelope[ConversationDetail](
        data=ConversationDetail(
            conversation=ConversationResponse.model_validate(conversation),
            messages=[MessageResponse.model_validate(m) for m in messages],
        )
    )


@router.put("/{conversation_id}", response_model=Envelope[ConversationResponse])
async def update_conversation(
    conversation_id: str,
    body: ConversationUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conversation = await conversation_service.update_conversation(
        db, conversation_id, current_user.id, **body.model_dump(exclude_unset=True)
    )
    return Envelope[ConversationResponse](
        data=ConversationResponse.model_validate(conversation),
        message="Conversation updated successfully",
    )


@router.delete("/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await conversation_service.soft_delete_conversation(db, conversation_id, current_user.id)
    return {"success": True, "message": "Conversation deleted successfully"}
