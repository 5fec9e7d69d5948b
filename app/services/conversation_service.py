"""Conversation and message persistence, always scoped to the owning account"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import logging

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.models import Conversation, Message, MessageRole
from app.errors import NotFoundError, UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Conversation"
CHAT_ROLES = (MessageRole.USER.value, MessageRole.ASSISTANT.value)
SEQ_INSERT_ATTEMPTS = 3


async def create_conversation(
    db: AsyncSession,
    user_id: str,
    title: Optional[str] = None,
    model: Optional[str] = None,
    system_prompt: Optional[str] = None,
) -> Conversation:
    conversation = Conversation(
        user_id=user_id,
        title=title or DEFAULT_TITLE,
        model=model or settings.anthropic_model,
        system_prompt=system_prompt,
    )
    db.add(conversation)
    await db.commit()
    await db.refresh(conversation)
    logger.info("Conversation %s created for user %s", conversation.id, user_id)
    return conversation


async def get_conversation(db: AsyncSession, conversation_id: str, user_id: str) -> Conversation:
    """Fetch a live conversation owned by ``user_id``; anything else is a 404."""
    result = await db.execute(
        select(Conversation).where(
            and_(
                Conversation.id == conversation_id,
                Conversation.user_id == user_id,
                Conversation.is_deleted == False,
            )
        )
    )
    conversation = result.scalar_one_or_none()
    if not conversation:
        raise NotFoundError("Conversation not found")
    return conversation


async def list_conversations(
    db: AsyncSession,
    user_id: str,
    limit: int = 20,
    offset: int = 0,
    archived: bool = False,
) -> Tuple[List[Conversation], int]:
    filters = and_(
        Conversation.user_id == user_id,
        Conversation.is_deleted == False,
        Conversation.is_archived == archived,
    )
    total = await db.scalar(select(func.count()).select_from(Conversation).where(filters))
    result = await db.execute(
        select(Conversation)
        .where(filters)
        .order_by(Conversation.updated_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), total or 0


async def update_conversation(
    db: AsyncSession,
    conversation_id: str,
    user_id: str,
    **changes: Any,
) -> Conversation:
    conversation = await get_conversation(db, conversation_id, user_id)
    for field, value in changes.items():
        if value is not None:
            setattr(conversation, field, value)
    conversation.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(conversation)
    return conversation


async def soft_delete_conversation(db: AsyncSession, conversation_id: str, user_id: str) -> None:
    conversation = await get_conversation(db, conversation_id, user_id)
    conversation.is_deleted = True
    conversation.updated_at = datetime.utcnow()
    await db.commit()
    logger.info("Conversation %s deleted", conversation_id)


async def list_messages(db: AsyncSession, conversation_id: str) -> List[Message]:
    """All messages, oldest first."""
    result = await db.execute(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at, Message.seq)
    )
    return list(result.scalars().all())


async def list_recent_turns(
    db: AsyncSession,
    conversation_id: str,
    limit: Optional[int] = None,
) -> List[Message]:
    """The most recent user/assistant messages, returned oldest first."""
    limit = limit or settings.max_history_messages
    result = await db.execute(
        select(Message)
        .where(
            and_(
                Message.conversation_id == conversation_id,
                Message.role.in_(CHAT_ROLES),
            )
        )
        .order_by(Message.created_at.desc(), Message.seq.desc())
        .limit(limit)
    )
    return list(reversed(result.scalars().all()))


async def _next_seq(db: AsyncSession, conversation_id: str) -> int:
    current = await db.scalar(
        select(func.max(Message.seq)).where(Message.conversation_id == conversation_id)
    )
    return (current or 0) + 1


async def insert_message(
    db: AsyncSession,
    conversation: Conversation,
    user_id: str,
    role: MessageRole,
    content: str,
    model: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    tokens_used: int = 0,
) -> Message:
    """Append a message; a seq taken by a concurrent writer is re-read and retried."""
    conversation_id = conversation.id
    for attempt in range(1, SEQ_INSERT_ATTEMPTS + 1):
        seq = await _next_seq(db, conversation_id)
        message = Message(
            conversation_id=conversation_id,
            user_id=user_id,
            seq=seq,
            role=role.value,
            content=content,
            model=model,
            tokens_used=tokens_used,
            metadata_json=metadata or {},
        )
        db.add(message)
        conversation.updated_at = datetime.utcnow()
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            # Rollback expires loaded rows; reload before the caller touches them
            await db.refresh(conversation)
            if attempt == SEQ_INSERT_ATTEMPTS:
                raise UpstreamError("Could not append message to conversation")
            logger.info("Seq %s taken in conversation %s, retrying", seq, conversation_id)
            continue
        await db.refresh(message)
        return message
