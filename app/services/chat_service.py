"""
Chat turn orchestration for the pricing advisor.

A conversation is Fresh until its first user/assistant message exists. The
first turn of a Fresh conversation records the scripted greeting as an
assistant message ahead of the user's text, so the model always sees the
question it is answering. From then on the conversation is Engaged.

Per turn:
    history -> (greeting) -> user message -> LLM -> parse answers
            -> recommend tier -> assistant message with pricing snapshot
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Conversation, Message, MessageRole, PricingTier
from app.services import conversation_service
from app.services.answer_extraction import ExtractedAnswers, parse_llm_reply
from app.services.anthropic_service import (
    SCRIPTED_GREETING_QUESTION,
    AnthropicService,
    get_anthropic_service,
)
from app.services.pricing_service import PricingRecommendation, get_pricing_recommendation
from app.structured_logging import set_request_context

logger = logging.getLogger(__name__)

GREETING_METADATA = {"type": "greeting"}


@dataclass
class ChatTurnResult:
    conversation: Conversation
    assistant_message: Message
    answers: ExtractedAnswers
    recommendation: PricingRecommendation


def to_turns(messages: List[Message]) -> List[Dict[str, str]]:
    return [
        {"role": m.role, "content": m.content}
        for m in messages
        if m.role in conversation_service.CHAT_ROLES
    ]


def serialize_tier(tier: PricingTier) -> Dict[str, Any]:
    return {
        "id": tier.id,
        "tier_name": tier.tier_name,
        "display_name": tier.display_name,
        "description": tier.description,
        "price_monthly_cents": tier.price_monthly_cents,
        "price_yearly_cents": tier.price_yearly_cents,
        "features": list(tier.features or []),
    }


def pricing_snapshot(answers: ExtractedAnswers, recommendation: PricingRecommendation) -> Dict[str, Any]:
    """What was recommended and why, frozen at the time of the turn."""
    tier = recommendation.tier
    return {
        "computed_at": datetime.utcnow().isoformat(),
        "answers": answers.to_dict(),
        "recommendation": {
            "tier_name": tier.tier_name,
            "display_name": tier.display_name,
            "price_monthly_cents": tier.price_monthly_cents,
            "price_yearly_cents": tier.price_yearly_cents,
            "features": list(tier.features or []),
            "limits": dict(tier.limits or {}),
            "selection_reasons": list(recommendation.selection_reasons),
        },
    }


async def get_or_create_conversation(
    db: AsyncSession,
    user_id: str,
    conversation_id: Optional[str],
    model: Optional[str] = None,
) -> Conversation:
    if conversation_id:
        return await conversation_service.get_conversation(db, conversation_id, user_id)
    return await conversation_service.create_conversation(db, user_id, model=model)


async def run_chat_turn(
    db: AsyncSession,
    user_id: str,
    message: str,
    conversation_id: Optional[str] = None,
    model: Optional[str] = None,
    llm: Optional[AnthropicService] = None,
) -> ChatTurnResult:
    llm = llm or get_anthropic_service()
    conversation = await get_or_create_conversation(db, user_id, conversation_id, model)
    set_request_context(conversation_id=conversation.id)

    history = await conversation_service.list_recent_turns(db, conversation.id)
    turns = to_turns(history)

    if not turns:
        await conversation_service.insert_message(
            db, conversation, user_id, MessageRole.ASSISTANT,
            SCRIPTED_GREETING_QUESTION,
            model=conversation.model,
            metadata=dict(GREETING_METADATA),
        )
        turns.append({"role": MessageRole.ASSISTANT.value, "content": SCRIPTED_GREETING_QUESTION})

    await conversation_service.insert_message(
        db, conversation, user_id, MessageRole.USER, message, model=conversation.model,
    )
    turns.append({"role": MessageRole.USER.value, "content": message})

    reply_model = model or conversation.model
    reply = await llm.chat(turns, model=reply_model, system_prompt=conversation.system_prompt)
    parsed = parse_llm_reply(reply.content)

    recommendation = await get_pricing_recommendation(db, parsed.answers)
    logger.info(
        "Conversation %s: recommended %s (%s)",
        conversation.id, recommendation.tier.tier_name, "; ".join(recommendation.selection_reasons),
    )

    assistant_message = await conversation_service.insert_message(
        db, conversation, user_id, MessageRole.ASSISTANT,
        parsed.assistant_text,
        model=reply_model,
        tokens_used=reply.tokens_total,
        metadata={
            "extracted_answers": parsed.answers.to_dict(),
            "pricing_snapshot": pricing_snapshot(parsed.answers, recommendation),
        },
    )

    return ChatTurnResult(
        conversation=conversation,
        assistant_message=assistant_message,
        answers=parsed.answers,
        recommendation=recommendation,
    )
