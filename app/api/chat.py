"""
Chat endpoint - one advisor turn per request.

  POST /api/chat  — Send a message, get the reply plus a tier recommendation
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import get_current_user
from app.db import get_db
from app.db.models import User
from app.schemas import (
    ChatRequest, ChatResult, Envelope, ExtractedAnswersResponse,
    PaymentCTA, PricingTierResponse, RecommendationResponse,
)
from app.services.anthropic_service import AnthropicService, get_anthropic_service
from app.services.chat_service import run_chat_turn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["Chat"])


@router.post("", response_model=Envelope[ChatResult])
async def chat(
    request: ChatRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    llm: AnthropicService = Depends(get_anthropic_service),
):
    result = await run_chat_turn(
        db,
        current_user.id,
        request.message,
        conversation_id=str(request.conversation_id) if request.conversation_id else None,
        model=request.model,
        llm=llm,
    )
    recommendation = result.recommendation
    return Envelope[ChatResult](
        data=ChatResult(
            conversation_id=result.conversation.id,
            assistant_message=result.assistant_message.content,
            extracted_answers=ExtractedAnswersResponse(**result.answers.to_dict()),
            recommendation=RecommendationResponse(
                summary=recommendation.summary,
                benefits=recommendation.benefits,
                tier=PricingTierResponse.model_validate(recommendation.tier),
                payment_cta=PaymentCTA(**recommendation.payment_cta),
            ),
        )
    )
