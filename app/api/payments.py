"""Checkout link endpoint"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import get_current_user
from app.db import get_db
from app.db.models import User
from app.errors import NotFoundError, ValidationError
from app.schemas import PaymentLinkRequest, PaymentLinkResponse
from app.services import conversation_service, stripe_service
from app.services.pricing_service import fetch_active_tiers, get_tier_by_name

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/link", response_model=PaymentLinkResponse)
async def create_payment_link(
    body: Optional[PaymentLinkRequest] = None,
    tier: Optional[str] = Query(None, description="Tier name, as in the recommendation's checkout_path"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a Stripe Checkout Session for a tier.

    The tier comes from the body or the ``tier`` query parameter; without
    either, the cheapest active tier is used. When a conversation is given it
    must belong to the caller and gets the session id recorded on it.
    """
    body = body or PaymentLinkRequest()
    tier_name = body.tier or tier

    if tier_name:
        selected = await get_tier_by_name(db, tier_name)
        if not selected:
            raise ValidationError(f"Unknown pricing tier: {tier_name}")
    else:
        tiers = await fetch_active_tiers(db)
        if not tiers:
            raise NotFoundError("No pricing tiers available")
        selected = tiers[0]

    conversation = None
    if body.conversation_id:
        conversation = await conversation_service.get_conversation(
            db, str(body.conversation_id), current_user.id
        )

    session = stripe_service.create_checkout_session(
        user_id=current_user.id,
        user_email=current_user.email,
        tier=selected,
        conversation_id=conversation.id if conversation else None,
    )

    if conversation:
        conversation.stripe_session_id = session["id"]
        await db.commit()

    return PaymentLinkResponse(url=session["url"], sessionId=session["id"])
