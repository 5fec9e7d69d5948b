"""Account endpoints"""

from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import get_current_user
from app.db import get_db
from app.db.models import User
from app.schemas import (
    Envelope, PricingTierResponse, SubscriptionInfo, SubscriptionResponse,
    UserResponse, UserUpdate,
)
from app.services.pricing_service import fetch_active_tiers

router = APIRouter(prefix="/user", tags=["User"])


@router.get("/profile", response_model=Envelope[UserResponse])
async def get_profile(current_user: User = Depends(get_current_user)):
    return Envelope[UserResponse](data=UserResponse.model_validate(current_user))


@router.put("/profile", response_model=Envelope[UserResponse])
async def update_profile(
    body: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if body.full_name is not None:
        current_user.full_name = body.full_name
        current_user.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(current_user)
    return Envelope[UserResponse](
        data=UserResponse.model_validate(current_user),
        message="Profile updated successfully",
    )


@router.get("/subscription", response_model=Envelope[SubscriptionResponse])
async def get_subscription(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    tiers = await fetch_active_tiers(db)
    return Envelope[SubscriptionResponse](
        data=SubscriptionResponse(
            subscription=SubscriptionInfo(
                subscription_status=current_user.subscription_status,
                subscription_tier=current_user.subscription_tier,
            ),
            available_tiers=[PricingTierResponse.model_validate(t) for t in tiers],
        )
    )
