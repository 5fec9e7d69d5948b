"""Public pricing catalog"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db
from app.schemas import Envelope, PricingTierResponse
from app.services.pricing_service import fetch_active_tiers

router = APIRouter(prefix="/pricing", tags=["Pricing"])


@router.get("/tiers", response_model=Envelope[List[PricingTierResponse]])
async def list_tiers(db: AsyncSession = Depends(get_db)):
    tiers = await fetch_active_tiers(db)
    return Envelope[List[PricingTierResponse]](
        data=[PricingTierResponse.model_validate(t) for t in tiers]
    )
