"""
Stripe webhook - no bearer auth, verified by signature over the raw body.

  POST /api/webhooks/stripe
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db
from app.services import payment_service
from app.services.stripe_service import CHECKOUT_COMPLETED, PAYMENT_FAILED, verify_webhook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/stripe")
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Handle Stripe events.

    checkout.session.completed → record the order, mint an API key, mark paid.
    payment_intent.payment_failed → logged.
    Anything else is acknowledged untouched.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    event = verify_webhook(payload, sig_header)
    if event is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook signature")

    event_type = event.get("type")
    data_object = (event.get("data") or {}).get("object") or {}
    logger.info("Stripe webhook received: %s (%s)", event_type, event.get("id"))

    if event_type == CHECKOUT_COMPLETED:
        result = await payment_service.handle_checkout_completed(db, data_object)
        if result.duplicate:
            logger.info("Duplicate delivery of %s ignored", data_object.get("id"))
    elif event_type == PAYMENT_FAILED:
        payment_service.handle_payment_failed(data_object)
    else:
        logger.debug("Unhandled Stripe event type: %s", event_type)

    return {"received": True}
