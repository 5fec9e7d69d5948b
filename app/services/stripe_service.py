"""
Stripe integration helpers for tier checkout sessions.
"""

import logging
from typing import Optional

import stripe

from app.config import settings
from app.db.models import PricingTier
from app.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_FAILED = "payment_intent.payment_failed"


def _get_stripe_client() -> stripe.StripeClient:
    if not settings.stripe_secret_key:
        raise ConfigurationError("STRIPE_SECRET_KEY is not configured")
    return stripe.StripeClient(settings.stripe_secret_key)


def _line_item(tier: PricingTier) -> dict:
    if tier.stripe_price_id:
        return {"price": tier.stripe_price_id, "quantity": 1}
    # No catalog price configured: charge the tier's monthly price inline
    return {
        "price_data": {
            "currency": settings.stripe_currency,
            "unit_amount": tier.price_monthly_cents,
            "product_data": {"name": tier.display_name},
        },
        "quantity": 1,
    }


def create_checkout_session(
    user_id: str,
    user_email: str,
    tier: PricingTier,
    conversation_id: Optional[str] = None,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
) -> dict:
    """
    Create a one-off Stripe Checkout Session for a pricing tier.

    Returns the session dict with at least:
        { "id": "cs_...", "url": "https://checkout.stripe.com/..." }

    user_id, conversation_id and tier_name are stored in session metadata so
    the webhook can attribute the payment.
    """
    client = _get_stripe_client()

    try:
        session = client.checkout.sessions.create(
            params={
                "mode": "payment",
                "payment_method_types": ["card"],
                "line_items": [_line_item(tier)],
                "customer_email": user_email,
                "success_url": success_url or settings.checkout_success_url,
                "cancel_url": cancel_url or settings.checkout_cancel_url,
                "metadata": {
                    "user_id": user_id,
                    "conversation_id": conversation_id or "",
                    "tier_name": tier.tier_name,
                },
            }
        )
    except stripe.StripeError as exc:
        logger.error("Stripe checkout creation failed for user %s: %s", user_id, exc)
        raise UpstreamError("Failed to create payment link") from exc

    logger.info("Checkout session %s created for user %s (tier=%s)", session.id, user_id, tier.tier_name)
    return {"id": session.id, "url": session.url or ""}


def verify_webhook(payload: bytes, sig_header: Optional[str]) -> Optional[dict]:
    """
    Verify a Stripe webhook signature and return the parsed event dict,
    or None if the event must be rejected.

    Fails closed: an unconfigured secret or a missing header rejects the event.
    """
    webhook_secret = settings.stripe_webhook_secret
    if not webhook_secret:
        logger.error("STRIPE_WEBHOOK_SECRET not set, rejecting webhook")
        return None
    if not sig_header:
        logger.warning("Stripe webhook without signature header")
        return None

    try:
        event = stripe.Webhook.construct_event(payload, sig_header, webhook_secret)
    except stripe.SignatureVerificationError:
        logger.warning("Stripe webhook signature verification failed")
        return None
    except ValueError as exc:
        logger.warning("Stripe webhook payload could not be parsed: %s", exc)
        return None
    return event.to_dict() if hasattr(event, "to_dict") else dict(event)
