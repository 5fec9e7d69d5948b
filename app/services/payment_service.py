"""
Checkout completion - turns a paid Stripe session into an order and an API key.

Idempotency rests on the unique ``payment_orders.stripe_session_id`` and the
unique ``api_keys.payment_order_id``: the order and its key are written in a
single commit, so a replayed or concurrent delivery of the same session either
sees the existing order or loses the race on the unique constraint. Either
way it is reported as a duplicate and no second key is minted.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Conversation, OrderStatus, PaymentOrder, PaymentStatus, User
from app.services.api_key_service import build_api_key
from app.services.auth_service import ensure_user

logger = logging.getLogger(__name__)


@dataclass
class CheckoutResult:
    order: Optional[PaymentOrder] = None
    raw_key: Optional[str] = None  # Only set when a key was minted by this call
    duplicate: bool = False
    skipped: bool = False  # Acknowledged without side effects


async def get_order_by_session(db: AsyncSession, stripe_session_id: str) -> Optional[PaymentOrder]:
    result = await db.execute(
        select(PaymentOrder).where(PaymentOrder.stripe_session_id == stripe_session_id)
    )
    return result.scalar_one_or_none()


def _customer_email(session: Dict[str, Any]) -> Optional[str]:
    details = session.get("customer_details") or {}
    return details.get("email") or session.get("customer_email")


async def _conversation_for(db: AsyncSession, conversation_id: Optional[str], user_id: str) -> Optional[str]:
    """Only link conversations that exist and belong to the payer."""
    if not conversation_id:
        return None
    result = await db.execute(
        select(Conversation.id).where(
            Conversation.id == conversation_id,
            Conversation.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def _mark_paid(db: AsyncSession, order: PaymentOrder, customer_id: Optional[str]) -> None:
    if order.conversation_id:
        await db.execute(
            update(Conversation)
            .where(Conversation.id == order.conversation_id, Conversation.user_id == order.user_id)
            .values(payment_status=PaymentStatus.PAID.value)
        )
    user_values: Dict[str, Any] = {"subscription_status": "paid"}
    if order.tier_name:
        user_values["subscription_tier"] = order.tier_name
    if customer_id:
        user_values["stripe_customer_id"] = customer_id
    await db.execute(update(User).where(User.id == order.user_id).values(**user_values))
    await db.commit()


async def handle_checkout_completed(db: AsyncSession, session: Dict[str, Any]) -> CheckoutResult:
    """Record a completed checkout and mint exactly one API key for it."""
    session_id = session.get("id")
    metadata = session.get("metadata") or {}
    user_id = metadata.get("user_id")

    if not session_id or not user_id:
        logger.warning("Checkout session %s has no user_id metadata, ignoring", session_id)
        return CheckoutResult(skipped=True)

    existing = await get_order_by_session(db, session_id)
    if existing:
        logger.info("Checkout session %s already processed (order %s)", session_id, existing.id)
        return CheckoutResult(order=existing, duplicate=True)

    user = await ensure_user(db, user_id, _customer_email(session))
    if user is None:
        logger.warning("Checkout session %s: unknown user %s and no email", session_id, user_id)
        return CheckoutResult(skipped=True)

    order = PaymentOrder(
        user_id=user_id,
        conversation_id=await _conversation_for(db, metadata.get("conversation_id"), user_id),
        stripe_session_id=session_id,
        tier_name=metadata.get("tier_name") or None,
        amount_cents=session.get("amount_total") or 0,
        currency=session.get("currency"),
        status=OrderStatus.COMPLETED.value,
    )
    db.add(order)
    try:
        await db.flush()
        raw_key, api_key = build_api_key(user_id, name="Checkout key", payment_order_id=order.id)
        db.add(api_key)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info("Checkout session %s recorded concurrently, treating as duplicate", session_id)
        return CheckoutResult(order=await get_order_by_session(db, session_id), duplicate=True)

    logger.info(
        "Order %s completed for user %s (session=%s, amount=%s), key %s... issued",
        order.id, user_id, session_id, order.amount_cents, api_key.key_prefix,
    )

    await _mark_paid(db, order, session.get("customer"))
    return CheckoutResult(order=order, raw_key=raw_key)


def handle_payment_failed(payment_intent: Dict[str, Any]) -> None:
    error = payment_intent.get("last_payment_error") or {}
    logger.warning(
        "Payment intent %s failed: %s",
        payment_intent.get("id"), error.get("message") or "unknown reason",
    )
