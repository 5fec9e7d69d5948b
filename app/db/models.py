"""
Database models for the Tier Advisor

- Accounts are keyed by the identity provider's subject id
- Conversations and their append-only message log
- Pricing tiers (reference data, managed outside the app)
- Payment orders and the API keys minted for them
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid

from sqlalchemy import (
    JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class OrderStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class User(Base):
    """Account row, created on first authenticated contact or on checkout completion"""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    subscription_status: Mapped[str] = mapped_column(String(20), default="free")  # free | paid
    subscription_tier: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    conversations: Mapped[List["Conversation"]] = relationship("Conversation", back_populates="user")
    api_keys: Mapped[List["ApiKey"]] = relationship("ApiKey", back_populates="user")


class Conversation(Base):
    """A scripted pricing chat owned by one account"""
    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    title: Mapped[str] = mapped_column(String(500), default="New Conversation")
    model: Mapped[str] = mapped_column(String(100))
    system_prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_archived: Mapped[bool] = mapped_column(Boolean, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, index=True)

    # Checkout tracking
    payment_status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.UNPAID.value)
    stripe_session_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user: Mapped["User"] = relationship("User", back_populates="conversations")
    messages: Mapped[List["Message"]] = relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.created_at",
    )


class Message(Base):
    """Individual message in a conversation (append-only)"""
    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # Position within the conversation, breaks created_at ties
    seq: Mapped[int] = mapped_column(Integer, default=0)
    conversation_id: Mapped[str] = mapped_column(String(36), ForeignKey("conversations.id"), index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    role: Mapped[str] = mapped_column(String(20))  # "user", "assistant", "system"
    content: Mapped[str] = mapped_column(Text)
    model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    tokens_used: Mapped[int] = mapped_column(Integer, default=0)
    metadata_json: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    conversation: Mapped["Conversation"] = relationship("Conversation", back_populates="messages")

    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at", "seq"),
        UniqueConstraint("conversation_id", "seq", name="uq_messages_conversation_seq"),
    )


class PricingTier(Base):
    """Subscription tier catalog. Read-only from the app's point of view."""
    __tablename__ = "pricing_tiers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tier_name: Mapped[str] = mapped_column(String(50), unique=True)  # "starter" | "growth" | ...
    display_name: Mapped[str] = mapped_column(String(100))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price_monthly_cents: Mapped[int] = mapped_column(Integer)
    price_yearly_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    features: Mapped[List[str]] = mapped_column(JSON, default=list)
    # supports_archive, supported_geos, requests_per_month (-1 = unlimited)
    limits: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    stripe_price_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class PaymentOrder(Base):
    """A completed checkout. stripe_session_id is the webhook idempotency key."""
    __tablename__ = "payment_orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    conversation_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("conversations.id"), nullable=True)
    stripe_session_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    tier_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    amount_cents: Mapped[int] = mapped_column(Integer, default=0)
    currency: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=OrderStatus.COMPLETED.value, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class ApiKey(Base):
    """API keys minted after payment. Only the SHA-256 hash of the key is stored."""
    __tablename__ = "api_keys"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    # At most one key per order
    payment_order_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("payment_orders.id"), nullable=True, unique=True
    )
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    key_hash: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)  # SHA-256 hash
    key_prefix: Mapped[str] = mapped_column(String(10), nullable=False)  # First 10 chars for display
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user: Mapped["User"] = relationship("User", back_populates="api_keys")
