"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import Optional, List, Dict, Any, Generic, TypeVar, Union
from uuid import UUID

from pydantic import BaseModel, Field

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Success wrapper; errors use {"success": false, "error": "..."}"""
    success: bool = True
    data: T
    message: Optional[str] = None


# ============================================================================
# Auth / Users
# ============================================================================

class SessionToken(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UserResponse(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    subscription_status: str
    subscription_tier: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UserUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=255)


class SubscriptionInfo(BaseModel):
    subscription_status: str = "free"
    subscription_tier: Optional[str] = None


# ============================================================================
# Pricing
# ============================================================================

class PricingTierResponse(BaseModel):
    id: str
    tier_name: str
    display_name: str
    description: Optional[str] = None
    price_monthly_cents: int
    price_yearly_cents: Optional[int] = None
    features: List[str] = []

    class Config:
        from_attributes = True


class SubscriptionResponse(BaseModel):
    subscription: SubscriptionInfo
    available_tiers: List[PricingTierResponse]


class PaymentCTA(BaseModel):
    provider: str
    tier_name: str
    display_name: str
    price_monthly_cents: int
    price_yearly_cents: Optional[int] = None
    checkout_path: str


class RecommendationResponse(BaseModel):
    summary: str
    benefits: List[str]
    tier: PricingTierResponse
    payment_cta: PaymentCTA


class ExtractedAnswersResponse(BaseModel):
    blockchains: List[str] = []
    request_volume_per_month: Optional[Union[int, float]] = None
    archive_needs: Optional[str] = None
    geo_preference: Optional[str] = None
    budget_monthly_cents: Optional[Union[int, float]] = None


# ============================================================================
# Chat / Conversations
# ============================================================================

class ChatRequest(BaseModel):
    conversation_id: Optional[UUID] = None
    message: str = Field(min_length=1, max_length=10000)
    model: Optional[str] = Field(None, min_length=1, max_length=100)


class ChatResult(BaseModel):
    conversation_id: str
    assistant_message: str
    extracted_answers: ExtractedAnswersResponse
    recommendation: RecommendationResponse


class ConversationCreate(BaseModel):
    title: Optional[str] = Field(None, max_length=500)
    model: Optional[str] = Field(None, max_length=100)
    system_prompt: Optional[str] = None


class ConversationUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=500)
    system_prompt: Optional[str] = None
    is_archived: Optional[bool] = None


class ConversationResponse(BaseModel):
    id: str
    title: str
    model: str
    system_prompt: Optional[str] = None
    is_archived: bool
    payment_status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    role: str
    content: str
    model: Optional[str] = None
    tokens_used: int = 0
    # ORM attribute is metadata_json; the declarative base owns ``metadata``
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="metadata_json")
    created_at: datetime

    class Config:
        from_attributes = True
        populate_by_name = True


class ConversationDetail(BaseModel):
    conversation: ConversationResponse
    messages: List[MessageResponse]


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ConversationList(BaseModel):
    success: bool = True
    data: List[ConversationResponse]
    pagination: Pagination


# ============================================================================
# Payments / API keys
# ============================================================================

class PaymentLinkRequest(BaseModel):
    conversation_id: Optional[UUID] = None
    tier: Optional[str] = Field(None, min_length=1, max_length=50)


class PaymentLinkResponse(BaseModel):
    url: str
    sessionId: str


class ApiKeyCreate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)


class ApiKeyResponse(BaseModel):
    id: str
    prefix: str = Field(validation_alias="key_prefix")
    name: Optional[str] = None
    is_active: bool
    created_at: datetime
    last_used_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        populate_by_name = True


class ApiKeyCreated(ApiKeyResponse):
    key: str  # Raw key, returned exactly once


class ApiKeyList(BaseModel):
    keys: List[ApiKeyResponse]
