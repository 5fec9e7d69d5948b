from app.services.auth_service import (
    TokenClaims, create_access_token, decode_access_token,
    ensure_user, get_user_by_id, get_user_by_email
)
from app.services.answer_extraction import ExtractedAnswers, ParsedReply, parse_llm_reply
from app.services.pricing_service import PricingRecommendation, recommend_tier, get_pricing_recommendation
from app.services.anthropic_service import AnthropicService, get_anthropic_service
from app.services.api_key_service import (
    create_api_key, validate_api_key, list_api_keys, delete_api_key
)

__all__ = [
    "TokenClaims",
    "create_access_token",
    "decode_access_token",
    "ensure_user",
    "get_user_by_id",
    "get_user_by_email",
    "ExtractedAnswers",
    "ParsedReply",
    "parse_llm_reply",
    "PricingRecommendation",
    "recommend_tier",
    "get_pricing_recommendation",
    "AnthropicService",
    "get_anthropic_service",
    "create_api_key",
    "validate_api_key",
    "list_api_keys",
    "delete_api_key",
]
