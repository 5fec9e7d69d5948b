from app.db.models import (
    Base,
    User,
    Conversation,
    Message,
    MessageRole,
    PricingTier,
    PaymentOrder,
    PaymentStatus,
    OrderStatus,
    ApiKey,
)
from app.db.database import Database, get_database, get_db

__all__ = [
    "Base",
    "User",
    "Conversation",
    "Message",
    "MessageRole",
    "PricingTier",
    "PaymentOrder",
    "PaymentStatus",
    "OrderStatus",
    "ApiKey",
    # Database
    "Database",
    "get_database",
    "get_db",
]
