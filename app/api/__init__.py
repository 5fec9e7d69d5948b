from app.api.auth import router as auth_router, get_current_user
from app.api.chat import router as chat_router
from app.api.conversations import router as conversations_router
from app.api.pricing import router as pricing_router
from app.api.user import router as user_router
from app.api.payments import router as payments_router
from app.api.webhooks import router as webhooks_router
from app.api.api_keys import router as api_keys_router
from app.api.health import router as health_router

# Routers served by each deployable, all mounted under settings.api_prefix
CHAT_ROUTERS = [auth_router, chat_router, conversations_router, pricing_router, user_router]
PAYMENTS_ROUTERS = [payments_router, webhooks_router, api_keys_router]

__all__ = [
    "auth_router",
    "chat_router",
    "conversations_router",
    "pricing_router",
    "user_router",
    "payments_router",
    "webhooks_router",
    "api_keys_router",
    "health_router",
    "get_current_user",
    "CHAT_ROUTERS",
    "PAYMENTS_ROUTERS",
]
