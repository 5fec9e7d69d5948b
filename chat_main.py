"""
Tier Advisor Chat Service - conversation, pricing and account routes.

This entry point serves the advisor chat, conversation history, the pricing
catalog and account endpoints. Checkout and webhooks live in payments_main.

Usage:
    uvicorn chat_main:app --host 0.0.0.0 --port 8000
"""

from app.api import CHAT_ROUTERS
from app.config import settings
from app.main import create_app

app = create_app(
    "Tier Advisor Chat",
    CHAT_ROUTERS,
    description="Advisor chat, conversations, pricing tiers and accounts",
)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("chat_main:app", host="0.0.0.0", port=settings.port, reload=not settings.is_production)
