"""
Tier Advisor Payments Service - checkout, Stripe webhook and API keys.

Does not serve the chat or call the LLM. Point the Stripe webhook endpoint
at /api/webhooks/stripe on this service.

Usage:
    uvicorn payments_main:app --host 0.0.0.0 --port 8001
"""

from app.api import PAYMENTS_ROUTERS, auth_router
from app.config import settings
from app.main import create_app

app = create_app(
    "Tier Advisor Payments",
    PAYMENTS_ROUTERS + [auth_router],
    description="Checkout links, payment webhooks and API key management",
)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("payments_main:app", host="0.0.0.0", port=settings.port, reload=not settings.is_production)
