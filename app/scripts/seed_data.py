"""
Seed script to populate the pricing catalog with example tiers.

Existing tiers (matched by tier_name) are updated in place, so the script can
be re-run after editing SAMPLE_TIERS.

Usage:
    python -m app.scripts.seed_data
"""

import asyncio

from sqlalchemy import select

from app.config import settings
from app.db import Database, PricingTier


SAMPLE_TIERS = [
    {
        "tier_name": "starter",
        "display_name": "Starter",
        "description": "Shared endpoints for prototypes and side projects",
        "price_monthly_cents": 4900,
        "price_yearly_cents": 49000,
        "features": ["Full node access", "Community support", "US region"],
        "limits": {
            "requests_per_month": 1_000_000,
            "supports_archive": False,
            "supported_geos": ["US"],
        },
    },
    {
        "tier_name": "growth",
        "display_name": "Growth",
        "description": "Multi-region endpoints for production workloads",
        "price_monthly_cents": 19900,
        "price_yearly_cents": 199000,
        "features": ["Full node access", "Email support", "US, EU and APAC regions"],
        "limits": {
            "requests_per_month": 10_000_000,
            "supports_archive": False,
            "supported_geos": ["US", "EU", "APAC", "global"],
        },
    },
    {
        "tier_name": "enterprise",
        "display_name": "Enterprise",
        "description": "Dedicated archive nodes with no request cap",
        "price_monthly_cents": 99900,
        "price_yearly_cents": None,
        "features": ["Archive node access", "Unlimited requests", "Dedicated support", "All regions"],
        "limits": {
            "requests_per_month": -1,
            "supports_archive": True,
            "supported_geos": [],
        },
    },
]


async def seed_database():
    """Create tables if needed and upsert the sample tiers"""
    print("Seeding pricing tiers...")
    db = Database(settings.database_url)
    try:
        await db.create_all()
        async with db.session() as session:
            for data in SAMPLE_TIERS:
                result = await session.execute(
                    select(PricingTier).where(PricingTier.tier_name == data["tier_name"])
                )
                tier = result.scalar_one_or_none()
                if tier:
                    for key, value in data.items():
                        setattr(tier, key, value)
                    print(f"  updated {data['tier_name']}")
                else:
                    session.add(PricingTier(**data))
                    print(f"  created {data['tier_name']}")
            await session.commit()
    finally:
        await db.dispose()
    print("Seed complete.")


if __name__ == "__main__":
    asyncio.run(seed_database())
