"""
Tests for tier selection
"""

import pytest

from app.errors import ConfigurationError
from app.services.answer_extraction import ExtractedAnswers
from app.services.pricing_service import (
    BEST_AVAILABLE_REASON,
    evaluate_tier,
    get_pricing_recommendation,
    recommend_tier,
    tier_capability,
)

from tests.factories import default_tiers, make_tier


def answers(**fields) -> ExtractedAnswers:
    return ExtractedAnswers(**fields)


class TestRecommendTier:
    def test_empty_tier_list_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            recommend_tier(answers(), [])

    def test_unknown_answers_pick_cheapest(self):
        rec = recommend_tier(answers(), default_tiers())
        assert rec.tier.tier_name == "starter"
        assert rec.selection_reasons == []

    @pytest.mark.parametrize("budget", [None, 0, 1000, 1500, 4999, 5000, 10 ** 9])
    def test_archive_only_top_tier_chosen_regardless_of_budget(self, budget):
        tiers = [
            make_tier("free", 0),
            make_tier("mid", 1500),
            make_tier("top", 5000, {"supports_archive": True}),
        ]
        rec = recommend_tier(answers(archive_needs="full", budget_monthly_cents=budget), tiers)
        assert rec.tier.tier_name == "top"

    def test_archive_over_budget_is_best_available(self):
        rec = recommend_tier(answers(archive_needs="full", budget_monthly_cents=1000), default_tiers())
        assert rec.tier.tier_name == "enterprise"
        assert rec.selection_reasons == [BEST_AVAILABLE_REASON]

    def test_archive_without_budget_is_accepted_with_reason(self):
        rec = recommend_tier(answers(archive_needs="partial"), default_tiers())
        assert rec.tier.tier_name == "enterprise"
        assert rec.selection_reasons == ["Includes archive data support"]

    def test_archive_only_top_tier_chosen_with_generous_budget(self):
        tiers = [
            make_tier("basic", 500),
            make_tier("archive", 150000, {"supports_archive": True}),
        ]
        rec = recommend_tier(answers(archive_needs="full", budget_monthly_cents=200000), tiers)
        assert rec.tier.tier_name == "archive"

    def test_budget_picks_cheapest_under_budget(self):
        tiers = [make_tier("small", 500), make_tier("large", 1500)]
        rec = recommend_tier(answers(budget_monthly_cents=1000), tiers)
        assert rec.tier.tier_name == "small"
        assert rec.selection_reasons == ["Fits budget (<= $10/mo)"]

    def test_nothing_qualifies_returns_cheapest_best_available(self):
        tiers = [make_tier("small", 500), make_tier("large", 1500)]
        rec = recommend_tier(answers(budget_monthly_cents=100), tiers)
        assert rec.tier.tier_name == "small"
        assert rec.selection_reasons == [BEST_AVAILABLE_REASON]

    def test_volume_skips_tiers_that_are_too_small(self):
        rec = recommend_tier(answers(request_volume_per_month=5_000_000), default_tiers())
        assert rec.tier.tier_name == "growth"
        assert rec.selection_reasons == ["Fits estimated volume (~5,000,000 requests/month)"]

    def test_unlimited_volume_is_never_exceeded(self):
        tiers = [make_tier("unlimited", 100, {"requests_per_month": -1})]
        rec = recommend_tier(answers(request_volume_per_month=10 ** 12), tiers)
        assert rec.selection_reasons == ["Fits estimated volume (~1,000,000,000,000 requests/month)"]

    def test_volume_limit_falls_back_to_messages_per_month(self):
        tiers = [
            make_tier("tiny", 100, {"messages_per_month": 10}),
            make_tier("big", 200, {"messages_per_month": 1000}),
        ]
        rec = recommend_tier(answers(request_volume_per_month=50), tiers)
        assert rec.tier.tier_name == "big"

    def test_geo_restricted_tier_is_skipped(self):
        rec = recommend_tier(answers(geo_preference="EU"), default_tiers())
        assert rec.tier.tier_name == "growth"

    def test_empty_geo_list_means_everywhere(self):
        tiers = [make_tier("anywhere", 100, {"supported_geos": []})]
        rec = recommend_tier(answers(geo_preference="Mars"), tiers)
        assert rec.selection_reasons != [BEST_AVAILABLE_REASON]

    def test_tiers_are_sorted_by_price(self):
        tiers = list(reversed(default_tiers()))
        assert recommend_tier(answers(), tiers).tier.tier_name == "starter"

    def test_reasons_are_in_fixed_order(self):
        tiers = [make_tier("all", 1000, {"supports_archive": True, "requests_per_month": -1})]
        rec = recommend_tier(
            answers(archive_needs="full", request_volume_per_month=1500, budget_monthly_cents=2599),
            tiers,
        )
        assert rec.selection_reasons == [
            "Includes archive data support",
            "Fits estimated volume (~1,500 requests/month)",
            "Fits budget (<= $25/mo)",
        ]

    def test_output_shape(self):
        tier = make_tier("pro plan", 2999, display_name="Pro", features=["a", "b"])
        rec = recommend_tier(answers(), [tier])
        assert rec.summary == "Recommended: Pro - $29/mo"
        assert rec.benefits == ["a", "b"]
        assert rec.payment_cta == {
            "provider": "stripe",
            "tier_name": "pro plan",
            "display_name": "Pro",
            "price_monthly_cents": 2999,
            "price_yearly_cents": 29990,
            "checkout_path": "/api/payments/link?tier=pro%20plan",
        }


class TestEvaluateTier:
    def test_first_failing_check_wins(self):
        tier = make_tier("limited", 5000, {"supports_archive": False, "supported_geos": ["US"]})
        evaluation = evaluate_tier(
            answers(archive_needs="full", geo_preference="EU", budget_monthly_cents=100), tier
        )
        assert not evaluation.ok
        assert evaluation.reasons == ["Does not support archive data"]

    def test_geo_reason_names_the_region(self):
        tier = make_tier("us", 100, {"supported_geos": ["US"]})
        evaluation = evaluate_tier(answers(geo_preference="APAC"), tier)
        assert evaluation.reasons == ["Not available in preferred region (APAC)"]

    def test_volume_and_budget_reasons(self):
        tier = make_tier("small", 5000, {"requests_per_month": 10})
        assert evaluate_tier(answers(request_volume_per_month=11), tier).reasons == [
            "Does not meet requested volume"
        ]
        assert evaluate_tier(answers(budget_monthly_cents=4999), tier).reasons == ["Above stated budget"]

    def test_volume_reason_formats_huge_integers(self):
        tier = make_tier("unlimited", 100, {"requests_per_month": -1})
        evaluation = evaluate_tier(answers(request_volume_per_month=10 ** 400), tier)
        assert evaluation.ok
        assert evaluation.reasons == [f"Fits estimated volume (~{10 ** 400:,} requests/month)"]

    def test_volume_reason_rounds_floats(self):
        evaluation = evaluate_tier(answers(request_volume_per_month=1234.6), make_tier("any", 100))
        assert evaluation.reasons == ["Fits estimated volume (~1,235 requests/month)"]

    def test_zero_volume_gives_no_volume_reason(self):
        evaluation = evaluate_tier(answers(request_volume_per_month=0), make_tier("any", 100))
        assert evaluation.reasons == []

    def test_archive_flag_must_be_literally_true(self):
        tier = make_tier("truthy", 100, {"supports_archive": "yes"})
        assert not tier_capability(tier).supports_archive


@pytest.mark.asyncio
async def test_recommendation_uses_only_active_tiers(db_session):
    db_session.add_all([
        make_tier("retired", 100, is_active=False),
        make_tier("current", 900),
    ])
    await db_session.commit()

    rec = await get_pricing_recommendation(db_session, answers())
    assert rec.tier.tier_name == "current"


@pytest.mark.asyncio
async def test_recommendation_without_tiers_raises(db_session):
    with pytest.raises(ConfigurationError):
        await get_pricing_recommendation(db_session, answers())


@pytest.mark.asyncio
async def test_seed_script_upserts_sample_tiers(tmp_path, monkeypatch):
    from sqlalchemy import select

    from app.config import settings
    from app.db import Database, PricingTier
    from app.scripts.seed_data import SAMPLE_TIERS, seed_database

    url = f"sqlite+aiosqlite:///{tmp_path / 'seed.db'}"
    monkeypatch.setattr(settings, "database_url", url)

    await seed_database()
    await seed_database()

    db = Database(url)
    try:
        async with db.session() as session:
            tiers = (await session.execute(select(PricingTier))).scalars().all()
            rec = await get_pricing_recommendation(session, answers(archive_needs="full"))
    finally:
        await db.dispose()

    assert sorted(t.tier_name for t in tiers) == sorted(t["tier_name"] for t in SAMPLE_TIERS)
    assert rec.tier.tier_name == "enterprise"
