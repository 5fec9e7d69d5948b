"""
Pricing recommendation - maps extracted answers to exactly one tier.

Tiers are evaluated cheapest first. Each tier runs through an ordered list of
independent checks; the first failing check disqualifies it. The cheapest
qualifying tier wins. When nothing qualifies the stated budget is dropped and
the cheapest tier that still meets the workload is returned, falling back to
the cheapest tier overall, so there is always a recommendation.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence
from urllib.parse import quote

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.models import PricingTier
from app.errors import ConfigurationError
from app.services.answer_extraction import ExtractedAnswers, Number

logger = logging.getLogger(__name__)

UNLIMITED = -1

BEST_AVAILABLE_REASON = "Best available option"


@dataclass(frozen=True)
class TierCapability:
    supports_archive: bool
    supported_geos: List[str]
    requests_per_month: Optional[Number]  # None = not declared, -1 = unlimited


@dataclass
class TierEvaluation:
    tier: PricingTier
    ok: bool
    reasons: List[str] = field(default_factory=list)


@dataclass
class PricingRecommendation:
    tier: PricingTier
    summary: str
    benefits: List[str]
    payment_cta: Dict[str, Any]
    selection_reasons: List[str]


def _as_number(value: Any) -> Optional[Number]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def tier_capability(tier: PricingTier) -> TierCapability:
    limits = tier.limits if isinstance(tier.limits, dict) else {}
    supports_archive = limits.get("supports_archive") is True
    geos = limits.get("supported_geos")
    supported_geos = [g for g in geos if isinstance(g, str)] if isinstance(geos, list) else []
    volume_limit = _as_number(limits.get("requests_per_month"))
    if volume_limit is None:
        volume_limit = _as_number(limits.get("messages_per_month"))
    if volume_limit is None:
        volume_limit = _as_number(limits.get("conversations_per_month"))
    return TierCapability(supports_archive, supported_geos, volume_limit)


# ── Qualification checks: None means pass, a string is the rejection reason ──

TierCheck = Callable[[ExtractedAnswers, PricingTier, TierCapability], Optional[str]]


def check_archive(answers: ExtractedAnswers, tier: PricingTier, cap: TierCapability) -> Optional[str]:
    if answers.needs_archive and not cap.supports_archive:
        return "Does not support archive data"
    return None


def check_geo(answers: ExtractedAnswers, tier: PricingTier, cap: TierCapability) -> Optional[str]:
    geo = answers.geo_preference
    if geo and cap.supported_geos and geo not in cap.supported_geos:
        return f"Not available in preferred region ({geo})"
    return None


def check_volume(answers: ExtractedAnswers, tier: PricingTier, cap: TierCapability) -> Optional[str]:
    limit = cap.requests_per_month
    requested = answers.request_volume_per_month or 0
    if limit is not None and limit != UNLIMITED and requested > limit:
        return "Does not meet requested volume"
    return None


def check_budget(answers: ExtractedAnswers, tier: PricingTier, cap: TierCapability) -> Optional[str]:
    budget = answers.budget_monthly_cents
    if budget is not None and tier.price_monthly_cents > budget:
        return "Above stated budget"
    return None


TIER_CHECKS: Sequence[TierCheck] = (check_archive, check_geo, check_volume, check_budget)

# What the tier can do, as opposed to what the user is willing to pay
CAPABILITY_CHECKS: Sequence[TierCheck] = (check_archive, check_geo, check_volume)


def _format_count(value: Number) -> str:
    # .0f converts to float first and overflows on ints past ~1e308
    if isinstance(value, int):
        return f"{value:,}"
    return f"{value:,.0f}"


def acceptance_reasons(answers: ExtractedAnswers) -> List[str]:
    reasons: List[str] = []
    if answers.needs_archive:
        reasons.append("Includes archive data support")
    volume = answers.request_volume_per_month or 0
    if volume > 0:  # an explicit 0 reads as "no estimate", same as unknown
        reasons.append(f"Fits estimated volume (~{_format_count(volume)} requests/month)")
    if answers.budget_monthly_cents is not None:
        reasons.append(f"Fits budget (<= ${int(answers.budget_monthly_cents) // 100}/mo)")
    return reasons


def evaluate_tier(
    answers: ExtractedAnswers,
    tier: PricingTier,
    checks: Sequence[TierCheck] = TIER_CHECKS,
) -> TierEvaluation:
    cap = tier_capability(tier)
    for check in checks:
        reason = check(answers, tier, cap)
        if reason is not None:
            return TierEvaluation(tier=tier, ok=False, reasons=[reason])
    return TierEvaluation(tier=tier, ok=True, reasons=acceptance_reasons(answers))


def build_payment_cta(tier: PricingTier) -> Dict[str, Any]:
    return {
        "provider": "stripe",
        "tier_name": tier.tier_name,
        "display_name": tier.display_name,
        "price_monthly_cents": tier.price_monthly_cents,
        "price_yearly_cents": tier.price_yearly_cents,
        "checkout_path": f"{settings.api_prefix}/payments/link?tier={quote(tier.tier_name, safe='')}",
    }


def recommend_tier(answers: ExtractedAnswers, tiers: Sequence[PricingTier]) -> PricingRecommendation:
    """Pick the cheapest tier that satisfies every stated requirement."""
    if not tiers:
        raise ConfigurationError("No pricing tiers provided")

    ordered = sorted(tiers, key=lambda t: t.price_monthly_cents)

    chosen: Optional[TierEvaluation] = None
    for tier in ordered:
        evaluation = evaluate_tier(answers, tier)
        if evaluation.ok:
            chosen = evaluation
            break
        logger.debug("Tier %s rejected: %s", tier.tier_name, evaluation.reasons[0])

    if chosen is None:
        # Budget gives way first: cheapest tier that can serve the workload,
        # else the cheapest tier overall
        fallback = next(
            (t for t in ordered if evaluate_tier(answers, t, CAPABILITY_CHECKS).ok),
            ordered[0],
        )
        chosen = TierEvaluation(tier=fallback, ok=True, reasons=[BEST_AVAILABLE_REASON])

    tier = chosen.tier
    return PricingRecommendation(
        tier=tier,
        summary=f"Recommended: {tier.display_name} - ${tier.price_monthly_cents // 100}/mo",
        benefits=list(tier.features) if isinstance(tier.features, list) else [],
        payment_cta=build_payment_cta(tier),
        selection_reasons=chosen.reasons,
    )


async def fetch_active_tiers(db: AsyncSession) -> List[PricingTier]:
    result = await db.execute(
        select(PricingTier)
        .where(PricingTier.is_active == True)
        .order_by(PricingTier.price_monthly_cents)
    )
    return list(result.scalars().all())


async def get_tier_by_name(db: AsyncSession, tier_name: str) -> Optional[PricingTier]:
    result = await db.execute(
        select(PricingTier).where(
            PricingTier.tier_name == tier_name,
            PricingTier.is_active == True,
        )
    )
    return result.scalar_one_or_none()


async def get_pricing_recommendation(db: AsyncSession, answers: ExtractedAnswers) -> PricingRecommendation:
    tiers = await fetch_active_tiers(db)
    if not tiers:
        raise ConfigurationError("No active pricing configuration found")
    return recommend_tier(answers, tiers)
