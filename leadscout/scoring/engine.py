"""Explainable lead scoring.

Nine weighted boolean signals (weights sum to 100) produce the overall
lead score; three sub-scores describe use-case fit, urgency and data
quality:

- company_active           20
- optimal_employee_count   15  (5-250 employees)
- target_industry          20  (vertical in TARGET_VERTICALS)
- multiple_branches        10  (at least one sub-entity)
- has_website               8
- has_contact_phone         8
- recently_updated          8  (registry update within 90 days)
- commercial_org_form       6
- has_roles_data            5

Scoring is a pure function of the company, its related counts and `now`.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

from leadscout.core.constants import COMPANY_STATUS_ACTIVE
from leadscout.core.logging import get_logger
from leadscout.registry.mapper import get_industry_vertical, is_commercial_org_form

logger = get_logger("scoring.engine")

# Target industry verticals with high automation potential
TARGET_VERTICALS = frozenset({
    "Manufacturing - Food",
    "Manufacturing - Metal",
    "Construction",
    "Wholesale Trade",
    "Retail Trade",
    "Transportation",
    "Warehousing",
    "Food Services",
    "Facility Services",
    "Real Estate",
    "Legal & Accounting",
})

OPTIMAL_EMPLOYEES_MIN = 5
OPTIMAL_EMPLOYEES_MAX = 250
RECENT_UPDATE_DAYS = 90
LARGE_OPERATION_EMPLOYEES = 50
TOP_REASONS_LIMIT = 3

# Use-case fit bonus prefixes (NACE divisions)
WAREHOUSING_PREFIX = "52"
LAND_TRANSPORT_PREFIX = "49"

_UNKNOWN_AGE_DAYS = 9999


@dataclass
class RelatedCounts:
    """Counts of records related to a company."""

    sub_entities: int = 0
    roles: int = 0


@dataclass
class ScoreSignal:
    """One evaluated signal."""

    signal: str
    weight: int
    reason: str
    active: bool


@dataclass
class ScoringResult:
    """Overall score, sub-scores and the evaluated signals."""

    overall: int
    use_case_fit: int
    urgency: int
    data_quality: int
    signals: List[ScoreSignal] = field(default_factory=list)
    top_reasons: List[str] = field(default_factory=list)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (not banker's rounding)."""
    return int(math.floor(value + 0.5))


def weighted_score(signals: List[ScoreSignal]) -> int:
    """Percentage of the total weight carried by active signals."""
    total = sum(s.weight for s in signals)
    if total <= 0:
        return 0
    earned = sum(s.weight for s in signals if s.active)
    return round_half_up(100 * earned / total)


def top_reasons(signals: List[ScoreSignal], limit: int = TOP_REASONS_LIMIT) -> List[str]:
    """Reasons of active signals, heaviest first, declaration order on ties."""
    active = [s for s in signals if s.active]
    # sorted() is stable, so equal weights keep declaration order
    ranked = sorted(active, key=lambda s: s.weight, reverse=True)
    return [s.reason for s in ranked[:limit]]


def days_since(moment: Optional[datetime], now: datetime) -> int:
    """Whole days between a registry timestamp and now."""
    if moment is None:
        return _UNKNOWN_AGE_DAYS
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return (now - moment).days


def calculate_lead_score(
    company: Any,
    related: Optional[RelatedCounts] = None,
    now: Optional[datetime] = None,
) -> ScoringResult:
    """Score a company snapshot.

    Args:
        company: EntitySnapshot or Company row (read by attribute)
        related: Sub-entity and role counts
        now: Reference time (naive UTC), defaults to the current time

    Returns:
        ScoringResult with signals in declaration order
    """
    related = related or RelatedCounts()
    now = now or datetime.utcnow()
    signals: List[ScoreSignal] = []

    is_active = company.status == COMPANY_STATUS_ACTIVE
    signals.append(ScoreSignal(
        signal="company_active",
        weight=20,
        reason="Company is actively operating" if is_active else "Company is inactive",
        active=is_active,
    ))

    employee_count = company.employee_count or 0
    has_optimal_size = OPTIMAL_EMPLOYEES_MIN <= employee_count <= OPTIMAL_EMPLOYEES_MAX
    if has_optimal_size:
        size_reason = f"{employee_count} employees - ideal SMB size"
    elif employee_count > OPTIMAL_EMPLOYEES_MAX:
        size_reason = "Enterprise size - may need a tailored solution"
    else:
        size_reason = "Too small - limited budget"
    signals.append(ScoreSignal(
        signal="optimal_employee_count",
        weight=15,
        reason=size_reason,
        active=has_optimal_size,
    ))

    vertical = get_industry_vertical(company.industry_code)
    is_target_vertical = vertical in TARGET_VERTICALS
    signals.append(ScoreSignal(
        signal="target_industry",
        weight=20,
        reason=(
            f"{vertical} - high automation potential"
            if is_target_vertical
            else f"{vertical or 'Unknown industry'} - not a primary target"
        ),
        active=is_target_vertical,
    ))

    has_branches = related.sub_entities >= 1
    signals.append(ScoreSignal(
        signal="multiple_branches",
        weight=10,
        reason=(
            f"{related.sub_entities} branches - coordination needs"
            if has_branches
            else "Single location"
        ),
        active=has_branches,
    ))

    has_website = bool(company.website)
    signals.append(ScoreSignal(
        signal="has_website",
        weight=8,
        reason="Has web presence" if has_website else "No website - digital maturity unclear",
        active=has_website,
    ))

    has_phone = bool(company.phone)
    signals.append(ScoreSignal(
        signal="has_contact_phone",
        weight=8,
        reason="Contact phone available" if has_phone else "No phone - harder to reach",
        active=has_phone,
    ))

    age_days = days_since(company.source_updated_at, now)
    is_recently_updated = age_days <= RECENT_UPDATE_DAYS
    signals.append(ScoreSignal(
        signal="recently_updated",
        weight=8,
        reason=(
            f"Updated {age_days} days ago - active changes"
            if is_recently_updated
            else "Not recently updated in the registry"
        ),
        active=is_recently_updated,
    ))

    is_commercial = is_commercial_org_form(company.organization_form_code)
    signals.append(ScoreSignal(
        signal="commercial_org_form",
        weight=6,
        reason=(
            f"{company.organization_form_code} - commercial entity"
            if is_commercial
            else "Non-profit or non-commercial"
        ),
        active=is_commercial,
    ))

    has_roles_data = bool(company.has_roles_data)
    signals.append(ScoreSignal(
        signal="has_roles_data",
        weight=5,
        reason=(
            "Management/decision makers identified"
            if has_roles_data
            else "No role data available"
        ),
        active=has_roles_data,
    ))

    return ScoringResult(
        overall=weighted_score(signals),
        use_case_fit=calculate_use_case_fit(company, is_target_vertical, has_optimal_size),
        urgency=calculate_urgency(company, is_recently_updated, has_branches),
        data_quality=calculate_data_quality(company, has_phone, has_website, has_roles_data),
        signals=signals,
        top_reasons=top_reasons(signals),
    )


def calculate_use_case_fit(company: Any, is_target_vertical: bool, has_optimal_size: bool) -> int:
    score = 50
    if is_target_vertical:
        score += 30
    if has_optimal_size:
        score += 20

    industry_code = company.industry_code or ""
    if industry_code.startswith(WAREHOUSING_PREFIX):
        score += 10
    if industry_code.startswith(LAND_TRANSPORT_PREFIX):
        score += 10

    return min(100, score)


def calculate_urgency(company: Any, is_recently_updated: bool, has_branches: bool) -> int:
    score = 40
    if is_recently_updated:
        score += 25
    if has_branches:
        score += 20
    if company.employee_count and company.employee_count > LARGE_OPERATION_EMPLOYEES:
        score += 15
    return min(100, score)


def calculate_data_quality(
    company: Any,
    has_phone: bool,
    has_website: bool,
    has_roles_data: bool,
) -> int:
    score = 30
    if has_phone:
        score += 20
    if has_website:
        score += 20
    if has_roles_data:
        score += 20
    if company.email:
        score += 10
    return min(100, score)
