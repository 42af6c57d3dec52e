"""Custom scoring models with declarative conditions.

A custom model is a list of weighted signals, each guarded by a condition
tree. Conditions are plain data (validated with pydantic) over a fixed set
of company fields; there is no expression parsing or code execution.

Example:

    {
      "name": "logistics",
      "signals": [
        {
          "signal": "mid_size_logistics",
          "weight": 40,
          "reason": "Mid-size logistics company",
          "condition": {
            "kind": "all",
            "conditions": [
              {"kind": "compare", "field": "industry_vertical", "op": "in",
               "value": ["Transportation", "Warehousing"]},
              {"kind": "compare", "field": "employee_count", "op": ">=", "value": 20}
            ]
          }
        }
      ]
    }
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from leadscout.core.constants import SCORE_CLASS_GOOD, SCORE_CLASS_HIGH, SCORE_CLASS_LOW
from leadscout.core.exceptions import ScoringModelError
from leadscout.core.logging import get_logger
from leadscout.registry.mapper import get_industry_vertical, is_commercial_org_form
from leadscout.scoring.engine import (
    RelatedCounts,
    ScoreSignal,
    ScoringResult,
    calculate_lead_score,
    days_since,
    top_reasons,
    weighted_score,
)

logger = get_logger("scoring.rules")

# Fields a condition may read
ConditionField = Literal[
    "status",
    "employee_count",
    "industry_code",
    "industry_vertical",
    "organization_form_code",
    "is_commercial",
    "county",
    "municipality",
    "postal_code",
    "website",
    "phone",
    "email",
    "has_roles_data",
    "sub_entity_count",
    "role_count",
    "days_since_update",
    "founded_year",
]

Scalar = Union[bool, int, float, str, None]


class CompareCondition(BaseModel):
    kind: Literal["compare"] = "compare"
    field: ConditionField
    op: Literal["==", "!=", ">", ">=", "<", "<=", "in", "not_in", "startswith"]
    value: Union[Scalar, List[Union[bool, int, float, str]]]


class PresentCondition(BaseModel):
    """True when the field holds a non-empty value."""

    kind: Literal["present"] = "present"
    field: ConditionField


class AllCondition(BaseModel):
    kind: Literal["all"] = "all"
    conditions: List[Condition] = Field(min_length=1)


class AnyCondition(BaseModel):
    kind: Literal["any"] = "any"
    conditions: List[Condition] = Field(min_length=1)


class NotCondition(BaseModel):
    kind: Literal["not"] = "not"
    condition: Condition


Condition = Annotated[
    Union[CompareCondition, PresentCondition, AllCondition, AnyCondition, NotCondition],
    Field(discriminator="kind"),
]

AllCondition.model_rebuild()
AnyCondition.model_rebuild()
NotCondition.model_rebuild()


class ScoringSignalConfig(BaseModel):
    signal: str = Field(min_length=1)
    weight: int = Field(ge=0, le=100)
    condition: Condition
    reason: str
    inactive_reason: Optional[str] = None


class ScoreThresholds(BaseModel):
    high_score: int = Field(default=75, ge=0, le=100)
    good_score: int = Field(default=50, ge=0, le=100)


class ScoringModelConfig(BaseModel):
    """A user-defined scoring model."""

    name: str = "custom"
    signals: List[ScoringSignalConfig] = Field(min_length=1)
    thresholds: ScoreThresholds = Field(default_factory=ScoreThresholds)


def load_model(data: Dict[str, Any]) -> ScoringModelConfig:
    """Validate a raw model definition.

    Raises:
        ScoringModelError: If the definition uses unknown fields, operators or shapes
    """
    try:
        return ScoringModelConfig.model_validate(data)
    except ValidationError as e:
        raise ScoringModelError(
            f"Invalid scoring model: {e.error_count()} error(s)",
            details={"errors": e.errors(include_url=False)},
        ) from e


def build_context(
    company: Any,
    related: Optional[RelatedCounts] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Collect the whitelisted field values for a company."""
    related = related or RelatedCounts()
    now = now or datetime.utcnow()
    founded = company.founded_date
    return {
        "status": company.status,
        "employee_count": company.employee_count,
        "industry_code": company.industry_code,
        "industry_vertical": get_industry_vertical(company.industry_code),
        "organization_form_code": company.organization_form_code,
        "is_commercial": is_commercial_org_form(company.organization_form_code),
        "county": company.county,
        "municipality": company.municipality,
        "postal_code": company.postal_code,
        "website": company.website,
        "phone": company.phone,
        "email": company.email,
        "has_roles_data": bool(company.has_roles_data),
        "sub_entity_count": related.sub_entities,
        "role_count": related.roles,
        "days_since_update": (
            days_since(company.source_updated_at, now) if company.source_updated_at else None
        ),
        "founded_year": founded.year if founded else None,
    }


def evaluate(condition: Any, context: Dict[str, Any]) -> bool:
    """Evaluate a condition tree against a field context."""
    if isinstance(condition, AllCondition):
        return all(evaluate(c, context) for c in condition.conditions)
    if isinstance(condition, AnyCondition):
        return any(evaluate(c, context) for c in condition.conditions)
    if isinstance(condition, NotCondition):
        return not evaluate(condition.condition, context)
    if isinstance(condition, PresentCondition):
        value = context.get(condition.field)
        return value is not None and value != ""
    if isinstance(condition, CompareCondition):
        return _compare(context.get(condition.field), condition.op, condition.value)
    raise ScoringModelError(f"Unknown condition type: {type(condition).__name__}")


def _compare(actual: Any, op: str, expected: Any) -> bool:
    if op in ("in", "not_in"):
        options = expected if isinstance(expected, list) else [expected]
        found = actual in options
        return found if op == "in" else not found
    if op == "==":
        return actual == expected
    if op == "!=":
        return actual != expected
    # Ordering and prefix checks never match a missing value
    if actual is None or expected is None:
        return False
    if op == "startswith":
        return str(actual).startswith(str(expected))
    try:
        if op == ">":
            return actual > expected
        if op == ">=":
            return actual >= expected
        if op == "<":
            return actual < expected
        if op == "<=":
            return actual <= expected
    except TypeError:
        # Mismatched types (e.g. text vs number) do not match
        return False
    raise ScoringModelError(f"Unknown operator: {op}")


def apply_model(
    model: ScoringModelConfig,
    company: Any,
    related: Optional[RelatedCounts] = None,
    now: Optional[datetime] = None,
) -> ScoringResult:
    """Score a company with a custom model.

    The overall score comes from the model's signals; the sub-scores are
    those of the built-in engine.
    """
    now = now or datetime.utcnow()
    context = build_context(company, related, now)

    signals: List[ScoreSignal] = []
    for config in model.signals:
        active = evaluate(config.condition, context)
        reason = config.reason if active else (config.inactive_reason or f"Not met: {config.reason}")
        signals.append(ScoreSignal(
            signal=config.signal,
            weight=config.weight,
            reason=reason,
            active=active,
        ))

    builtin = calculate_lead_score(company, related, now)
    return ScoringResult(
        overall=weighted_score(signals),
        use_case_fit=builtin.use_case_fit,
        urgency=builtin.urgency,
        data_quality=builtin.data_quality,
        signals=signals,
        top_reasons=top_reasons(signals),
    )


def classify_score(score: int, thresholds: Optional[ScoreThresholds] = None) -> str:
    """Bucket a lead score into high / good / low."""
    thresholds = thresholds or ScoreThresholds()
    if score >= thresholds.high_score:
        return SCORE_CLASS_HIGH
    if score >= thresholds.good_score:
        return SCORE_CLASS_GOOD
    return SCORE_CLASS_LOW
