"""
Performance Rule Engine

Blends self, peer-invitation and manager scores into an automatic HR score
per KPI item, using the weights configured in the PerformanceRule singleton.

Architecture:
- Pure helpers (weighted_average, calculate_hr_score) take plain values
- apply_performance_rule is the only function that writes, in one commit
- The rule is always passed in explicitly; callers fetch it once per operation
"""
import logging
import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kpi_backend.core.config import settings
from kpi_backend.core.exceptions import NotFoundError, PersistenceError, ValidationFailedError
from kpi_backend.models.evaluation import KPIEvaluation, KPIScore
from kpi_backend.models.invitation import EvaluationInvitation, InvitationStatus
from kpi_backend.models.performance_rule import PerformanceRule
from kpi_backend.services.invitation_aggregator import (
    SCENARIO_EMPLOYEE_INVITATION,
    InvitationAggregate,
    build_invitation_averages,
    determine_scenario,
)

logger = logging.getLogger(__name__)

RULE_FIELDS = {
    "no_invitation": {
        "self_weight": "no_invitation_self_weight",
        "superior_weight": "no_invitation_superior_weight",
    },
    "with_invitation": {
        "self_weight": "employee_self_weight",
        "invite_superior_weight": "employee_invite_weight",
        "superior_weight": "employee_superior_weight",
    },
}


@dataclass(frozen=True)
class ScoreComponent:
    weight: float
    value: float
    present: bool


@dataclass(frozen=True)
class RuleApplication:
    """Outcome of one engine run."""
    applied: bool
    updated_items: int = 0
    total_score: Optional[float] = None
    scenario: Optional[str] = None


def round_score(value: float) -> float:
    """Round half away from zero to two decimals."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def weighted_average(components: Iterable[ScoreComponent]) -> Optional[float]:
    """
    Weighted mean over the components that are present and carry weight.

    Weights are renormalized over the applicable components, so a missing
    self score does not drag the result towards zero. Returns None when no
    component applies.
    """
    applicable = [c for c in components if c.present and c.weight > 0]
    total_weight = sum(c.weight for c in applicable)
    if total_weight == 0:
        return None
    return sum((c.weight / total_weight) * c.value for c in applicable)


def build_components(
    score: KPIScore,
    aggregate: Optional[InvitationAggregate],
    scenario: str,
    rule: PerformanceRule,
) -> list:
    has_self = score.self_score is not None
    has_manager = score.manager_score is not None
    self_value = score.self_score if has_self else 0.0
    manager_value = score.manager_score if has_manager else 0.0

    if scenario == SCENARIO_EMPLOYEE_INVITATION:
        has_invite = aggregate is not None and aggregate.count > 0
        return [
            ScoreComponent(rule.employee_self_weight, self_value, has_self),
            ScoreComponent(rule.employee_invite_weight, aggregate.average if has_invite else 0.0, has_invite),
            ScoreComponent(rule.employee_superior_weight, manager_value, has_manager),
        ]

    return [
        ScoreComponent(rule.no_invitation_self_weight, self_value, has_self),
        ScoreComponent(rule.no_invitation_superior_weight, manager_value, has_manager),
    ]


def calculate_hr_score(
    score: KPIScore,
    aggregate: Optional[InvitationAggregate],
    scenario: str,
    rule: PerformanceRule,
) -> Optional[float]:
    """HR score for one item, or None when nothing applicable has been scored yet."""
    result = weighted_average(build_components(score, aggregate, scenario, rule))
    if result is None:
        return None
    return round_score(result)


def apply_performance_rule(db: Session, evaluation_id: int, rule: Optional[PerformanceRule]) -> RuleApplication:
    """
    Recompute HR scores and the total for one evaluation.

    A missing or disabled rule is a no-op. A database error while reading or
    writing rolls back every change of this run and raises PersistenceError.
    Running it twice on unchanged data yields the same scores.
    """
    if rule is None or not rule.enabled:
        return RuleApplication(applied=False)

    try:
        evaluation = db.get(KPIEvaluation, evaluation_id)
        if evaluation is None:
            raise NotFoundError("Evaluation not found")

        scores = db.query(KPIScore).filter(KPIScore.evaluation_id == evaluation_id).all()
        if not scores:
            return RuleApplication(applied=True)

        invitations = db.query(EvaluationInvitation).filter(
            EvaluationInvitation.evaluation_id == evaluation_id,
            EvaluationInvitation.status == InvitationStatus.COMPLETED.value,
        ).all()

        scenario, relevant = determine_scenario(invitations)
        averages = build_invitation_averages(relevant)

        total = 0.0
        updated = 0
        for score in scores:
            hr_score = calculate_hr_score(score, averages.get(score.item_id), scenario, rule)
            if hr_score is None:
                continue

            score.hr_score = hr_score
            if not (score.hr_comment or "").strip():
                score.hr_comment = settings.auto_hr_comment

            total += hr_score
            updated += 1

        total_score = None
        if evaluation.total_score_locked:
            # HR adjusted the total when resolving an objection
            total_score = evaluation.total_score
        elif updated > 0:
            total_score = round_score(total)
            evaluation.total_score = total_score

        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Performance rule failed for evaluation {evaluation_id}: {e}", exc_info=True)
        raise PersistenceError("Failed to apply performance rule") from e

    logger.info(
        f"Performance rule applied to evaluation {evaluation_id}",
        extra={"scenario": scenario, "updated_items": updated, "total_score": total_score},
    )
    return RuleApplication(applied=True, updated_items=updated, total_score=total_score, scenario=scenario)


def get_performance_rule(db: Session) -> PerformanceRule:
    """Fetch the singleton rule, creating the default one on first access."""
    rule = db.query(PerformanceRule).order_by(PerformanceRule.id).first()
    if rule is not None:
        return rule

    rule = PerformanceRule.default()
    db.add(rule)
    try:
        db.commit()
        db.refresh(rule)
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("Failed to initialise performance rule") from e
    return rule


def find_performance_rule(db: Session) -> Optional[PerformanceRule]:
    """Read-only lookup used by the workflow; never creates the row."""
    return db.query(PerformanceRule).order_by(PerformanceRule.id).first()


def _validate_percentage(field: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationFailedError(f"{field} is not a number")
    if math.isnan(number) or math.isinf(number):
        raise ValidationFailedError(f"{field} is invalid")
    if number < 0 or number > 100:
        raise ValidationFailedError(f"{field} must be between 0 and 100")
    return number


def _group_values(payload: Dict[str, Any], group: str) -> Dict[str, Any]:
    values = payload.get(group) or {}
    if group == "with_invitation":
        # Only the employee-invited weight set exists today
        values = values.get("employee") or {}
    return values


def validate_rule_weights(payload: Dict[str, Any]) -> None:
    """Each weight set must contain valid percentages summing to 100."""
    labels = {"no_invitation": "No invitation", "with_invitation": "With invitation (employee)"}
    for group, fields in RULE_FIELDS.items():
        values = _group_values(payload, group)
        total = 0.0
        for name in fields:
            total += _validate_percentage(f"{labels[group]} - {name}", values.get(name))
        if abs(total - 100) > settings.weight_tolerance:
            raise ValidationFailedError(
                f"{labels[group]} weights must sum to 100, got {total:.2f}",
                details={"group": group, "sum": total},
            )


def update_performance_rule(db: Session, payload: Dict[str, Any]) -> PerformanceRule:
    """
    Validate and persist new weights.

    payload mirrors the API shape:
    {"no_invitation": {...}, "with_invitation": {"employee": {...}}, "enabled": bool}
    """
    validate_rule_weights(payload)

    rule = find_performance_rule(db)
    if rule is None:
        rule = PerformanceRule.default()
        db.add(rule)

    for group, fields in RULE_FIELDS.items():
        values = _group_values(payload, group)
        for name, column in fields.items():
            setattr(rule, column, float(values[name]))
    rule.enabled = bool(payload.get("enabled", False))

    try:
        db.commit()
        db.refresh(rule)
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("Failed to update performance rule") from e

    logger.info("Performance rule updated", extra={"enabled": rule.enabled})
    return rule


def serialize_rule(rule: PerformanceRule) -> Dict[str, Any]:
    return {
        "id": rule.id,
        "no_invitation": {
            "self_weight": rule.no_invitation_self_weight,
            "superior_weight": rule.no_invitation_superior_weight,
        },
        "with_invitation": {
            "employee": {
                "self_weight": rule.employee_self_weight,
                "invite_superior_weight": rule.employee_invite_weight,
                "superior_weight": rule.employee_superior_weight,
            }
        },
        "enabled": rule.enabled,
    }
