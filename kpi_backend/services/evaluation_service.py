"""
Evaluation Service Layer

Owns the review lifecycle of a KPI evaluation:
pending -> self_evaluated -> manager_evaluated -> pending_confirm -> completed

Architecture:
- Router -> Service (this module) -> Models / Performance Rule Engine
- Every precondition is checked before anything is written
- Notifications go out after the commit and never fail the request
"""
import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from kpi_backend.core.exceptions import (
    AccessDeniedError,
    AppException,
    NotFoundError,
    StateConflictError,
    ValidationFailedError,
)
from kpi_backend.models.employee import Employee
from kpi_backend.models.evaluation import EvaluationStatus, KPIEvaluation, KPIScore
from kpi_backend.models.invitation import EvaluationInvitation, InvitationStatus
from kpi_backend.models.kpi_template import KPIItem, KPITemplate
from kpi_backend.models.performance_rule import PerformanceRule
from kpi_backend.models.share import EvaluationShare
from kpi_backend.services import notification as events
from kpi_backend.services.base import commit_or_raise
from kpi_backend.services.deadline import (
    TIME_MODE_INSUFFICIENT,
    DeadlineCalculator,
    format_period,
)
from kpi_backend.services.notification import NotificationService
from kpi_backend.services.performance_rule import (
    apply_performance_rule,
    find_performance_rule,
    round_score,
)
from kpi_backend.services.settings_service import deadline_parameters

logger = logging.getLogger(__name__)

PERIODS = ("monthly", "quarterly", "yearly")

# Each status has exactly one successor
NEXT_STATUS = {
    EvaluationStatus.PENDING.value: EvaluationStatus.SELF_EVALUATED.value,
    EvaluationStatus.SELF_EVALUATED.value: EvaluationStatus.MANAGER_EVALUATED.value,
    EvaluationStatus.MANAGER_EVALUATED.value: EvaluationStatus.PENDING_CONFIRM.value,
    EvaluationStatus.PENDING_CONFIRM.value: EvaluationStatus.COMPLETED.value,
}

OPEN_STATUSES = [
    EvaluationStatus.PENDING.value,
    EvaluationStatus.SELF_EVALUATED.value,
    EvaluationStatus.MANAGER_EVALUATED.value,
    EvaluationStatus.PENDING_CONFIRM.value,
]

NO_MANAGER_MESSAGE = "Employee has no direct manager, please contact HR"


# ---------------------------------------------------------------------------
# Lookups and access checks
# ---------------------------------------------------------------------------

def get_evaluation_or_404(db: Session, evaluation_id: int) -> KPIEvaluation:
    evaluation = db.get(KPIEvaluation, evaluation_id)
    if evaluation is None:
        raise NotFoundError("Evaluation not found")
    return evaluation


def get_score_or_404(db: Session, score_id: int) -> KPIScore:
    score = db.get(KPIScore, score_id)
    if score is None:
        raise NotFoundError("Score record not found")
    return score


def is_direct_manager(evaluation: KPIEvaluation, actor: Employee) -> bool:
    return evaluation.employee is not None and evaluation.employee.manager_id == actor.id


def can_view_evaluation(db: Session, evaluation: KPIEvaluation, actor: Employee) -> bool:
    if actor.is_hr or evaluation.employee_id == actor.id or is_direct_manager(evaluation, actor):
        return True

    invited = db.query(EvaluationInvitation.id).filter(
        EvaluationInvitation.evaluation_id == evaluation.id,
        EvaluationInvitation.invitee_id == actor.id,
        EvaluationInvitation.status != InvitationStatus.CANCELLED.value,
    ).first()
    if invited:
        return True

    shared = db.query(EvaluationShare.id).filter(
        EvaluationShare.evaluation_id == evaluation.id,
        EvaluationShare.shared_to_id == actor.id,
    ).first()
    return shared is not None


def period_label(evaluation: KPIEvaluation) -> str:
    return format_period(evaluation.period, evaluation.year, evaluation.month, evaluation.quarter)


def _template_name(evaluation: KPIEvaluation) -> str:
    return evaluation.template.name if evaluation.template else ""


def _validate_period(period: str, month: Optional[int], quarter: Optional[int]) -> None:
    if period not in PERIODS:
        raise ValidationFailedError(f"Unknown period '{period}'", details={"allowed": list(PERIODS)})
    if period == "monthly" and (month is None or not 1 <= month <= 12):
        raise ValidationFailedError("Monthly evaluations need a month between 1 and 12")
    if period == "quarterly" and (quarter is None or not 1 <= quarter <= 4):
        raise ValidationFailedError("Quarterly evaluations need a quarter between 1 and 4")


def validate_score_value(value: Optional[float], item: Optional[KPIItem]) -> None:
    if value is None:
        return
    if math.isnan(value) or math.isinf(value):
        raise ValidationFailedError("Score is not a valid number")
    if value < 0:
        raise ValidationFailedError("Score cannot be negative")
    if item is not None and item.max_score and value > item.max_score:
        raise ValidationFailedError(
            f"Score cannot exceed the item maximum of {item.max_score:g}",
            details={"item_id": item.id, "max_score": item.max_score},
        )


# ---------------------------------------------------------------------------
# Creation / deletion
# ---------------------------------------------------------------------------

def create_evaluation(
    db: Session,
    actor: Employee,
    employee_id: int,
    template_id: int,
    period: str,
    year: int,
    month: Optional[int] = None,
    quarter: Optional[int] = None,
    custom_deadlines: Optional[Dict[str, datetime]] = None,
    now: Optional[datetime] = None,
) -> KPIEvaluation:
    """
    Schedule a review for one employee.

    One score row is created per template item. Stage deadlines are derived
    from the deadline rules unless HR supplies its own schedule.
    """
    if not actor.is_hr:
        raise AccessDeniedError("Only HR can create evaluations")

    _validate_period(period, month, quarter)
    if period != "monthly":
        month = None
    if period != "quarterly":
        quarter = None

    employee = db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")
    template = db.get(KPITemplate, template_id)
    if template is None:
        raise NotFoundError("Template not found")

    duplicate = db.query(KPIEvaluation.id).filter(
        KPIEvaluation.employee_id == employee_id,
        KPIEvaluation.template_id == template_id,
        KPIEvaluation.period == period,
        KPIEvaluation.year == year,
        KPIEvaluation.month == month,
        KPIEvaluation.quarter == quarter,
    ).first()
    if duplicate:
        raise StateConflictError(
            "An evaluation already exists for this employee, template and period",
            details={"evaluation_id": duplicate[0]},
        )

    now = now or datetime.now()
    calculator = DeadlineCalculator(
        period=period, created_at=now, year=year, month=month, quarter=quarter,
        **deadline_parameters(db)
    )
    if custom_deadlines:
        deadlines = calculator.custom_deadlines(
            custom_deadlines["self_eval_deadline"],
            custom_deadlines["manager_eval_deadline"],
            custom_deadlines["hr_review_deadline"],
            custom_deadlines["final_confirm_deadline"],
        )
        if not deadlines.is_valid:
            raise ValidationFailedError(deadlines.message)
    else:
        deadlines = calculator.calculate()
        if deadlines.time_mode == TIME_MODE_INSUFFICIENT:
            logger.warning(
                f"Evaluation for employee {employee_id} created without deadlines: {deadlines.message}"
            )

    evaluation = KPIEvaluation(
        employee_id=employee_id,
        template_id=template_id,
        period=period,
        year=year,
        month=month,
        quarter=quarter,
        status=EvaluationStatus.PENDING.value,
        total_score=0,
        time_mode=deadlines.time_mode,
        self_eval_deadline=deadlines.self_eval_deadline,
        manager_eval_deadline=deadlines.manager_eval_deadline,
        hr_review_deadline=deadlines.hr_review_deadline,
        final_confirm_deadline=deadlines.final_confirm_deadline,
    )
    evaluation.scores = [KPIScore(item_id=item.id) for item in template.items]
    db.add(evaluation)
    commit_or_raise(db, "create evaluation")
    db.refresh(evaluation)

    logger.info(
        f"Evaluation {evaluation.id} created",
        extra={"employee_id": employee_id, "template_id": template_id, "time_mode": evaluation.time_mode},
    )
    NotificationService.dispatch(
        db, employee_id, events.EVENT_EVALUATION_CREATED,
        "New performance review",
        f"A {template.name} review for {period_label(evaluation)} has been scheduled for you.",
        actor_id=actor.id, payload={"evaluation_id": evaluation.id},
    )
    return evaluation


def delete_evaluation(db: Session, evaluation_id: int, actor: Employee) -> None:
    """Remove an evaluation together with its scores, invitations, shares and comments."""
    if not actor.is_hr:
        raise AccessDeniedError("Only HR can delete evaluations")

    evaluation = get_evaluation_or_404(db, evaluation_id)
    employee_id = evaluation.employee_id
    label = period_label(evaluation)

    db.delete(evaluation)
    commit_or_raise(db, "delete evaluation")
    logger.info(f"Evaluation {evaluation_id} deleted by {actor.id}")

    NotificationService.dispatch(
        db, employee_id, events.EVENT_EVALUATION_DELETED,
        "Performance review removed",
        f"Your review for {label} was removed by HR.",
        actor_id=actor.id, payload={"evaluation_id": evaluation_id},
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_evaluation(db: Session, evaluation_id: int, actor: Employee) -> KPIEvaluation:
    evaluation = get_evaluation_or_404(db, evaluation_id)
    if not can_view_evaluation(db, evaluation, actor):
        raise AccessDeniedError("You cannot view this evaluation")
    return evaluation


def get_evaluation_scores(db: Session, evaluation_id: int, actor: Employee) -> List[KPIScore]:
    evaluation = get_evaluation(db, evaluation_id, actor)
    return db.query(KPIScore).join(KPIItem, KPIScore.item_id == KPIItem.id).filter(
        KPIScore.evaluation_id == evaluation.id
    ).order_by(KPIItem.sort_order, KPIScore.id).all()


def _apply_filters(query, filters: Dict[str, Any], include_status: bool = True):
    if include_status and filters.get("status"):
        query = query.filter(KPIEvaluation.status == filters["status"])
    if filters.get("employee_id"):
        query = query.filter(KPIEvaluation.employee_id == filters["employee_id"])
    if filters.get("department_id"):
        query = query.filter(Employee.department_id == filters["department_id"])
    if filters.get("manager_id"):
        query = query.filter(Employee.manager_id == filters["manager_id"])
    if filters.get("period"):
        query = query.filter(KPIEvaluation.period == filters["period"])
    if filters.get("year"):
        query = query.filter(KPIEvaluation.year == filters["year"])
    if filters.get("month"):
        query = query.filter(KPIEvaluation.month == filters["month"])
    if filters.get("quarter"):
        query = query.filter(KPIEvaluation.quarter == filters["quarter"])
    return query


def _visibility_filter(actor: Employee):
    """HR sees everything; managers see themselves and their reports; employees see their own."""
    if actor.is_hr:
        return None
    if actor.is_manager:
        return or_(KPIEvaluation.employee_id == actor.id, Employee.manager_id == actor.id)
    return KPIEvaluation.employee_id == actor.id


def list_evaluations(
    db: Session,
    actor: Employee,
    filters: Optional[Dict[str, Any]] = None,
    page: int = 1,
    page_size: int = 10,
) -> Dict[str, Any]:
    """
    Paginated evaluation listing, newest first.

    The stats block ignores the status filter and only counts active
    employees so the dashboard cards stay stable while the user filters.
    """
    filters = filters or {}
    if page < 1:
        page = 1
    if page_size < 1 or page_size > 100:
        page_size = 10

    visibility = _visibility_filter(actor)

    def scoped(query, include_status=True):
        query = query.join(Employee, KPIEvaluation.employee_id == Employee.id)
        if visibility is not None:
            query = query.filter(visibility)
        return _apply_filters(query, filters, include_status)

    base = scoped(db.query(KPIEvaluation))
    total = base.count()
    items = base.order_by(KPIEvaluation.created_at.desc(), KPIEvaluation.id.desc()) \
        .offset((page - 1) * page_size).limit(page_size).all()

    stats_query = scoped(db.query(KPIEvaluation), include_status=False).filter(Employee.is_active == True)
    stats_total = stats_query.count()
    stats_pending = stats_query.filter(KPIEvaluation.status.in_(OPEN_STATUSES)).count()
    stats_completed = stats_query.filter(KPIEvaluation.status == EvaluationStatus.COMPLETED.value).count()
    avg_score = scoped(
        db.query(func.avg(KPIEvaluation.total_score)).select_from(KPIEvaluation), include_status=False
    ).filter(
        Employee.is_active == True,
        KPIEvaluation.total_score > 0,
    ).scalar()

    total_pages = (total + page_size - 1) // page_size
    return {
        "data": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
        "stats": {
            "total": stats_total,
            "pending": stats_pending,
            "completed": stats_completed,
            "avg_score": round_score(avg_score or 0),
        },
    }


def _actionable_condition(actor: Employee):
    conditions = [
        and_(
            KPIEvaluation.employee_id == actor.id,
            KPIEvaluation.status.in_([EvaluationStatus.PENDING.value, EvaluationStatus.PENDING_CONFIRM.value]),
        )
    ]
    if actor.is_manager:
        reports = select(Employee.id).where(Employee.manager_id == actor.id)
        conditions.append(and_(
            KPIEvaluation.employee_id.in_(reports),
            KPIEvaluation.status == EvaluationStatus.SELF_EVALUATED.value,
        ))
    if actor.is_hr:
        conditions.append(KPIEvaluation.status == EvaluationStatus.MANAGER_EVALUATED.value)
    return or_(*conditions)


def pending_evaluations(db: Session, actor: Employee) -> List[KPIEvaluation]:
    """Evaluations waiting on the actor: own self-review or confirmation, reports to score, HR review."""
    return db.query(KPIEvaluation).filter(_actionable_condition(actor)) \
        .order_by(KPIEvaluation.created_at.desc(), KPIEvaluation.id.desc()).all()


def pending_count(db: Session, actor: Employee) -> int:
    return db.query(KPIEvaluation).filter(_actionable_condition(actor)).count()


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

def _check_transition_actor(evaluation: KPIEvaluation, new_status: str, actor: Employee) -> None:
    if actor.is_hr:
        return
    if new_status in (EvaluationStatus.SELF_EVALUATED.value, EvaluationStatus.COMPLETED.value):
        if evaluation.employee_id != actor.id:
            raise AccessDeniedError("Only the evaluated employee can perform this step")
    elif new_status == EvaluationStatus.MANAGER_EVALUATED.value:
        if not is_direct_manager(evaluation, actor):
            raise AccessDeniedError("Only the direct manager or HR can submit the manager review")
    else:
        raise AccessDeniedError("Only HR can confirm the review result")


def resolve_final_score(score: KPIScore) -> Optional[float]:
    """HR score, else manager score, else self score."""
    for value in (score.hr_score, score.manager_score, score.self_score):
        if value is not None:
            return value
    return None


def advance_with_performance_rule(
    db: Session,
    evaluation: KPIEvaluation,
    rule: Optional[PerformanceRule],
    actor_id: Optional[int] = None,
) -> bool:
    """
    Run the rule engine and move a manager-reviewed evaluation on to
    pending_confirm. Returns False, leaving the evaluation for manual HR
    review, when the rule is disabled or fails.
    """
    try:
        result = apply_performance_rule(db, evaluation.id, rule)
    except AppException as e:
        logger.warning(f"Performance rule not applied to evaluation {evaluation.id}: {e.message}")
        return False
    if not result.applied:
        return False

    db.refresh(evaluation)
    evaluation.status = EvaluationStatus.PENDING_CONFIRM.value
    commit_or_raise(db, "advance evaluation to pending confirmation")
    logger.info(f"Evaluation {evaluation.id} advanced to pending_confirm by performance rule")
    notify_status_change(db, evaluation, actor_id)
    return True


def _complete(evaluation: KPIEvaluation, total_score: Optional[float]) -> None:
    total = 0.0
    for score in evaluation.scores:
        score.final_score = resolve_final_score(score)
        if score.final_score is not None:
            total += score.final_score

    if total_score is not None and total_score > 0:
        evaluation.total_score = round_score(total_score)
    elif evaluation.total_score_locked:
        pass  # adjusted by objection resolution
    else:
        evaluation.total_score = round_score(total)


def update_status(
    db: Session,
    evaluation_id: int,
    new_status: str,
    actor: Employee,
    total_score: Optional[float] = None,
) -> KPIEvaluation:
    """
    Move an evaluation one step forward.

    Entering manager_evaluated runs the performance rule when it is enabled
    and, on success, continues straight to pending_confirm. Entering
    completed fixes each item's final score and the evaluation total.
    """
    valid = [status.value for status in EvaluationStatus]
    if new_status not in valid:
        raise ValidationFailedError(f"Unknown status '{new_status}'", details={"allowed": valid})

    evaluation = get_evaluation_or_404(db, evaluation_id)
    current = evaluation.status
    if NEXT_STATUS.get(current) != new_status:
        raise StateConflictError(
            f"Cannot move evaluation from {current} to {new_status}",
            details={"current": current, "requested": new_status},
        )

    _check_transition_actor(evaluation, new_status, actor)

    if new_status == EvaluationStatus.SELF_EVALUATED.value and evaluation.employee.manager_id is None:
        raise StateConflictError(NO_MANAGER_MESSAGE)
    if new_status == EvaluationStatus.COMPLETED.value and evaluation.has_objection:
        raise StateConflictError("The objection must be handled before the review can be completed")

    evaluation.status = new_status
    if new_status == EvaluationStatus.COMPLETED.value:
        _complete(evaluation, total_score)
    commit_or_raise(db, "update evaluation status")
    db.refresh(evaluation)

    logger.info(
        f"Evaluation {evaluation.id} moved from {current} to {new_status}",
        extra={"actor_id": actor.id},
    )

    if new_status == EvaluationStatus.MANAGER_EVALUATED.value:
        rule = find_performance_rule(db)
        if rule is not None and rule.enabled and advance_with_performance_rule(db, evaluation, rule, actor.id):
            return evaluation

    notify_status_change(db, evaluation, actor.id)
    return evaluation


def notify_status_change(db: Session, evaluation: KPIEvaluation, actor_id: Optional[int]) -> None:
    status = evaluation.status
    label = period_label(evaluation)
    name = evaluation.employee.name if evaluation.employee else ""
    template = _template_name(evaluation)
    payload = {"evaluation_id": evaluation.id, "status": status}

    if status == EvaluationStatus.SELF_EVALUATED.value:
        NotificationService.dispatch(
            db, evaluation.employee.manager_id, events.EVENT_EVALUATION_STATUS_CHANGE,
            "Review waiting for you",
            f"{name} finished the self review for {template} ({label}).",
            actor_id=actor_id, payload=payload,
        )
    elif status == EvaluationStatus.MANAGER_EVALUATED.value:
        NotificationService.notify_hr(
            db, events.EVENT_EVALUATION_STATUS_CHANGE,
            "Review waiting for HR",
            f"The manager review of {name} for {template} ({label}) is ready for HR.",
            actor_id=actor_id, payload=payload,
        )
    elif status == EvaluationStatus.PENDING_CONFIRM.value:
        NotificationService.dispatch(
            db, evaluation.employee_id, events.EVENT_EVALUATION_STATUS_CHANGE,
            "Please confirm your review",
            f"Your {template} review for {label} is ready, total score {evaluation.total_score:.1f}.",
            actor_id=actor_id, payload=payload,
        )
    elif status == EvaluationStatus.COMPLETED.value:
        NotificationService.notify_hr(
            db, events.EVENT_EVALUATION_STATUS_CHANGE,
            "Review completed",
            f"{name} confirmed the {template} review for {label}, total score {evaluation.total_score:.1f}.",
            actor_id=actor_id, payload=payload,
        )


# ---------------------------------------------------------------------------
# Score updates
# ---------------------------------------------------------------------------

def update_self_score(
    db: Session,
    score_id: int,
    actor: Employee,
    self_score: Optional[float],
    self_comment: str = "",
) -> KPIScore:
    score = get_score_or_404(db, score_id)
    evaluation = score.evaluation

    if evaluation.employee_id != actor.id:
        raise AccessDeniedError("Only the evaluated employee can enter self scores")
    if evaluation.status != EvaluationStatus.PENDING.value:
        raise StateConflictError("Self scores can only be changed before the self review is submitted")
    # Starting the self review requires somebody to review it next
    if score.self_score is None and self_score is not None and evaluation.employee.manager_id is None:
        raise StateConflictError(NO_MANAGER_MESSAGE)
    validate_score_value(self_score, score.item)

    score.self_score = self_score
    score.self_comment = self_comment or ""
    commit_or_raise(db, "update self score")
    db.refresh(score)

    NotificationService.dispatch(
        db, evaluation.employee.manager_id, events.EVENT_SELF_SCORE_UPDATED,
        "Self score updated",
        f"{actor.name} updated a self score for {period_label(evaluation)}.",
        actor_id=actor.id, payload={"evaluation_id": evaluation.id, "score_id": score.id},
    )
    return score


def update_manager_score(
    db: Session,
    score_id: int,
    actor: Employee,
    manager_score: Optional[float],
    manager_comment: str = "",
) -> KPIScore:
    score = get_score_or_404(db, score_id)
    evaluation = score.evaluation

    if not (actor.is_hr or is_direct_manager(evaluation, actor)):
        raise AccessDeniedError("Only the direct manager or HR can enter manager scores")
    if evaluation.status != EvaluationStatus.SELF_EVALUATED.value:
        raise StateConflictError("Manager scores can only be entered after the self review")
    validate_score_value(manager_score, score.item)

    score.manager_score = manager_score
    score.manager_comment = manager_comment or ""
    commit_or_raise(db, "update manager score")
    db.refresh(score)

    NotificationService.dispatch(
        db, evaluation.employee_id, events.EVENT_MANAGER_SCORE_UPDATED,
        "Manager score updated",
        f"Your manager scored an item of your {period_label(evaluation)} review.",
        actor_id=actor.id, payload={"evaluation_id": evaluation.id, "score_id": score.id},
    )
    return score


def update_hr_score(
    db: Session,
    score_id: int,
    actor: Employee,
    hr_score: Optional[float],
    hr_comment: str = "",
) -> KPIScore:
    score = get_score_or_404(db, score_id)
    evaluation = score.evaluation

    if not actor.is_hr:
        raise AccessDeniedError("Only HR can enter HR scores")
    if evaluation.status not in (EvaluationStatus.MANAGER_EVALUATED.value, EvaluationStatus.PENDING_CONFIRM.value):
        raise StateConflictError("HR scores can only be entered during HR review")
    validate_score_value(hr_score, score.item)

    score.hr_score = hr_score
    score.hr_comment = hr_comment or ""
    commit_or_raise(db, "update HR score")
    db.refresh(score)

    NotificationService.dispatch(
        db, evaluation.employee_id, events.EVENT_HR_SCORE_UPDATED,
        "HR score updated",
        f"HR reviewed an item of your {period_label(evaluation)} review.",
        actor_id=actor.id, payload={"evaluation_id": evaluation.id, "score_id": score.id},
    )
    return score


def update_final_score(
    db: Session,
    score_id: int,
    actor: Employee,
    final_score: Optional[float],
    final_comment: str = "",
) -> KPIScore:
    score = get_score_or_404(db, score_id)

    if not actor.is_hr:
        raise AccessDeniedError("Only HR can override final scores")
    if score.evaluation.status not in (EvaluationStatus.PENDING_CONFIRM.value, EvaluationStatus.COMPLETED.value):
        raise StateConflictError("Final scores can only be set once the review is awaiting confirmation")
    validate_score_value(final_score, score.item)

    score.final_score = final_score
    score.final_comment = final_comment or ""
    commit_or_raise(db, "update final score")
    db.refresh(score)
    return score


# ---------------------------------------------------------------------------
# Objections
# ---------------------------------------------------------------------------

def submit_objection(db: Session, evaluation_id: int, actor: Employee, reason: str) -> KPIEvaluation:
    """The evaluated employee may object once, while the result awaits confirmation."""
    evaluation = get_evaluation_or_404(db, evaluation_id)

    if evaluation.employee_id != actor.id:
        raise AccessDeniedError("Only the evaluated employee can object to this review")
    if evaluation.status != EvaluationStatus.PENDING_CONFIRM.value:
        raise StateConflictError("Objections can only be raised while the review awaits confirmation")
    if evaluation.has_objection or (evaluation.objection_reason or "").strip():
        raise StateConflictError("An objection has already been submitted for this review")
    if not (reason or "").strip():
        raise ValidationFailedError("Objection reason is required")

    evaluation.has_objection = True
    evaluation.objection_reason = reason.strip()
    commit_or_raise(db, "submit objection")
    db.refresh(evaluation)

    logger.info(f"Objection submitted on evaluation {evaluation.id}")
    recipients = NotificationService.hr_user_ids(db)
    if evaluation.employee.manager_id:
        recipients.append(evaluation.employee.manager_id)
    NotificationService.notify_many(
        db, recipients, events.EVENT_OBJECTION_SUBMITTED,
        "Review objection",
        f"{actor.name} objected to the {period_label(evaluation)} review: {evaluation.objection_reason}",
        actor_id=actor.id, payload={"evaluation_id": evaluation.id},
    )
    return evaluation


def handle_objection(
    db: Session,
    evaluation_id: int,
    actor: Employee,
    total_score: Optional[float],
    final_comment: str,
) -> KPIEvaluation:
    """
    HR resolution of an open objection.

    Clears the flag and records the adjusted total and comment; the status
    is left untouched. The adjusted total is locked so a later completion
    without an explicit total keeps it.
    """
    if not actor.is_hr:
        raise AccessDeniedError("Only HR can handle objections")

    evaluation = get_evaluation_or_404(db, evaluation_id)
    if not evaluation.has_objection:
        raise StateConflictError("This review has no open objection")
    if total_score is None:
        raise ValidationFailedError("Total score is required")
    if math.isnan(total_score) or math.isinf(total_score) or total_score < 0:
        raise ValidationFailedError("Total score is not a valid number")
    if not (final_comment or "").strip():
        raise ValidationFailedError("Final comment is required")

    evaluation.has_objection = False
    evaluation.total_score = round_score(total_score)
    evaluation.final_comment = final_comment.strip()
    evaluation.total_score_locked = True
    commit_or_raise(db, "handle objection")
    db.refresh(evaluation)

    logger.info(f"Objection on evaluation {evaluation.id} handled by {actor.id}")
    recipients = [evaluation.employee_id]
    if evaluation.employee.manager_id:
        recipients.append(evaluation.employee.manager_id)
    NotificationService.notify_many(
        db, recipients,
        events.EVENT_OBJECTION_HANDLED,
        "Objection handled",
        f"HR handled the objection on the {period_label(evaluation)} review, "
        f"total score {evaluation.total_score:.1f}.",
        actor_id=actor.id, payload={"evaluation_id": evaluation.id},
    )
    return evaluation
