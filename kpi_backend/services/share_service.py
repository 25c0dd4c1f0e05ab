"""
Delegated "share" reviews.

Once the manager review is in, HR (or the direct manager) can hand the
evaluation to other colleagues for an advisory score. Share scores are
reported next to the evaluation but never feed the performance rule.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from kpi_backend.core.exceptions import (
    AccessDeniedError,
    NotFoundError,
    StateConflictError,
    ValidationFailedError,
)
from kpi_backend.models.employee import Employee
from kpi_backend.models.evaluation import EvaluationStatus, KPIEvaluation
from kpi_backend.models.share import EvaluationShare, ShareScore, ShareStatus
from kpi_backend.services import notification as events
from kpi_backend.services.base import commit_or_raise, flush_or_raise
from kpi_backend.services.evaluation_service import (
    get_evaluation_or_404,
    is_direct_manager,
    period_label,
    validate_score_value,
)
from kpi_backend.services.notification import NotificationService
from kpi_backend.services.performance_rule import round_score

logger = logging.getLogger(__name__)


def _get_share_or_404(db: Session, share_id: int) -> EvaluationShare:
    share = db.get(EvaluationShare, share_id)
    if share is None:
        raise NotFoundError("Share not found")
    return share


def _refresh_share_counters(db: Session, evaluation: KPIEvaluation) -> None:
    count = db.query(EvaluationShare).filter(EvaluationShare.evaluation_id == evaluation.id).count()
    evaluation.share_count = count
    evaluation.has_shares = count > 0


def create_shares(
    db: Session,
    evaluation_id: int,
    actor: Employee,
    shared_to_ids: List[int],
    message: str = "",
    deadline: Optional[datetime] = None,
) -> List[EvaluationShare]:
    evaluation = get_evaluation_or_404(db, evaluation_id)
    if not (actor.is_hr or is_direct_manager(evaluation, actor)):
        raise AccessDeniedError("Only HR or the direct manager can share this evaluation")
    if evaluation.status != EvaluationStatus.MANAGER_EVALUATED.value:
        raise StateConflictError("Evaluations can only be shared after the manager review")
    if not shared_to_ids:
        raise ValidationFailedError("At least one colleague is required")

    target_ids = list(dict.fromkeys(shared_to_ids))
    found = db.query(Employee).filter(Employee.id.in_(target_ids)).count()
    if found != len(target_ids):
        raise ValidationFailedError("Some of the selected colleagues do not exist")

    shares = []
    for target_id in target_ids:
        share = EvaluationShare(
            evaluation_id=evaluation.id,
            shared_to_id=target_id,
            shared_by_id=actor.id,
            status=ShareStatus.PENDING.value,
            message=message or "",
            deadline=deadline,
        )
        share.scores = [ShareScore(item_id=score.item_id) for score in evaluation.scores]
        db.add(share)
        shares.append(share)

    flush_or_raise(db, "create shares")
    _refresh_share_counters(db, evaluation)
    commit_or_raise(db, "create shares")
    for share in shares:
        db.refresh(share)

    logger.info(f"Evaluation {evaluation.id} shared with {len(shares)} colleague(s)")
    NotificationService.notify_many(
        db, target_ids, events.EVENT_SHARE_CREATED,
        "Review shared with you",
        f"{actor.name} asked for your view on {evaluation.employee.name}'s review for {period_label(evaluation)}.",
        actor_id=actor.id, payload={"evaluation_id": evaluation.id},
    )
    return shares


def list_shares(db: Session, evaluation_id: int, actor: Employee) -> List[EvaluationShare]:
    evaluation = get_evaluation_or_404(db, evaluation_id)
    if not (actor.is_hr or is_direct_manager(evaluation, actor)):
        raise AccessDeniedError("You cannot view the shares of this evaluation")
    return db.query(EvaluationShare).filter(EvaluationShare.evaluation_id == evaluation_id) \
        .order_by(EvaluationShare.id).all()


def my_shares(db: Session, actor: Employee) -> List[EvaluationShare]:
    return db.query(EvaluationShare).filter(EvaluationShare.shared_to_id == actor.id) \
        .order_by(EvaluationShare.created_at.desc(), EvaluationShare.id.desc()).all()


def get_share_detail(db: Session, share_id: int, actor: Employee) -> EvaluationShare:
    share = _get_share_or_404(db, share_id)
    if not (actor.is_hr or actor.id in (share.shared_to_id, share.shared_by_id)):
        raise AccessDeniedError("You cannot view this share")
    return share


def update_share_score(
    db: Session,
    share_id: int,
    item_id: int,
    actor: Employee,
    score: Optional[float],
    comment: str = "",
) -> ShareScore:
    share = _get_share_or_404(db, share_id)
    if share.shared_to_id != actor.id:
        raise AccessDeniedError("This share was not sent to you")
    if share.status == ShareStatus.COMPLETED.value:
        raise StateConflictError("This share is already submitted")

    share_score = db.query(ShareScore).filter(
        ShareScore.share_id == share_id,
        ShareScore.item_id == item_id,
    ).first()
    if share_score is None:
        raise NotFoundError("Share score not found")
    validate_score_value(score, share_score.item)

    share_score.score = score
    share_score.comment = comment or ""
    commit_or_raise(db, "update share score")
    db.refresh(share_score)
    return share_score


def submit_share(db: Session, share_id: int, actor: Employee) -> EvaluationShare:
    share = _get_share_or_404(db, share_id)
    if share.shared_to_id != actor.id:
        raise AccessDeniedError("This share was not sent to you")
    if share.status == ShareStatus.COMPLETED.value:
        raise StateConflictError("This share is already submitted")

    share.status = ShareStatus.COMPLETED.value
    commit_or_raise(db, "submit share")
    db.refresh(share)
    return share


def share_summary(db: Session, evaluation_id: int, actor: Employee) -> List[Dict[str, Any]]:
    """Per-item average of the shared scores, with each reviewer's row."""
    shares = list_shares(db, evaluation_id, actor)

    summaries: Dict[int, Dict[str, Any]] = {}
    for share in shares:
        for score in share.scores:
            summary = summaries.setdefault(score.item_id, {
                "item_id": score.item_id,
                "item_name": score.item.name if score.item else "",
                "average_score": 0.0,
                "score_count": 0,
                "scores": [],
            })
            summary["scores"].append({
                "shared_to": share.shared_to.name if share.shared_to else "",
                "score": score.score,
                "comment": score.comment or "",
            })
            if score.score is not None:
                summary["average_score"] += score.score
                summary["score_count"] += 1

    for summary in summaries.values():
        if summary["score_count"]:
            summary["average_score"] = round_score(summary["average_score"] / summary["score_count"])
    return [summaries[item_id] for item_id in sorted(summaries)]


def delete_share(db: Session, evaluation_id: int, share_id: int, actor: Employee) -> None:
    share = _get_share_or_404(db, share_id)
    if share.evaluation_id != evaluation_id:
        raise NotFoundError("Share not found")
    if share.shared_by_id != actor.id:
        raise AccessDeniedError("Only the colleague who created this share can delete it")

    evaluation = share.evaluation
    db.delete(share)
    flush_or_raise(db, "delete share")
    _refresh_share_counters(db, evaluation)
    commit_or_raise(db, "delete share")
    logger.info(f"Share {share_id} deleted", extra={"evaluation_id": evaluation_id})
