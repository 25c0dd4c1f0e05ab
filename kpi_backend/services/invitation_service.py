"""
Peer-invitation workflow.

HR invites colleagues to score an evaluation; each invitee works through
pending -> accepted -> completed (or declines). Every operation that can
change which invitations are outstanding ends with
recheck_rule_after_invitation_change so a manager-reviewed evaluation moves
on as soon as the last peer score arrives.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from kpi_backend.core.exceptions import (
    AccessDeniedError,
    AppException,
    NotFoundError,
    StateConflictError,
    ValidationFailedError,
)
from kpi_backend.models.comment import EvaluationComment
from kpi_backend.models.employee import Employee
from kpi_backend.models.evaluation import EvaluationStatus
from kpi_backend.models.invitation import EvaluationInvitation, InvitationStatus, InvitedScore
from kpi_backend.services import notification as events
from kpi_backend.services.base import commit_or_raise
from kpi_backend.services.evaluation_service import (
    advance_with_performance_rule,
    get_evaluation_or_404,
    period_label,
    validate_score_value,
)
from kpi_backend.services.notification import NotificationService
from kpi_backend.services.performance_rule import apply_performance_rule, find_performance_rule, round_score

logger = logging.getLogger(__name__)

INVITABLE_STATUSES = (EvaluationStatus.SELF_EVALUATED.value, EvaluationStatus.MANAGER_EVALUATED.value)
# Declined and cancelled invitations no longer hold up the review
INACTIVE_STATUSES = (InvitationStatus.DECLINED.value, InvitationStatus.CANCELLED.value)


def get_invitation_or_404(db: Session, invitation_id: int) -> EvaluationInvitation:
    invitation = db.get(EvaluationInvitation, invitation_id)
    if invitation is None:
        raise NotFoundError("Invitation not found")
    return invitation


def _require_hr(actor: Employee, action: str) -> None:
    if not actor.is_hr:
        raise AccessDeniedError(f"Only HR can {action}")


def _require_invitee(invitation: EvaluationInvitation, actor: Employee) -> None:
    if invitation.invitee_id != actor.id:
        raise AccessDeniedError("This invitation was not sent to you")


def _require_status(invitation: EvaluationInvitation, status: InvitationStatus, message: str) -> None:
    if invitation.status != status.value:
        raise StateConflictError(message, details={"status": invitation.status})


def format_score(value: float) -> str:
    return f"{round_score(value):g}"


def all_relevant_invitations_completed(db: Session, evaluation_id: int) -> bool:
    outstanding = db.query(EvaluationInvitation.id).filter(
        EvaluationInvitation.evaluation_id == evaluation_id,
        EvaluationInvitation.status.notin_(INACTIVE_STATUSES),
        EvaluationInvitation.status != InvitationStatus.COMPLETED.value,
    ).first()
    return outstanding is None


def recheck_rule_after_invitation_change(
    db: Session,
    evaluation_id: int,
    actor_id: Optional[int] = None,
) -> bool:
    """
    Post-condition shared by every invitation state change.

    When the evaluation sits at manager_evaluated, the rule is enabled and
    no active invitation is still open, the rule is applied and the
    evaluation advanced to pending_confirm. Safe to call repeatedly; returns
    True when the evaluation was advanced.
    """
    evaluation = get_evaluation_or_404(db, evaluation_id)
    if evaluation.status != EvaluationStatus.MANAGER_EVALUATED.value:
        return False

    rule = find_performance_rule(db)
    if rule is None or not rule.enabled:
        return False
    if not all_relevant_invitations_completed(db, evaluation_id):
        return False

    return advance_with_performance_rule(db, evaluation, rule, actor_id)


# ---------------------------------------------------------------------------
# HR operations
# ---------------------------------------------------------------------------

def create_invitations(
    db: Session,
    evaluation_id: int,
    actor: Employee,
    invitee_ids: List[int],
    message: str = "",
) -> List[EvaluationInvitation]:
    """Invite peers to score an evaluation. Colleagues already invited are skipped."""
    _require_hr(actor, "send invitations")

    evaluation = get_evaluation_or_404(db, evaluation_id)
    if evaluation.status not in INVITABLE_STATUSES:
        raise StateConflictError("Invitations can only be sent after the self review or the manager review")
    if not invitee_ids:
        raise ValidationFailedError("At least one invitee is required")
    if evaluation.employee_id in invitee_ids:
        raise ValidationFailedError("The evaluated employee cannot be invited to score their own review")

    unique_ids = list(dict.fromkeys(invitee_ids))
    found = {row[0] for row in db.query(Employee.id).filter(Employee.id.in_(unique_ids)).all()}
    missing = [employee_id for employee_id in unique_ids if employee_id not in found]
    if missing:
        raise NotFoundError(f"Employees not found: {', '.join(str(i) for i in missing)}")

    already_invited = {
        row[0] for row in db.query(EvaluationInvitation.invitee_id).filter(
            EvaluationInvitation.evaluation_id == evaluation_id,
            EvaluationInvitation.invitee_id.in_(unique_ids),
        ).all()
    }

    created = []
    for invitee_id in unique_ids:
        if invitee_id in already_invited:
            continue
        invitation = EvaluationInvitation(
            evaluation_id=evaluation_id,
            inviter_id=actor.id,
            invitee_id=invitee_id,
            status=InvitationStatus.PENDING.value,
            message=message or "",
        )
        invitation.scores = [InvitedScore(item_id=score.item_id) for score in evaluation.scores]
        db.add(invitation)
        created.append(invitation)

    commit_or_raise(db, "create invitations")
    for invitation in created:
        db.refresh(invitation)

    logger.info(
        f"{len(created)} invitation(s) created for evaluation {evaluation_id}",
        extra={"skipped": len(unique_ids) - len(created)},
    )
    for invitation in created:
        NotificationService.dispatch(
            db, invitation.invitee_id, events.EVENT_INVITATION_CREATED,
            "Scoring invitation",
            f"{actor.name} invited you to score {evaluation.employee.name} "
            f"for {period_label(evaluation)}. Message: {message or '-'}",
            actor_id=actor.id,
            payload={"invitation_id": invitation.id, "evaluation_id": evaluation_id},
        )
    return created


def cancel_invitation(db: Session, invitation_id: int, actor: Employee) -> EvaluationInvitation:
    _require_hr(actor, "cancel invitations")
    invitation = get_invitation_or_404(db, invitation_id)
    _require_status(invitation, InvitationStatus.PENDING, "Only pending invitations can be cancelled")

    invitation.status = InvitationStatus.CANCELLED.value
    commit_or_raise(db, "cancel invitation")

    _notify_status(db, invitation, invitation.invitee_id, actor, "Invitation cancelled",
                   "An invitation to score a review was withdrawn by HR.")
    recheck_rule_after_invitation_change(db, invitation.evaluation_id, actor.id)
    db.refresh(invitation)
    return invitation


def reinvite(db: Session, invitation_id: int, actor: Employee) -> EvaluationInvitation:
    _require_hr(actor, "resend invitations")
    invitation = get_invitation_or_404(db, invitation_id)
    _require_status(invitation, InvitationStatus.DECLINED, "Only declined invitations can be sent again")

    invitation.status = InvitationStatus.PENDING.value
    commit_or_raise(db, "resend invitation")
    db.refresh(invitation)

    _notify_status(db, invitation, invitation.invitee_id, actor, "Scoring invitation",
                   "HR sent you the scoring invitation again.")
    return invitation


def delete_invitation(db: Session, invitation_id: int, actor: Employee) -> None:
    """
    Remove an invitation and its scores.

    If a completed invitation disappears after the rule already moved the
    evaluation to pending_confirm, HR scores are recomputed without peer
    input; the status stays where it is.
    """
    _require_hr(actor, "delete invitations")
    invitation = get_invitation_or_404(db, invitation_id)

    evaluation_id = invitation.evaluation_id
    invitee_id = invitation.invitee_id
    was_completed = invitation.status == InvitationStatus.COMPLETED.value
    evaluation_status = invitation.evaluation.status

    db.delete(invitation)
    commit_or_raise(db, "delete invitation")
    logger.info(f"Invitation {invitation_id} deleted", extra={"evaluation_id": evaluation_id})

    if was_completed and evaluation_status == EvaluationStatus.PENDING_CONFIRM.value:
        rule = find_performance_rule(db)
        if rule is not None and rule.enabled:
            try:
                apply_performance_rule(db, evaluation_id, rule)
            except AppException as e:
                # The deletion stands even if the recomputation fails
                logger.warning(f"HR scores not recomputed for evaluation {evaluation_id}: {e.message}")

    NotificationService.dispatch(
        db, invitee_id, events.EVENT_INVITATION_DELETED,
        "Invitation removed",
        "An invitation to score a review was removed by HR.",
        actor_id=actor.id, payload={"invitation_id": invitation_id, "evaluation_id": evaluation_id},
    )
    recheck_rule_after_invitation_change(db, evaluation_id, actor.id)


# ---------------------------------------------------------------------------
# Invitee operations
# ---------------------------------------------------------------------------

def accept_invitation(db: Session, invitation_id: int, actor: Employee) -> EvaluationInvitation:
    invitation = get_invitation_or_404(db, invitation_id)
    _require_invitee(invitation, actor)
    _require_status(invitation, InvitationStatus.PENDING, "Only pending invitations can be accepted")

    invitation.status = InvitationStatus.ACCEPTED.value
    commit_or_raise(db, "accept invitation")
    db.refresh(invitation)

    _notify_status(db, invitation, invitation.inviter_id, actor, "Invitation accepted",
                   f"{actor.name} accepted the scoring invitation.")
    return invitation


def decline_invitation(db: Session, invitation_id: int, actor: Employee) -> EvaluationInvitation:
    invitation = get_invitation_or_404(db, invitation_id)
    _require_invitee(invitation, actor)
    _require_status(invitation, InvitationStatus.PENDING, "Only pending invitations can be declined")

    invitation.status = InvitationStatus.DECLINED.value
    commit_or_raise(db, "decline invitation")

    _notify_status(db, invitation, invitation.inviter_id, actor, "Invitation declined",
                   f"{actor.name} declined the scoring invitation.")
    recheck_rule_after_invitation_change(db, invitation.evaluation_id, actor.id)
    db.refresh(invitation)
    return invitation


def update_invited_score(
    db: Session,
    score_id: int,
    actor: Employee,
    score: Optional[float],
    comment: str = "",
) -> InvitedScore:
    invited_score = db.get(InvitedScore, score_id)
    if invited_score is None:
        raise NotFoundError("Invited score not found")

    invitation = invited_score.invitation
    _require_invitee(invitation, actor)
    _require_status(invitation, InvitationStatus.ACCEPTED, "Scores can only be entered on an accepted invitation")
    validate_score_value(score, invited_score.item)

    invited_score.score = score
    invited_score.comment = comment or ""
    commit_or_raise(db, "update invited score")
    db.refresh(invited_score)

    NotificationService.dispatch(
        db, invitation.inviter_id, events.EVENT_INVITED_SCORE_UPDATED,
        "Invited score updated",
        f"{actor.name} updated an invited score.",
        actor_id=actor.id,
        payload={"invitation_id": invitation.id, "score_id": invited_score.id},
    )
    return invited_score


def complete_invitation(db: Session, invitation_id: int, actor: Employee) -> EvaluationInvitation:
    """
    Finish an accepted invitation once every item has a score.

    The status change and the summary comment on the evaluation are written
    together.
    """
    invitation = get_invitation_or_404(db, invitation_id)
    _require_invitee(invitation, actor)
    _require_status(invitation, InvitationStatus.ACCEPTED, "Only accepted invitations can be completed")

    unscored = [score.item_id for score in invitation.scores if score.score is None]
    if unscored:
        raise StateConflictError("Please score every item before completing", details={"unscored_items": unscored})

    total = sum(score.score for score in invitation.scores)
    invitation.status = InvitationStatus.COMPLETED.value
    db.add(EvaluationComment(
        evaluation_id=invitation.evaluation_id,
        author_id=invitation.invitee_id,
        content=f"Invitation score ({actor.name}), total {format_score(total)}",
        is_private=False,
    ))
    commit_or_raise(db, "complete invitation")
    logger.info(f"Invitation {invitation.id} completed", extra={"evaluation_id": invitation.evaluation_id})

    _notify_status(db, invitation, invitation.inviter_id, actor, "Invitation completed",
                   f"{actor.name} finished scoring, total {format_score(total)}.")
    recheck_rule_after_invitation_change(db, invitation.evaluation_id, actor.id)
    db.refresh(invitation)
    return invitation


def _notify_status(db, invitation, recipient_id, actor, title, message):
    NotificationService.dispatch(
        db, recipient_id, events.EVENT_INVITATION_STATUS_CHANGE, title, message,
        actor_id=actor.id,
        payload={
            "invitation_id": invitation.id,
            "evaluation_id": invitation.evaluation_id,
            "status": invitation.status,
        },
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def list_evaluation_invitations(db: Session, evaluation_id: int, actor: Employee) -> List[EvaluationInvitation]:
    """HR and the evaluated employee see every invitation; anyone else only their own."""
    evaluation = get_evaluation_or_404(db, evaluation_id)
    query = db.query(EvaluationInvitation).filter(EvaluationInvitation.evaluation_id == evaluation_id)
    if not (actor.is_hr or evaluation.employee_id == actor.id):
        query = query.filter(EvaluationInvitation.invitee_id == actor.id)
    return query.order_by(EvaluationInvitation.id).all()


def list_received(db: Session, actor: Employee, status: Optional[str] = None) -> List[EvaluationInvitation]:
    query = db.query(EvaluationInvitation).filter(EvaluationInvitation.invitee_id == actor.id)
    if status:
        query = query.filter(EvaluationInvitation.status == status)
    return query.order_by(EvaluationInvitation.created_at.desc(), EvaluationInvitation.id.desc()).all()


def list_sent(db: Session, actor: Employee, status: Optional[str] = None) -> List[EvaluationInvitation]:
    query = db.query(EvaluationInvitation).filter(EvaluationInvitation.inviter_id == actor.id)
    if status:
        query = query.filter(EvaluationInvitation.status == status)
    return query.order_by(EvaluationInvitation.created_at.desc(), EvaluationInvitation.id.desc()).all()


def pending_invitation_count(db: Session, actor: Employee) -> int:
    return db.query(EvaluationInvitation).filter(
        EvaluationInvitation.invitee_id == actor.id,
        EvaluationInvitation.status == InvitationStatus.PENDING.value,
    ).count()


def get_invitation_detail(db: Session, invitation_id: int, actor: Employee) -> EvaluationInvitation:
    invitation = get_invitation_or_404(db, invitation_id)
    if not (actor.is_hr or actor.id in (invitation.invitee_id, invitation.inviter_id)):
        raise AccessDeniedError("You cannot view this invitation")
    return invitation
