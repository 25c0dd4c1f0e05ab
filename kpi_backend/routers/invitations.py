from typing import List, Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from kpi_backend.database import get_db
from kpi_backend.models.employee import Employee, EmployeeRole
from kpi_backend.routers.deps import get_current_employee, require_role
from kpi_backend.schemas.evaluation import CountResponse
from kpi_backend.schemas.invitation import (
    InvitationCreate,
    InvitationDetail,
    InvitationResponse,
    InvitedScoreResponse,
    InvitedScoreUpdate,
)
from kpi_backend.services import invitation_service

router = APIRouter(tags=["Invitations"])


@router.post(
    "/evaluations/{evaluation_id}/invitations",
    response_model=List[InvitationResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_invitations(
    evaluation_id: int,
    payload: InvitationCreate,
    db: Session = Depends(get_db),
    actor: Employee = Depends(require_role([EmployeeRole.HR]))
):
    return invitation_service.create_invitations(db, evaluation_id, actor, payload.invitee_ids, payload.message)


@router.get("/evaluations/{evaluation_id}/invitations", response_model=List[InvitationResponse])
def evaluation_invitations(
    evaluation_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return invitation_service.list_evaluation_invitations(db, evaluation_id, actor)


@router.get("/invitations/received", response_model=List[InvitationResponse])
def received_invitations(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return invitation_service.list_received(db, actor, status)


@router.get("/invitations/sent", response_model=List[InvitationResponse])
def sent_invitations(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return invitation_service.list_sent(db, actor, status)


@router.get("/invitations/pending/count", response_model=CountResponse)
def pending_invitation_count(
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return {"count": invitation_service.pending_invitation_count(db, actor)}


@router.get("/invitations/{invitation_id}", response_model=InvitationDetail)
def invitation_detail(
    invitation_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return invitation_service.get_invitation_detail(db, invitation_id, actor)


@router.post("/invitations/{invitation_id}/accept", response_model=InvitationResponse)
def accept_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return invitation_service.accept_invitation(db, invitation_id, actor)


@router.post("/invitations/{invitation_id}/decline", response_model=InvitationResponse)
def decline_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return invitation_service.decline_invitation(db, invitation_id, actor)


@router.post("/invitations/{invitation_id}/complete", response_model=InvitationResponse)
def complete_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return invitation_service.complete_invitation(db, invitation_id, actor)


@router.post("/invitations/{invitation_id}/cancel", response_model=InvitationResponse)
def cancel_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(require_role([EmployeeRole.HR]))
):
    return invitation_service.cancel_invitation(db, invitation_id, actor)


@router.post("/invitations/{invitation_id}/reinvite", response_model=InvitationResponse)
def reinvite(
    invitation_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(require_role([EmployeeRole.HR]))
):
    return invitation_service.reinvite(db, invitation_id, actor)


@router.delete("/invitations/{invitation_id}")
def delete_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(require_role([EmployeeRole.HR]))
):
    invitation_service.delete_invitation(db, invitation_id, actor)
    return {"success": True, "message": "Invitation deleted"}


@router.put("/invitations/scores/{score_id}", response_model=InvitedScoreResponse)
def update_invited_score(
    score_id: int,
    payload: InvitedScoreUpdate,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return invitation_service.update_invited_score(db, score_id, actor, payload.score, payload.comment)
