from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from kpi_backend.database import get_db
from kpi_backend.models.employee import Employee
from kpi_backend.routers.deps import get_current_employee
from kpi_backend.schemas.share import (
    ShareCreate,
    ShareDetail,
    ShareItemSummary,
    ShareResponse,
    ShareScoreResponse,
    ShareScoreUpdate,
)
from kpi_backend.services import share_service

router = APIRouter(tags=["Shares"])


@router.post(
    "/evaluations/{evaluation_id}/shares",
    response_model=List[ShareResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_shares(
    evaluation_id: int,
    payload: ShareCreate,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return share_service.create_shares(
        db, evaluation_id, actor, payload.shared_to_ids, payload.message, payload.deadline
    )


@router.get("/evaluations/{evaluation_id}/shares", response_model=List[ShareResponse])
def list_shares(
    evaluation_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return share_service.list_shares(db, evaluation_id, actor)


@router.get("/evaluations/{evaluation_id}/shares/summary", response_model=List[ShareItemSummary])
def share_summary(
    evaluation_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return share_service.share_summary(db, evaluation_id, actor)


@router.delete("/evaluations/{evaluation_id}/shares/{share_id}")
def delete_share(
    evaluation_id: int,
    share_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    share_service.delete_share(db, evaluation_id, share_id, actor)
    return {"success": True, "message": "Share deleted"}


@router.get("/shares/mine", response_model=List[ShareResponse])
def my_shares(
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return share_service.my_shares(db, actor)


@router.get("/shares/{share_id}", response_model=ShareDetail)
def share_detail(
    share_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return share_service.get_share_detail(db, share_id, actor)


@router.put("/shares/{share_id}/items/{item_id}", response_model=ShareScoreResponse)
def update_share_score(
    share_id: int,
    item_id: int,
    payload: ShareScoreUpdate,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return share_service.update_share_score(db, share_id, item_id, actor, payload.score, payload.comment)


@router.post("/shares/{share_id}/submit", response_model=ShareResponse)
def submit_share(
    share_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return share_service.submit_share(db, share_id, actor)
