from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from kpi_backend.database import get_db
from kpi_backend.models.employee import Employee, EmployeeRole
from kpi_backend.routers.deps import get_current_employee, require_role
from kpi_backend.schemas.evaluation import (
    FinalScoreUpdate,
    HRScoreUpdate,
    ManagerScoreUpdate,
    ScoreResponse,
    SelfScoreUpdate,
)
from kpi_backend.services import evaluation_service

router = APIRouter(prefix="/scores", tags=["Scores"])


@router.put("/{score_id}/self", response_model=ScoreResponse)
def update_self_score(
    score_id: int,
    payload: SelfScoreUpdate,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return evaluation_service.update_self_score(db, score_id, actor, payload.self_score, payload.self_comment)


@router.put("/{score_id}/manager", response_model=ScoreResponse)
def update_manager_score(
    score_id: int,
    payload: ManagerScoreUpdate,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return evaluation_service.update_manager_score(
        db, score_id, actor, payload.manager_score, payload.manager_comment
    )


@router.put("/{score_id}/hr", response_model=ScoreResponse)
def update_hr_score(
    score_id: int,
    payload: HRScoreUpdate,
    db: Session = Depends(get_db),
    actor: Employee = Depends(require_role([EmployeeRole.HR]))
):
    return evaluation_service.update_hr_score(db, score_id, actor, payload.hr_score, payload.hr_comment)


@router.put("/{score_id}/final", response_model=ScoreResponse)
def update_final_score(
    score_id: int,
    payload: FinalScoreUpdate,
    db: Session = Depends(get_db),
    actor: Employee = Depends(require_role([EmployeeRole.HR]))
):
    return evaluation_service.update_final_score(db, score_id, actor, payload.final_score, payload.final_comment)
