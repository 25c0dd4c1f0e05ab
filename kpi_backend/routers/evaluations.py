from typing import List, Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from kpi_backend.database import get_db
from kpi_backend.models.comment import EvaluationComment
from kpi_backend.models.employee import Employee, EmployeeRole
from kpi_backend.routers.deps import get_current_employee, require_role
from kpi_backend.schemas.comment import CommentResponse
from kpi_backend.schemas.evaluation import (
    CountResponse,
    EvaluationCreate,
    EvaluationDetail,
    EvaluationPage,
    EvaluationResponse,
    EvaluationStatusUpdate,
    ObjectionCreate,
    ObjectionResolution,
    ScoreResponse,
)
from kpi_backend.services import evaluation_service

router = APIRouter(prefix="/evaluations", tags=["Evaluations"])


@router.get("/", response_model=EvaluationPage)
def list_evaluations(
    page: int = 1,
    page_size: int = 10,
    status: Optional[str] = None,
    employee_id: Optional[int] = None,
    department_id: Optional[int] = None,
    manager_id: Optional[int] = None,
    period: Optional[str] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    quarter: Optional[int] = None,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    filters = {
        "status": status,
        "employee_id": employee_id,
        "department_id": department_id,
        "manager_id": manager_id,
        "period": period,
        "year": year,
        "month": month,
        "quarter": quarter,
    }
    return evaluation_service.list_evaluations(db, actor, filters, page, page_size)


@router.post("/", response_model=EvaluationDetail, status_code=status.HTTP_201_CREATED)
def create_evaluation(
    payload: EvaluationCreate,
    db: Session = Depends(get_db),
    actor: Employee = Depends(require_role([EmployeeRole.HR]))
):
    return evaluation_service.create_evaluation(
        db,
        actor,
        employee_id=payload.employee_id,
        template_id=payload.template_id,
        period=payload.period,
        year=payload.year,
        month=payload.month,
        quarter=payload.quarter,
        custom_deadlines=payload.deadlines.model_dump() if payload.deadlines else None,
    )


@router.get("/pending", response_model=List[EvaluationResponse])
def pending_evaluations(
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return evaluation_service.pending_evaluations(db, actor)


@router.get("/pending/count", response_model=CountResponse)
def pending_count(
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return {"count": evaluation_service.pending_count(db, actor)}


@router.get("/{evaluation_id}", response_model=EvaluationDetail)
def get_evaluation(
    evaluation_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return evaluation_service.get_evaluation(db, evaluation_id, actor)


@router.delete("/{evaluation_id}")
def delete_evaluation(
    evaluation_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(require_role([EmployeeRole.HR]))
):
    evaluation_service.delete_evaluation(db, evaluation_id, actor)
    return {"success": True, "message": "Evaluation deleted"}


@router.put("/{evaluation_id}/status", response_model=EvaluationResponse)
def update_status(
    evaluation_id: int,
    payload: EvaluationStatusUpdate,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return evaluation_service.update_status(db, evaluation_id, payload.status, actor, payload.total_score)


@router.get("/{evaluation_id}/scores", response_model=List[ScoreResponse])
def evaluation_scores(
    evaluation_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return evaluation_service.get_evaluation_scores(db, evaluation_id, actor)


@router.get("/{evaluation_id}/comments", response_model=List[CommentResponse])
def evaluation_comments(
    evaluation_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    evaluation = evaluation_service.get_evaluation(db, evaluation_id, actor)
    query = db.query(EvaluationComment).filter(EvaluationComment.evaluation_id == evaluation.id)
    if not actor.is_hr:
        query = query.filter(EvaluationComment.is_private == False)
    return query.order_by(EvaluationComment.created_at, EvaluationComment.id).all()


@router.post("/{evaluation_id}/objection", response_model=EvaluationResponse)
def submit_objection(
    evaluation_id: int,
    payload: ObjectionCreate,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return evaluation_service.submit_objection(db, evaluation_id, actor, payload.reason)


@router.put("/{evaluation_id}/objection", response_model=EvaluationResponse)
def handle_objection(
    evaluation_id: int,
    payload: ObjectionResolution,
    db: Session = Depends(get_db),
    actor: Employee = Depends(require_role([EmployeeRole.HR]))
):
    return evaluation_service.handle_objection(
        db, evaluation_id, actor, payload.total_score, payload.final_comment
    )
