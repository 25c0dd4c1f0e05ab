from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from kpi_backend.database import get_db
from kpi_backend.models.employee import Employee, EmployeeRole
from kpi_backend.routers.deps import get_current_employee, require_role
from kpi_backend.schemas.performance_rule import PerformanceRulePayload, PerformanceRuleResponse
from kpi_backend.services import performance_rule as rule_service

router = APIRouter(prefix="/performance-rules", tags=["Performance Rules"])


@router.get("/", response_model=PerformanceRuleResponse)
def get_rule(
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return rule_service.serialize_rule(rule_service.get_performance_rule(db))


@router.put("/", response_model=PerformanceRuleResponse)
def update_rule(
    payload: PerformanceRulePayload,
    db: Session = Depends(get_db),
    actor: Employee = Depends(require_role([EmployeeRole.HR]))
):
    rule = rule_service.update_performance_rule(db, payload.model_dump())
    return rule_service.serialize_rule(rule)


@router.post("/evaluations/{evaluation_id}/apply")
def apply_rule(
    evaluation_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(require_role([EmployeeRole.HR]))
):
    """Recompute HR scores for one evaluation without changing its status."""
    result = rule_service.apply_performance_rule(db, evaluation_id, rule_service.find_performance_rule(db))
    return {
        "applied": result.applied,
        "updated_items": result.updated_items,
        "total_score": result.total_score,
        "scenario": result.scenario,
    }
