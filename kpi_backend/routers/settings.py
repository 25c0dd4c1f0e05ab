from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from kpi_backend.database import get_db
from kpi_backend.models.employee import Employee, EmployeeRole
from kpi_backend.routers.deps import get_current_employee, require_role
from kpi_backend.schemas.settings import DeadlineRules, SystemSettings
from kpi_backend.services import settings_service

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("/", response_model=SystemSettings)
def get_settings(db: Session = Depends(get_db)):
    # Read before login to decide whether to show the registration form
    return settings_service.get_system_settings(db)


@router.put("/", response_model=SystemSettings)
def update_settings(
    payload: SystemSettings,
    db: Session = Depends(get_db),
    actor: Employee = Depends(require_role([EmployeeRole.HR]))
):
    return settings_service.update_system_settings(db, payload.allow_registration)


@router.get("/deadlines", response_model=DeadlineRules)
def get_deadline_rules(
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return settings_service.get_deadline_rules(db)


@router.put("/deadlines", response_model=DeadlineRules)
def update_deadline_rules(
    payload: DeadlineRules,
    db: Session = Depends(get_db),
    actor: Employee = Depends(require_role([EmployeeRole.HR]))
):
    return settings_service.update_deadline_rules(db, payload.model_dump())
