from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from kpi_backend.database import get_db
from kpi_backend.models.employee import Employee, EmployeeRole
from kpi_backend.routers.deps import get_current_employee, require_role
from kpi_backend.schemas.template import (
    KPIItemCreate,
    KPIItemResponse,
    KPIItemUpdate,
    KPITemplateCreate,
    KPITemplateResponse,
    KPITemplateUpdate,
)
from kpi_backend.services import template_service

router = APIRouter(prefix="/templates", tags=["Templates"])


@router.get("/", response_model=List[KPITemplateResponse])
def list_templates(
    active_only: bool = False,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return template_service.list_templates(db, active_only)


@router.post("/", response_model=KPITemplateResponse, status_code=status.HTTP_201_CREATED)
def create_template(
    payload: KPITemplateCreate,
    db: Session = Depends(get_db),
    actor: Employee = Depends(require_role([EmployeeRole.HR]))
):
    items = [item.model_dump() for item in payload.items]
    return template_service.create_template(db, actor, payload.model_dump(exclude={"items"}), items)


@router.get("/{template_id}", response_model=KPITemplateResponse)
def get_template(
    template_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(get_current_employee)
):
    return template_service.get_template_or_404(db, template_id)


@router.put("/{template_id}", response_model=KPITemplateResponse)
def update_template(
    template_id: int,
    payload: KPITemplateUpdate,
    db: Session = Depends(get_db),
    actor: Employee = Depends(require_role([EmployeeRole.HR]))
):
    return template_service.update_template(db, template_id, actor, payload.model_dump(exclude_unset=True))


@router.delete("/{template_id}")
def delete_template(
    template_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(require_role([EmployeeRole.HR]))
):
    template_service.delete_template(db, template_id, actor)
    return {"success": True, "message": "Template deleted"}


@router.post("/{template_id}/items", response_model=KPIItemResponse, status_code=status.HTTP_201_CREATED)
def add_item(
    template_id: int,
    payload: KPIItemCreate,
    db: Session = Depends(get_db),
    actor: Employee = Depends(require_role([EmployeeRole.HR]))
):
    return template_service.add_item(db, template_id, actor, payload.model_dump())


@router.put("/items/{item_id}", response_model=KPIItemResponse)
def update_item(
    item_id: int,
    payload: KPIItemUpdate,
    db: Session = Depends(get_db),
    actor: Employee = Depends(require_role([EmployeeRole.HR]))
):
    return template_service.update_item(db, item_id, actor, payload.model_dump(exclude_unset=True))


@router.delete("/items/{item_id}")
def delete_item(
    item_id: int,
    db: Session = Depends(get_db),
    actor: Employee = Depends(require_role([EmployeeRole.HR]))
):
    template_service.delete_item(db, item_id, actor)
    return {"success": True, "message": "KPI item deleted"}
