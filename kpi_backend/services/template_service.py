"""
KPI template and item management (HR only).
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from kpi_backend.core.exceptions import AccessDeniedError, NotFoundError, StateConflictError
from kpi_backend.models.employee import Employee
from kpi_backend.models.evaluation import KPIEvaluation, KPIScore
from kpi_backend.models.kpi_template import KPIItem, KPITemplate
from kpi_backend.services.base import commit_or_raise

logger = logging.getLogger(__name__)

TEMPLATE_FIELDS = ("name", "description", "period", "is_active")
ITEM_FIELDS = ("name", "description", "max_score", "sort_order")


def _require_hr(actor: Employee) -> None:
    if not actor.is_hr:
        raise AccessDeniedError("Only HR can manage KPI templates")


def get_template_or_404(db: Session, template_id: int) -> KPITemplate:
    template = db.get(KPITemplate, template_id)
    if template is None:
        raise NotFoundError("Template not found")
    return template


def get_item_or_404(db: Session, item_id: int) -> KPIItem:
    item = db.get(KPIItem, item_id)
    if item is None:
        raise NotFoundError("KPI item not found")
    return item


def list_templates(db: Session, active_only: bool = False) -> List[KPITemplate]:
    query = db.query(KPITemplate)
    if active_only:
        query = query.filter(KPITemplate.is_active == True)
    return query.order_by(KPITemplate.id).all()


def create_template(
    db: Session,
    actor: Employee,
    data: Dict[str, Any],
    items: Optional[List[Dict[str, Any]]] = None,
) -> KPITemplate:
    _require_hr(actor)
    template = KPITemplate(**{k: v for k, v in data.items() if k in TEMPLATE_FIELDS})
    template.items = [
        KPIItem(**{k: v for k, v in item.items() if k in ITEM_FIELDS})
        for item in items or []
    ]
    db.add(template)
    commit_or_raise(db, "create template")
    db.refresh(template)
    logger.info(f"Template {template.id} created with {len(template.items)} item(s)")
    return template


def update_template(db: Session, template_id: int, actor: Employee, data: Dict[str, Any]) -> KPITemplate:
    _require_hr(actor)
    template = get_template_or_404(db, template_id)
    for key, value in data.items():
        if key in TEMPLATE_FIELDS:
            setattr(template, key, value)
    commit_or_raise(db, "update template")
    db.refresh(template)
    return template


def delete_template(db: Session, template_id: int, actor: Employee) -> None:
    _require_hr(actor)
    template = get_template_or_404(db, template_id)
    in_use = db.query(KPIEvaluation.id).filter(KPIEvaluation.template_id == template_id).first()
    if in_use:
        raise StateConflictError("Template is used by existing evaluations; deactivate it instead")
    db.delete(template)
    commit_or_raise(db, "delete template")


def add_item(db: Session, template_id: int, actor: Employee, data: Dict[str, Any]) -> KPIItem:
    _require_hr(actor)
    get_template_or_404(db, template_id)
    item = KPIItem(template_id=template_id, **{k: v for k, v in data.items() if k in ITEM_FIELDS})
    db.add(item)
    commit_or_raise(db, "create KPI item")
    db.refresh(item)
    return item


def update_item(db: Session, item_id: int, actor: Employee, data: Dict[str, Any]) -> KPIItem:
    _require_hr(actor)
    item = get_item_or_404(db, item_id)
    for key, value in data.items():
        if key in ITEM_FIELDS:
            setattr(item, key, value)
    commit_or_raise(db, "update KPI item")
    db.refresh(item)
    return item


def delete_item(db: Session, item_id: int, actor: Employee) -> None:
    _require_hr(actor)
    item = get_item_or_404(db, item_id)
    scored = db.query(KPIScore.id).filter(KPIScore.item_id == item_id).first()
    if scored:
        raise StateConflictError("KPI item already has scores and cannot be deleted")
    db.delete(item)
    commit_or_raise(db, "delete KPI item")
