"""
Actor resolution and role checks for FastAPI endpoints.

Authentication happens upstream (gateway / host platform); requests reach
this service with the acting employee's id in the X-User-ID header.
"""
import logging
from typing import Callable, List, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from kpi_backend.core.exceptions import AccessDeniedError, AuthenticationError
from kpi_backend.database import get_db
from kpi_backend.models.employee import Employee, EmployeeRole

logger = logging.getLogger(__name__)


def get_current_employee(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
    db: Session = Depends(get_db),
) -> Employee:
    if not x_user_id:
        raise AuthenticationError("Missing X-User-ID header")
    try:
        employee_id = int(x_user_id)
    except ValueError:
        raise AuthenticationError("Invalid X-User-ID header")

    employee = db.get(Employee, employee_id)
    if employee is None:
        logger.warning(f"Unknown actor {employee_id}")
        raise AuthenticationError("Employee not found")
    if not employee.is_active:
        raise AccessDeniedError("Employee is inactive")
    return employee


def require_role(allowed_roles: List[EmployeeRole]) -> Callable:
    """
    Dependency factory that checks if the employee has one of the allowed roles.

    Usage:
        @router.put("/")
        def hr_only(actor: Employee = Depends(require_role([EmployeeRole.HR]))):
            ...
    """
    allowed = [role.value for role in allowed_roles]

    def role_checker(current_employee: Employee = Depends(get_current_employee)) -> Employee:
        if current_employee.role not in allowed:
            raise AccessDeniedError(f"Access denied. Required roles: {allowed}")
        return current_employee
    return role_checker
