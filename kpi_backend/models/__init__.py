# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    department, employee, kpi_template, evaluation, invitation,
    share, comment, performance_rule, notification, system_setting
)

# Explicit class exports for cleaner imports
from .employee import Employee, EmployeeRole
from .kpi_template import KPITemplate, KPIItem
from .evaluation import KPIEvaluation, KPIScore, EvaluationStatus
from .invitation import EvaluationInvitation, InvitedScore, InvitationStatus
from .performance_rule import PerformanceRule

__all__ = [
    "Employee",
    "EmployeeRole",
    "KPITemplate",
    "KPIItem",
    "KPIEvaluation",
    "KPIScore",
    "EvaluationStatus",
    "EvaluationInvitation",
    "InvitedScore",
    "InvitationStatus",
    "PerformanceRule",
]
