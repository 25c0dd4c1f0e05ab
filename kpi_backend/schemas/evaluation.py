from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import List, Literal, Optional

from kpi_backend.schemas.employee import EmployeeBrief
from kpi_backend.schemas.template import KPIItemResponse

EvaluationStatusValue = Literal["pending", "self_evaluated", "manager_evaluated", "pending_confirm", "completed"]


class CustomDeadlines(BaseModel):
    self_eval_deadline: datetime
    manager_eval_deadline: datetime
    hr_review_deadline: datetime
    final_confirm_deadline: datetime


class EvaluationCreate(BaseModel):
    employee_id: int
    template_id: int
    period: Literal["monthly", "quarterly", "yearly"]
    year: int = Field(..., ge=2000, le=2100)
    month: Optional[int] = Field(None, ge=1, le=12)
    quarter: Optional[int] = Field(None, ge=1, le=4)
    deadlines: Optional[CustomDeadlines] = None


class EvaluationStatusUpdate(BaseModel):
    status: EvaluationStatusValue
    # Only honoured when completing; a value above zero overrides the computed total
    total_score: Optional[float] = Field(None, ge=0)


class ObjectionCreate(BaseModel):
    reason: str = Field(..., min_length=1)


class ObjectionResolution(BaseModel):
    total_score: float = Field(..., ge=0)
    final_comment: str = Field(..., min_length=1)


class ScoreResponse(BaseModel):
    id: int
    evaluation_id: int
    item_id: int
    item: Optional[KPIItemResponse] = None
    self_score: Optional[float] = None
    self_comment: Optional[str] = ""
    manager_score: Optional[float] = None
    manager_comment: Optional[str] = ""
    hr_score: Optional[float] = None
    hr_comment: Optional[str] = ""
    final_score: Optional[float] = None
    final_comment: Optional[str] = ""

    model_config = ConfigDict(from_attributes=True)


class SelfScoreUpdate(BaseModel):
    self_score: Optional[float] = None
    self_comment: str = ""


class ManagerScoreUpdate(BaseModel):
    manager_score: Optional[float] = None
    manager_comment: str = ""


class HRScoreUpdate(BaseModel):
    hr_score: Optional[float] = None
    hr_comment: str = ""


class FinalScoreUpdate(BaseModel):
    final_score: Optional[float] = None
    final_comment: str = ""


class EvaluationResponse(BaseModel):
    id: int
    employee_id: int
    template_id: int
    employee: Optional[EmployeeBrief] = None
    period: str
    year: int
    month: Optional[int] = None
    quarter: Optional[int] = None
    status: str
    total_score: Optional[float] = 0
    has_objection: bool
    objection_reason: Optional[str] = ""
    final_comment: Optional[str] = ""
    total_score_locked: bool
    has_shares: bool
    share_count: Optional[int] = 0
    time_mode: Optional[str] = None
    self_eval_deadline: Optional[datetime] = None
    manager_eval_deadline: Optional[datetime] = None
    hr_review_deadline: Optional[datetime] = None
    final_confirm_deadline: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class EvaluationDetail(EvaluationResponse):
    scores: List[ScoreResponse] = []


class EvaluationStats(BaseModel):
    total: int
    pending: int
    completed: int
    avg_score: float


class EvaluationPage(BaseModel):
    data: List[EvaluationResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_prev: bool
    stats: EvaluationStats


class CountResponse(BaseModel):
    count: int
