from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import List, Optional

from kpi_backend.schemas.employee import EmployeeBrief


class ShareCreate(BaseModel):
    shared_to_ids: List[int] = Field(..., min_length=1)
    message: str = ""
    deadline: Optional[datetime] = None


class ShareScoreUpdate(BaseModel):
    score: Optional[float] = None
    comment: str = ""


class ShareScoreResponse(BaseModel):
    id: int
    share_id: int
    item_id: int
    score: Optional[float] = None
    comment: Optional[str] = ""

    model_config = ConfigDict(from_attributes=True)


class ShareResponse(BaseModel):
    id: int
    evaluation_id: int
    shared_to_id: int
    shared_by_id: int
    shared_to: Optional[EmployeeBrief] = None
    status: str
    message: Optional[str] = ""
    deadline: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ShareDetail(ShareResponse):
    scores: List[ShareScoreResponse] = []


class ShareReviewerScore(BaseModel):
    shared_to: str
    score: Optional[float] = None
    comment: str = ""


class ShareItemSummary(BaseModel):
    item_id: int
    item_name: str
    average_score: float
    score_count: int
    scores: List[ShareReviewerScore]
