from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import List, Optional

from kpi_backend.schemas.employee import EmployeeBrief


class InvitationCreate(BaseModel):
    invitee_ids: List[int] = Field(..., min_length=1)
    message: str = ""


class InvitedScoreUpdate(BaseModel):
    score: Optional[float] = None
    comment: str = ""


class InvitedScoreResponse(BaseModel):
    id: int
    invitation_id: int
    item_id: int
    score: Optional[float] = None
    comment: Optional[str] = ""

    model_config = ConfigDict(from_attributes=True)


class InvitationResponse(BaseModel):
    id: int
    evaluation_id: int
    inviter_id: int
    invitee_id: int
    inviter: Optional[EmployeeBrief] = None
    invitee: Optional[EmployeeBrief] = None
    status: str
    message: Optional[str] = ""
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class InvitationDetail(InvitationResponse):
    scores: List[InvitedScoreResponse] = []
