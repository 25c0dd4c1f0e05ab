from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import List, Literal, Optional

Period = Literal["monthly", "quarterly", "yearly"]


class KPIItemBase(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    max_score: float = Field(0, ge=0)
    sort_order: int = 0


class KPIItemCreate(KPIItemBase):
    pass


class KPIItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    max_score: Optional[float] = Field(None, ge=0)
    sort_order: Optional[int] = None


class KPIItemResponse(KPIItemBase):
    id: int
    template_id: int

    model_config = ConfigDict(from_attributes=True)


class KPITemplateCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    period: Period = "monthly"
    is_active: bool = True
    items: List[KPIItemCreate] = []


class KPITemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    period: Optional[Period] = None
    is_active: Optional[bool] = None


class KPITemplateResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    period: str
    is_active: bool
    created_at: Optional[datetime] = None
    items: List[KPIItemResponse] = []

    model_config = ConfigDict(from_attributes=True)
