from pydantic import BaseModel, ConfigDict
from typing import Optional


class EmployeeBrief(BaseModel):
    id: int
    name: str
    email: str
    role: str
    department_id: Optional[int] = None
    manager_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)
