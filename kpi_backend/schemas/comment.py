from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional


class CommentResponse(BaseModel):
    id: int
    evaluation_id: int
    author_id: int
    content: str
    is_private: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
