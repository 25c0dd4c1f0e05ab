from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Any, Dict, Optional


class NotificationResponse(BaseModel):
    id: int
    recipient_id: int
    actor_id: Optional[int] = None
    event: str
    title: str
    message: str
    payload: Optional[Dict[str, Any]] = None
    is_read: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
