from pydantic import BaseModel, Field, UUID4
from typing import Optional
from datetime import datetime
from enum import Enum

class NotificationType(str, Enum):
    SWAP_REQUEST = "swap_request"
    SWAP_ACCEPTED = "swap_accepted"
    SWAP_REJECTED = "swap_rejected"
    FEEDBACK = "feedback"

class NotificationUpdate(BaseModel):
    is_read: bool = True

class NotificationResponse(BaseModel):
    id: UUID4
    user_id: UUID4
    type: NotificationType
    message: str = Field(..., max_length=500)
    swap_request_id: Optional[UUID4] = None
    is_read: bool = False
    created_at: datetime
