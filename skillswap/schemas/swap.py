from pydantic import BaseModel, ConfigDict, Field, UUID4
from typing import Optional
from datetime import datetime
from enum import Enum

from .user import UserSummary

class SwapStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

ACTIVE_STATUSES = (SwapStatus.PENDING, SwapStatus.ACCEPTED)
TERMINAL_STATUSES = (SwapStatus.REJECTED, SwapStatus.CANCELLED, SwapStatus.COMPLETED)

class SwapAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    CANCEL = "cancel"
    COMPLETE = "complete"

class SwapCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    recipient_id: UUID4
    requester_skill: str = Field(..., min_length=1, max_length=100)
    recipient_skill: str = Field(..., min_length=1, max_length=100)
    message: Optional[str] = Field(None, max_length=500)
    scheduled_date: Optional[datetime] = None

class SwapCancel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    reason: Optional[str] = Field(None, max_length=200)

class SwapResponse(BaseModel):
    id: UUID4
    requester_id: UUID4
    recipient_id: UUID4
    requester_skill: str
    recipient_skill: str
    status: SwapStatus
    message: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_by: Optional[UUID4] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    requester: Optional[UserSummary] = None
    recipient: Optional[UserSummary] = None

class MySwapResponse(SwapResponse):
    is_requester: bool
    other_user: Optional[UserSummary] = None
