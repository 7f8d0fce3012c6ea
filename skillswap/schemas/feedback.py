from pydantic import BaseModel, ConfigDict, Field, UUID4
from typing import Optional
from datetime import datetime

from .user import UserSummary

class FeedbackBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=500)

class FeedbackCreate(FeedbackBase):
    swap_request_id: UUID4
    to_user_id: UUID4
    skill_rated: str = Field(..., min_length=1, max_length=100)

class FeedbackUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=500)

class FeedbackResponse(FeedbackBase):
    id: UUID4
    swap_request_id: UUID4
    from_user_id: UUID4
    to_user_id: UUID4
    skill_rated: str
    created_at: datetime
    updated_at: datetime
    from_user: Optional[UserSummary] = None
    to_user: Optional[UserSummary] = None
