from pydantic import BaseModel, ConfigDict, Field, UUID4
from typing import Optional
from datetime import datetime

from .user import UserSummary

class AnnouncementCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=100)
    content: str = Field(..., min_length=1, max_length=2000)

class AnnouncementResponse(BaseModel):
    id: UUID4
    title: str
    content: str
    created_by: Optional[UUID4] = None
    created_at: datetime
    author: Optional[UserSummary] = None
