from pydantic import BaseModel, ConfigDict, EmailStr, Field, UUID4
from typing import Optional, List
from datetime import datetime
from enum import Enum

class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"

class Availability(str, Enum):
    WEEKDAYS = "weekdays"
    WEEKENDS = "weekends"
    MORNINGS = "mornings"
    AFTERNOONS = "afternoons"
    EVENINGS = "evenings"

class UserSummary(BaseModel):
    """Display-safe view of another user: never carries email or role."""
    id: UUID4
    name: str
    profile_photo_url: Optional[str] = None

class UserProfileUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=50)
    location: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = Field(None, max_length=500)
    skills_offered: Optional[List[str]] = None
    skills_wanted: Optional[List[str]] = None
    availability: Optional[List[Availability]] = None
    is_public: Optional[bool] = None

class UserPublicProfile(BaseModel):
    id: UUID4
    name: str
    location: Optional[str] = None
    profile_photo_url: Optional[str] = None
    bio: Optional[str] = None
    skills_offered: List[str] = []
    skills_wanted: List[str] = []
    availability: List[Availability] = []
    rating: float = 0.0
    total_ratings: int = 0
    created_at: Optional[datetime] = None

class UserPrivateProfile(UserPublicProfile):
    email: Optional[EmailStr] = None
    role: UserRole = UserRole.USER
    is_public: bool = True

class AdminUserResponse(UserPrivateProfile):
    banned: bool = False
    ban_reason: Optional[str] = None
    updated_at: Optional[datetime] = None

class BanRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=200)

class RoleUpdate(BaseModel):
    role: UserRole

class SkillsUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    skills_offered: Optional[List[str]] = None
    skills_wanted: Optional[List[str]] = None
    bio: Optional[str] = Field(None, max_length=500)

class RoleGrantResponse(BaseModel):
    id: UUID4
    user_id: UUID4
    granted_by: Optional[UUID4] = None
    old_role: UserRole
    new_role: UserRole
    created_at: datetime

class SkillSuggestions(BaseModel):
    suggestions: List[str] = []
