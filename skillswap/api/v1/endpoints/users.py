from fastapi import APIRouter, HTTPException, status, Depends, Path, Query
from fastapi.security import OAuth2PasswordBearer
from typing import List, Optional, Dict, Any
from jose import JWTError
from pydantic import UUID4
import logging

from ....core.security import decode_access_token
from ....schemas.user import (
    Availability,
    SkillSuggestions,
    UserPrivateProfile,
    UserProfileUpdate,
    UserPublicProfile,
    UserRole,
)
from ....services.user_service import UserService, get_user_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])

# Tokens come from Supabase Auth; tokenUrl only feeds the Swagger UI
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/auth/v1/token",
    description="Enter the access token directly (without 'Bearer' prefix)",
    scheme_name="JWT",
)
optional_oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/auth/v1/token",
    scheme_name="JWT",
    auto_error=False,
)

def _decode(token: str) -> Dict[str, Any]:
    try:
        return decode_access_token(token)
    except JWTError as e:
        logger.info(f"Rejected token: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

async def get_token_claims(token: str = Depends(oauth2_scheme)) -> Dict[str, Any]:
    """Verified claims of the bearer token; the profile may not exist yet."""
    return _decode(token)

async def get_current_user(
    claims: Dict[str, Any] = Depends(get_token_claims),
    users: UserService = Depends(get_user_service),
) -> Dict[str, Any]:
    """Get the current authenticated user's profile."""
    user = await users.find_by_id(claims["sub"])
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No profile for this account, create one with PUT /api/v1/users/me",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if user.get("banned"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has been banned",
        )
    return user

async def get_optional_user_id(token: Optional[str] = Depends(optional_oauth2_scheme)) -> Optional[str]:
    if not token:
        return None
    return _decode(token)["sub"]

async def require_admin(current_user: dict = Depends(get_current_user)) -> Dict[str, Any]:
    """Role is read from the stored profile, never from the client."""
    if current_user.get("role") != UserRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user

@router.get("/me", response_model=UserPrivateProfile)
async def read_me(current_user: dict = Depends(get_current_user)):
    """Get the current user's full profile."""
    return current_user

@router.put("/me", response_model=UserPrivateProfile)
async def update_me(
    profile: UserProfileUpdate,
    claims: Dict[str, Any] = Depends(get_token_claims),
    users: UserService = Depends(get_user_service),
):
    """
    Create or update the current user's profile.

    The first call creates the profile and must include a name. Role and
    moderation flags cannot be changed here.
    """
    existing = await users.find_by_id(claims["sub"])
    if existing and existing.get("banned"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has been banned",
        )

    changes = profile.model_dump(exclude_unset=True, mode="json")
    return await users.upsert_profile(claims["sub"], claims.get("email"), changes)

@router.get("/search", response_model=List[UserPublicProfile])
async def search_users(
    skill: Optional[str] = Query(None, min_length=1, max_length=100),
    availability: Optional[List[Availability]] = Query(None),
    location: Optional[str] = Query(None, max_length=100),
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    viewer_id: Optional[str] = Depends(get_optional_user_id),
    users: UserService = Depends(get_user_service),
):
    """
    Search public profiles by skill (offered or wanted), availability and location.
    """
    return await users.search(
        skill=skill,
        availability=[slot.value for slot in availability] if availability else None,
        location=location,
        exclude_id=viewer_id,
        skip=skip,
        limit=limit,
    )

@router.get("/suggestions/skills", response_model=SkillSuggestions)
async def get_skill_suggestions(
    query: Optional[str] = Query(None, max_length=100),
    users: UserService = Depends(get_user_service),
):
    """
    Suggest existing skills containing the query (at least 2 characters),
    prefix matches first.
    """
    return {"suggestions": await users.suggest_skills(query or "")}

@router.get("/{user_id}", response_model=UserPrivateProfile, response_model_exclude_unset=True)
async def get_user_profile(
    user_id: UUID4 = Path(...),
    viewer_id: Optional[str] = Depends(get_optional_user_id),
    users: UserService = Depends(get_user_service),
):
    """
    Get a user's profile. Private profiles are only visible to their owner.
    """
    return await users.get_profile(str(user_id), viewer_id)

@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    user_id: UUID4 = Path(...),
    current_user: dict = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    """
    Delete your own account, with your swaps, the feedback on them and your notifications.
    """
    await users.delete_account(str(user_id), current_user["id"])
    return None
