from fastapi import APIRouter, status, Depends, Path, Query
from typing import List, Optional
from pydantic import UUID4

from ....schemas.feedback import FeedbackResponse
from ....schemas.swap import SwapResponse, SwapStatus
from ....schemas.user import (
    AdminUserResponse,
    BanRequest,
    RoleGrantResponse,
    RoleUpdate,
    SkillsUpdate,
    UserRole,
)
from ....services.feedback_service import FeedbackService, get_feedback_service
from ....services.swap_service import SwapService, get_swap_service
from ....services.user_service import UserService, get_user_service
from ...v1.endpoints.users import require_admin

# Every route here requires an administrator
router = APIRouter(tags=["admin"], dependencies=[Depends(require_admin)])

@router.get("/users", response_model=List[AdminUserResponse])
async def list_users(
    search: Optional[str] = Query(None, max_length=100),
    role: Optional[UserRole] = None,
    banned: Optional[bool] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    users: UserService = Depends(get_user_service),
):
    """
    List all users, filtered by name/email/location search, role or ban state.
    """
    return await users.list_users(search=search, role=role, banned=banned, skip=skip, limit=limit)

@router.put("/users/{user_id}/ban", response_model=AdminUserResponse)
async def ban_user(
    ban: Optional[BanRequest] = None,
    user_id: UUID4 = Path(...),
    admin: dict = Depends(require_admin),
    users: UserService = Depends(get_user_service),
):
    """Ban a user. Administrators cannot be banned."""
    return await users.set_banned(admin, str(user_id), True, ban.reason if ban else None)

@router.put("/users/{user_id}/unban", response_model=AdminUserResponse)
async def unban_user(
    user_id: UUID4 = Path(...),
    admin: dict = Depends(require_admin),
    users: UserService = Depends(get_user_service),
):
    """Lift a ban."""
    return await users.set_banned(admin, str(user_id), False)

@router.put("/users/{user_id}/role", response_model=AdminUserResponse)
async def update_user_role(
    role_update: RoleUpdate,
    user_id: UUID4 = Path(...),
    admin: dict = Depends(require_admin),
    users: UserService = Depends(get_user_service),
):
    """
    Grant or revoke the admin role.

    Only an existing administrator can call this, and every change is written
    to the role_grants audit table.
    """
    return await users.grant_role(admin, str(user_id), role_update.role)

@router.get("/role-grants", response_model=List[RoleGrantResponse])
async def list_role_grants(
    user_id: Optional[UUID4] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    users: UserService = Depends(get_user_service),
):
    """Audit trail of role changes."""
    return await users.role_grants(str(user_id) if user_id else None, skip=skip, limit=limit)

@router.put("/users/{user_id}/skills", response_model=AdminUserResponse)
async def update_user_skills(
    skills: SkillsUpdate,
    user_id: UUID4 = Path(...),
    users: UserService = Depends(get_user_service),
):
    """Edit or clear a user's skills and bio, e.g. to remove inappropriate content."""
    return await users.update_skills(str(user_id), skills.model_dump(exclude_unset=True))

@router.get("/swaps", response_model=List[SwapResponse])
async def list_swaps(
    status: Optional[SwapStatus] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    swaps: SwapService = Depends(get_swap_service),
):
    """List all swap requests."""
    return await swaps.list_all(status=status, skip=skip, limit=limit)

@router.delete("/swaps/{swap_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_swap(
    swap_id: UUID4 = Path(...),
    swaps: SwapService = Depends(get_swap_service),
):
    """Remove a swap request."""
    await swaps.delete_swap(str(swap_id))
    return None

@router.get("/feedback", response_model=List[FeedbackResponse])
async def list_feedback(
    rating: Optional[int] = Query(None, ge=1, le=5),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    service: FeedbackService = Depends(get_feedback_service),
):
    """List all feedback."""
    filters = {"rating": rating} if rating else None
    return await service.list_feedback(filters, skip=skip, limit=limit)

@router.delete("/feedback/{feedback_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_feedback(
    feedback_id: UUID4 = Path(...),
    service: FeedbackService = Depends(get_feedback_service),
):
    """Remove feedback; the ratee's rating is recomputed."""
    await service.admin_delete(str(feedback_id))
    return None
