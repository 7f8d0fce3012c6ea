from fastapi import APIRouter, status, Depends, Query
from typing import List

from ....schemas.announcement import AnnouncementCreate, AnnouncementResponse
from ....services.announcement_service import AnnouncementService, get_announcement_service
from ...v1.endpoints.users import require_admin

router = APIRouter(tags=["announcements"])

@router.get("/", response_model=List[AnnouncementResponse])
async def get_announcements(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    announcements: AnnouncementService = Depends(get_announcement_service),
):
    """Get platform announcements, newest first."""
    return await announcements.list(skip=skip, limit=limit)

@router.post("/", response_model=AnnouncementResponse, status_code=status.HTTP_201_CREATED)
async def create_announcement(
    announcement: AnnouncementCreate,
    admin: dict = Depends(require_admin),
    announcements: AnnouncementService = Depends(get_announcement_service),
):
    """Post an announcement (admin only)."""
    return await announcements.create(admin, announcement.title, announcement.content)
