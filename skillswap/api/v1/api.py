from fastapi import APIRouter
from .endpoints import users, swaps, feedback, notifications, announcements, admin

router = APIRouter(prefix="/api/v1")

# Include all endpoint routers
router.include_router(users.router, prefix="/users")
router.include_router(swaps.router, prefix="/swaps")
router.include_router(feedback.router, prefix="/feedback")
router.include_router(notifications.router, prefix="/notifications")
router.include_router(announcements.router, prefix="/announcements")
router.include_router(admin.router, prefix="/admin")
