from fastapi import APIRouter, status, Depends, Path, Query
from typing import List
from pydantic import UUID4

from ....schemas.feedback import FeedbackCreate, FeedbackResponse, FeedbackUpdate
from ....services.feedback_service import FeedbackService, get_feedback_service
from ...v1.endpoints.users import get_current_user

router = APIRouter(tags=["feedback"])

@router.post("/", response_model=FeedbackResponse, status_code=status.HTTP_201_CREATED)
async def create_feedback(
    feedback: FeedbackCreate,
    current_user: dict = Depends(get_current_user),
    service: FeedbackService = Depends(get_feedback_service),
):
    """
    Rate the other participant of a completed swap. One rating per swap per user.
    """
    return await service.submit_feedback(
        swap_id=str(feedback.swap_request_id),
        caller=current_user,
        to_user_id=str(feedback.to_user_id),
        rating=feedback.rating,
        skill_rated=feedback.skill_rated,
        comment=feedback.comment,
    )

@router.get("/user/{user_id}", response_model=List[FeedbackResponse])
async def get_user_feedback(
    user_id: UUID4 = Path(...),
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    service: FeedbackService = Depends(get_feedback_service),
):
    """
    Get all feedback received by a user.
    """
    return await service.list_feedback({"to_user_id": str(user_id)}, skip=skip, limit=limit)

@router.get("/swap/{swap_id}", response_model=List[FeedbackResponse])
async def get_swap_feedback(
    swap_id: UUID4 = Path(...),
    current_user: dict = Depends(get_current_user),
    service: FeedbackService = Depends(get_feedback_service),
):
    """
    Get all feedback for a swap. Only its participants may view it.
    """
    return await service.list_for_swap(str(swap_id), current_user["id"])

@router.get("/my-received", response_model=List[FeedbackResponse])
async def get_my_received_feedback(
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    service: FeedbackService = Depends(get_feedback_service),
):
    return await service.list_feedback({"to_user_id": current_user["id"]}, skip=skip, limit=limit)

@router.get("/my-given", response_model=List[FeedbackResponse])
async def get_my_given_feedback(
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    service: FeedbackService = Depends(get_feedback_service),
):
    return await service.list_feedback({"from_user_id": current_user["id"]}, skip=skip, limit=limit)

@router.put("/{feedback_id}", response_model=FeedbackResponse)
async def update_feedback(
    feedback_update: FeedbackUpdate,
    feedback_id: UUID4 = Path(...),
    current_user: dict = Depends(get_current_user),
    service: FeedbackService = Depends(get_feedback_service),
):
    """
    Edit your own feedback within 24 hours of posting it.
    """
    changes = feedback_update.model_dump(exclude_unset=True)
    return await service.update_feedback(str(feedback_id), current_user["id"], changes)

@router.delete("/{feedback_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_feedback(
    feedback_id: UUID4 = Path(...),
    current_user: dict = Depends(get_current_user),
    service: FeedbackService = Depends(get_feedback_service),
):
    """
    Delete your own feedback within 24 hours of posting it.
    """
    await service.delete_feedback(str(feedback_id), current_user["id"])
    return None
