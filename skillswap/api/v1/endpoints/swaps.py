from fastapi import APIRouter, status, Depends, Path, Query, Response
from typing import List, Optional
from pydantic import UUID4

from ....schemas.swap import MySwapResponse, SwapAction, SwapCancel, SwapCreate, SwapResponse, SwapStatus
from ....services.swap_service import SwapService, get_swap_service
from ...v1.endpoints.users import get_current_user

router = APIRouter(tags=["swaps"])

@router.post("/", response_model=SwapResponse, status_code=status.HTTP_201_CREATED)
async def create_swap_request(
    swap: SwapCreate,
    current_user: dict = Depends(get_current_user),
    swaps: SwapService = Depends(get_swap_service),
):
    """
    Create a new swap request.

    The requester must offer requester_skill and the recipient must offer
    recipient_skill. Only one active (pending or accepted) request may exist
    between two users at a time.
    """
    return await swaps.create_swap(
        requester=current_user,
        recipient_id=str(swap.recipient_id),
        requester_skill=swap.requester_skill,
        recipient_skill=swap.recipient_skill,
        message=swap.message,
        scheduled_date=swap.scheduled_date,
    )

@router.get("/", response_model=List[MySwapResponse])
async def get_my_swaps(
    response: Response,
    status: Optional[SwapStatus] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    swaps: SwapService = Depends(get_swap_service),
):
    """
    Get the current user's swaps, as requester or recipient, newest first.

    X-Total-Count carries the number of matching swaps and X-Has-Next tells
    whether another page follows.
    """
    items = await swaps.list_mine(current_user["id"], status=status, skip=skip, limit=limit)
    total = await swaps.count_mine(current_user["id"], status=status)
    response.headers["X-Total-Count"] = str(total)
    response.headers["X-Has-Next"] = "true" if skip + len(items) < total else "false"
    return items

@router.get("/{swap_id}", response_model=MySwapResponse)
async def get_swap(
    swap_id: UUID4 = Path(...),
    current_user: dict = Depends(get_current_user),
    swaps: SwapService = Depends(get_swap_service),
):
    """
    Get a specific swap. Only its participants may view it.
    """
    return await swaps.get_for_participant(str(swap_id), current_user["id"])

@router.put("/{swap_id}/accept", response_model=MySwapResponse)
async def accept_swap(
    swap_id: UUID4 = Path(...),
    current_user: dict = Depends(get_current_user),
    swaps: SwapService = Depends(get_swap_service),
):
    """Accept a pending swap request (recipient only)."""
    return await swaps.transition_swap(str(swap_id), current_user["id"], SwapAction.ACCEPT)

@router.put("/{swap_id}/reject", response_model=MySwapResponse)
async def reject_swap(
    swap_id: UUID4 = Path(...),
    current_user: dict = Depends(get_current_user),
    swaps: SwapService = Depends(get_swap_service),
):
    """Reject a pending swap request (recipient only)."""
    return await swaps.transition_swap(str(swap_id), current_user["id"], SwapAction.REJECT)

@router.put("/{swap_id}/cancel", response_model=MySwapResponse)
async def cancel_swap(
    cancel: Optional[SwapCancel] = None,
    swap_id: UUID4 = Path(...),
    current_user: dict = Depends(get_current_user),
    swaps: SwapService = Depends(get_swap_service),
):
    """Cancel a pending or accepted swap (either participant)."""
    reason = cancel.reason if cancel else None
    return await swaps.transition_swap(str(swap_id), current_user["id"], SwapAction.CANCEL, reason)

@router.put("/{swap_id}/complete", response_model=MySwapResponse)
async def complete_swap(
    swap_id: UUID4 = Path(...),
    current_user: dict = Depends(get_current_user),
    swaps: SwapService = Depends(get_swap_service),
):
    """Mark an accepted swap as completed (either participant)."""
    return await swaps.transition_swap(str(swap_id), current_user["id"], SwapAction.COMPLETE)
