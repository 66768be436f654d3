"""
Family API endpoints
가족 선택 API
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status

from photovote.api.v1.endpoints.rooms import get_room_service
from photovote.api.v1.endpoints.session import get_optional_session
from photovote.services.room import RoomService
from photovote.services.session import SessionContext
from photovote.schemas.family import FamilyClaim, FamilyResponse, FamilyClaimResponse

router = APIRouter()


@router.get("/{code}/families", response_model=List[FamilyResponse])
async def list_families(code: str, room_service: RoomService = Depends(get_room_service)):
    room = await room_service.require_room(code)
    families = await room_service.list_families(room.id)
    return [FamilyResponse.model_validate(family) for family in families]


@router.post("/{code}/families", response_model=FamilyClaimResponse)
async def claim_family(
    code: str,
    claim: FamilyClaim,
    context: Optional[SessionContext] = Depends(get_optional_session),
    room_service: RoomService = Depends(get_room_service)
):
    """
    가족 선택

    - **label**: 신랑네 / 신부네 / 우리부부
    - **client_id**: 기기 식별자; 같은 기기에서 다시 선택하면 그대로 통과

    다른 기기가 이미 고른 가족이면 409.
    """
    client_id = claim.client_id
    if client_id is None and context is not None and context.room_code == code:
        client_id = context.client_id

    try:
        room = await room_service.require_room(code)
        return await room_service.claim_family(room, claim.label, client_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"가족 선택 실패: {str(e)}"
        )
