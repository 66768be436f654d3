"""
Room management API endpoints
방 관리 API - 방 생성/조회/참여, 사진 등록
"""

from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from photovote.core.database import get_db
from photovote.api.v1.endpoints.session import require_host
from photovote.services.room import RoomService
from photovote.services.session import SessionContext
from photovote.schemas.room import (
    RoomResponse, RoomCreateResponse, RoomJoinRequest, RoomJoinResponse,
    PhotoCreate, PhotoResponse
)
from photovote.websocket.change_feed import ChangeFeed, get_change_feed

router = APIRouter()


async def get_room_service(
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_change_feed)
) -> RoomService:
    """방 서비스 의존성"""
    return RoomService(db, feed)


@router.post("", response_model=RoomCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_room(room_service: RoomService = Depends(get_room_service)):
    """
    새 방 만들기

    방 코드(4~6자리 숫자)와 호스트 세션 토큰을 돌려줍니다.
    """
    try:
        return await room_service.create_room()
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"방 만들기 실패: {str(e)}"
        )


@router.post("/join", response_model=RoomJoinResponse)
async def join_room_by_code(
    join_data: RoomJoinRequest,
    room_service: RoomService = Depends(get_room_service)
):
    """
    방 코드로 참여

    - **code**: 호스트가 알려준 방 코드
    """
    return await room_service.join_room(join_data.code)


@router.get("/{code}", response_model=RoomResponse)
async def get_room(code: str, room_service: RoomService = Depends(get_room_service)):
    room = await room_service.require_room(code)
    return RoomResponse.model_validate(room)


@router.post("/{code}/join", response_model=RoomJoinResponse)
async def join_room(code: str, room_service: RoomService = Depends(get_room_service)):
    return await room_service.join_room(code)


@router.get("/{code}/photos", response_model=List[PhotoResponse])
async def list_photos(code: str, room_service: RoomService = Depends(get_room_service)):
    """등록된 사진 목록 (등록 순서)"""
    room = await room_service.require_room(code)
    photos = await room_service.list_photos(room.id)
    return [PhotoResponse.model_validate(photo) for photo in photos]


@router.post("/{code}/photos", response_model=PhotoResponse, status_code=status.HTTP_201_CREATED)
async def add_photo(
    code: str,
    photo_data: PhotoCreate,
    host: SessionContext = Depends(require_host),
    room_service: RoomService = Depends(get_room_service)
):
    """
    사진 URL 등록 (호스트)

    - **url**: http(s) 이미지 주소, 방마다 최대 30장
    """
    try:
        room = await room_service.require_room(code)
        photo = await room_service.add_photo(room, photo_data.url)
        return PhotoResponse.model_validate(photo)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"사진 등록 실패: {str(e)}"
        )
