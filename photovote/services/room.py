"""
Room management service
방 관리 서비스 - 방 생성/참여, 사진 등록, 가족 선택
"""

import uuid
import random
import logging
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, func
from fastapi import HTTPException, status

from photovote.core.config import settings
from photovote.models.room import Room
from photovote.models.family import Family
from photovote.models.photo import Photo
from photovote.models.round import Round
from photovote.schemas.room import RoomStatus, RoomCreateResponse, RoomJoinResponse, RoomResponse
from photovote.schemas.family import FamilyLabel, FamilyResponse, FamilyClaimResponse
from photovote.services.session import session_service
from photovote.utils.game_rules import generate_room_code
from photovote.websocket.change_feed import ChangeFeed, ChangeAction, change_feed

logger = logging.getLogger(__name__)


class RoomService:
    """방 관리 서비스 클래스"""

    def __init__(self, db: AsyncSession, feed: ChangeFeed = None, rng: random.Random = None):
        self.db = db
        self.feed = feed or change_feed
        self.rng = rng

    async def create_room(self) -> RoomCreateResponse:
        """Create a room with a fresh numeric code and issue the host token"""
        for attempt in range(settings.ROOM_CODE_MAX_ATTEMPTS):
            code = generate_room_code(
                self.rng,
                min_length=settings.ROOM_CODE_MIN_LENGTH,
                max_length=settings.ROOM_CODE_MAX_LENGTH
            )

            if await self.get_room_by_code(code):
                logger.debug(f"Room code collision on {code}, attempt {attempt + 1}")
                continue

            room = Room(
                id=str(uuid.uuid4()),
                code=code,
                current_round=None,
                status=RoomStatus.LOBBY
            )
            self.db.add(room)

            try:
                await self.db.commit()
            except IntegrityError:
                # 동시에 같은 코드가 만들어진 경우
                await self.db.rollback()
                logger.debug(f"Room code {code} taken concurrently, retrying")
                continue

            await self.db.refresh(room)
            logger.info(f"Room created: {room.code} ({room.id})")

            await self.feed.publish_row("rooms", ChangeAction.INSERT, room.id, {"code": room.code})

            return RoomCreateResponse(
                room=RoomResponse.model_validate(room),
                token=session_service.host_token(room.code, room.id)
            )

        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="방 코드를 생성하지 못했습니다. 다시 시도해주세요."
        )

    async def get_room_by_code(self, code: str) -> Optional[Room]:
        stmt = select(Room).where(Room.code == code)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def require_room(self, code: str) -> Room:
        """Room by code or 404"""
        room = await self.get_room_by_code(code)
        if not room:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="방을 찾을 수 없습니다."
            )
        return room

    async def join_room(self, code: str) -> RoomJoinResponse:
        """Validate a room code typed by a family"""
        code = (code or "").strip()
        if not code:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="방 코드를 입력해주세요."
            )

        room = await self.require_room(code)
        return RoomJoinResponse(
            success=True,
            message="방에 참여했습니다.",
            room=RoomResponse.model_validate(room)
        )

    async def count_photos(self, room_id: str) -> int:
        stmt = select(func.count(Photo.id)).where(Photo.room_id == room_id)
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def has_rounds(self, room_id: str) -> bool:
        stmt = select(func.count(Round.id)).where(Round.room_id == room_id)
        result = await self.db.execute(stmt)
        return (result.scalar() or 0) > 0

    async def add_photo(self, room: Room, url: str) -> Photo:
        """Register one photo URL; order_index is the current photo count"""
        room_id, room_code = room.id, room.code

        if await self.has_rounds(room_id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="라운드가 이미 생성되어 사진을 추가할 수 없습니다."
            )

        photo_count = await self.count_photos(room_id)
        if photo_count >= settings.MAX_PHOTOS_PER_ROOM:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"사진은 최대 {settings.MAX_PHOTOS_PER_ROOM}장까지 등록할 수 있습니다."
            )

        photo = Photo(
            id=str(uuid.uuid4()),
            room_id=room_id,
            url=url,
            order_index=photo_count
        )
        self.db.add(photo)

        try:
            await self.db.commit()
        except IntegrityError:
            # 같은 순번으로 동시에 등록됨
            await self.db.rollback()
            logger.warning(f"Photo slot {photo_count} in room {room_code} taken concurrently")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="다른 사진이 동시에 등록되었습니다. 다시 시도해주세요."
            )

        await self.db.refresh(photo)

        logger.info(f"Photo {photo.order_index + 1} added to room {room_code}")
        await self.feed.publish_row("photos", ChangeAction.INSERT, room_id, {"id": photo.id})
        return photo

    async def list_photos(self, room_id: str) -> List[Photo]:
        stmt = select(Photo).where(Photo.room_id == room_id).order_by(Photo.order_index)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_photos_by_ids(self, photo_ids: List[str]) -> List[Photo]:
        """Photos in the order of ``photo_ids``"""
        if not photo_ids:
            return []
        stmt = select(Photo).where(Photo.id.in_(photo_ids))
        result = await self.db.execute(stmt)
        by_id = {photo.id: photo for photo in result.scalars().all()}
        return [by_id[photo_id] for photo_id in photo_ids if photo_id in by_id]

    async def list_families(self, room_id: str) -> List[Family]:
        stmt = select(Family).where(Family.room_id == room_id).order_by(Family.created_at, Family.label)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_family_by_label(self, room_id: str, label: FamilyLabel) -> Optional[Family]:
        stmt = select(Family).where(Family.room_id == room_id, Family.label == label)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_family(self, family_id: str) -> Optional[Family]:
        stmt = select(Family).where(Family.id == family_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def claim_family(self, room: Room, label: FamilyLabel, client_id: Optional[str] = None) -> FamilyClaimResponse:
        """
        Get-or-create the family for ``label`` and bind it to the device.

        Re-claiming from the same device succeeds (page reload); a label held
        by another device is a conflict and the user picks another one.
        """
        client_id = client_id or session_service.new_client_id()
        room_id, room_code = room.id, room.code

        family = await self.get_family_by_label(room_id, label)
        created = False

        if family is None:
            family = Family(
                id=str(uuid.uuid4()),
                room_id=room_id,
                label=label,
                device_id=client_id
            )
            self.db.add(family)
            try:
                await self.db.commit()
                created = True
            except IntegrityError:
                # 다른 기기가 먼저 같은 라벨을 선택함
                await self.db.rollback()
                family = await self.get_family_by_label(room_id, label)
                if family is None:
                    raise

        if not created:
            if family.device_id and family.device_id != client_id:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="이미 다른 기기에서 선택한 가족입니다."
                )
            if family.device_id is None:
                family.device_id = client_id
                await self.db.commit()

        await self.db.refresh(family)

        if created:
            logger.info(f"Family {label.value} joined room {room_code}")
            await self.feed.publish_row("families", ChangeAction.INSERT, room_id, {"id": family.id, "label": label.value})

        token = session_service.family_token(
            room_code, room_id, client_id,
            family_label=label.value,
            family_id=family.id
        )

        return FamilyClaimResponse(
            family=FamilyResponse.model_validate(family),
            client_id=client_id,
            token=token
        )
