"""
Round generation service
라운드 생성 서비스 - 셔플 후 3장씩 묶어 라운드 저장
"""

import uuid
import random
import logging
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select
from fastapi import HTTPException, status

from photovote.core.config import settings
from photovote.models.room import Room
from photovote.models.photo import Photo
from photovote.models.round import Round
from photovote.utils.game_rules import shuffle_photos, partition_into_rounds
from photovote.websocket.change_feed import ChangeFeed, ChangeAction, change_feed

logger = logging.getLogger(__name__)


class RoundService:
    """라운드 관리 서비스 클래스"""

    def __init__(self, db: AsyncSession, feed: ChangeFeed = None, rng: random.Random = None):
        self.db = db
        self.feed = feed or change_feed
        self.rng = rng

    async def generate_rounds(self, room: Room) -> List[Round]:
        """
        Shuffle the room's photos and persist one round per full triplet.
        Leftover photos (fewer than a triplet) are not used.
        """
        stmt = select(Photo).where(Photo.room_id == room.id).order_by(Photo.order_index)
        result = await self.db.execute(stmt)
        photos = list(result.scalars().all())

        per_round = settings.PHOTOS_PER_ROUND
        if len(photos) < per_round:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"최소 {per_round}장의 사진이 필요합니다."
            )

        if await self.list_rounds(room.id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="라운드가 이미 생성되었습니다."
            )

        shuffled = shuffle_photos([photo.id for photo in photos], self.rng)
        groups = partition_into_rounds(shuffled, per_round)

        rounds = []
        for index, photo_ids in enumerate(groups, start=1):
            db_round = Round(
                id=str(uuid.uuid4()),
                room_id=room.id,
                round_number=index,
                photo_ids=photo_ids,
                winning_photo_id=None,
                tie_photos=None
            )
            self.db.add(db_round)
            rounds.append(db_round)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="라운드가 이미 생성되었습니다."
            )

        for db_round in rounds:
            await self.db.refresh(db_round)

        dropped = len(photos) - len(groups) * per_round
        logger.info(f"Generated {len(rounds)} rounds for room {room.code} ({dropped} photos unused)")

        for db_round in rounds:
            await self.feed.publish_row(
                "rounds", ChangeAction.INSERT, room.id,
                {"round_number": db_round.round_number},
                round_id=db_round.id
            )

        return rounds

    async def list_rounds(self, room_id: str) -> List[Round]:
        stmt = select(Round).where(Round.room_id == room_id).order_by(Round.round_number)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_round_by_number(self, room_id: str, round_number: int) -> Optional[Round]:
        stmt = select(Round).where(Round.room_id == room_id, Round.round_number == round_number)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_round(self, round_id: str) -> Optional[Round]:
        stmt = select(Round).where(Round.id == round_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_current_round(self, room: Room) -> Optional[Round]:
        if room.current_round is None:
            return None
        return await self.get_round_by_number(room.id, room.current_round)

    async def require_current_round(self, room: Room) -> Round:
        db_round = await self.get_current_round(room)
        if not db_round:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="진행 중인 라운드를 찾을 수 없습니다."
            )
        return db_round

    async def update_round(self, db_round: Round, **fields) -> Round:
        """Write result fields of a round and notify viewers"""
        for key, value in fields.items():
            setattr(db_round, key, value)

        await self.db.commit()
        await self.db.refresh(db_round)

        await self.feed.publish_row(
            "rounds", ChangeAction.UPDATE, db_round.room_id,
            {"round_number": db_round.round_number, "fields": sorted(fields)},
            round_id=db_round.id
        )
        return db_round
