"""
Voting service
투표 서비스 - 가족당 라운드별 한 표
"""

import uuid
import asyncio
import logging
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select
from fastapi import HTTPException, status

from photovote.models.room import Room
from photovote.models.family import Family
from photovote.models.round import Round
from photovote.models.vote import Vote
from photovote.schemas.room import RoomStatus
from photovote.services.rounds import RoundService
from photovote.websocket.change_feed import ChangeFeed, ChangeAction, change_feed

logger = logging.getLogger(__name__)


class VotingService:
    """투표 서비스 클래스"""

    def __init__(self, db: AsyncSession, feed: ChangeFeed = None):
        self.db = db
        self.feed = feed or change_feed
        self.rounds = RoundService(db, self.feed)

    async def cast_vote(self, room: Room, family: Family, photo_id: str) -> Vote:
        """Record a family's vote for the current round; votes are final"""
        if room.status != RoomStatus.IN_PROGRESS or room.current_round is None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="투표가 진행 중이 아닙니다."
            )

        db_round = await self.rounds.require_current_round(room)

        if db_round.is_concluded or db_round.tie_pending:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="이미 종료된 라운드입니다."
            )

        if photo_id not in (db_round.photo_ids or []):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="이번 라운드의 사진이 아닙니다."
            )

        if await self.get_vote_by_family_and_round(family.id, db_round.id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="이미 투표했습니다."
            )

        vote = Vote(
            id=str(uuid.uuid4()),
            room_id=room.id,
            round_id=db_round.id,
            family_id=family.id,
            photo_id=photo_id
        )
        self.db.add(vote)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="이미 투표했습니다."
            )

        await self.db.refresh(vote)
        logger.info(f"Vote recorded: room {room.code}, round {db_round.round_number}, family {family.label.value}")

        await self.feed.publish_row(
            "votes", ChangeAction.INSERT, room.id,
            {"family_id": family.id, "photo_id": photo_id},
            round_id=db_round.id
        )
        return vote

    async def list_votes_by_round(self, round_id: str) -> List[Vote]:
        stmt = select(Vote).where(Vote.round_id == round_id).order_by(Vote.created_at)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_vote_by_family_and_round(self, family_id: str, round_id: str) -> Optional[Vote]:
        stmt = select(Vote).where(Vote.family_id == family_id, Vote.round_id == round_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def load_votes_with_retry(self, db_round: Round, expected: int, retry_delay: float) -> List[Vote]:
        """
        Read a round's votes, retrying once after ``retry_delay`` when fewer
        than ``expected`` are visible or the read failed.
        """
        try:
            votes = await self.list_votes_by_round(db_round.id)
        except Exception as e:
            logger.warning(f"Vote load failed for round {db_round.id}, retrying: {e}")
            await self.db.rollback()
            votes = None

        if votes is not None and len(votes) >= expected:
            return votes

        await asyncio.sleep(retry_delay)
        return await self.list_votes_by_round(db_round.id)
