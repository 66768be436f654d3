"""
Round progression service
라운드 진행 서비스 - 시작 / 종료(집계) / 다음 라운드 또는 게임 종료
"""

import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from photovote.core.config import settings
from photovote.models.room import Room
from photovote.models.round import Round
from photovote.schemas.room import RoomStatus, RoomResponse
from photovote.schemas.round import RoundResponse, RoundOutcome
from photovote.services.room import RoomService
from photovote.services.rounds import RoundService
from photovote.services.voting import VotingService
from photovote.utils.game_rules import tally_votes
from photovote.websocket.change_feed import ChangeFeed, ChangeAction, change_feed

logger = logging.getLogger(__name__)


class ProgressionService:
    """
    Room state machine: lobby -> in_progress -> lobby -> ... -> finished.
    A tied round keeps the room in_progress until the roulette commits.
    """

    def __init__(self, db: AsyncSession, feed: ChangeFeed = None, vote_retry_delay: float = None):
        self.db = db
        self.feed = feed or change_feed
        self.rooms = RoomService(db, self.feed)
        self.rounds = RoundService(db, self.feed)
        self.voting = VotingService(db, self.feed)
        self.vote_retry_delay = (
            vote_retry_delay if vote_retry_delay is not None else settings.VOTE_RELOAD_RETRY_DELAY
        )

    async def _save_room(self, room: Room) -> Room:
        await self.db.commit()
        await self.db.refresh(room)
        await self.feed.publish_row(
            "rooms", ChangeAction.UPDATE, room.id,
            {"status": room.status.value, "current_round": room.current_round}
        )
        return room

    async def start_round(self, room: Room, round_number: int) -> Room:
        """Open voting on round ``round_number``"""
        if room.status == RoomStatus.FINISHED:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="이미 종료된 게임입니다."
            )

        if room.status == RoomStatus.IN_PROGRESS:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="이미 진행 중인 라운드가 있습니다."
            )

        db_round = await self.rounds.get_round_by_number(room.id, round_number)
        if not db_round:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"{round_number}라운드를 찾을 수 없습니다."
            )

        if db_round.is_concluded:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="이미 종료된 라운드입니다."
            )

        room.current_round = round_number
        room.status = RoomStatus.IN_PROGRESS
        await self._save_room(room)

        logger.info(f"Room {room.code}: round {round_number} started")
        return room

    async def start_next_round(self, room: Room) -> Room:
        next_number = (room.current_round or 0) + 1
        return await self.start_round(room, next_number)

    async def end_round(self, room: Room) -> RoundOutcome:
        """
        Close voting on the current round and tally.

        A tie is persisted and reported (not an error); the host then runs
        the roulette. A clear winner is persisted and the room advances.
        """
        if room.status != RoomStatus.IN_PROGRESS or room.current_round is None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="진행 중인 라운드가 없습니다."
            )

        db_round = await self.rounds.require_current_round(room)

        if db_round.tie_pending:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="동점입니다. 룰렛으로 승자를 결정한 뒤 다시 시도하세요."
            )

        if db_round.is_concluded:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="이미 종료된 라운드입니다."
            )

        families = await self.rooms.list_families(room.id)
        votes = await self.voting.load_votes_with_retry(db_round, len(families), self.vote_retry_delay)

        if families and len(votes) < len(families):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="모든 가족이 투표할 때까지 기다려주세요."
            )

        try:
            tally = tally_votes(vote.photo_id for vote in votes)
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(e)
            )

        if tally.is_tie:
            db_round = await self.rounds.update_round(
                db_round,
                winning_photo_id=None,
                tie_photos=list(tally.tie_photos)
            )
            logger.info(f"Room {room.code}: round {db_round.round_number} tied between {len(tally.tie_photos)} photos")

            return RoundOutcome(
                round=RoundResponse.model_validate(db_round),
                room=RoomResponse.model_validate(room),
                winning_photo_id=None,
                is_tie=True,
                tie_photos=list(tally.tie_photos),
                vote_counts=tally.counts
            )

        db_round = await self.rounds.update_round(
            db_round,
            winning_photo_id=tally.winning_photo_id,
            tie_photos=None
        )
        next_round_number = await self.advance_or_finish(room, db_round)

        return RoundOutcome(
            round=RoundResponse.model_validate(db_round),
            room=RoomResponse.model_validate(room),
            winning_photo_id=tally.winning_photo_id,
            is_tie=False,
            tie_photos=[],
            vote_counts=tally.counts,
            next_round_number=next_round_number,
            finished=room.status == RoomStatus.FINISHED
        )

    async def advance_or_finish(self, room: Room, db_round: Round) -> Optional[int]:
        """
        After a round got its winner: back to lobby when another round
        exists (current_round is kept), otherwise finish the game.
        Returns the next round number, or None when the game finished.
        """
        next_round = await self.rounds.get_round_by_number(room.id, db_round.round_number + 1)

        if next_round:
            room.status = RoomStatus.LOBBY
            await self._save_room(room)
            logger.info(f"Room {room.code}: round {db_round.round_number} done, next is {next_round.round_number}")
            return next_round.round_number

        room.status = RoomStatus.FINISHED
        room.current_round = None
        await self._save_room(room)
        logger.info(f"Room {room.code}: game finished after round {db_round.round_number}")
        return None
