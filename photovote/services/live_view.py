"""
Live view service
실시간 화면 서비스 - 호스트 라이브 화면 / 토론 화면 / 결과 갤러리용 방 상태 조회
"""

import logging
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from photovote.core.config import settings
from photovote.models.room import Room
from photovote.models.family import Family
from photovote.models.round import Round
from photovote.models.vote import Vote
from photovote.schemas.room import RoomStatus, RoomResponse, PhotoResponse
from photovote.schemas.family import FamilyResponse
from photovote.schemas.round import RoundDetail
from photovote.schemas.live import RoomPhase, VoteSummary, RoomSnapshot, WinningPhoto, ResultGallery
from photovote.services.room import RoomService
from photovote.services.rounds import RoundService
from photovote.services.voting import VotingService
from photovote.services.roulette import RouletteService
from photovote.websocket.change_feed import ChangeFeed, change_feed

logger = logging.getLogger(__name__)


def derive_phase(room: Room, db_round: Optional[Round], families: List[Family], votes: List[Vote]) -> RoomPhase:
    """Screen phase from room status and vote progress"""
    if room.status == RoomStatus.FINISHED:
        return RoomPhase.FINISHED

    if room.status != RoomStatus.IN_PROGRESS or db_round is None:
        return RoomPhase.LOBBY

    if db_round.tie_pending:
        return RoomPhase.TIE

    if families and len(votes) >= len(families):
        return RoomPhase.DISCUSSION

    return RoomPhase.VOTING


class LiveViewService:
    """실시간 화면 서비스 클래스"""

    def __init__(self, db: AsyncSession, feed: ChangeFeed = None, vote_retry_delay: float = None):
        self.db = db
        self.feed = feed or change_feed
        self.rooms = RoomService(db, self.feed)
        self.rounds = RoundService(db, self.feed)
        self.voting = VotingService(db, self.feed)
        self.roulette = RouletteService(db, self.feed)
        self.vote_retry_delay = (
            vote_retry_delay if vote_retry_delay is not None else settings.VOTE_RELOAD_RETRY_DELAY
        )

    async def build_snapshot(self, code: str) -> RoomSnapshot:
        """Aggregate room state; every change notification re-reads this"""
        room = await self.rooms.require_room(code)
        return await self.snapshot_for_room(room)

    async def snapshot_for_room(self, room: Room) -> RoomSnapshot:
        families = await self.rooms.list_families(room.id)
        rounds = await self.rounds.list_rounds(room.id)

        db_round = None
        if room.current_round is not None:
            db_round = next((r for r in rounds if r.round_number == room.current_round), None)

        votes: List[Vote] = []
        current_round = None
        roulette = None

        if db_round is not None:
            if room.status == RoomStatus.IN_PROGRESS:
                votes = await self.voting.load_votes_with_retry(db_round, len(families), self.vote_retry_delay)
            else:
                votes = await self.voting.list_votes_by_round(db_round.id)

            photos = await self.rooms.get_photos_by_ids(db_round.photo_ids or [])
            current_round = RoundDetail.model_validate(db_round)
            current_round.photos = [PhotoResponse.model_validate(photo) for photo in photos]

            if db_round.tie_pending:
                try:
                    roulette = await self.roulette.current_spin(db_round)
                except Exception as e:
                    logger.warning(f"Roulette state lookup failed for round {db_round.id}: {e}")

        votes_by_family = {vote.family_id: vote for vote in votes}
        summaries = [
            VoteSummary(
                family_id=family.id,
                label=family.label,
                voted=family.id in votes_by_family,
                photo_id=votes_by_family[family.id].photo_id if family.id in votes_by_family else None
            )
            for family in families
        ]

        phase = derive_phase(room, db_round, families, votes)

        next_round_number = None
        if room.status != RoomStatus.FINISHED:
            upcoming = (room.current_round or 0) + 1
            if room.status == RoomStatus.LOBBY and db_round is not None and not db_round.is_concluded:
                upcoming = db_round.round_number
            if any(r.round_number == upcoming for r in rounds):
                next_round_number = upcoming

        return RoomSnapshot(
            room=RoomResponse.model_validate(room),
            phase=phase,
            families=[FamilyResponse.model_validate(family) for family in families],
            current_round=current_round,
            votes=summaries,
            all_voted=bool(families) and all(summary.voted for summary in summaries),
            tie_pending=bool(db_round is not None and db_round.tie_pending),
            next_round_number=next_round_number,
            total_rounds=len(rounds),
            roulette=roulette
        )

    async def get_results(self, code: str) -> ResultGallery:
        """Winning photo of every concluded round, in round order"""
        room = await self.rooms.require_room(code)
        rounds = await self.rounds.list_rounds(room.id)

        winning_ids = [r.winning_photo_id for r in rounds if r.winning_photo_id]
        photos = {photo.id: photo for photo in await self.rooms.get_photos_by_ids(winning_ids)}

        winners = [
            WinningPhoto(
                round_number=r.round_number,
                photo=PhotoResponse.model_validate(photos[r.winning_photo_id])
            )
            for r in rounds
            if r.winning_photo_id and r.winning_photo_id in photos
        ]

        return ResultGallery(
            room=RoomResponse.model_validate(room),
            winners=winners,
            total_rounds=len(rounds)
        )
