"""
Tie-break roulette service
동점 룰렛 서비스 - 결과를 먼저 정하고(1단계) 바퀴 경로를 계산(2단계)

Phase 1 picks the winning family label; phase 2 computes a wheel rotation
that lands on it. Every viewer animates the same broadcast rotation, so the
wheel is purely cosmetic. The commit then applies the chosen family's vote
as the round winner.
"""

import random
import logging
from dataclasses import dataclass
from typing import Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from photovote.core.config import settings
from photovote.core.redis_client import redis_manager
from photovote.models.room import Room
from photovote.models.round import Round
from photovote.schemas.family import FamilyLabel, FAMILY_LABELS
from photovote.schemas.roulette import RouletteState, RouletteSpinResponse
from photovote.schemas.round import RoundResponse, RoundOutcome
from photovote.schemas.room import RoomStatus, RoomResponse
from photovote.services.progression import ProgressionService
from photovote.websocket.change_feed import ChangeFeed, change_feed

logger = logging.getLogger(__name__)

SECTOR_DEGREES = 360.0 / len(FAMILY_LABELS)

SPIN_EVENT = "spin-roulette"


def choose_winning_label(rng: random.Random = None) -> FamilyLabel:
    """Uniform pick among the three labels"""
    rng = rng or random
    return rng.choice(FAMILY_LABELS)


def sector_center(label: FamilyLabel) -> float:
    return FAMILY_LABELS.index(label) * SECTOR_DEGREES + SECTOR_DEGREES / 2


def compute_wheel_rotation(label: FamilyLabel, current_rotation: float = 0.0,
                           rng: random.Random = None,
                           min_spins: int = None, max_spins: int = None,
                           jitter_degrees: float = None) -> float:
    """
    Final wheel angle (degrees, clockwise) bringing ``label`` under the top
    pointer after several full turns from ``current_rotation``.
    """
    rng = rng or random
    min_spins = min_spins if min_spins is not None else settings.ROULETTE_MIN_EXTRA_SPINS
    max_spins = max_spins if max_spins is not None else settings.ROULETTE_MAX_EXTRA_SPINS
    jitter_degrees = jitter_degrees if jitter_degrees is not None else settings.ROULETTE_JITTER_DEGREES

    # jitter must stay strictly inside the sector
    jitter_degrees = min(jitter_degrees, SECTOR_DEGREES / 2 - 1)

    base = (360.0 - sector_center(label)) % 360.0
    extra_spins = rng.randint(min_spins, max_spins)
    offset = (base - current_rotation % 360.0) % 360.0
    jitter = (rng.random() - 0.5) * 2 * jitter_degrees

    return current_rotation + extra_spins * 360.0 + offset + jitter


def label_at_pointer(rotation: float) -> FamilyLabel:
    """Label whose sector sits under the top pointer at ``rotation``"""
    normalized = (360.0 - rotation % 360.0) % 360.0
    index = int(normalized // SECTOR_DEGREES) % len(FAMILY_LABELS)
    return FAMILY_LABELS[index]


@dataclass
class TieBreakRoulette:
    """Per-round roulette: Idle -> Spinning -> Landed -> Committed"""
    round_id: str
    round_number: int
    state: RouletteState = RouletteState.IDLE
    winner: Optional[FamilyLabel] = None
    rotation: float = 0.0

    def spin(self, rng: random.Random = None) -> FamilyLabel:
        # Landed -> Spinning is the re-spin after a failed commit
        if self.state not in (RouletteState.IDLE, RouletteState.LANDED):
            raise ValueError(f"cannot spin from {self.state.value}")

        self.winner = choose_winning_label(rng)
        self.rotation = compute_wheel_rotation(self.winner, self.rotation, rng)
        self.state = RouletteState.SPINNING
        return self.winner

    def land(self) -> FamilyLabel:
        if self.state == RouletteState.SPINNING:
            self.state = RouletteState.LANDED
        if self.state != RouletteState.LANDED:
            raise ValueError(f"cannot land from {self.state.value}")
        return self.winner

    def commit(self) -> None:
        if self.state != RouletteState.LANDED:
            raise ValueError(f"cannot commit from {self.state.value}")
        self.state = RouletteState.COMMITTED

    def to_response(self, broadcast_delivered: bool = True) -> RouletteSpinResponse:
        return RouletteSpinResponse(
            round_id=self.round_id,
            round_number=self.round_number,
            winner=self.winner,
            rotation=self.rotation,
            duration_ms=settings.ROULETTE_SPIN_DURATION_MS,
            reveal_delay_ms=settings.ROULETTE_REVEAL_DELAY_MS,
            state=self.state,
            broadcast_delivered=broadcast_delivered
        )

    def broadcast_payload(self) -> dict:
        return {
            "winner": self.winner.value,
            "roundId": self.round_id,
            "rotation": self.rotation,
            "durationMs": settings.ROULETTE_SPIN_DURATION_MS,
        }


# Process-local roulette per round id
roulette_registry: Dict[str, TieBreakRoulette] = {}


class RouletteService:
    """룰렛 서비스 클래스"""

    def __init__(self, db: AsyncSession, feed: ChangeFeed = None, rng: random.Random = None,
                 registry: Dict[str, TieBreakRoulette] = None, redis=None):
        self.db = db
        self.feed = feed or change_feed
        self.rng = rng
        self.registry = registry if registry is not None else roulette_registry
        self.redis = redis or redis_manager
        self.progression = ProgressionService(db, self.feed)

    async def _require_tied_round(self, room: Room) -> Round:
        if room.status != RoomStatus.IN_PROGRESS or room.current_round is None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="진행 중인 라운드가 없습니다."
            )

        db_round = await self.progression.rounds.require_current_round(room)
        if not db_round.tie_pending:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="동점인 라운드가 아닙니다."
            )
        return db_round

    def get_roulette(self, round_id: str) -> Optional[TieBreakRoulette]:
        return self.registry.get(round_id)

    async def spin(self, room: Room) -> RouletteSpinResponse:
        """
        Phase 1 + 2: choose the label, compute the path, broadcast it.
        Broadcast or cache failures are logged and do not block the spin.
        """
        db_round = await self._require_tied_round(room)

        roulette = self.registry.get(db_round.id)
        if roulette is None or roulette.state == RouletteState.COMMITTED:
            roulette = TieBreakRoulette(round_id=db_round.id, round_number=db_round.round_number)
            self.registry[db_round.id] = roulette

        if roulette.state == RouletteState.SPINNING:
            # 이전 회전이 확정되지 않은 채 다시 돌리는 경우
            roulette.land()

        try:
            winner = roulette.spin(self.rng)
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"룰렛을 돌릴 수 없습니다: {e}"
            )

        logger.info(f"Room {room.code}: roulette for round {db_round.round_number} picked {winner.value}")

        delivered = True
        try:
            await self.feed.broadcast(room.id, SPIN_EVENT, roulette.broadcast_payload())
        except Exception as e:
            delivered = False
            logger.error(f"Roulette broadcast failed for room {room.code}: {e}")

        if self.redis.is_connected:
            try:
                await self.redis.set_roulette_state(db_round.id, roulette.to_response().model_dump(mode="json"))
            except Exception as e:
                logger.warning(f"Roulette state cache failed for round {db_round.id}: {e}")

        return roulette.to_response(broadcast_delivered=delivered)

    async def commit(self, room: Room, label: Optional[FamilyLabel] = None) -> RoundOutcome:
        """
        Apply the predetermined family's vote as the round winner.

        The winner is always the label drawn by ``spin``: this process's
        registry first, then the spin cached in Redis by another worker.
        A request label only confirms that draw. A round nobody spun (or
        whose spin was lost with a restart) must be spun again.
        A missing family or vote leaves the round tied for another try.
        """
        db_round = await self._require_tied_round(room)

        roulette = self.registry.get(db_round.id)
        if roulette is not None and (roulette.winner is None or roulette.state == RouletteState.COMMITTED):
            roulette = None

        if roulette is not None:
            drawn = roulette.land()
        else:
            cached = await self.current_spin(db_round)
            if cached is None:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="룰렛을 먼저 돌려주세요."
                )
            drawn = cached.winner

        if label is not None and label != drawn:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="룰렛 결과와 다른 가족입니다."
            )
        label = drawn

        family = await self.progression.rooms.get_family_by_label(room.id, label)
        if not family:
            logger.warning(f"Room {room.code}: roulette picked {label.value} but no such family")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="당첨된 가족 정보를 찾을 수 없습니다."
            )

        vote = await self.progression.voting.get_vote_by_family_and_round(family.id, db_round.id)
        if not vote:
            logger.warning(f"Room {room.code}: no vote from {label.value} in round {db_round.round_number}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"{label.value}의 투표 정보를 찾을 수 없습니다."
            )

        db_round = await self.progression.rounds.update_round(
            db_round,
            winning_photo_id=vote.photo_id,
            tie_photos=None
        )

        if roulette is not None:
            roulette.commit()
        self.registry.pop(db_round.id, None)

        if self.redis.is_connected:
            try:
                await self.redis.delete_roulette_state(db_round.id)
            except Exception as e:
                logger.warning(f"Roulette state cleanup failed for round {db_round.id}: {e}")

        logger.info(f"Room {room.code}: round {db_round.round_number} won by {label.value}'s pick")

        next_round_number = await self.progression.advance_or_finish(room, db_round)

        return RoundOutcome(
            round=RoundResponse.model_validate(db_round),
            room=RoomResponse.model_validate(room),
            winning_photo_id=vote.photo_id,
            is_tie=False,
            tie_photos=[],
            next_round_number=next_round_number,
            finished=room.status == RoomStatus.FINISHED
        )

    async def current_spin(self, db_round: Round) -> Optional[RouletteSpinResponse]:
        """Latest spin of a tied round, for viewers that join mid-animation"""
        roulette = self.registry.get(db_round.id)
        if roulette is not None and roulette.winner is not None and roulette.state != RouletteState.COMMITTED:
            return roulette.to_response()

        if not self.redis.is_connected:
            return None

        cached = await self.redis.get_roulette_state(db_round.id)
        if cached:
            return RouletteSpinResponse(**cached)
        return None
