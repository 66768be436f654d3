"""
Round API endpoints
라운드 API - 생성, 진행, 투표, 동점 룰렛
"""

from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from photovote.core.database import get_db
from photovote.api.v1.endpoints.session import require_host, require_family
from photovote.services.room import RoomService
from photovote.services.rounds import RoundService
from photovote.services.voting import VotingService
from photovote.services.progression import ProgressionService
from photovote.services.roulette import RouletteService
from photovote.services.session import SessionContext
from photovote.schemas.room import RoomResponse
from photovote.schemas.round import RoundResponse, RoundOutcome, VoteCreate, VoteResponse
from photovote.schemas.roulette import RouletteSpinResponse, RouletteCommitRequest
from photovote.websocket.change_feed import ChangeFeed, get_change_feed

router = APIRouter()


async def get_progression_service(
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_change_feed)
) -> ProgressionService:
    return ProgressionService(db, feed)


async def get_roulette_service(
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_change_feed)
) -> RouletteService:
    return RouletteService(db, feed)


async def get_voting_service(
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_change_feed)
) -> VotingService:
    return VotingService(db, feed)


async def get_round_service(
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_change_feed)
) -> RoundService:
    return RoundService(db, feed)


@router.get("/{code}/rounds", response_model=List[RoundResponse])
async def list_rounds(
    code: str,
    round_service: RoundService = Depends(get_round_service)
):
    room = await RoomService(round_service.db).require_room(code)
    rounds = await round_service.list_rounds(room.id)
    return [RoundResponse.model_validate(r) for r in rounds]


@router.post("/{code}/rounds", response_model=List[RoundResponse], status_code=status.HTTP_201_CREATED)
async def generate_rounds(
    code: str,
    host: SessionContext = Depends(require_host),
    round_service: RoundService = Depends(get_round_service)
):
    """
    라운드 생성 (호스트)

    사진을 섞어 3장씩 라운드를 만듭니다. 3장 미만이면 400, 이미 생성했으면 409.
    남는 사진(1~2장)은 사용하지 않습니다.
    """
    try:
        room = await RoomService(round_service.db).require_room(code)
        rounds = await round_service.generate_rounds(room)
        return [RoundResponse.model_validate(r) for r in rounds]
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"라운드 생성 실패: {str(e)}"
        )


@router.post("/{code}/rounds/next/start", response_model=RoomResponse)
async def start_next_round(
    code: str,
    host: SessionContext = Depends(require_host),
    progression: ProgressionService = Depends(get_progression_service)
):
    """다음 라운드 시작 (호스트)"""
    try:
        room = await progression.rooms.require_room(code)
        room = await progression.start_next_round(room)
        return RoomResponse.model_validate(room)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"라운드 시작 실패: {str(e)}"
        )


@router.post("/{code}/rounds/current/end", response_model=RoundOutcome)
async def end_current_round(
    code: str,
    host: SessionContext = Depends(require_host),
    progression: ProgressionService = Depends(get_progression_service)
):
    """
    라운드 종료 및 집계 (호스트)

    동점이면 is_tie=true 로 응답하고 방은 진행 상태로 남습니다 (룰렛 필요).
    """
    try:
        room = await progression.rooms.require_room(code)
        return await progression.end_round(room)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"라운드 종료 실패: {str(e)}"
        )


@router.post("/{code}/rounds/{round_number}/start", response_model=RoomResponse)
async def start_round(
    code: str,
    round_number: int,
    host: SessionContext = Depends(require_host),
    progression: ProgressionService = Depends(get_progression_service)
):
    """
    라운드 시작 (호스트)

    - **round_number**: 시작할 라운드 번호 (1부터)
    """
    try:
        room = await progression.rooms.require_room(code)
        room = await progression.start_round(room, round_number)
        return RoomResponse.model_validate(room)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"라운드 시작 실패: {str(e)}"
        )


@router.post("/{code}/votes", response_model=VoteResponse, status_code=status.HTTP_201_CREATED)
async def cast_vote(
    code: str,
    vote_data: VoteCreate,
    family_session: SessionContext = Depends(require_family),
    voting: VotingService = Depends(get_voting_service)
):
    """
    투표 (가족)

    - **photo_id**: 이번 라운드 사진 중 하나. 라운드마다 한 번만 투표할 수 있습니다.
    """
    try:
        room_service = RoomService(voting.db)
        room = await room_service.require_room(code)

        family = await room_service.get_family(family_session.family_id)
        if not family or family.room_id != room.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="가족을 먼저 선택해주세요."
            )

        vote = await voting.cast_vote(room, family, vote_data.photo_id)
        return VoteResponse.model_validate(vote)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"투표 실패: {str(e)}"
        )


@router.post("/{code}/roulette/spin", response_model=RouletteSpinResponse)
async def spin_roulette(
    code: str,
    host: SessionContext = Depends(require_host),
    roulette: RouletteService = Depends(get_roulette_service)
):
    """
    룰렛 돌리기 (호스트)

    당첨 가족과 최종 회전 각도를 정해 모든 화면에 `spin-roulette` 로 전송합니다.
    """
    try:
        room = await roulette.progression.rooms.require_room(code)
        return await roulette.spin(room)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"룰렛 실패: {str(e)}"
        )


@router.post("/{code}/roulette/commit", response_model=RoundOutcome)
async def commit_roulette(
    code: str,
    commit_data: RouletteCommitRequest = None,
    host: SessionContext = Depends(require_host),
    roulette: RouletteService = Depends(get_roulette_service)
):
    """
    룰렛 결과 확정 (호스트)

    당첨 가족의 투표 사진을 라운드 우승으로 저장하고 다음 라운드/게임 종료로 넘어갑니다.
    룰렛을 돌리지 않았거나 회전 기록이 없으면 409 (다시 돌려야 함).
    """
    try:
        room = await roulette.progression.rooms.require_room(code)
        label = commit_data.label if commit_data else None
        return await roulette.commit(room, label)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"룰렛 결과 확정 실패: {str(e)}"
        )
