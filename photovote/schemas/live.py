"""
Live view and result schemas
실시간 화면(호스트/토론) 및 결과 갤러리 스키마
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from enum import Enum

from photovote.schemas.room import RoomResponse, PhotoResponse
from photovote.schemas.family import FamilyLabel, FamilyResponse
from photovote.schemas.round import RoundDetail
from photovote.schemas.roulette import RouletteSpinResponse


class RoomPhase(str, Enum):
    """화면 단계 (방 상태 + 투표 현황에서 계산)"""
    LOBBY = "lobby"
    VOTING = "voting"
    DISCUSSION = "discussion"
    TIE = "tie"
    FINISHED = "finished"


class VoteSummary(BaseModel):
    """가족별 투표 현황"""
    family_id: str
    label: FamilyLabel
    voted: bool = False
    photo_id: Optional[str] = None


class RoomSnapshot(BaseModel):
    """방 전체 상태 - 변경 알림마다 다시 조회해서 전송"""
    room: RoomResponse
    phase: RoomPhase
    families: List[FamilyResponse] = Field(default_factory=list)
    current_round: Optional[RoundDetail] = None
    votes: List[VoteSummary] = Field(default_factory=list)
    all_voted: bool = False
    tie_pending: bool = False
    next_round_number: Optional[int] = None
    total_rounds: int = 0
    roulette: Optional[RouletteSpinResponse] = None


class WinningPhoto(BaseModel):
    """라운드 우승 사진"""
    round_number: int
    photo: PhotoResponse


class ResultGallery(BaseModel):
    """최종 결과 갤러리"""
    room: RoomResponse
    winners: List[WinningPhoto] = Field(default_factory=list)
    total_rounds: int = 0
