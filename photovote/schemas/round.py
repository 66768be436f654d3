"""
Round and vote Pydantic schemas
라운드/투표 데이터 검증 및 직렬화 모델
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime

from photovote.schemas.room import RoomResponse, PhotoResponse


class RoundResponse(BaseModel):
    """라운드 응답 모델"""
    id: str
    room_id: str
    round_number: int
    photo_ids: List[str]
    winning_photo_id: Optional[str] = None
    tie_photos: Optional[List[str]] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def tie_pending(self) -> bool:
        return bool(self.tie_photos)


class RoundDetail(RoundResponse):
    """라운드 + 후보 사진"""
    photos: List[PhotoResponse] = Field(default_factory=list)


class VoteCreate(BaseModel):
    """투표 요청"""
    photo_id: str = Field(..., min_length=1, max_length=36, description="선택한 사진 ID")


class VoteResponse(BaseModel):
    """투표 응답 모델"""
    id: str
    room_id: str
    round_id: str
    family_id: str
    photo_id: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RoundOutcome(BaseModel):
    """라운드 종료 결과 - 승자 또는 동점"""
    round: RoundResponse
    room: RoomResponse
    winning_photo_id: Optional[str] = None
    is_tie: bool = False
    tie_photos: List[str] = Field(default_factory=list)
    vote_counts: Dict[str, int] = Field(default_factory=dict)
    next_round_number: Optional[int] = None
    finished: bool = False
