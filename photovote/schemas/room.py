"""
Room and photo Pydantic schemas
방/사진 데이터 검증 및 직렬화 모델
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from urllib.parse import urlparse
from datetime import datetime
from enum import Enum


class RoomStatus(str, Enum):
    """방 상태"""
    LOBBY = "lobby"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


class RoomResponse(BaseModel):
    """방 응답 모델"""
    id: str
    code: str
    current_round: Optional[int] = None
    status: RoomStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RoomCreateResponse(BaseModel):
    """방 생성 응답 - 호스트 세션 토큰 포함"""
    room: RoomResponse
    token: str


class RoomJoinRequest(BaseModel):
    """방 참여 요청"""
    code: str = Field(default="", max_length=6, description="방 코드")


class RoomJoinResponse(BaseModel):
    """방 참여 응답"""
    success: bool
    message: str
    room: Optional[RoomResponse] = None


class PhotoCreate(BaseModel):
    """사진 등록 요청"""
    url: str = Field(..., min_length=1, max_length=2048, description="사진 URL")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("올바른 사진 URL을 입력해주세요.")
        return v


class PhotoResponse(BaseModel):
    """사진 응답 모델"""
    id: str
    room_id: str
    url: str
    order_index: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
