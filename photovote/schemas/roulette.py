"""
Tie-break roulette schemas
동점 룰렛 스키마
"""

from pydantic import BaseModel, Field
from typing import Optional
from enum import Enum

from photovote.schemas.family import FamilyLabel


class RouletteState(str, Enum):
    """룰렛 상태: Idle → Spinning → Landed → Committed"""
    IDLE = "idle"
    SPINNING = "spinning"
    LANDED = "landed"
    COMMITTED = "committed"


class RouletteSpinResponse(BaseModel):
    """룰렛 회전 결과 - 모든 클라이언트가 같은 각도로 애니메이션"""
    round_id: str
    round_number: int
    winner: FamilyLabel
    rotation: float = Field(..., description="최종 회전 각도 (도)")
    duration_ms: int
    reveal_delay_ms: int
    state: RouletteState
    broadcast_delivered: bool = True


class RouletteCommitRequest(BaseModel):
    """룰렛 결과 확정 요청"""
    label: Optional[FamilyLabel] = Field(None, description="확인용 가족 라벨 - 회전 결과와 다르면 409")
