"""
Family Pydantic schemas
가족 데이터 검증 및 직렬화 모델
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class FamilyLabel(str, Enum):
    """세 가족 라벨 - 룰렛 섹터 순서와 동일"""
    GROOM = "신랑네"
    BRIDE = "신부네"
    COUPLE = "우리부부"


FAMILY_LABELS = [FamilyLabel.GROOM, FamilyLabel.BRIDE, FamilyLabel.COUPLE]


class FamilyClaim(BaseModel):
    """가족 선택 요청"""
    label: FamilyLabel
    client_id: Optional[str] = Field(None, max_length=36, description="기기 식별자 (새로고침 후 재선택용)")


class FamilyResponse(BaseModel):
    """가족 응답 모델"""
    id: str
    room_id: str
    label: FamilyLabel
    device_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FamilyClaimResponse(BaseModel):
    """가족 선택 응답 - 가족 세션 토큰 포함"""
    family: FamilyResponse
    client_id: str
    token: str
