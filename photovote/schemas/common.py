"""
Common Pydantic schemas
공통 데이터 검증 및 직렬화 모델
"""

from pydantic import BaseModel
from typing import Optional


class SessionInfo(BaseModel):
    """현재 세션 정보 - 새로고침 후 호스트 방 코드/가족 선택 복원"""
    room_code: str
    room_id: str
    role: str
    client_id: str
    family_label: Optional[str] = None
    family_id: Optional[str] = None
