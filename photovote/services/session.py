"""
Session context service
세션 컨텍스트 - 호스트 방 코드 / 가족 선택을 서명된 토큰으로 보관
"""

import uuid
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from jose import JWTError, jwt

from photovote.core.config import settings

logger = logging.getLogger(__name__)


class SessionRole(str, Enum):
    """세션 역할"""
    HOST = "host"
    FAMILY = "family"


@dataclass(frozen=True)
class SessionContext:
    """
    Who the caller is within one room.
    Passed explicitly to every operation that needs it; survives reloads
    because the client keeps the token.
    """
    room_code: str
    room_id: str
    role: SessionRole
    client_id: str
    family_label: Optional[str] = None
    family_id: Optional[str] = None

    @property
    def is_host(self) -> bool:
        return self.role == SessionRole.HOST

    def to_claims(self) -> dict:
        claims = {
            "room_code": self.room_code,
            "room_id": self.room_id,
            "role": self.role.value,
            "sub": self.client_id,
        }
        if self.family_label:
            claims["family_label"] = self.family_label
            claims["family_id"] = self.family_id
        return claims


class SessionService:
    """Issue and verify session tokens"""

    def __init__(self, secret_key: str = None, algorithm: str = None, expire_minutes: int = None):
        self.secret_key = secret_key or settings.SECRET_KEY
        self.algorithm = algorithm or settings.ALGORITHM
        self.expire_minutes = expire_minutes or settings.SESSION_TOKEN_EXPIRE_MINUTES

    @staticmethod
    def new_client_id() -> str:
        return str(uuid.uuid4())

    def create_token(self, context: SessionContext, expires_delta: Optional[timedelta] = None) -> str:
        """Sign a session context into a JWT"""
        to_encode = context.to_claims()
        expire = datetime.utcnow() + (expires_delta or timedelta(minutes=self.expire_minutes))
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Optional[SessionContext]:
        """Decode a token; None when invalid or expired"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.debug(f"Session token rejected: {e}")
            return None

        try:
            return SessionContext(
                room_code=payload["room_code"],
                room_id=payload["room_id"],
                role=SessionRole(payload["role"]),
                client_id=payload["sub"],
                family_label=payload.get("family_label"),
                family_id=payload.get("family_id"),
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"Session token missing claims: {e}")
            return None

    def host_token(self, room_code: str, room_id: str, client_id: str = None) -> str:
        return self.create_token(SessionContext(
            room_code=room_code,
            room_id=room_id,
            role=SessionRole.HOST,
            client_id=client_id or self.new_client_id(),
        ))

    def family_token(self, room_code: str, room_id: str, client_id: str,
                     family_label: str, family_id: str) -> str:
        return self.create_token(SessionContext(
            room_code=room_code,
            room_id=room_id,
            role=SessionRole.FAMILY,
            client_id=client_id,
            family_label=family_label,
            family_id=family_id,
        ))


# Global session service instance
session_service = SessionService()
