"""
Session API endpoints and dependencies
세션 API 및 인증 의존성 - 호스트/가족 토큰 확인
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from photovote.schemas.common import SessionInfo
from photovote.services.session import SessionContext, SessionRole, session_service

router = APIRouter()
# auto_error=False: 토큰이 없으면 403 대신 직접 401 처리
security = HTTPBearer(auto_error=False)


async def get_optional_session(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Optional[SessionContext]:
    if credentials is None:
        return None
    return session_service.verify_token(credentials.credentials)


async def get_session_context(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> SessionContext:
    """Dependency returning the caller's session context"""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="세션 정보가 없습니다.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    context = session_service.verify_token(credentials.credentials)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="세션이 만료되었거나 올바르지 않습니다.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return context


async def require_host(code: str, context: SessionContext = Depends(get_session_context)) -> SessionContext:
    """Only the host of room ``code`` may continue"""
    if context.role != SessionRole.HOST or context.room_code != code:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="호스트만 할 수 있습니다."
        )
    return context


async def require_family(code: str, context: SessionContext = Depends(get_session_context)) -> SessionContext:
    """Only a family that joined room ``code`` may continue"""
    if context.role != SessionRole.FAMILY or context.room_code != code or not context.family_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="가족을 먼저 선택해주세요."
        )
    return context


@router.get("/session", response_model=SessionInfo)
async def get_session(context: SessionContext = Depends(get_session_context)):
    """
    Restore the session after a reload
    새로고침 후 세션 복원
    """
    return SessionInfo(
        room_code=context.room_code,
        room_id=context.room_id,
        role=context.role.value,
        client_id=context.client_id,
        family_label=context.family_label,
        family_id=context.family_id
    )
