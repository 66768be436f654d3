"""
Live view and result API endpoints
실시간 화면 / 결과 갤러리 API
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from photovote.core.database import get_db
from photovote.services.live_view import LiveViewService
from photovote.schemas.live import RoomSnapshot, ResultGallery
from photovote.websocket.change_feed import ChangeFeed, get_change_feed

router = APIRouter()


async def get_live_view_service(
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_change_feed)
) -> LiveViewService:
    return LiveViewService(db, feed)


@router.get("/{code}/live", response_model=RoomSnapshot)
async def get_live_snapshot(code: str, live_view: LiveViewService = Depends(get_live_view_service)):
    """
    방 전체 상태 (호스트 라이브 화면 / 토론 화면)

    WebSocket 을 쓸 수 없는 화면은 이 엔드포인트를 주기적으로 조회합니다.
    """
    try:
        return await live_view.build_snapshot(code)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"방 상태 조회 실패: {str(e)}"
        )


@router.get("/{code}/results", response_model=ResultGallery)
async def get_results(code: str, live_view: LiveViewService = Depends(get_live_view_service)):
    """라운드별 우승 사진 (라운드 순서)"""
    try:
        return await live_view.get_results(code)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"결과 조회 실패: {str(e)}"
        )
