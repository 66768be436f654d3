"""
Health check endpoints
상태 확인 엔드포인트
"""

from fastapi import APIRouter

from photovote.core.database import health_check as db_health_check
from photovote.core.redis_client import redis_health_check
from photovote.websocket.connection_manager import connection_manager

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint
    기본 상태 확인
    """
    return {
        "status": "healthy",
        "service": "wedding-photo-vote",
        "version": "1.0.0",
        "websocket_connections": connection_manager.get_connection_count(),
        "active_rooms": connection_manager.get_room_count()
    }


@router.get("/health/database")
async def database_health():
    """
    Database connection health check
    데이터베이스 연결 상태
    """
    try:
        return await db_health_check()
    except Exception as e:
        return {
            "status": "error",
            "error": str(e)
        }


@router.get("/health/redis")
async def redis_health():
    """
    Redis connection health check
    Redis 연결 상태
    """
    try:
        return await redis_health_check()
    except Exception as e:
        return {
            "status": "error",
            "error": str(e)
        }
