"""
API v1 router
API v1 라우터
"""

from fastapi import APIRouter

from photovote.api.v1.endpoints import health, session, rooms, families, rounds, results, websocket

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(session.router, tags=["session"])
api_router.include_router(rooms.router, prefix="/rooms", tags=["rooms"])
api_router.include_router(families.router, prefix="/rooms", tags=["families"])
api_router.include_router(rounds.router, prefix="/rooms", tags=["rounds"])
api_router.include_router(results.router, prefix="/rooms", tags=["live"])
api_router.include_router(websocket.router, prefix="/ws", tags=["websocket"])
