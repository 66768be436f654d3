"""
Background tasks service
백그라운드 작업 - 비활성 WebSocket 정리
"""

import asyncio
import logging
from typing import Optional

from photovote.core.config import settings
from photovote.websocket.connection_manager import connection_manager

logger = logging.getLogger(__name__)


class BackgroundTaskService:
    """백그라운드 작업 서비스 클래스"""

    def __init__(self, manager=None):
        self.manager = manager or connection_manager
        self.websocket_cleanup_task: Optional[asyncio.Task] = None

    async def start_websocket_cleanup_task(self, interval_seconds: int = None):
        if self.websocket_cleanup_task and not self.websocket_cleanup_task.done():
            logger.warning("WebSocket cleanup task already running")
            return

        interval_seconds = interval_seconds or settings.WEBSOCKET_CLEANUP_INTERVAL
        self.websocket_cleanup_task = asyncio.create_task(self._websocket_cleanup_loop(interval_seconds))
        logger.info(f"WebSocket cleanup task started, interval {interval_seconds}s")

    async def stop_websocket_cleanup_task(self):
        if self.websocket_cleanup_task:
            self.websocket_cleanup_task.cancel()
            try:
                await self.websocket_cleanup_task
            except asyncio.CancelledError:
                pass
            self.websocket_cleanup_task = None

        logger.info("WebSocket cleanup task stopped")

    async def _websocket_cleanup_loop(self, interval_seconds: int):
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.cleanup_websockets_once()
            except Exception as e:
                logger.error(f"WebSocket cleanup failed: {e}")

    async def cleanup_websockets_once(self) -> int:
        cleaned_count = await self.manager.cleanup_inactive_connections()
        if cleaned_count > 0:
            logger.info(f"Cleaned {cleaned_count} inactive WebSocket connections")
        return cleaned_count


# Global background task service
background_service = BackgroundTaskService()


async def start_background_tasks():
    await background_service.start_websocket_cleanup_task()


async def stop_background_tasks():
    await background_service.stop_websocket_cleanup_task()
