"""
WebSocket connection manager
WebSocket 연결 관리자 - 시청자 연결, 하트비트, 방 단위 접속 알림
"""

import json
import logging
import asyncio
from typing import Dict, Set, Optional, Any
from datetime import datetime
from fastapi import WebSocket

from photovote.core.config import settings

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    WebSocket connection registry.
    One entry per open viewer socket (host screen, family phone, discussion
    screen), grouped by room code.
    """

    def __init__(self, max_connections: int = None, ping_interval: int = None):
        # 활성 연결: connection_id -> WebSocket
        self.active_connections: Dict[str, WebSocket] = {}

        # 방별 연결: room_code -> Set[connection_id]
        self.room_connections: Dict[str, Set[str]] = {}

        # 연결별 방: connection_id -> room_code
        self.connection_rooms: Dict[str, str] = {}

        # 연결 메타데이터: connection_id -> info
        self.connection_metadata: Dict[str, Dict[str, Any]] = {}

        self.max_connections = max_connections or settings.MAX_WEBSOCKET_CONNECTIONS

        # 하트비트
        self.ping_interval = ping_interval or settings.WEBSOCKET_PING_INTERVAL
        self.ping_timeout = 10

        self._heartbeat_tasks: Dict[str, asyncio.Task] = {}

    async def connect(self, connection_id: str, websocket: WebSocket, room_code: Optional[str] = None,
                      role: Optional[str] = None, heartbeat: bool = True) -> bool:
        """Accept a socket and register it (False when over the connection limit)"""
        try:
            if len(self.active_connections) >= self.max_connections:
                logger.warning(f"Connection limit reached, rejecting {connection_id}")
                return False

            await websocket.accept()

            if connection_id in self.active_connections:
                await self.disconnect(connection_id, "New connection established")

            self.active_connections[connection_id] = websocket
            self.connection_metadata[connection_id] = {
                "connected_at": datetime.now(),
                "last_ping": datetime.now(),
                "room_code": room_code,
                "role": role
            }

            if room_code:
                await self.join_room(connection_id, room_code)

            if heartbeat:
                self._start_heartbeat(connection_id)

            logger.info(f"Viewer {connection_id} connected" + (f" to room {room_code}" if room_code else ""))
            return True

        except Exception as e:
            logger.error(f"Error connecting viewer {connection_id}: {e}")
            return False

    async def disconnect(self, connection_id: str, reason: str = "Connection closed") -> None:
        try:
            if connection_id in self._heartbeat_tasks:
                self._heartbeat_tasks[connection_id].cancel()
                del self._heartbeat_tasks[connection_id]

            if connection_id in self.connection_rooms:
                await self.leave_room(connection_id, self.connection_rooms[connection_id])

            websocket = self.active_connections.pop(connection_id, None)
            if websocket is not None:
                try:
                    await websocket.close(code=1000, reason=reason)
                except Exception:
                    logger.debug(f"Socket {connection_id} already closed")

            self.connection_metadata.pop(connection_id, None)

            logger.info(f"Viewer {connection_id} disconnected: {reason}")

        except Exception as e:
            logger.error(f"Error disconnecting viewer {connection_id}: {e}")

    async def join_room(self, connection_id: str, room_code: str) -> bool:
        if connection_id not in self.active_connections:
            logger.warning(f"Viewer {connection_id} not connected, cannot join room {room_code}")
            return False

        old_room = self.connection_rooms.get(connection_id)
        if old_room and old_room != room_code:
            await self.leave_room(connection_id, old_room)

        self.room_connections.setdefault(room_code, set()).add(connection_id)
        self.connection_rooms[connection_id] = room_code

        if connection_id in self.connection_metadata:
            self.connection_metadata[connection_id]["room_code"] = room_code

        await self.broadcast_to_room(room_code, {
            "type": "viewer_joined",
            "data": {
                "viewers": len(self.room_connections[room_code]),
                "timestamp": datetime.now().isoformat()
            }
        }, exclude=connection_id)

        logger.debug(f"Viewer {connection_id} joined room {room_code}")
        return True

    async def leave_room(self, connection_id: str, room_code: str) -> bool:
        if room_code in self.room_connections:
            self.room_connections[room_code].discard(connection_id)
            if not self.room_connections[room_code]:
                del self.room_connections[room_code]

        if self.connection_rooms.get(connection_id) == room_code:
            del self.connection_rooms[connection_id]

        if connection_id in self.connection_metadata:
            self.connection_metadata[connection_id]["room_code"] = None

        if room_code in self.room_connections:
            await self.broadcast_to_room(room_code, {
                "type": "viewer_left",
                "data": {
                    "viewers": len(self.room_connections[room_code]),
                    "timestamp": datetime.now().isoformat()
                }
            }, exclude=connection_id)

        logger.debug(f"Viewer {connection_id} left room {room_code}")
        return True

    async def send_to_connection(self, connection_id: str, message: dict) -> bool:
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            return False

        try:
            await websocket.send_text(json.dumps(message, ensure_ascii=False, default=str))
            return True
        except Exception as e:
            logger.error(f"Error sending to viewer {connection_id}: {e}")
            return False

    async def broadcast_to_room(self, room_code: str, message: dict, exclude: Optional[str] = None) -> int:
        """Send to every viewer of a room; returns how many received it"""
        sent_count = 0
        for connection_id in list(self.room_connections.get(room_code, set())):
            if exclude and connection_id == exclude:
                continue
            if await self.send_to_connection(connection_id, message):
                sent_count += 1

        logger.debug(f"Sent '{message.get('type', 'unknown')}' to {sent_count} viewers in room {room_code}")
        return sent_count

    def record_pong(self, connection_id: str) -> None:
        if connection_id in self.connection_metadata:
            self.connection_metadata[connection_id]["last_ping"] = datetime.now()

    def _start_heartbeat(self, connection_id: str) -> None:
        async def heartbeat_task():
            try:
                while connection_id in self.active_connections:
                    await asyncio.sleep(self.ping_interval)

                    if connection_id not in self.active_connections:
                        break

                    last_pong = self.connection_metadata.get(connection_id, {}).get("last_ping")
                    if last_pong:
                        time_since_pong = (datetime.now() - last_pong).total_seconds()
                        if time_since_pong > self.ping_interval * 3:
                            logger.warning(f"Viewer {connection_id} heartbeat timeout ({time_since_pong:.1f}s)")
                            await self.disconnect(connection_id, "Heartbeat timeout")
                            break

                    await self.send_to_connection(connection_id, {
                        "type": "ping",
                        "data": {"timestamp": datetime.now().isoformat()}
                    })

            except asyncio.CancelledError:
                logger.debug(f"Heartbeat task cancelled for {connection_id}")
            except Exception as e:
                logger.error(f"Heartbeat error for {connection_id}: {e}")

        if connection_id in self._heartbeat_tasks:
            self._heartbeat_tasks[connection_id].cancel()

        self._heartbeat_tasks[connection_id] = asyncio.create_task(heartbeat_task())

    async def cleanup_inactive_connections(self) -> int:
        """Disconnect sockets that stopped answering pings"""
        current_time = datetime.now()
        inactive = []

        for connection_id, metadata in list(self.connection_metadata.items()):
            if connection_id not in self.active_connections:
                inactive.append(connection_id)
                continue

            last_ping = metadata.get("last_ping")
            if last_ping and (current_time - last_ping).total_seconds() > self.ping_interval * 3:
                inactive.append(connection_id)

        for connection_id in inactive:
            await self.disconnect(connection_id, "Inactive connection cleanup")

        if inactive:
            logger.info(f"Cleaned up {len(inactive)} inactive connections")
        return len(inactive)

    def get_connection_count(self) -> int:
        return len(self.active_connections)

    def get_room_count(self) -> int:
        return len(self.room_connections)

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self.active_connections


# Global connection manager instance
connection_manager = ConnectionManager()
