"""
WebSocket endpoints
WebSocket 엔드포인트 - 방 상태 스트림 + 룰렛 브로드캐스트

Each viewer gets its own change feed subscription. Every notification (or
poll tick when the feed is quiet) re-fetches the whole room snapshot in a
fresh database session; broadcasts such as ``spin-roulette`` are forwarded
as they are.
"""

import json
import uuid
import asyncio
import logging
from typing import Optional
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends

from photovote.core.config import settings
from photovote.core.database import get_session_runner
from photovote.services.room import RoomService
from photovote.services.live_view import LiveViewService
from photovote.services.session import SessionContext, session_service
from photovote.websocket.change_feed import ChangeFeed, get_change_feed
from photovote.websocket.connection_manager import connection_manager

logger = logging.getLogger(__name__)
router = APIRouter()


def get_context_from_websocket(websocket: WebSocket, code: str) -> Optional[SessionContext]:
    """Session from ``?token=``; viewers without a token watch anonymously"""
    token = websocket.query_params.get("token")
    if not token:
        return None

    context = session_service.verify_token(token)
    if context is None or context.room_code != code:
        raise ValueError("invalid session token")
    return context


async def _load_room_id(session, code: str) -> Optional[str]:
    room = await RoomService(session).get_room_by_code(code)
    return room.id if room else None


@router.websocket("/{code}")
async def room_stream(
    websocket: WebSocket,
    code: str,
    feed: ChangeFeed = Depends(get_change_feed),
    run_in_session=Depends(get_session_runner)
):
    """
    방 상태 스트림

    server -> client: snapshot, spin-roulette, ping, viewer_joined/left, error
    client -> server: ping, refresh
    """
    connection_id = str(uuid.uuid4())
    subscription = None
    pump_task = None

    try:
        try:
            context = get_context_from_websocket(websocket, code)
        except ValueError:
            await websocket.close(code=4001, reason="Invalid session")
            return

        room_id = await run_in_session(_load_room_id, code)
        if not room_id:
            await websocket.close(code=4004, reason="Room not found")
            return

        role = context.role.value if context else "viewer"
        connected = await connection_manager.connect(connection_id, websocket, code, role=role)
        if not connected:
            await websocket.close(code=4002, reason="Connection failed")
            return

        subscription = feed.subscribe(room_id)

        async def send_snapshot():
            async def _snapshot(session):
                snapshot = await LiveViewService(session, feed).build_snapshot(code)
                return snapshot.model_dump(mode="json")

            try:
                data = await run_in_session(_snapshot)
            except Exception as e:
                logger.error(f"Snapshot fetch failed for room {code}: {e}")
                await connection_manager.send_to_connection(connection_id, {
                    "type": "error",
                    "data": {"message": "방 상태를 불러오지 못했습니다."}
                })
                return

            await connection_manager.send_to_connection(connection_id, {"type": "snapshot", "data": data})

        async def pump():
            await asyncio.sleep(settings.INITIAL_LOAD_DELAY)
            await send_snapshot()

            async for event in subscription:
                if event.is_broadcast:
                    await connection_manager.send_to_connection(connection_id, {
                        "type": event.event,
                        "data": event.record
                    })
                    continue

                await asyncio.sleep(settings.CHANGE_REFETCH_DELAY)
                await send_snapshot()

        pump_task = asyncio.create_task(pump())

        while True:
            try:
                data = await websocket.receive_text()
                message_data = json.loads(data)

                if not isinstance(message_data, dict) or "type" not in message_data:
                    await connection_manager.send_to_connection(connection_id, {
                        "type": "error",
                        "data": {"message": "Invalid message format"}
                    })
                    continue

                message_type = message_data["type"]
                if message_type == "ping":
                    connection_manager.record_pong(connection_id)
                    await connection_manager.send_to_connection(connection_id, {"type": "pong"})
                elif message_type == "pong":
                    connection_manager.record_pong(connection_id)
                elif message_type == "refresh":
                    subscription.restart()
                    await send_snapshot()
                else:
                    await connection_manager.send_to_connection(connection_id, {
                        "type": "error",
                        "data": {"message": f"Unknown message type: {message_type}"}
                    })

            except WebSocketDisconnect:
                logger.info(f"WebSocket disconnected for viewer {connection_id} in room {code}")
                break
            except json.JSONDecodeError:
                await connection_manager.send_to_connection(connection_id, {
                    "type": "error",
                    "data": {"message": "Invalid JSON format"}
                })

    except Exception as e:
        logger.error(f"WebSocket connection error in room {code}: {e}")

    finally:
        if pump_task:
            pump_task.cancel()
            try:
                await pump_task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"Room stream pump failed for {connection_id}: {e}")
        if subscription:
            subscription.close()
        await connection_manager.disconnect(connection_id, "Connection closed")
