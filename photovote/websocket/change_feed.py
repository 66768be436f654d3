"""
Change feed
행 변경/브로드캐스트 알림 스트림

Every committed write publishes a ChangeEvent. Consumers subscribe per room
and receive an infinite async stream of notifications; when nothing arrives
for a poll interval the stream yields a synthetic POLL event so the consumer
re-reads state anyway. Consumers never trust event payloads for state, they
re-fetch: a dropped or duplicated event only costs one extra query.

With Redis available, events are also published on a pub/sub channel and a
relay task re-dispatches events coming from other instances.
"""

import asyncio
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field, ValidationError

from photovote.core.config import settings

logger = logging.getLogger(__name__)


class ChangeAction:
    """변경 유형"""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    BROADCAST = "BROADCAST"
    POLL = "POLL"


class ChangeEvent(BaseModel):
    """변경 알림"""
    table: Optional[str] = None
    action: str
    room_id: str
    round_id: Optional[str] = None
    event: Optional[str] = Field(None, description="브로드캐스트 이벤트 이름")
    record: Dict[str, Any] = Field(default_factory=dict)
    origin: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)

    @classmethod
    def poll(cls, room_id: str) -> "ChangeEvent":
        return cls(action=ChangeAction.POLL, room_id=room_id)

    @property
    def is_broadcast(self) -> bool:
        return self.action == ChangeAction.BROADCAST


class Subscription:
    """
    Async iterator over the change events of one room.

    Infinite until closed. ``restart()`` discards buffered events and
    registers again, so a consumer that fell behind can start over from a
    fresh re-fetch.
    """

    def __init__(self, feed: "ChangeFeed", room_id: str, tables: Optional[Set[str]] = None,
                 round_id: Optional[str] = None, poll_interval: float = None, maxsize: int = None):
        self.feed = feed
        self.room_id = room_id
        self.tables = set(tables) if tables else None
        self.round_id = round_id
        self.poll_interval = poll_interval if poll_interval is not None else settings.CHANGE_FEED_POLL_INTERVAL
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize or settings.CHANGE_FEED_QUEUE_SIZE)
        self.closed = False
        self.dropped = 0
        self.feed._register(self)

    def matches(self, event: ChangeEvent) -> bool:
        if event.room_id != self.room_id:
            return False
        if event.is_broadcast:
            return True
        if self.tables is not None and event.table not in self.tables:
            return False
        if self.round_id is not None and event.round_id not in (None, self.round_id):
            return False
        return True

    def deliver(self, event: ChangeEvent) -> None:
        if self.closed or not self.matches(event):
            return

        if self.queue.full():
            # 가장 오래된 알림을 버림 - 다음 재조회가 빈틈을 메움
            self.queue.get_nowait()
            self.dropped += 1
            logger.debug(f"Subscription for room {self.room_id} dropped an event (total {self.dropped})")

        self.queue.put_nowait(event)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        if self.closed:
            raise StopAsyncIteration

        try:
            return await asyncio.wait_for(self.queue.get(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            if self.closed:
                raise StopAsyncIteration
            return ChangeEvent.poll(self.room_id)

    def restart(self) -> None:
        while not self.queue.empty():
            self.queue.get_nowait()
        self.closed = False
        self.feed._register(self)

    def close(self) -> None:
        self.closed = True
        self.feed._unregister(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()


class ChangeFeed:
    """Process-local fan-out of change events, optionally relayed through Redis"""

    def __init__(self, channel: str = None, poll_interval: float = None):
        self.channel = channel or settings.REALTIME_CHANNEL
        self.poll_interval = poll_interval
        self.instance_id = str(uuid.uuid4())
        self.redis = None
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._relay_task: Optional[asyncio.Task] = None

    def subscribe(self, room_id: str, tables: Optional[Set[str]] = None,
                  round_id: Optional[str] = None, poll_interval: float = None) -> Subscription:
        """Open a notification stream for one room"""
        if poll_interval is None:
            poll_interval = self.poll_interval
        return Subscription(self, room_id, tables=tables, round_id=round_id, poll_interval=poll_interval)

    def _register(self, subscription: Subscription) -> None:
        subs = self._subscriptions.setdefault(subscription.room_id, [])
        if subscription not in subs:
            subs.append(subscription)

    def _unregister(self, subscription: Subscription) -> None:
        subs = self._subscriptions.get(subscription.room_id)
        if not subs:
            return
        if subscription in subs:
            subs.remove(subscription)
        if not subs:
            del self._subscriptions[subscription.room_id]

    def subscriber_count(self, room_id: str) -> int:
        return len(self._subscriptions.get(room_id, []))

    def _dispatch(self, event: ChangeEvent) -> int:
        subs = list(self._subscriptions.get(event.room_id, []))
        for subscription in subs:
            subscription.deliver(event)
        return len(subs)

    async def publish(self, event: ChangeEvent) -> int:
        """
        Deliver to local subscribers, then relay through Redis.
        A relay failure is logged; local delivery already happened.
        """
        if event.origin is None:
            event.origin = self.instance_id

        delivered = self._dispatch(event)

        if self.redis is not None and self.redis.is_connected:
            try:
                await self.redis.publish_message(self.channel, event.model_dump(mode="json"))
            except Exception as e:
                logger.warning(f"Change relay failed for room {event.room_id}: {e}")

        return delivered

    async def publish_row(self, table: str, action: str, room_id: str, record: Dict[str, Any] = None,
                          round_id: Optional[str] = None) -> int:
        return await self.publish(ChangeEvent(
            table=table,
            action=action,
            room_id=room_id,
            round_id=round_id,
            record=record or {}
        ))

    async def broadcast(self, room_id: str, event: str, payload: Dict[str, Any]) -> int:
        """Ad-hoc message to every viewer of a room (not persisted)"""
        return await self.publish(ChangeEvent(
            action=ChangeAction.BROADCAST,
            room_id=room_id,
            round_id=payload.get("roundId"),
            event=event,
            record=payload
        ))

    async def start_relay(self, redis_manager) -> None:
        """Start relaying events from other instances (no-op without Redis)"""
        self.redis = redis_manager
        if not redis_manager.is_connected:
            logger.info("Redis unavailable, change feed stays process-local")
            return

        if self._relay_task and not self._relay_task.done():
            return

        self._relay_task = asyncio.create_task(self._relay_loop())
        logger.info(f"Change feed relay started on channel {self.channel}")

    async def stop_relay(self) -> None:
        if self._relay_task:
            self._relay_task.cancel()
            try:
                await self._relay_task
            except asyncio.CancelledError:
                pass
            self._relay_task = None
        self.redis = None

    def handle_relay_message(self, message: Dict[str, Any]) -> bool:
        """Re-dispatch one pub/sub message; returns False when ignored"""
        if message.get("type") != "message":
            return False

        try:
            event = ChangeEvent(**json.loads(message["data"]))
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning(f"Ignoring malformed relay message: {e}")
            return False

        if event.origin == self.instance_id:
            return False

        self._dispatch(event)
        return True

    async def _relay_loop(self) -> None:
        client = await self.redis.get_client()
        pubsub = client.pubsub()
        await pubsub.subscribe(self.channel)
        try:
            async for message in pubsub.listen():
                self.handle_relay_message(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Change feed relay stopped: {e}")
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()


# Global change feed instance
change_feed = ChangeFeed()


def get_change_feed() -> ChangeFeed:
    """Dependency returning the process change feed"""
    return change_feed
