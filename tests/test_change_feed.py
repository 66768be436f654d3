"""
Change feed tests
변경 알림 스트림 테스트
"""

import asyncio
import json
import pytest

from photovote.websocket.change_feed import ChangeAction, ChangeEvent, ChangeFeed, Subscription


async def next_event(subscription, timeout: float = 1.0) -> ChangeEvent:
    return await asyncio.wait_for(subscription.__anext__(), timeout=timeout)


class BrokenRelay:
    """Redis stand-in whose publish always fails"""
    is_connected = True

    def __init__(self):
        self.attempts = 0

    async def publish_message(self, channel, message):
        self.attempts += 1
        raise ConnectionError("redis down")


class TestChangeFeed:
    """변경 알림 테스트"""

    @pytest.mark.asyncio
    async def test_delivers_events_for_subscribed_room(self, feed):
        subscription = feed.subscribe("room-1")

        delivered = await feed.publish_row("votes", ChangeAction.INSERT, "room-1", {"photo_id": "p1"}, round_id="r1")
        event = await next_event(subscription)

        assert delivered == 1
        assert event.table == "votes"
        assert event.action == ChangeAction.INSERT
        assert event.round_id == "r1"
        assert event.origin == feed.instance_id
        subscription.close()

    @pytest.mark.asyncio
    async def test_other_rooms_and_tables_are_filtered(self, feed):
        subscription = feed.subscribe("room-1", tables={"rounds"}, round_id="r1")

        await feed.publish_row("rounds", ChangeAction.UPDATE, "room-2")
        await feed.publish_row("votes", ChangeAction.INSERT, "room-1")
        await feed.publish_row("rounds", ChangeAction.UPDATE, "room-1", round_id="r2")
        await feed.publish_row("rounds", ChangeAction.UPDATE, "room-1", round_id="r1")

        assert subscription.queue.qsize() == 1
        event = await next_event(subscription)
        assert event.round_id == "r1"
        subscription.close()

    @pytest.mark.asyncio
    async def test_broadcasts_ignore_table_filter(self, feed):
        subscription = feed.subscribe("room-1", tables={"votes"})

        await feed.broadcast("room-1", "spin-roulette", {"winner": "신부네", "roundId": "r1"})
        event = await next_event(subscription)

        assert event.is_broadcast
        assert event.event == "spin-roulette"
        assert event.record["winner"] == "신부네"
        subscription.close()

    @pytest.mark.asyncio
    async def test_idle_subscription_yields_poll_ticks(self, feed):
        subscription = feed.subscribe("room-1")

        first = await next_event(subscription)
        second = await next_event(subscription)

        assert first.action == ChangeAction.POLL
        assert second.action == ChangeAction.POLL
        assert first.room_id == "room-1"
        subscription.close()

    @pytest.mark.asyncio
    async def test_full_queue_drops_oldest(self, feed):
        subscription = Subscription(feed, "room-1", maxsize=2)

        for index in range(3):
            await feed.publish_row("votes", ChangeAction.INSERT, "room-1", {"n": index})

        assert subscription.dropped == 1
        assert (await next_event(subscription)).record == {"n": 1}
        assert (await next_event(subscription)).record == {"n": 2}
        subscription.close()

    @pytest.mark.asyncio
    async def test_restart_discards_backlog(self, feed):
        subscription = feed.subscribe("room-1")
        await feed.publish_row("votes", ChangeAction.INSERT, "room-1")
        await feed.publish_row("votes", ChangeAction.INSERT, "room-1")

        subscription.restart()
        assert subscription.queue.empty()
        assert feed.subscriber_count("room-1") == 1

        await feed.publish_row("rounds", ChangeAction.UPDATE, "room-1")
        assert (await next_event(subscription)).table == "rounds"
        subscription.close()

    @pytest.mark.asyncio
    async def test_closed_subscription_stops(self, feed):
        async with feed.subscribe("room-1") as subscription:
            assert feed.subscriber_count("room-1") == 1

        assert feed.subscriber_count("room-1") == 0
        with pytest.raises(StopAsyncIteration):
            await subscription.__anext__()

        assert await feed.publish_row("votes", ChangeAction.INSERT, "room-1") == 0

    @pytest.mark.asyncio
    async def test_relay_failure_still_delivers_locally(self, feed):
        relay = BrokenRelay()
        feed.redis = relay
        subscription = feed.subscribe("room-1")

        await feed.publish_row("families", ChangeAction.INSERT, "room-1")

        assert relay.attempts == 1
        assert (await next_event(subscription)).table == "families"
        subscription.close()


class TestRelayMessages:
    """인스턴스 간 중계 메시지 처리 테스트"""

    def _message(self, event: ChangeEvent) -> dict:
        return {"type": "message", "data": json.dumps(event.model_dump(mode="json"))}

    def test_foreign_events_are_dispatched(self, feed):
        subscription = feed.subscribe("room-1")
        event = ChangeEvent(table="votes", action=ChangeAction.INSERT, room_id="room-1", origin="other-instance")

        assert feed.handle_relay_message(self._message(event))
        assert subscription.queue.qsize() == 1
        subscription.close()

    def test_own_events_are_not_echoed(self, feed):
        subscription = feed.subscribe("room-1")
        event = ChangeEvent(table="votes", action=ChangeAction.INSERT, room_id="room-1", origin=feed.instance_id)

        assert not feed.handle_relay_message(self._message(event))
        assert subscription.queue.empty()
        subscription.close()

    def test_malformed_and_control_messages_are_ignored(self, feed):
        assert not feed.handle_relay_message({"type": "subscribe", "data": 1})
        assert not feed.handle_relay_message({"type": "message", "data": "not json"})
        assert not feed.handle_relay_message({"type": "message", "data": json.dumps({"action": "INSERT"})})

    @pytest.mark.asyncio
    async def test_start_relay_without_redis_stays_local(self):
        class Disconnected:
            is_connected = False

        feed = ChangeFeed(poll_interval=0.05)
        await feed.start_relay(Disconnected())

        assert feed._relay_task is None
        await feed.stop_relay()
        assert feed.redis is None
