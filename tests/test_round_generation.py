"""
Room, photo and round generation tests
방/사진/라운드 생성 테스트
"""

import pytest
from fastapi import HTTPException

from photovote.schemas.family import FamilyLabel
from photovote.schemas.room import RoomStatus
from photovote.services.room import RoomService
from photovote.services.rounds import RoundService


class TestRoomService:
    """방 서비스 테스트"""

    @pytest.mark.asyncio
    async def test_create_room_starts_in_lobby(self, db_session, feed, rng):
        created = await RoomService(db_session, feed, rng=rng).create_room()

        assert created.room.status == RoomStatus.LOBBY
        assert created.room.current_round is None
        assert created.room.code.isdigit()
        assert 4 <= len(created.room.code) <= 6
        assert created.token

    @pytest.mark.asyncio
    async def test_join_requires_code(self, db_session, feed):
        with pytest.raises(HTTPException) as exc_info:
            await RoomService(db_session, feed).join_room("  ")

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "방 코드를 입력해주세요."

    @pytest.mark.asyncio
    async def test_join_unknown_room(self, db_session, feed, room_factory):
        room = await room_factory()
        unknown = "999999" if room.code != "999999" else "888888"

        with pytest.raises(HTTPException) as exc_info:
            await RoomService(db_session, feed).join_room(unknown)

        assert exc_info.value.status_code == 404
        assert exc_info.value.detail == "방을 찾을 수 없습니다."

    @pytest.mark.asyncio
    async def test_join_existing_room(self, db_session, feed, room_factory):
        room = await room_factory()
        response = await RoomService(db_session, feed).join_room(room.code)

        assert response.success
        assert response.room.id == room.id

    @pytest.mark.asyncio
    async def test_photos_keep_insertion_order(self, db_session, feed, room_factory):
        room = await room_factory(photo_count=4)
        photos = await RoomService(db_session, feed).list_photos(room.id)

        assert [p.order_index for p in photos] == [0, 1, 2, 3]
        assert photos[2].url.endswith("/2.jpg")

    @pytest.mark.asyncio
    async def test_photo_cap(self, db_session, feed, room_factory):
        room = await room_factory(photo_count=30)

        with pytest.raises(HTTPException) as exc_info:
            await RoomService(db_session, feed).add_photo(room, "https://photos.example.com/extra.jpg")

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "사진은 최대 30장까지 등록할 수 있습니다."

    @pytest.mark.asyncio
    async def test_concurrent_upload_to_same_slot_conflicts(self, db_session, feed, room_factory):
        room = await room_factory(photo_count=2)
        room_id = room.id
        service = RoomService(db_session, feed)

        # 다른 요청이 읽은 뒤 먼저 저장한 상황: 오래된 사진 수로 같은 순번을 잡음
        async def stale_count(_room_id):
            return 1
        service.count_photos = stale_count

        with pytest.raises(HTTPException) as exc_info:
            await service.add_photo(room, "https://photos.example.com/late.jpg")

        assert exc_info.value.status_code == 409
        photos = await RoomService(db_session, feed).list_photos(room_id)
        assert [p.order_index for p in photos] == [0, 1]

    @pytest.mark.asyncio
    async def test_claim_family_conflict_from_other_device(self, db_session, feed, room_factory):
        room = await room_factory()
        service = RoomService(db_session, feed)

        first = await service.claim_family(room, FamilyLabel.BRIDE, client_id="phone-1")
        again = await service.claim_family(room, FamilyLabel.BRIDE, client_id="phone-1")
        assert again.family.id == first.family.id

        with pytest.raises(HTTPException) as exc_info:
            await service.claim_family(room, FamilyLabel.BRIDE, client_id="phone-2")

        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == "이미 다른 기기에서 선택한 가족입니다."

        # 다른 라벨은 선택 가능
        other = await service.claim_family(room, FamilyLabel.GROOM, client_id="phone-2")
        assert other.family.label == FamilyLabel.GROOM
        assert len(await service.list_families(room.id)) == 2

    @pytest.mark.asyncio
    async def test_claim_family_issues_client_id(self, db_session, feed, room_factory):
        room = await room_factory()
        claimed = await RoomService(db_session, feed).claim_family(room, FamilyLabel.COUPLE)

        assert claimed.client_id
        assert claimed.family.device_id == claimed.client_id


class TestRoundGeneration:
    """라운드 생성 테스트"""

    @pytest.mark.asyncio
    async def test_seven_photos_make_two_rounds(self, db_session, feed, rng, room_factory):
        room = await room_factory(photo_count=7)
        rounds = await RoundService(db_session, feed, rng=rng).generate_rounds(room)

        assert [r.round_number for r in rounds] == [1, 2]
        assert all(len(r.photo_ids) == 3 and len(set(r.photo_ids)) == 3 for r in rounds)

        photo_ids = {p.id for p in await RoomService(db_session, feed).list_photos(room.id)}
        used = [pid for r in rounds for pid in r.photo_ids]
        assert len(used) == len(set(used)) == 6
        assert set(used) <= photo_ids
        assert all(r.winning_photo_id is None and r.tie_photos is None for r in rounds)

    @pytest.mark.asyncio
    async def test_nine_photos_use_every_photo(self, db_session, feed, rng, room_factory):
        room = await room_factory(photo_count=9)
        rounds = await RoundService(db_session, feed, rng=rng).generate_rounds(room)

        photo_ids = {p.id for p in await RoomService(db_session, feed).list_photos(room.id)}
        assert len(rounds) == 3
        assert sorted(pid for r in rounds for pid in r.photo_ids) == sorted(photo_ids)

    @pytest.mark.asyncio
    async def test_not_enough_photos(self, db_session, feed, room_factory):
        room = await room_factory(photo_count=2)

        with pytest.raises(HTTPException) as exc_info:
            await RoundService(db_session, feed).generate_rounds(room)

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "최소 3장의 사진이 필요합니다."

    @pytest.mark.asyncio
    async def test_rounds_generated_only_once(self, db_session, feed, room_factory):
        room = await room_factory(photo_count=3)
        service = RoundService(db_session, feed)
        await service.generate_rounds(room)

        with pytest.raises(HTTPException) as exc_info:
            await service.generate_rounds(room)
        assert exc_info.value.status_code == 409

        with pytest.raises(HTTPException) as exc_info:
            await RoomService(db_session, feed).add_photo(room, "https://photos.example.com/late.jpg")
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_generation_publishes_one_event_per_round(self, db_session, feed, room_factory):
        room = await room_factory(photo_count=6)
        subscription = feed.subscribe(room.id, tables={"rounds"})

        await RoundService(db_session, feed).generate_rounds(room)

        assert subscription.queue.qsize() == 2
        subscription.close()
