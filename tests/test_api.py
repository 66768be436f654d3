"""
HTTP API flow tests
HTTP API 흐름 테스트 - 방 생성부터 결과 갤러리까지
"""

import pytest

from photovote.schemas.family import FAMILY_LABELS


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def create_room_with_photos(client, photo_count: int = 6):
    response = await client.post("/api/v1/rooms")
    assert response.status_code == 201
    created = response.json()
    code, host = created["room"]["code"], created["token"]

    for index in range(photo_count):
        response = await client.post(
            f"/api/v1/rooms/{code}/photos",
            json={"url": f"https://photos.example.com/party/{index}.jpg"},
            headers=bearer(host)
        )
        assert response.status_code == 201

    return code, host


async def claim_all_families(client, code: str) -> dict:
    tokens = {}
    for index, label in enumerate(FAMILY_LABELS):
        response = await client.post(
            f"/api/v1/rooms/{code}/families",
            json={"label": label.value, "client_id": f"phone-{index}"}
        )
        assert response.status_code == 200
        tokens[label.value] = response.json()["token"]
    return tokens


class TestRoomEndpoints:
    """방 API 테스트"""

    @pytest.mark.asyncio
    async def test_create_and_fetch_room(self, client):
        response = await client.post("/api/v1/rooms")
        assert response.status_code == 201
        data = response.json()
        assert data["room"]["status"] == "lobby"

        response = await client.get(f"/api/v1/rooms/{data['room']['code']}")
        assert response.status_code == 200
        assert response.json()["id"] == data["room"]["id"]

    @pytest.mark.asyncio
    async def test_join_validation(self, client):
        code, _ = await create_room_with_photos(client, photo_count=0)

        response = await client.post("/api/v1/rooms/join", json={"code": ""})
        assert response.status_code == 400
        assert response.json()["detail"] == "방 코드를 입력해주세요."

        unknown = "999999" if code != "999999" else "888888"
        response = await client.post("/api/v1/rooms/join", json={"code": unknown})
        assert response.status_code == 404

        response = await client.post("/api/v1/rooms/join", json={"code": code})
        assert response.status_code == 200
        assert response.json()["room"]["code"] == code

    @pytest.mark.asyncio
    async def test_photo_upload_requires_host(self, client):
        code, host = await create_room_with_photos(client, photo_count=0)
        photo = {"url": "https://photos.example.com/party/1.jpg"}

        response = await client.post(f"/api/v1/rooms/{code}/photos", json=photo)
        assert response.status_code == 401

        families = await claim_all_families(client, code)
        response = await client.post(f"/api/v1/rooms/{code}/photos", json=photo, headers=bearer(families["신랑네"]))
        assert response.status_code == 403

        response = await client.post(
            f"/api/v1/rooms/{code}/photos", json={"url": "ftp://nowhere"}, headers=bearer(host)
        )
        assert response.status_code == 422

        response = await client.post(f"/api/v1/rooms/{code}/photos", json=photo, headers=bearer(host))
        assert response.status_code == 201
        assert response.json()["order_index"] == 0

    @pytest.mark.asyncio
    async def test_family_claim_from_other_device(self, client):
        code, _ = await create_room_with_photos(client, photo_count=0)

        response = await client.post(f"/api/v1/rooms/{code}/families", json={"label": "신부네", "client_id": "phone-1"})
        assert response.status_code == 200
        token = response.json()["token"]

        response = await client.post(f"/api/v1/rooms/{code}/families", json={"label": "신부네", "client_id": "phone-2"})
        assert response.status_code == 409

        # 새로고침 후 토큰만으로 다시 선택
        response = await client.post(f"/api/v1/rooms/{code}/families", json={"label": "신부네"}, headers=bearer(token))
        assert response.status_code == 200
        assert response.json()["client_id"] == "phone-1"

        response = await client.get("/api/v1/session", headers=bearer(token))
        assert response.status_code == 200
        session = response.json()
        assert session["room_code"] == code
        assert session["role"] == "family"
        assert session["family_label"] == "신부네"

    @pytest.mark.asyncio
    async def test_session_requires_valid_token(self, client):
        response = await client.get("/api/v1/session")
        assert response.status_code == 401

        response = await client.get("/api/v1/session", headers=bearer("garbage"))
        assert response.status_code == 401


class TestGameFlow:
    """게임 전체 흐름 테스트"""

    @pytest.mark.asyncio
    async def test_full_game_with_tie_break(self, client):
        code, host = await create_room_with_photos(client, photo_count=6)
        families = await claim_all_families(client, code)

        response = await client.post(f"/api/v1/rooms/{code}/rounds", headers=bearer(host))
        assert response.status_code == 201
        rounds = response.json()
        assert [r["round_number"] for r in rounds] == [1, 2]

        response = await client.post(f"/api/v1/rooms/{code}/rounds", headers=bearer(host))
        assert response.status_code == 409

        # 1라운드: 2:1 승리
        response = await client.post(f"/api/v1/rooms/{code}/rounds/1/start", headers=bearer(host))
        assert response.status_code == 200
        assert response.json()["status"] == "in_progress"

        a, b, c = rounds[0]["photo_ids"]
        response = await client.post(f"/api/v1/rooms/{code}/votes", json={"photo_id": a}, headers=bearer(host))
        assert response.status_code == 403

        for label, photo_id in (("신랑네", a), ("신부네", a), ("우리부부", b)):
            response = await client.post(
                f"/api/v1/rooms/{code}/votes", json={"photo_id": photo_id}, headers=bearer(families[label])
            )
            assert response.status_code == 201

        response = await client.post(
            f"/api/v1/rooms/{code}/votes", json={"photo_id": c}, headers=bearer(families["신랑네"])
        )
        assert response.status_code == 409

        response = await client.post(f"/api/v1/rooms/{code}/rounds/current/end", headers=bearer(host))
        assert response.status_code == 200
        outcome = response.json()
        assert outcome["winning_photo_id"] == a
        assert outcome["next_round_number"] == 2
        assert outcome["room"]["status"] == "lobby"

        # 2라운드: 모두 다른 사진 → 동점
        response = await client.post(f"/api/v1/rooms/{code}/rounds/next/start", headers=bearer(host))
        assert response.status_code == 200
        assert response.json()["current_round"] == 2

        picks = dict(zip(families, rounds[1]["photo_ids"]))
        for label, photo_id in picks.items():
            response = await client.post(
                f"/api/v1/rooms/{code}/votes", json={"photo_id": photo_id}, headers=bearer(families[label])
            )
            assert response.status_code == 201

        response = await client.post(f"/api/v1/rooms/{code}/rounds/current/end", headers=bearer(host))
        assert response.status_code == 200
        assert response.json()["is_tie"]

        response = await client.get(f"/api/v1/rooms/{code}/live")
        assert response.status_code == 200
        assert response.json()["phase"] == "tie"

        response = await client.post(f"/api/v1/rooms/{code}/roulette/spin", headers=bearer(host))
        assert response.status_code == 200
        spin = response.json()
        assert spin["winner"] in picks

        response = await client.get(f"/api/v1/rooms/{code}/live")
        assert response.json()["roulette"]["winner"] == spin["winner"]

        response = await client.post(f"/api/v1/rooms/{code}/roulette/commit", headers=bearer(host))
        assert response.status_code == 200
        outcome = response.json()
        assert outcome["winning_photo_id"] == picks[spin["winner"]]
        assert outcome["finished"]
        assert outcome["room"]["status"] == "finished"

        response = await client.get(f"/api/v1/rooms/{code}/results")
        assert response.status_code == 200
        gallery = response.json()
        assert [w["round_number"] for w in gallery["winners"]] == [1, 2]
        assert [w["photo"]["id"] for w in gallery["winners"]] == [a, picks[spin["winner"]]]

        response = await client.get(f"/api/v1/rooms/{code}/live")
        assert response.json()["phase"] == "finished"

    @pytest.mark.asyncio
    async def test_round_controls_are_host_only(self, client):
        code, _ = await create_room_with_photos(client, photo_count=3)
        families = await claim_all_families(client, code)

        response = await client.post(f"/api/v1/rooms/{code}/rounds", headers=bearer(families["우리부부"]))
        assert response.status_code == 403

        other_code, other_host = await create_room_with_photos(client, photo_count=0)
        response = await client.post(f"/api/v1/rooms/{code}/rounds", headers=bearer(other_host))
        assert response.status_code == 403
