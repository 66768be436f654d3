"""
Infrastructure tests
기본 구성 테스트
"""

import pytest
from photovote.core.config import settings


class TestInfrastructure:
    """Test basic infrastructure setup"""

    def test_app_creation(self):
        """Test that FastAPI app is created successfully"""
        from photovote.main import app
        assert app is not None
        assert "사진 투표" in app.title
        assert app.version == "1.0.0"

    def test_settings_loaded(self):
        """Test that settings are loaded correctly"""
        assert settings is not None
        assert settings.ENVIRONMENT is not None
        assert settings.DATABASE_URL is not None
        assert settings.REDIS_URL is not None
        assert settings.ROULETTE_SPIN_DURATION_MS == 4000
        assert settings.ROULETTE_REVEAL_DELAY_MS == 2000

    @pytest.mark.asyncio
    async def test_root_endpoint(self):
        """Test root endpoint"""
        from httpx import AsyncClient, ASGITransport
        from photovote.main import app

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/")
            assert response.status_code == 200
            data = response.json()
            assert "사진 투표" in data["message"]
            assert data["status"] == "running"

    @pytest.mark.asyncio
    async def test_api_health_endpoint(self):
        """Test API v1 health endpoint"""
        from httpx import AsyncClient, ASGITransport
        from photovote.main import app

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/v1/health")
            assert response.status_code == 200
            data = response.json()
            assert data["status"] == "healthy"
            assert data["version"] == "1.0.0"
            assert data["websocket_connections"] >= 0
            assert data["active_rooms"] >= 0

    @pytest.mark.asyncio
    async def test_redis_is_optional(self):
        """Without a Redis connection the health check reports it as disabled"""
        from httpx import AsyncClient, ASGITransport
        from photovote.main import app

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/v1/health/redis")
            assert response.status_code == 200
            assert response.json()["status"] == "disabled"
