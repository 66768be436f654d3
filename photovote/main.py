"""
FastAPI main application entry point
결혼식 사진 투표 게임 메인 애플리케이션
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler

from photovote.core.config import settings
from photovote.core.database import init_db, close_db
from photovote.core.redis_client import init_redis, close_redis, redis_manager
from photovote.api.v1.api import api_router
from photovote.middleware.request_logging import LoggingMiddleware
from photovote.services.background_tasks import start_background_tasks, stop_background_tasks
from photovote.websocket.change_feed import change_feed
import logging
import os

# Configure logging - 콘솔 + 파일
log_level = getattr(logging, settings.LOG_LEVEL.upper())
log_format = settings.LOG_FORMAT

log_dir = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'logs')
os.makedirs(log_dir, exist_ok=True)
log_file = os.path.join(log_dir, 'app.log')

logging.basicConfig(
    level=log_level,
    format=log_format,
    handlers=[
        logging.StreamHandler(),
        RotatingFileHandler(
            log_file,
            maxBytes=settings.LOG_MAX_SIZE,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding='utf-8'
        )
    ]
)
logger = logging.getLogger(__name__)

# SQLAlchemy / httpx 로그 줄이기
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting wedding photo vote service...")

    try:
        await init_db()
        await init_redis()

        # 다른 인스턴스의 변경 알림 중계 (Redis 없으면 프로세스 내부만)
        await change_feed.start_relay(redis_manager)

        await start_background_tasks()

        logger.info("Application startup completed")

    except Exception as e:
        logger.error(f"Failed to start application: {e}")
        raise

    yield

    logger.info("Shutting down application...")

    try:
        await stop_background_tasks()
        await change_feed.stop_relay()
        await close_redis()
        await close_db()

        logger.info("Application shutdown completed")

    except Exception as e:
        logger.error(f"Error during shutdown: {e}")


app = FastAPI(
    title="우리 결혼 사진 투표",
    description="Wedding photo vote - 세 가족이 라운드마다 사진을 골라 최고의 사진을 뽑는 게임",
    version="1.0.0",
    lifespan=lifespan,
    # 307 리다이렉트로 Authorization 헤더가 빠지지 않도록
    redirect_slashes=False
)

app.add_middleware(LoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    return {
        "message": "우리 결혼 사진 투표 API",
        "status": "running",
        "version": "1.0.0"
    }


@app.get("/health")
async def health_check():
    """Overall health: database and Redis"""
    from photovote.core.database import health_check as db_health_check
    from photovote.core.redis_client import redis_health_check

    try:
        database = await db_health_check()
        redis_status = await redis_health_check()

        overall = "healthy" if database.get("status") == "healthy" else "unhealthy"

        return {
            "status": overall,
            "version": "1.0.0",
            "environment": settings.ENVIRONMENT,
            "database": database,
            "redis": redis_status,
            "health_checks": {
                "database": database.get("status", "unknown"),
                "redis": redis_status.get("status", "unknown")
            }
        }

    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return {
            "status": "error",
            "version": "1.0.0",
            "error": str(e)
        }
