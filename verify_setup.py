#!/usr/bin/env python3
"""
Setup verification script
인프라 설정 확인 스크립트
"""

import asyncio
import sys
from photovote.core.config import settings
from photovote.core.database import init_db, close_db
from photovote.core.redis_client import init_redis, close_redis, redis_manager


async def verify_setup():
    """Check database, Redis and the FastAPI app"""
    print("🚀 사진 투표 서비스 설정 확인...")
    print(f"Environment: {settings.ENVIRONMENT}")
    print(f"Database URL: {settings.DATABASE_URL}")
    print(f"Redis URL: {settings.REDIS_URL}")

    success = True

    try:
        print("\n📊 데이터베이스 연결 확인...")
        await init_db()
        print("✅ 데이터베이스 연결 성공 (테이블 생성 완료)")
        await close_db()
    except Exception as e:
        print(f"❌ 데이터베이스 연결 실패: {e}")
        print("   MySQL 이 실행 중인지, DATABASE_URL 의 데이터베이스가 있는지 확인하세요")
        success = False

    try:
        print("\n🔄 Redis 연결 확인...")
        await init_redis()
        if redis_manager.is_connected:
            print("✅ Redis 연결 성공")
        else:
            print("⚠️  Redis 없음 - 실시간 알림은 이 프로세스 안에서만 전달됩니다")
        await close_redis()
    except Exception as e:
        print(f"⚠️  Redis 연결 실패 (개발 환경에서는 선택): {e}")

    try:
        print("\n🌐 FastAPI 앱 확인...")
        from photovote.main import app
        assert app is not None
        print("✅ FastAPI 앱 생성 성공")
    except Exception as e:
        print(f"❌ FastAPI 앱 생성 실패: {e}")
        success = False

    print("\n" + "=" * 50)
    if success:
        print("🎉 설정 확인 완료!")
        print("\n개발 서버 실행:")
        print("python run.py")
        print("\n테스트 실행:")
        print("pytest tests/")
        return 0

    print("💥 설정 확인 실패 - 설정과 의존성을 확인하세요")
    return 1


if __name__ == "__main__":
    exit_code = asyncio.run(verify_setup())
    sys.exit(exit_code)
