"""
Development server runner
개발 서버 실행 스크립트
"""

import uvicorn
from photovote.core.config import settings

if __name__ == "__main__":
    # reload 와 workers 는 함께 쓸 수 없음
    if settings.DEBUG:
        uvicorn.run(
            "photovote.main:app",
            host=settings.HOST,
            port=settings.PORT,
            reload=True,
            access_log=True,
            log_level=settings.LOG_LEVEL.lower()
        )
    else:
        uvicorn.run(
            "photovote.main:app",
            host=settings.HOST,
            port=settings.PORT,
            workers=settings.WORKERS,
            access_log=True,
            log_level=settings.LOG_LEVEL.lower()
        )
