"""FastAPI 앱 팩토리 — 서비스 공통 패턴.

Usage:
    from poolguard.services.base import create_app

    app = create_app("pool-monitor", version="1.0.0")
"""

import logging
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from poolguard.domain.errors import PoolGuardError

logger = logging.getLogger(__name__)


def create_app(
    service_name: str,
    *,
    version: str = "1.0.0",
    lifespan: Callable | None = None,
) -> FastAPI:
    """FastAPI 앱 팩토리 — liveness 엔드포인트 + 에러 핸들러.

    Args:
        service_name: 서비스 식별자 (예: "pool-monitor")
        version: 서비스 버전
        lifespan: 커스텀 lifespan context manager (startup/shutdown)
    """

    @asynccontextmanager
    async def wrapped_lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.started_at = time.monotonic()
        logger.info("[%s] Starting v%s", service_name, version)
        if lifespan:
            async with lifespan(app):
                yield
        else:
            yield
        logger.info("[%s] Shutting down", service_name)

    app = FastAPI(
        title=f"poolguard {service_name}",
        version=version,
        lifespan=wrapped_lifespan,
    )

    # --- Error Handlers ---
    # 체크를 끝내지 못한 경우에만 5xx (판정 결과는 항상 200)

    @app.exception_handler(PoolGuardError)
    async def poolguard_error_handler(request: Request, exc: PoolGuardError) -> JSONResponse:
        logger.error("[%s] %s failed: %s", service_name, request.url.path, exc)
        return JSONResponse(
            status_code=500,
            content={"detail": str(exc), "message": "Health check could not complete"},
        )

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("[%s] Unhandled error on %s", service_name, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": str(exc)[:200], "message": "Internal error"},
        )

    # --- Liveness ---

    @app.get("/health/live")
    async def live() -> dict:
        started = getattr(app.state, "started_at", None)
        uptime = time.monotonic() - started if started is not None else 0.0
        return {"status": "ok", "service": service_name, "version": version, "uptime_seconds": round(uptime, 1)}

    return app
