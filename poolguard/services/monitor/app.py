"""Pool Monitor 서비스 — GET /health 로 PgBouncer 헬스 판정 노출.

pgbouncer-monitor 컨테이너의 헬스 서버를 대체.
판정 결과(healthy/degraded/unhealthy)와 무관하게 200, 체크 자체가 불가능할 때만 500.

실행:
    poolguard serve
    uvicorn poolguard.services.monitor.app:create_monitor_app --factory
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request

from poolguard.domain.config import AppConfig, load_config, validate_config
from poolguard.domain.health import HealthReport

from ..base import create_app
from .checker import PoolHealthMonitor

logger = logging.getLogger(__name__)

SERVICE_NAME = "pool-monitor"


def create_monitor_app(
    config: AppConfig | None = None,
    *,
    monitor: PoolHealthMonitor | None = None,
) -> FastAPI:
    """헬스 서버 앱 생성.

    config 가 없으면 기동 시 환경 변수에서 로드. 설정 오류(ConfigError)면 기동 실패.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        cfg = validate_config(config) if config is not None else load_config()
        app.state.config = cfg
        app.state.monitor = monitor or PoolHealthMonitor(cfg)
        logger.info(
            "Monitoring PgBouncer at %s:%s (utilization > %.0f%%, backup > %.0fh)",
            cfg.pgbouncer.host,
            cfg.pgbouncer.port,
            cfg.health.utilization_threshold * 100,
            cfg.backup.max_age_hours,
        )
        yield

    app = create_app(SERVICE_NAME, version="1.0.0", lifespan=lifespan)

    @app.get("/health")
    async def health(checker: PoolHealthMonitor = Depends(get_monitor)) -> HealthReport:
        """PgBouncer 풀 + 백업 헬스 판정."""
        verdict = await checker.check_health()
        return HealthReport.from_verdict(verdict)

    return app


def get_monitor(request: Request) -> PoolHealthMonitor:
    """요청 스코프 의존성 — lifespan 에서 만든 체커."""
    return request.app.state.monitor
