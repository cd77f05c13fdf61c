"""PoolHealthMonitor — PgBouncer 풀 상태 + 백업 신선도 헬스 체크.

체크 1회 흐름:
  AdminClient (새 커넥션) → SHOW POOLS / SHOW STATS / SHOW DATABASES → 종료
  → strict parser → 백업 시각 + 저장소 사용률 조회 → evaluator → HealthVerdict

이전 체크 결과를 저장하지 않음. 동시 호출 시 각자 커넥션을 가짐.
전체 체크는 check_timeout_seconds 안에 끝나며, 초과 시 unhealthy.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Optional

from poolguard.domain.config import AppConfig, PgBouncerConfig
from poolguard.domain.errors import AdminConnectionError, BackupSourceError, CheckTimeoutError, ParseError
from poolguard.domain.health import HealthVerdict
from poolguard.infra.backup import BackupSource, create_backup_source, repository_usage
from poolguard.infra.pgbouncer import (
    SHOW_DATABASES,
    SHOW_POOLS,
    SHOW_STATS,
    AdminClient,
    parse_databases,
    parse_pools,
    parse_stats,
    unwrap,
)

from .evaluator import BackupReading, PoolReading, build_verdict, timed_out_verdict

logger = logging.getLogger(__name__)

_BACKUP_GRACE_SECONDS = 1.0


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PoolHealthMonitor:
    """PgBouncer 헬스 체커.

    Args:
        config: 전체 설정 (주입, 전역 캐시 미사용)
        admin_factory: PgBouncerConfig → AdminClient (테스트에서 교체)
        backup_source: 마지막 백업 시각 조회 (기본: 설정의 BACKUP_SOURCE)
        clock: 현재 시각 (UTC aware)

    Usage:
        monitor = PoolHealthMonitor(get_config())
        verdict = await monitor.check_health()
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        admin_factory: Callable[[PgBouncerConfig], AdminClient] = AdminClient,
        backup_source: BackupSource | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._config = config
        self._admin_factory = admin_factory
        self._backup_source = backup_source or create_backup_source(config.backup)
        self._clock = clock

    async def check_health(self) -> HealthVerdict:
        """헬스 판정. 예외를 밖으로 던지지 않고 reasons 에 기록."""
        timeout = self._config.health.check_timeout_seconds
        try:
            verdict = await asyncio.wait_for(self._check(), timeout=timeout)
        except TimeoutError:
            logger.error("Health check timed out after %.1fs", timeout)
            return timed_out_verdict(self._clock())

        if verdict.is_healthy:
            logger.debug("Health check: healthy (%d pools)", len(verdict.pool_snapshots))
        else:
            logger.warning("Health check: %s (%s)", verdict.status, "; ".join(verdict.reasons))
        return verdict

    async def _check(self) -> HealthVerdict:
        captured_at = self._clock()
        reading, backup = await asyncio.gather(
            self._read_pools(captured_at),
            self._read_backup(),
        )
        return build_verdict(
            reading,
            backup=backup,
            config=self._config,
            now=self._clock(),
        )

    async def _read_pools(self, captured_at: datetime) -> PoolReading:
        cfg = self._config.pgbouncer
        client = self._admin_factory(cfg)
        try:
            tables = await client.fetch(SHOW_POOLS, SHOW_STATS, SHOW_DATABASES)
            pools = unwrap(
                parse_pools(
                    tables[SHOW_POOLS],
                    captured_at=captured_at,
                    max_client_conn=cfg.max_client_conn,
                    max_db_connections=cfg.max_db_connections,
                ),
                SHOW_POOLS,
            )
            stats = unwrap(parse_stats(tables[SHOW_STATS]), SHOW_STATS)
            databases = unwrap(parse_databases(tables[SHOW_DATABASES]), SHOW_DATABASES)
        except AdminConnectionError as e:
            return PoolReading(error=f"pgbouncer admin unreachable: {e}")
        except ParseError as e:
            logger.error("Unrecognized PgBouncer admin output: %s", e)
            return PoolReading(error=f"admin output unrecognized: {e}")
        except CheckTimeoutError as e:
            return PoolReading(error=str(e))

        return PoolReading(pools=pools, stats=stats, database_count=len(databases))

    async def _read_backup(self) -> BackupReading:
        if not self._config.backup.enabled:
            return BackupReading()
        reading, usage = await asyncio.gather(self._read_last_backup(), self._read_repository_usage())
        reading.repository_usage = usage
        return reading

    async def _read_last_backup(self) -> BackupReading:
        # 소스 자체 timeout (pgbackrest kill) 이 먼저 동작하도록 여유를 둠
        timeout = self._config.backup.timeout_seconds + _BACKUP_GRACE_SECONDS
        try:
            last_backup_at = await asyncio.wait_for(self._backup_source.last_backup_at(), timeout=timeout)
        except TimeoutError:
            logger.warning("Backup timestamp lookup timed out after %.1fs", timeout)
            return BackupReading()
        except BackupSourceError as e:
            logger.warning("Backup source failed: %s", e)
            return BackupReading(error=str(e))
        return BackupReading(last_backup_at=last_backup_at)

    async def _read_repository_usage(self) -> Optional[float]:
        path = self._config.backup.repo_path
        if not path:
            return None
        return await repository_usage(path)
