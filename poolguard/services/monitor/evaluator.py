"""임계값 평가 — 순수 함수 (I/O 없음).

판정 순서 (reasons 순서와 동일):
  1. admin 조회 실패 (unhealthy)
  2. 풀별 서버 커넥션 사용률 > utilization_threshold (degraded)
  3. 전체 클라이언트 수 > max_client_conn * client_conn_warn_ratio (degraded)
  4. 전체 서버 커넥션 수 > max_db_connections * server_conn_warn_ratio (degraded)
  5. 풀별 maxwait > max_wait_threshold_ms (degraded)
  6. pgbackrest 실패 / 타임스탬프 없음 / 백업 경과 시간 > max_age_hours (degraded)
  7. 백업 저장소 사용률 > repo_usage_warn_ratio (degraded), > repo_usage_critical_ratio (unhealthy)
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from poolguard.domain.config import AppConfig
from poolguard.domain.enums import HealthState
from poolguard.domain.health import HealthVerdict
from poolguard.domain.pool import PoolSnapshot, StatsSnapshot

STALE_BACKUP = "stale backup"
NO_BACKUP_TIMESTAMP = "no backup timestamp found"
BACKUP_SERVICE_FAILED = "pgBackRest service check failed"
CHECK_TIMED_OUT = "health check timed out"


@dataclass(frozen=True)
class Finding:
    """판정 근거 하나."""

    state: HealthState
    reason: str


@dataclass
class PoolReading:
    """admin 조회 결과 묶음. error 가 있으면 풀 데이터는 비어 있음."""

    pools: list[PoolSnapshot] = field(default_factory=list)
    stats: list[StatsSnapshot] = field(default_factory=list)
    database_count: int = 0
    error: Optional[str] = None


@dataclass
class BackupReading:
    """백업 상태 조회 결과. error 는 pgbackrest 실행 실패."""

    last_backup_at: Optional[datetime] = None
    error: Optional[str] = None
    repository_usage: Optional[float] = None


def evaluate_pools(pools: list[PoolSnapshot], config: AppConfig) -> list[Finding]:
    """풀 사용률 / 커넥션 수 / 대기 시간 평가."""
    health = config.health
    findings = []

    for pool in pools:
        if pool.utilization > health.utilization_threshold:
            findings.append(
                Finding(
                    HealthState.DEGRADED,
                    f"pool {pool.label} utilization {pool.utilization:.0%} "
                    f"exceeds {health.utilization_threshold:.0%}",
                )
            )

    clients = sum(p.total_clients for p in pools)
    if clients > config.pgbouncer.max_client_conn * health.client_conn_warn_ratio:
        findings.append(Finding(HealthState.DEGRADED, f"High client connection count: {clients}"))

    servers = sum(p.total_servers for p in pools)
    if servers > config.pgbouncer.max_db_connections * health.server_conn_warn_ratio:
        findings.append(Finding(HealthState.DEGRADED, f"High server connection count: {servers}"))

    for pool in pools:
        if pool.max_wait_ms > health.max_wait_threshold_ms:
            findings.append(
                Finding(
                    HealthState.DEGRADED,
                    f"pool {pool.label} max wait {pool.max_wait_ms}ms exceeds {health.max_wait_threshold_ms}ms",
                )
            )
    return findings


def backup_age_hours(last_backup_at: Optional[datetime], now: datetime) -> Optional[float]:
    """마지막 백업 경과 시간 (반올림하지 않음, 판정은 이 값으로)."""
    if last_backup_at is None:
        return None
    return (now - last_backup_at).total_seconds() / 3600


def evaluate_backup(age_hours: Optional[float], config: AppConfig, *, error: Optional[str] = None) -> list[Finding]:
    """백업 신선도 평가. 백업 체크 비활성이면 항상 빈 리스트.

    pgbackrest 자체가 실패(error)하면 타임스탬프 판정 대신 그 실패를 보고.
    """
    if not config.backup.enabled:
        return []
    if error:
        return [Finding(HealthState.DEGRADED, f"{BACKUP_SERVICE_FAILED}: {error}")]
    if age_hours is None:
        return [Finding(HealthState.DEGRADED, NO_BACKUP_TIMESTAMP)]
    if age_hours > config.backup.max_age_hours:
        return [Finding(HealthState.DEGRADED, STALE_BACKUP)]
    return []


def evaluate_repository(usage: Optional[float], config: AppConfig) -> list[Finding]:
    """백업 저장소 디스크 사용률. critical 초과 unhealthy, warn 초과 degraded."""
    if usage is None:
        return []
    backup = config.backup
    if usage > backup.repo_usage_critical_ratio:
        state = HealthState.UNHEALTHY
    elif usage > backup.repo_usage_warn_ratio:
        state = HealthState.DEGRADED
    else:
        return []
    return [Finding(state, f"Backup repository usage is {usage:.0%}")]


def build_verdict(
    reading: PoolReading,
    *,
    backup: BackupReading,
    config: AppConfig,
    now: datetime,
) -> HealthVerdict:
    """조회 결과 + 백업 상태 → HealthVerdict."""
    findings: list[Finding] = []
    if reading.error:
        findings.append(Finding(HealthState.UNHEALTHY, reading.error))
    findings.extend(evaluate_pools(reading.pools, config))

    age = backup_age_hours(backup.last_backup_at, now)
    findings.extend(evaluate_backup(age, config, error=backup.error))
    findings.extend(evaluate_repository(backup.repository_usage, config))

    status = HealthState.HEALTHY
    for finding in findings:
        status = status.worst(finding.state)

    return HealthVerdict(
        status=status,
        reasons=[f.reason for f in findings],
        last_backup_age_hours=round(age, 2) if age is not None else None,
        backup_repository_usage=backup.repository_usage,
        pool_snapshots=reading.pools,
        stats=reading.stats,
        database_count=reading.database_count,
        timestamp=now,
    )


def timed_out_verdict(now: datetime) -> HealthVerdict:
    """outer timeout 초과 시 판정."""
    return HealthVerdict(status=HealthState.UNHEALTHY, reasons=[CHECK_TIMED_OUT], timestamp=now)
