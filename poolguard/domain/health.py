"""헬스 체크 모델.

HealthVerdict: 체크 1회의 판정 결과 (매 호출마다 새로 계산, 저장하지 않음).
HealthReport: HTTP/CLI로 내보내는 JSON 형태.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .enums import HealthState
from .pool import PoolSnapshot, StatsSnapshot
from .types import Ratio


class HealthVerdict(BaseModel):
    """헬스 판정."""

    status: HealthState
    reasons: list[str] = Field(default_factory=list)  # 발견 순서 유지
    last_backup_age_hours: Optional[float] = None
    backup_repository_usage: Optional[Ratio] = None
    pool_snapshots: list[PoolSnapshot] = Field(default_factory=list)
    stats: list[StatsSnapshot] = Field(default_factory=list)
    database_count: int = 0
    timestamp: datetime

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthState.HEALTHY

    @property
    def total_clients(self) -> int:
        return sum(p.total_clients for p in self.pool_snapshots)

    @property
    def total_servers(self) -> int:
        return sum(p.total_servers for p in self.pool_snapshots)


class PoolDetail(BaseModel):
    """풀별 요약 (HealthReport.pool_details 항목)."""

    database: str
    user: str
    active_clients: int
    idle_clients: int
    active_servers: int
    idle_servers: int
    max_wait_ms: int
    utilization: Ratio


class HealthReport(BaseModel):
    """GET /health 응답 본문."""

    status: HealthState
    timestamp: datetime
    pools: int
    clients: int
    servers: int
    databases: int
    messages: list[str]
    last_backup_age_hours: Optional[float] = None
    backup_repository_usage: Optional[Ratio] = None
    pool_details: list[PoolDetail] = Field(default_factory=list)

    @classmethod
    def from_verdict(cls, verdict: HealthVerdict) -> "HealthReport":
        return cls(
            status=verdict.status,
            timestamp=verdict.timestamp,
            pools=len(verdict.pool_snapshots),
            clients=verdict.total_clients,
            servers=verdict.total_servers,
            databases=verdict.database_count,
            messages=list(verdict.reasons),
            last_backup_age_hours=verdict.last_backup_age_hours,
            backup_repository_usage=(
                round(verdict.backup_repository_usage, 4) if verdict.backup_repository_usage is not None else None
            ),
            pool_details=[
                PoolDetail(
                    database=p.database_name,
                    user=p.user,
                    active_clients=p.active_clients,
                    idle_clients=p.idle_clients,
                    active_servers=p.active_servers,
                    idle_servers=p.idle_servers,
                    max_wait_ms=p.max_wait_ms,
                    utilization=round(p.utilization, 4),
                )
                for p in verdict.pool_snapshots
            ],
        )
