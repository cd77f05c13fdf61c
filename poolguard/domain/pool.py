"""PgBouncer 풀 상태 모델 — SHOW POOLS / SHOW STATS / SHOW DATABASES 한 행씩."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .types import Count


class PoolSnapshot(BaseModel):
    """풀 하나(database/user 쌍)의 커넥션 상태.

    - active_clients: cl_active (서버에 링크됐거나 유휴인 클라이언트)
    - idle_clients: cl_waiting (서버 커넥션을 기다리는 클라이언트)
    - active_servers: sv_active
    - idle_servers: sv_idle + sv_used
    """

    model_config = ConfigDict(frozen=True)

    database_name: str
    user: str
    active_clients: Count
    idle_clients: Count
    active_servers: Count
    idle_servers: Count
    max_wait_ms: Count
    pool_mode: Optional[str] = None
    timestamp: datetime

    @property
    def total_clients(self) -> int:
        return self.active_clients + self.idle_clients

    @property
    def total_servers(self) -> int:
        return self.active_servers + self.idle_servers

    @property
    def utilization(self) -> float:
        """서버 커넥션 사용률. 서버 커넥션이 없으면 0."""
        if self.total_servers == 0:
            return 0.0
        return self.active_servers / self.total_servers

    @property
    def label(self) -> str:
        return f"{self.database_name}/{self.user}"


class StatsSnapshot(BaseModel):
    """데이터베이스별 누적 통계 (SHOW STATS)."""

    model_config = ConfigDict(frozen=True)

    database_name: str
    total_xact_count: Count
    total_query_count: Count
    avg_xact_time_us: Count = 0
    avg_query_time_us: Count = 0
    avg_wait_time_us: Count = 0


class DatabaseEntry(BaseModel):
    """PgBouncer에 설정된 논리 데이터베이스 (SHOW DATABASES)."""

    model_config = ConfigDict(frozen=True)

    name: str
    host: Optional[str] = None
    port: Optional[int] = None
    database: str
    pool_size: Count = 0
    current_connections: Count = 0
