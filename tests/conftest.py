"""공통 fixture — 설정, 가짜 admin 클라이언트, admin 표 생성기."""

import asyncio
from datetime import UTC, datetime

import pytest

from poolguard.domain.config import AppConfig, BackupConfig, HealthConfig, PgBouncerConfig
from poolguard.infra.pgbouncer import SHOW_DATABASES, SHOW_POOLS, SHOW_STATS, AdminTable

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)

POOL_COLUMNS = (
    "database",
    "user",
    "cl_active",
    "cl_waiting",
    "sv_active",
    "sv_idle",
    "sv_used",
    "maxwait",
    "maxwait_us",
    "pool_mode",
)


@pytest.fixture(autouse=True)
def _clear_config_cache():
    from poolguard.domain.config import get_config

    get_config.cache_clear()
    yield
    get_config.cache_clear()


def make_config(**overrides) -> AppConfig:
    """빠른 재시도 + 백업 비활성 (저장소 사용률 체크 없음) 기본값의 테스트 설정."""
    pgbouncer = {"retry_backoff_seconds": 0.01, "retry_backoff_max_seconds": 0.02}
    pgbouncer.update(overrides.pop("pgbouncer", {}))
    backup = {"source": "none", "repo_path": ""}
    backup.update(overrides.pop("backup", {}))
    health = overrides.pop("health", {})
    return AppConfig(
        pgbouncer=PgBouncerConfig(**pgbouncer),
        backup=BackupConfig(**backup),
        health=HealthConfig(**health),
        **overrides,
    )


def pool_row(**overrides) -> tuple:
    defaults = {
        "database": "sav3",
        "user": "sav3_app",
        "cl_active": 10,
        "cl_waiting": 0,
        "sv_active": 0,
        "sv_idle": 5,
        "sv_used": 0,
        "maxwait": 0,
        "maxwait_us": 0,
        "pool_mode": "transaction",
    }
    defaults.update(overrides)
    return tuple(defaults[c] for c in POOL_COLUMNS)


def pools_table(*rows: tuple) -> AdminTable:
    return AdminTable(columns=POOL_COLUMNS, rows=rows or (pool_row(),))


def stats_table() -> AdminTable:
    return AdminTable(
        columns=("database", "total_xact_count", "total_query_count", "avg_xact_time", "avg_query_time", "avg_wait_time"),
        rows=(("sav3", 1200, 3400, 210, 55, 0),),
    )


def databases_table() -> AdminTable:
    return AdminTable(
        columns=("name", "host", "port", "database", "pool_size", "current_connections"),
        rows=(
            ("pgbouncer", None, 6432, "pgbouncer", 2, 0),
            ("sav3", "postgres", 5432, "sav3", 25, 5),
        ),
    )


class FakeAdminClient:
    """AdminClient 대역. error 가 있으면 fetch 에서 그대로 raise."""

    def __init__(self, tables: dict[str, AdminTable] | None = None, error: Exception | None = None, delay: float = 0):
        self.tables = tables
        self.error = error
        self.delay = delay
        self.fetch_calls = 0

    async def fetch(self, *commands: str) -> dict[str, AdminTable]:
        self.fetch_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        tables = self.tables or {
            SHOW_POOLS: pools_table(),
            SHOW_STATS: stats_table(),
            SHOW_DATABASES: databases_table(),
        }
        return {c: tables[c] for c in commands}


def admin_factory(**kwargs):
    """PgBouncerConfig → FakeAdminClient. 생성된 인스턴스는 factory.created 에 기록."""
    created: list[FakeAdminClient] = []

    def factory(config):
        client = FakeAdminClient(**kwargs)
        created.append(client)
        return client

    factory.created = created
    return factory


class FixedBackupSource:
    def __init__(self, at: datetime | None):
        self.at = at
        self.calls = 0

    async def last_backup_at(self):
        self.calls += 1
        return self.at


# --- fixtures ---


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def config_factory():
    return make_config


@pytest.fixture
def fake_admin():
    return admin_factory


@pytest.fixture
def fixed_backup():
    return FixedBackupSource


@pytest.fixture
def tables():
    """admin 표 생성기 묶음."""

    class _Tables:
        row = staticmethod(pool_row)
        pools = staticmethod(pools_table)
        stats = staticmethod(stats_table)
        databases = staticmethod(databases_table)

    return _Tables
