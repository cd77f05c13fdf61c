"""통합 설정 모델 — Pydantic Settings 기반.

모든 설정값은 환경 변수로 주입. 우선순위:
  1. 환경 변수 (docker-compose env, .env)
  2. Pydantic Settings 기본값

pgbouncer-monitor / backup-scheduler 컨테이너의 쉘 스크립트 환경 변수
(PGBOUNCER_HOST, PGBOUNCER_PORT, MONITOR_PORT ...)와 이름을 맞춤.
"""

from functools import lru_cache

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

from .enums import BackupSourceKind
from .errors import ConfigError
from .types import Port, ThresholdRatio


class PgBouncerConfig(BaseSettings):
    """PgBouncer admin 콘솔 접속 설정."""

    host: str = "localhost"
    port: Port = 6432
    user: str = "postgres"
    password: str = ""
    admin_db: str = "pgbouncer"
    connect_timeout_seconds: float = 3.0
    query_timeout_seconds: float = 3.0
    # 재시도: 3회, 0.2s 부터 2배씩, 최대 2s
    connect_attempts: int = Field(default=3, ge=1)
    retry_backoff_seconds: float = 0.2
    retry_backoff_max_seconds: float = 2.0
    # pgbouncer.ini 와 동일하게 유지
    max_client_conn: int = Field(default=200, ge=1)
    max_db_connections: int = Field(default=50, ge=1)

    model_config = {"env_prefix": "PGBOUNCER_"}

    @property
    def dsn(self) -> str:
        return f"postgresql://{self.user}@{self.host}:{self.port}/{self.admin_db}"


class HealthConfig(BaseSettings):
    """판정 임계값."""

    utilization_threshold: ThresholdRatio = 0.8
    client_conn_warn_ratio: ThresholdRatio = 0.9  # max_client_conn 의 90%
    server_conn_warn_ratio: ThresholdRatio = 0.9  # max_db_connections 의 90%
    max_wait_threshold_ms: int = Field(default=5000, ge=0)
    check_timeout_seconds: float = Field(default=10.0, gt=0)

    model_config = {"env_prefix": "HEALTH_"}


class BackupConfig(BaseSettings):
    """마지막 백업 시각 조회 설정."""

    source: BackupSourceKind = BackupSourceKind.FILE
    timestamp_file: str = "/var/log/backups/last-backup-timestamp"
    stanza: str = "main"
    pgbackrest_bin: str = "pgbackrest"
    # 일 1회 백업 + 여유 6시간
    max_age_hours: float = Field(default=30.0, gt=0)
    timeout_seconds: float = Field(default=5.0, gt=0)
    # 저장소 디스크 사용률 (빈 값이면 체크 안 함)
    repo_path: str = "/var/lib/pgbackrest"
    repo_usage_warn_ratio: ThresholdRatio = 0.8
    repo_usage_critical_ratio: ThresholdRatio = 0.9

    model_config = {"env_prefix": "BACKUP_"}

    @property
    def enabled(self) -> bool:
        return self.source != BackupSourceKind.NONE


class MonitorConfig(BaseSettings):
    """HTTP 서버 / watch 모드 설정."""

    host: str = "0.0.0.0"
    port: Port = 8080
    poll_interval_seconds: float = Field(default=30.0, gt=0)

    model_config = {"env_prefix": "MONITOR_"}


class AppConfig(BaseSettings):
    """최상위 설정 — 서브 설정 객체를 조합.

    Usage:
        from poolguard.domain.config import get_config
        config = get_config()
        print(config.pgbouncer.dsn)
        print(config.health.utilization_threshold)
    """

    env: str = Field(default="production", description="development | staging | production")
    log_level: str = "INFO"
    log_json: bool = True

    pgbouncer: PgBouncerConfig = Field(default_factory=PgBouncerConfig)
    health: HealthConfig = Field(default_factory=HealthConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)

    model_config = {"env_prefix": "APP_"}


def validate_config(config: AppConfig) -> AppConfig:
    """필수값 검증. 실패 시 ConfigError (서비스 기동 중단)."""
    missing = []
    if not config.pgbouncer.host.strip():
        missing.append("PGBOUNCER_HOST")
    if not config.pgbouncer.user.strip():
        missing.append("PGBOUNCER_USER")
    if config.backup.source == BackupSourceKind.FILE and not config.backup.timestamp_file.strip():
        missing.append("BACKUP_TIMESTAMP_FILE")
    if config.backup.source == BackupSourceKind.PGBACKREST and not config.backup.stanza.strip():
        missing.append("BACKUP_STANZA")
    if missing:
        raise ConfigError(f"Missing required configuration: {', '.join(missing)}")
    return config


def load_config() -> AppConfig:
    """환경 변수에서 설정을 읽고 검증.

    pydantic ValidationError(타입/범위 오류)도 ConfigError 로 변환.
    """
    try:
        config = AppConfig()
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
    return validate_config(config)


@lru_cache
def get_config() -> AppConfig:
    """싱글턴 설정 인스턴스.

    프로세스 내에서 한 번만 환경 변수를 읽고 캐싱.
    테스트에서는 get_config.cache_clear()로 초기화.
    """
    return load_config()
