"""poolguard 도메인 모델 — 풀 상태, 헬스 판정, 설정, 에러.

Usage:
    from poolguard.domain import PoolSnapshot, HealthVerdict, HealthState
    from poolguard.domain.config import AppConfig
"""

# --- Types ---
from .types import Count, Port, Ratio, ThresholdRatio

# --- Enums ---
from .enums import BackupSourceKind, HealthState, ParseFailureCode

# --- Errors ---
from .errors import (
    AdminConnectionError,
    CheckTimeoutError,
    BackupSourceError,
    ConfigError,
    ParseError,
    PoolGuardError,
)

# --- Pool ---
from .pool import DatabaseEntry, PoolSnapshot, StatsSnapshot

# --- Health ---
from .health import HealthReport, HealthVerdict, PoolDetail

__all__ = [
    # Types
    "Count",
    "Ratio",
    "ThresholdRatio",
    "Port",
    # Enums
    "HealthState",
    "ParseFailureCode",
    "BackupSourceKind",
    # Errors
    "PoolGuardError",
    "AdminConnectionError",
    "ParseError",
    "CheckTimeoutError",
    "ConfigError",
    "BackupSourceError",
    # Pool
    "PoolSnapshot",
    "StatsSnapshot",
    "DatabaseEntry",
    # Health
    "HealthVerdict",
    "HealthReport",
    "PoolDetail",
]
