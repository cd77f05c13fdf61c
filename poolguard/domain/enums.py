"""열거형 정의 — 헬스 체크 전반에서 사용하는 상수값."""

from enum import StrEnum


class HealthState(StrEnum):
    """헬스 판정 상태 (심각도 오름차순)"""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    def worst(self, other: "HealthState") -> "HealthState":
        """두 상태 중 더 나쁜 쪽."""
        return self if self.severity >= other.severity else other


_SEVERITY = {
    HealthState.HEALTHY: 0,
    HealthState.DEGRADED: 1,
    HealthState.UNHEALTHY: 2,
}


class ParseFailureCode(StrEnum):
    """Admin 출력 파싱 실패 사유"""

    EMPTY_OUTPUT = "EMPTY_OUTPUT"  # 헤더 없음
    MISSING_COLUMN = "MISSING_COLUMN"  # 필수 컬럼 누락 (스키마 드리프트)
    ROW_SHAPE = "ROW_SHAPE"  # 행 길이 != 헤더 길이
    BAD_VALUE = "BAD_VALUE"  # 정수 아님 / 음수
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"  # max_client_conn / max_db_connections 초과
    UNSUPPORTED_COMMAND = "UNSUPPORTED_COMMAND"  # admin 콘솔이 SHOW 명령을 거부


class BackupSourceKind(StrEnum):
    """마지막 백업 시각 조회 방식"""

    FILE = "file"
    PGBACKREST = "pgbackrest"
    NONE = "none"
