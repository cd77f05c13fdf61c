"""에러 분류 — 헬스 체크 실패 원인별 예외.

AdminConnectionError 만 재시도 대상. 나머지는 즉시 verdict reason 으로 기록.
"""

from .enums import ParseFailureCode


class PoolGuardError(Exception):
    """poolguard 공통 예외."""


class AdminConnectionError(PoolGuardError, ConnectionError):
    """PgBouncer admin 엔드포인트 접속/인증 실패."""


class ParseError(PoolGuardError):
    """Admin 출력 형식을 인식할 수 없음 (스키마 드리프트)."""

    def __init__(self, code: ParseFailureCode, detail: str, *, command: str = ""):
        self.code = code
        self.detail = detail
        self.command = command
        prefix = f"{command}: " if command else ""
        super().__init__(f"{prefix}{code}: {detail}")


class CheckTimeoutError(PoolGuardError, TimeoutError):
    """헬스 체크 제한 시간 초과."""


class ConfigError(PoolGuardError):
    """필수 설정 누락/오류 — 기동 시 치명적."""


class BackupSourceError(PoolGuardError):
    """백업 도구(pgbackrest) 실행 실패 — 타임스탬프 없음과 구분."""
