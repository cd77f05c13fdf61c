"""마지막 백업 성공 시각 조회.

backup-scheduler 가 남기는 흔적을 읽기만 함 (쓰지 않음):
  - file: /var/log/backups/last-backup-timestamp (epoch seconds)
  - pgbackrest: `pgbackrest --stanza=<s> info --output=json` 의 최신 backup timestamp.stop

타임스탬프가 없거나 읽을 수 없으면 None ("no backup timestamp found").
pgbackrest 자체가 실패하면 BackupSourceError ("pgBackRest service check failed").
"""

import asyncio
import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Optional, Protocol

from poolguard.domain.config import BackupConfig
from poolguard.domain.enums import BackupSourceKind
from poolguard.domain.errors import BackupSourceError

logger = logging.getLogger(__name__)


class BackupSource(Protocol):
    async def last_backup_at(self) -> Optional[datetime]: ...


class NullBackupSource:
    """백업 체크 비활성."""

    async def last_backup_at(self) -> Optional[datetime]:
        return None


class TimestampFileBackupSource:
    """epoch seconds 한 줄짜리 파일."""

    def __init__(self, path: str | Path):
        self._path = Path(path)

    async def last_backup_at(self) -> Optional[datetime]:
        try:
            raw = await asyncio.to_thread(self._path.read_bytes)
        except FileNotFoundError:
            logger.info("Backup timestamp file not found: %s", self._path)
            return None
        except OSError as e:
            logger.warning("Backup timestamp file unreadable: %s (%s)", self._path, e)
            return None
        return parse_epoch(raw.decode("utf-8", errors="replace"))


class PgBackRestBackupSource:
    """pgbackrest info JSON 에서 stanza 의 최신 백업 종료 시각.

    lookup 이 취소되거나 시간 초과되면 자식 프로세스를 kill 후 회수.
    """

    def __init__(self, stanza: str, *, binary: str = "pgbackrest", timeout: float = 5.0):
        self._stanza = stanza
        self._binary = binary
        self._timeout = timeout

    async def last_backup_at(self) -> Optional[datetime]:
        try:
            proc = await asyncio.create_subprocess_exec(
                self._binary,
                f"--stanza={self._stanza}",
                "info",
                "--output=json",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise BackupSourceError(f"cannot run {self._binary}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except TimeoutError:
            raise BackupSourceError(f"pgbackrest info timed out after {self._timeout}s") from None
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()

        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip()[:200]
            raise BackupSourceError(f"pgbackrest info exited {proc.returncode}: {detail}")
        return latest_backup_from_info(stdout.decode(errors="replace"), self._stanza)


def parse_epoch(raw: str) -> Optional[datetime]:
    """'1724950000\\n' → aware datetime (UTC). 형식 오류 시 None."""
    text = raw.strip()
    try:
        return datetime.fromtimestamp(int(text), tz=UTC)
    except (ValueError, OverflowError, OSError):
        logger.warning("Backup timestamp is not epoch seconds: %r", text[:50])
        return None


def latest_backup_from_info(payload: str, stanza: str) -> Optional[datetime]:
    """pgbackrest info --output=json 에서 stanza 최신 백업의 timestamp.stop."""
    try:
        stanzas = json.loads(payload)
    except json.JSONDecodeError:
        logger.warning("pgbackrest info output is not JSON")
        return None

    for entry in stanzas if isinstance(stanzas, list) else []:
        if entry.get("name") != stanza:
            continue
        stops = [
            b["timestamp"]["stop"]
            for b in entry.get("backup") or []
            if isinstance(b.get("timestamp"), dict) and isinstance(b["timestamp"].get("stop"), int)
        ]
        if not stops:
            return None
        return datetime.fromtimestamp(max(stops), tz=UTC)

    logger.warning("Stanza %s not present in pgbackrest info", stanza)
    return None


def create_backup_source(config: BackupConfig) -> BackupSource:
    """설정의 BACKUP_SOURCE 에 맞는 구현 선택."""
    if config.source == BackupSourceKind.FILE:
        return TimestampFileBackupSource(config.timestamp_file)
    if config.source == BackupSourceKind.PGBACKREST:
        return PgBackRestBackupSource(config.stanza, binary=config.pgbackrest_bin, timeout=config.timeout_seconds)
    return NullBackupSource()
