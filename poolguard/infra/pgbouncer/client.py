"""PgBouncer admin 콘솔 클라이언트 — 체크 1회당 커넥션 1개.

admin 콘솔은 simple query protocol 만 지원하므로 autocommit + ClientCursor 사용.
접속 실패는 connect_attempts 회까지 지수 백오프로 재시도,
SHOW 명령 자체가 거부되면 (형식 문제) 재시도하지 않음.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

import psycopg

from poolguard.domain.config import PgBouncerConfig
from poolguard.domain.enums import ParseFailureCode
from poolguard.domain.errors import AdminConnectionError, CheckTimeoutError, ParseError

from .parser import AdminTable

logger = logging.getLogger(__name__)

SHOW_POOLS = "SHOW POOLS"
SHOW_STATS = "SHOW STATS"
SHOW_DATABASES = "SHOW DATABASES"

# libpq connect_timeout 최소값
_LIBPQ_MIN_CONNECT_TIMEOUT = 2

Connect = Callable[..., Awaitable[psycopg.AsyncConnection]]


class AdminClient:
    """PgBouncer admin 콘솔 클라이언트.

    상태를 공유하지 않도록 헬스 체크마다 새로 생성.

    Usage:
        client = AdminClient(config.pgbouncer)
        tables = await client.fetch(SHOW_POOLS, SHOW_STATS)
    """

    def __init__(self, config: PgBouncerConfig, *, connect: Connect | None = None):
        self._config = config
        self._connect_fn = connect or psycopg.AsyncConnection.connect

    async def fetch(self, *commands: str) -> dict[str, AdminTable]:
        """접속 → 명령 순차 실행 → 종료. 접속 실패 시 재시도.

        Raises:
            AdminConnectionError: 모든 시도 실패
            CheckTimeoutError: 쿼리 응답 시간 초과
            ParseError: admin 콘솔이 명령을 거부
        """
        attempts = self._config.connect_attempts
        last_error: AdminConnectionError | None = None

        for attempt in range(1, attempts + 1):
            try:
                return await self._fetch_once(commands)
            except AdminConnectionError as e:
                last_error = e
                if attempt < attempts:
                    delay = self.backoff(attempt)
                    logger.warning(
                        "PgBouncer admin attempt %d/%d failed: %s (retry in %.2fs)",
                        attempt,
                        attempts,
                        e,
                        delay,
                    )
                    await asyncio.sleep(delay)

        logger.error("PgBouncer admin unreachable after %d attempts: %s", attempts, last_error)
        raise AdminConnectionError(f"{last_error} (after {attempts} attempts)") from last_error

    def backoff(self, attempt: int) -> float:
        """attempt 번째 실패 후 대기 시간."""
        delay = self._config.retry_backoff_seconds * (2 ** (attempt - 1))
        return min(delay, self._config.retry_backoff_max_seconds)

    async def _fetch_once(self, commands: tuple[str, ...]) -> dict[str, AdminTable]:
        conn = await self._connect()
        try:
            tables = {}
            for command in commands:
                tables[command] = await self._show(conn, command)
            return tables
        finally:
            await conn.close()

    async def _connect(self) -> psycopg.AsyncConnection:
        cfg = self._config
        try:
            return await asyncio.wait_for(
                self._connect_fn(
                    host=cfg.host,
                    port=cfg.port,
                    user=cfg.user,
                    password=cfg.password or None,
                    dbname=cfg.admin_db,
                    connect_timeout=max(_LIBPQ_MIN_CONNECT_TIMEOUT, int(cfg.connect_timeout_seconds)),
                    autocommit=True,
                    prepare_threshold=None,
                    cursor_factory=psycopg.AsyncClientCursor,
                ),
                timeout=cfg.connect_timeout_seconds,
            )
        except TimeoutError:
            raise AdminConnectionError(
                f"connect to {cfg.host}:{cfg.port} timed out after {cfg.connect_timeout_seconds}s"
            ) from None
        except (psycopg.OperationalError, OSError) as e:
            raise AdminConnectionError(f"connect to {cfg.host}:{cfg.port} failed: {_first_line(e)}") from e

    async def _show(self, conn: psycopg.AsyncConnection, command: str) -> AdminTable:
        timeout = self._config.query_timeout_seconds
        try:
            return await asyncio.wait_for(_run_show(conn, command), timeout=timeout)
        except TimeoutError:
            raise CheckTimeoutError(f"admin query timed out: {command} ({timeout}s)") from None
        except psycopg.OperationalError as e:
            raise AdminConnectionError(f"{command} failed: {_first_line(e)}") from e
        except psycopg.Error as e:
            raise ParseError(ParseFailureCode.UNSUPPORTED_COMMAND, _first_line(e), command=command) from e


async def _run_show(conn: psycopg.AsyncConnection, command: str) -> AdminTable:
    async with conn.cursor() as cur:
        await cur.execute(command)
        if cur.description is None:
            return AdminTable(columns=())
        columns = tuple(col.name for col in cur.description)
        rows = await cur.fetchall()
    return AdminTable(columns=columns, rows=tuple(tuple(row) for row in rows))


def _first_line(error: Exception) -> str:
    text = str(error).strip()
    return text.splitlines()[0] if text else type(error).__name__
