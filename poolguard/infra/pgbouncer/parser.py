"""PgBouncer admin 출력 파서 — SHOW POOLS / SHOW STATS / SHOW DATABASES.

admin 출력 형식은 버전이 붙은 계약으로 취급. 필수 컬럼이 빠지거나 값이
정수가 아니면 ParseFailure 를 반환 (조용히 0으로 채우지 않음).
추가 컬럼(상위 버전 PgBouncer)은 무시.

입력은 AdminTable 하나:
  - 실제 접속: psycopg cursor.description + fetchall()
  - fixture: psql 정렬 텍스트 출력 → parse_psql_output()
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, TypeVar, Union

from poolguard.domain.enums import ParseFailureCode
from poolguard.domain.errors import ParseError
from poolguard.domain.pool import DatabaseEntry, PoolSnapshot, StatsSnapshot

T = TypeVar("T")

# admin 콘솔 자신을 나타내는 가상 DB
ADMIN_DATABASE = "pgbouncer"

POOLS_REQUIRED = ("database", "user", "cl_active", "cl_waiting", "sv_active", "sv_idle", "sv_used", "maxwait")
STATS_REQUIRED = ("database", "total_xact_count", "total_query_count")
DATABASES_REQUIRED = ("name", "database")

Cell = Union[str, int, None]


@dataclass(frozen=True)
class AdminTable:
    """admin 명령 1회의 표 형태 결과."""

    columns: tuple[str, ...]
    rows: tuple[tuple[Cell, ...], ...] = ()


@dataclass(frozen=True)
class ParseSuccess(Generic[T]):
    rows: list[T] = field(default_factory=list)


@dataclass(frozen=True)
class ParseFailure:
    code: ParseFailureCode
    detail: str


ParseResult = Union[ParseSuccess[T], ParseFailure]


class _RowError(Exception):
    def __init__(self, code: ParseFailureCode, detail: str):
        self.code = code
        self.detail = detail


def unwrap(result: "ParseSuccess[T] | ParseFailure", command: str) -> list[T]:
    """ParseSuccess 면 rows, ParseFailure 면 ParseError."""
    if isinstance(result, ParseFailure):
        raise ParseError(result.code, result.detail, command=command)
    return result.rows


# --- psql text ---


def parse_psql_output(text: str) -> "AdminTable | ParseFailure":
    """psql 정렬 출력 (`psql -c "SHOW POOLS;"`) → AdminTable.

    빈 셀은 None. 마지막 "(N rows)" 줄은 무시.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        return ParseFailure(ParseFailureCode.EMPTY_OUTPUT, "no header line")

    columns = tuple(c.strip() for c in lines[0].split("|"))
    if not all(columns):
        return ParseFailure(ParseFailureCode.EMPTY_OUTPUT, f"malformed header: {lines[0].strip()!r}")

    body = lines[1:]
    if body and set(body[0].strip()) <= {"-", "+"}:
        body = body[1:]

    rows = []
    for line in body:
        stripped = line.strip()
        if stripped.startswith("(") and stripped.endswith(")"):
            break
        cells = tuple((c.strip() or None) for c in line.split("|"))
        if len(cells) != len(columns):
            return ParseFailure(
                ParseFailureCode.ROW_SHAPE,
                f"expected {len(columns)} cells, got {len(cells)}: {stripped!r}",
            )
        rows.append(cells)
    return AdminTable(columns=columns, rows=tuple(rows))


# --- SHOW POOLS ---


def parse_pools(
    table: AdminTable,
    *,
    captured_at: datetime,
    max_client_conn: int,
    max_db_connections: int,
    include_admin: bool = False,
) -> "ParseSuccess[PoolSnapshot] | ParseFailure":
    """SHOW POOLS → PoolSnapshot 리스트.

    max_client_conn / max_db_connections 를 넘는 행은 설정 또는 모니터링 버그로
    보고 LIMIT_EXCEEDED 로 거부.
    """
    missing = _missing_columns(table, POOLS_REQUIRED)
    if missing:
        return missing

    snapshots = []
    try:
        for record in _records(table):
            if record["database"] == ADMIN_DATABASE and not include_admin:
                continue
            snapshot = PoolSnapshot(
                database_name=_text(record, "database"),
                user=_text(record, "user"),
                active_clients=_int(record, "cl_active"),
                idle_clients=_int(record, "cl_waiting"),
                active_servers=_int(record, "sv_active"),
                idle_servers=_int(record, "sv_idle") + _int(record, "sv_used"),
                max_wait_ms=_int(record, "maxwait") * 1000 + _optional_int(record, "maxwait_us") // 1000,
                pool_mode=record.get("pool_mode"),
                timestamp=captured_at,
            )
            if snapshot.total_clients > max_client_conn:
                raise _RowError(
                    ParseFailureCode.LIMIT_EXCEEDED,
                    f"pool {snapshot.label} reports {snapshot.total_clients} clients "
                    f"> max_client_conn {max_client_conn}",
                )
            if snapshot.total_servers > max_db_connections:
                raise _RowError(
                    ParseFailureCode.LIMIT_EXCEEDED,
                    f"pool {snapshot.label} reports {snapshot.total_servers} servers "
                    f"> max_db_connections {max_db_connections}",
                )
            snapshots.append(snapshot)
    except _RowError as e:
        return ParseFailure(e.code, e.detail)
    return ParseSuccess(snapshots)


# --- SHOW STATS ---


def parse_stats(table: AdminTable, *, include_admin: bool = False) -> "ParseSuccess[StatsSnapshot] | ParseFailure":
    """SHOW STATS → StatsSnapshot 리스트 (avg_* 는 microseconds)."""
    missing = _missing_columns(table, STATS_REQUIRED)
    if missing:
        return missing

    stats = []
    try:
        for record in _records(table):
            if record["database"] == ADMIN_DATABASE and not include_admin:
                continue
            stats.append(
                StatsSnapshot(
                    database_name=_text(record, "database"),
                    total_xact_count=_int(record, "total_xact_count"),
                    total_query_count=_int(record, "total_query_count"),
                    avg_xact_time_us=_optional_int(record, "avg_xact_time"),
                    avg_query_time_us=_optional_int(record, "avg_query_time"),
                    avg_wait_time_us=_optional_int(record, "avg_wait_time"),
                )
            )
    except _RowError as e:
        return ParseFailure(e.code, e.detail)
    return ParseSuccess(stats)


# --- SHOW DATABASES ---


def parse_databases(
    table: AdminTable, *, include_admin: bool = False
) -> "ParseSuccess[DatabaseEntry] | ParseFailure":
    """SHOW DATABASES → DatabaseEntry 리스트."""
    missing = _missing_columns(table, DATABASES_REQUIRED)
    if missing:
        return missing

    entries = []
    try:
        for record in _records(table):
            if record["name"] == ADMIN_DATABASE and not include_admin:
                continue
            port = record.get("port")
            entries.append(
                DatabaseEntry(
                    name=_text(record, "name"),
                    host=record.get("host"),
                    port=_int(record, "port") if port is not None else None,
                    database=_text(record, "database"),
                    pool_size=_optional_int(record, "pool_size"),
                    current_connections=_optional_int(record, "current_connections"),
                )
            )
    except _RowError as e:
        return ParseFailure(e.code, e.detail)
    return ParseSuccess(entries)


# --- helpers ---


def _missing_columns(table: AdminTable, required: tuple[str, ...]) -> ParseFailure | None:
    missing = [c for c in required if c not in table.columns]
    if missing:
        return ParseFailure(ParseFailureCode.MISSING_COLUMN, f"missing columns: {', '.join(missing)}")
    return None


def _records(table: AdminTable):
    width = len(table.columns)
    for index, row in enumerate(table.rows):
        if len(row) != width:
            raise _RowError(ParseFailureCode.ROW_SHAPE, f"row {index}: expected {width} cells, got {len(row)}")
        yield dict(zip(table.columns, row))


def _text(record: dict, column: str) -> str:
    value = record.get(column)
    if value is None or value == "":
        raise _RowError(ParseFailureCode.BAD_VALUE, f"{column} is empty")
    return str(value)


def _int(record: dict, column: str) -> int:
    value = record.get(column)
    if isinstance(value, bool):
        raise _RowError(ParseFailureCode.BAD_VALUE, f"{column}={value!r} is not an integer")
    if isinstance(value, int):
        number = value
    else:
        try:
            number = int(str(value).strip())
        except (TypeError, ValueError):
            raise _RowError(ParseFailureCode.BAD_VALUE, f"{column}={value!r} is not an integer") from None
    if number < 0:
        raise _RowError(ParseFailureCode.BAD_VALUE, f"{column}={number} is negative")
    return number


def _optional_int(record: dict, column: str) -> int:
    if record.get(column) is None:
        return 0
    return _int(record, column)
