"""PgBouncer admin 출력 파서 단위 테스트."""

import random

import pytest

from poolguard.domain.enums import ParseFailureCode
from poolguard.domain.errors import ParseError
from poolguard.infra.pgbouncer.parser import (
    AdminTable,
    ParseFailure,
    ParseSuccess,
    parse_databases,
    parse_pools,
    parse_psql_output,
    parse_stats,
    unwrap,
)

MAX_CLIENT_CONN = 200
MAX_DB_CONNECTIONS = 50


def _parse(table, now, **kwargs):
    kwargs.setdefault("max_client_conn", MAX_CLIENT_CONN)
    kwargs.setdefault("max_db_connections", MAX_DB_CONNECTIONS)
    return parse_pools(table, captured_at=now, **kwargs)


# ─── SHOW POOLS ──────────────────────────────────────────────────


class TestParsePools:
    def test_maps_counters(self, tables, now):
        table = tables.pools(tables.row(cl_active=12, cl_waiting=3, sv_active=4, sv_idle=5, sv_used=1))
        result = _parse(table, now)

        assert isinstance(result, ParseSuccess)
        snap = result.rows[0]
        assert snap.database_name == "sav3"
        assert snap.active_clients == 12
        assert snap.idle_clients == 3
        assert snap.active_servers == 4
        assert snap.idle_servers == 6
        assert snap.pool_mode == "transaction"
        assert snap.timestamp == now

    def test_max_wait_combines_seconds_and_micros(self, tables, now):
        table = tables.pools(tables.row(maxwait=2, maxwait_us=345_000))
        assert _parse(table, now).rows[0].max_wait_ms == 2345

    def test_text_cells_are_accepted(self, tables, now):
        table = tables.pools(tables.row(cl_active="7", sv_idle=" 3 "))
        snap = _parse(table, now).rows[0]
        assert snap.active_clients == 7
        assert snap.idle_servers == 3

    def test_admin_database_excluded(self, tables, now):
        table = tables.pools(tables.row(database="pgbouncer", user="pgbouncer"), tables.row())
        result = _parse(table, now)
        assert [s.database_name for s in result.rows] == ["sav3"]

    def test_admin_database_included_on_request(self, tables, now):
        table = tables.pools(tables.row(database="pgbouncer", user="pgbouncer"))
        assert len(_parse(table, now, include_admin=True).rows) == 1

    def test_optional_columns_may_be_absent(self, now):
        table = AdminTable(
            columns=("database", "user", "cl_active", "cl_waiting", "sv_active", "sv_idle", "sv_used", "maxwait"),
            rows=(("sav3", "app", 1, 0, 1, 1, 0, 0),),
        )
        snap = _parse(table, now).rows[0]
        assert snap.max_wait_ms == 0
        assert snap.pool_mode is None

    def test_extra_columns_ignored(self, now):
        table = AdminTable(
            columns=("database", "user", "cl_active", "cl_waiting", "sv_active", "sv_idle", "sv_used", "maxwait", "sv_future"),
            rows=(("sav3", "app", 1, 0, 1, 1, 0, 0, "x"),),
        )
        assert isinstance(_parse(table, now), ParseSuccess)

    def test_empty_pool_list(self, now, tables):
        table = AdminTable(columns=tables.pools().columns, rows=())
        assert _parse(table, now).rows == []


class TestParsePoolsFailures:
    def test_missing_column(self, now):
        table = AdminTable(columns=("database", "user", "cl_active"), rows=())
        result = _parse(table, now)
        assert isinstance(result, ParseFailure)
        assert result.code == ParseFailureCode.MISSING_COLUMN
        assert "cl_waiting" in result.detail

    def test_row_shape(self, tables, now):
        table = AdminTable(columns=tables.pools().columns, rows=(("sav3", "app", 1),))
        assert _parse(table, now).code == ParseFailureCode.ROW_SHAPE

    @pytest.mark.parametrize("value", ["many", None, "", -1, "1.5", True])
    def test_bad_counter(self, tables, now, value):
        table = tables.pools(tables.row(cl_active=value))
        result = _parse(table, now)
        assert isinstance(result, ParseFailure)
        assert result.code == ParseFailureCode.BAD_VALUE

    def test_empty_database_name(self, tables, now):
        table = tables.pools(tables.row(database=None))
        assert _parse(table, now).code == ParseFailureCode.BAD_VALUE

    def test_clients_over_max_client_conn(self, tables, now):
        table = tables.pools(tables.row(cl_active=150, cl_waiting=60))
        result = _parse(table, now)
        assert result.code == ParseFailureCode.LIMIT_EXCEEDED
        assert "max_client_conn" in result.detail

    def test_servers_over_max_db_connections(self, tables, now):
        table = tables.pools(tables.row(sv_active=30, sv_idle=21))
        result = _parse(table, now)
        assert result.code == ParseFailureCode.LIMIT_EXCEEDED
        assert "max_db_connections" in result.detail


class TestPoolInvariantProperty:
    """무작위 admin 출력에 대해 스냅샷은 항상 설정 한도를 지킴."""

    @pytest.mark.parametrize("seed", range(25))
    def test_snapshots_never_exceed_limits(self, tables, now, seed):
        rng = random.Random(seed)
        max_client_conn = rng.randint(1, 300)
        max_db_connections = rng.randint(1, 80)

        rows = []
        for i in range(rng.randint(1, 8)):
            rows.append(
                tables.row(
                    database=f"db{i}",
                    user=rng.choice(["app", "readonly", "worker"]),
                    cl_active=rng.randint(0, max_client_conn + 20),
                    cl_waiting=rng.randint(0, 20),
                    sv_active=rng.randint(0, max_db_connections + 5),
                    sv_idle=rng.randint(0, 10),
                    sv_used=rng.randint(0, 3),
                    maxwait=rng.randint(0, 5),
                    maxwait_us=rng.randint(0, 999_999),
                )
            )
        result = _parse(
            tables.pools(*rows),
            now,
            max_client_conn=max_client_conn,
            max_db_connections=max_db_connections,
        )

        if isinstance(result, ParseFailure):
            assert result.code == ParseFailureCode.LIMIT_EXCEEDED
            return
        for snap in result.rows:
            assert snap.active_clients + snap.idle_clients <= max_client_conn
            assert snap.active_servers + snap.idle_servers <= max_db_connections
            assert 0.0 <= snap.utilization <= 1.0

    @pytest.mark.parametrize("seed", range(10))
    def test_valid_rows_always_parse(self, tables, now, seed):
        rng = random.Random(1000 + seed)
        rows = []
        for i in range(rng.randint(1, 5)):
            cl_active = rng.randint(0, 100)
            sv_active = rng.randint(0, 20)
            rows.append(
                tables.row(
                    database=f"db{i}",
                    cl_active=cl_active,
                    cl_waiting=rng.randint(0, MAX_CLIENT_CONN - cl_active),
                    sv_active=sv_active,
                    sv_idle=rng.randint(0, MAX_DB_CONNECTIONS - sv_active),
                    sv_used=0,
                )
            )
        result = _parse(tables.pools(*rows), now)
        assert isinstance(result, ParseSuccess)
        assert len(result.rows) == len(rows)


# ─── SHOW STATS / SHOW DATABASES ─────────────────────────────────


class TestParseStats:
    def test_maps_averages(self, tables):
        stats = parse_stats(tables.stats()).rows
        assert stats[0].database_name == "sav3"
        assert stats[0].total_xact_count == 1200
        assert stats[0].avg_query_time_us == 55

    def test_missing_averages_default_to_zero(self):
        table = AdminTable(columns=("database", "total_xact_count", "total_query_count"), rows=(("sav3", 1, 2),))
        assert parse_stats(table).rows[0].avg_wait_time_us == 0

    def test_missing_column(self):
        table = AdminTable(columns=("database", "xact_count"), rows=())
        assert parse_stats(table).code == ParseFailureCode.MISSING_COLUMN


class TestParseDatabases:
    def test_excludes_admin_database(self, tables):
        entries = parse_databases(tables.databases()).rows
        assert [e.name for e in entries] == ["sav3"]
        assert entries[0].port == 5432
        assert entries[0].pool_size == 25

    def test_bad_port(self):
        table = AdminTable(columns=("name", "host", "port", "database"), rows=(("sav3", "pg", "x", "sav3"),))
        assert parse_databases(table).code == ParseFailureCode.BAD_VALUE


# ─── psql text / unwrap ──────────────────────────────────────────


class TestParsePsqlOutput:
    def test_aligned_output(self):
        text = (
            " database | user | cl_active\n"
            "----------+------+-----------\n"
            " sav3     | app  |         3\n"
            " other    |      |         0\n"
            "(2 rows)\n"
        )
        table = parse_psql_output(text)
        assert table.columns == ("database", "user", "cl_active")
        assert table.rows == (("sav3", "app", "3"), ("other", None, "0"))

    def test_empty_output(self):
        result = parse_psql_output("\n\n")
        assert isinstance(result, ParseFailure)
        assert result.code == ParseFailureCode.EMPTY_OUTPUT

    def test_ragged_row(self):
        text = " a | b\n---+---\n 1 | 2 | 3\n"
        assert parse_psql_output(text).code == ParseFailureCode.ROW_SHAPE

    def test_header_only(self):
        table = parse_psql_output(" a | b\n---+---\n(0 rows)\n")
        assert table.columns == ("a", "b")
        assert table.rows == ()


class TestUnwrap:
    def test_success(self):
        assert unwrap(ParseSuccess([1, 2]), "SHOW POOLS") == [1, 2]

    def test_failure_raises_parse_error(self):
        with pytest.raises(ParseError) as exc_info:
            unwrap(ParseFailure(ParseFailureCode.ROW_SHAPE, "bad row"), "SHOW STATS")
        assert exc_info.value.code == ParseFailureCode.ROW_SHAPE
        assert exc_info.value.command == "SHOW STATS"
