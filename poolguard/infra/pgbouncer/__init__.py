"""PgBouncer infrastructure — admin client, strict output parser."""

from .client import SHOW_DATABASES, SHOW_POOLS, SHOW_STATS, AdminClient
from .parser import (
    AdminTable,
    ParseFailure,
    ParseSuccess,
    parse_databases,
    parse_pools,
    parse_psql_output,
    parse_stats,
    unwrap,
)

__all__ = [
    "AdminClient",
    "SHOW_POOLS",
    "SHOW_STATS",
    "SHOW_DATABASES",
    "AdminTable",
    "ParseSuccess",
    "ParseFailure",
    "parse_pools",
    "parse_stats",
    "parse_databases",
    "parse_psql_output",
    "unwrap",
]
