"""poolguard CLI — 1회 체크 / 주기 체크 / 원격 probe / HTTP 서버.

Exit codes:
    0 healthy, 1 degraded, 2 unhealthy, 3 체크 불가 (설정 오류, 내부 오류)

Usage:
    poolguard check [--pretty]
    poolguard watch [--interval 30] [--count N]
    poolguard probe [--url http://localhost:8080/health]
    poolguard serve [--host 0.0.0.0] [--port 8080]

stdout 은 JSON 결과, 로그는 stderr.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

import httpx
import uvicorn
from pydantic import ValidationError

from poolguard.domain.config import AppConfig, load_config
from poolguard.domain.enums import HealthState
from poolguard.domain.errors import ConfigError
from poolguard.domain.health import HealthReport
from poolguard.infra.observability import setup_logging

from .app import create_monitor_app
from .checker import PoolHealthMonitor

logger = logging.getLogger(__name__)

EXIT_CODES = {
    HealthState.HEALTHY: 0,
    HealthState.DEGRADED: 1,
    HealthState.UNHEALTHY: 2,
}
EXIT_INTERNAL_ERROR = 3


def exit_code_for(status: HealthState) -> int:
    return EXIT_CODES[status]


def _emit(report: HealthReport, *, pretty: bool = False) -> None:
    print(report.model_dump_json(indent=2 if pretty else None), flush=True)


# --- commands ---


def cmd_check(args: argparse.Namespace, config: AppConfig) -> int:
    verdict = asyncio.run(PoolHealthMonitor(config).check_health())
    _emit(HealthReport.from_verdict(verdict), pretty=args.pretty)
    return exit_code_for(verdict.status)


def cmd_watch(args: argparse.Namespace, config: AppConfig) -> int:
    """Ctrl-C 로 중단하면 마지막 체크 결과의 exit code."""
    interval = args.interval if args.interval is not None else config.monitor.poll_interval_seconds
    history: list[HealthState] = []
    try:
        monitor = PoolHealthMonitor(config)
        asyncio.run(_watch(monitor, interval=interval, count=args.count, pretty=args.pretty, history=history))
    except KeyboardInterrupt:
        logger.info("Watch stopped after %d checks", len(history))
        if not history:
            return EXIT_INTERNAL_ERROR
    return exit_code_for(history[-1])


async def _watch(
    monitor: PoolHealthMonitor,
    *,
    interval: float,
    count: Optional[int],
    pretty: bool,
    history: list[HealthState],
) -> None:
    """interval 마다 체크해 history 에 상태를 쌓음. 체크끼리 겹치지 않음."""
    while count is None or len(history) < count:
        verdict = await monitor.check_health()
        history.append(verdict.status)
        _emit(HealthReport.from_verdict(verdict), pretty=pretty)
        if count is None or len(history) < count:
            await asyncio.sleep(interval)


def cmd_probe(args: argparse.Namespace, config: AppConfig) -> int:
    """실행 중인 모니터의 /health 조회."""
    url = args.url or f"http://localhost:{config.monitor.port}/health"
    try:
        resp = httpx.get(url, timeout=args.timeout)
    except httpx.HTTPError as e:
        logger.error("Monitoring endpoint not accessible: %s (%s)", url, e)
        return EXIT_INTERNAL_ERROR

    if resp.status_code != 200:
        logger.error("Monitoring endpoint returned HTTP %d: %s", resp.status_code, resp.text[:200])
        return EXIT_INTERNAL_ERROR
    try:
        report = HealthReport.model_validate(resp.json())
    except (ValueError, ValidationError) as e:
        logger.error("Unexpected response from %s: %s", url, e)
        return EXIT_INTERNAL_ERROR

    _emit(report, pretty=args.pretty)
    return exit_code_for(report.status)


def cmd_serve(args: argparse.Namespace, config: AppConfig) -> int:
    host = args.host or config.monitor.host
    port = args.port or config.monitor.port
    uvicorn.run(create_monitor_app(config), host=host, port=port, log_config=None)
    return 0


# --- entrypoint ---


def _non_negative(value: str) -> float:
    seconds = float(value)
    if seconds < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0: {value}")
    return seconds


def _positive_int(value: str) -> int:
    n = int(value)
    if n < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1: {value}")
    return n


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="poolguard", description="PgBouncer pool health monitor")
    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="1회 헬스 체크")
    check.add_argument("--pretty", action="store_true", help="JSON 들여쓰기")
    check.set_defaults(handler=cmd_check)

    watch = sub.add_parser("watch", help="주기적 헬스 체크")
    watch.add_argument(
        "--interval", type=_non_negative, default=None, help="체크 주기 (초, 0 허용, 기본 MONITOR_POLL_INTERVAL_SECONDS)"
    )
    watch.add_argument("--count", type=_positive_int, default=None, help="체크 횟수 (기본 무한)")
    watch.add_argument("--pretty", action="store_true")
    watch.set_defaults(handler=cmd_watch)

    probe = sub.add_parser("probe", help="실행 중인 모니터 /health 조회")
    probe.add_argument("--url", default=None)
    probe.add_argument("--timeout", type=float, default=5.0)
    probe.add_argument("--pretty", action="store_true")
    probe.set_defaults(handler=cmd_probe)

    serve = sub.add_parser("serve", help="HTTP 헬스 서버 실행")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.set_defaults(handler=cmd_serve)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config()
    except ConfigError as e:
        setup_logging("poolguard")
        logger.error("Configuration error: %s", e)
        return EXIT_INTERNAL_ERROR

    setup_logging(
        "poolguard",
        log_level=config.log_level,
        json_output=config.log_json,
    )

    try:
        return args.handler(args, config)
    except Exception:
        logger.exception("%s could not complete", args.command)
        return EXIT_INTERNAL_ERROR


if __name__ == "__main__":
    sys.exit(main())
