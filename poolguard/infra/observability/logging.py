"""poolguard 로깅 — stdlib logging 위에 structlog 포매터.

코드는 logging.getLogger(__name__) 만 쓰고, 출력 형식은 여기서 한 번에 결정:
  - JSON (기본, 컨테이너 로그 수집용) / 콘솔 (로컬 디버깅)
  - 모든 레코드에 service 필드

stdout 은 CLI 의 JSON 결과 전용이므로 로그 기본 출력은 stderr.
"""

import logging
import sys
from typing import TextIO

import structlog

# 주기적으로 호출되는 경로의 라이브러리 로그 (요청마다 INFO 1줄)
# - uvicorn.access: docker healthcheck 가 /health 를 수 초마다 호출
# - httpx: probe 명령의 요청 로그
# - psycopg: admin 콘솔 접속 재시도
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "psycopg": logging.WARNING,
}


def _renderer(json_output: bool) -> tuple[list[structlog.types.Processor], structlog.types.Processor]:
    """(예외 처리 processor, 최종 renderer). 콘솔 renderer 는 traceback 을 직접 그림."""
    if json_output:
        return [structlog.processors.dict_tracebacks], structlog.processors.JSONRenderer()
    return [], structlog.dev.ConsoleRenderer()


def setup_logging(
    service_name: str = "poolguard",
    *,
    log_level: str = "INFO",
    json_output: bool = True,
    stream: TextIO | None = None,
) -> None:
    """루트 로거에 structlog 포매터를 단 핸들러 하나를 설치 (기존 핸들러 교체).

    Args:
        service_name: 모든 레코드의 service 필드
        log_level: APP_LOG_LEVEL (알 수 없는 값이면 INFO)
        json_output: APP_LOG_JSON
        stream: 기본 stderr
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    exc_processors, renderer = _renderer(json_output)
    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *exc_processors,
                renderer,
            ],
            foreign_pre_chain=pre_chain,
        )
    )
    logging.basicConfig(handlers=[handler], level=level, force=True)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    for name, floor in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(level, floor))

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name)
