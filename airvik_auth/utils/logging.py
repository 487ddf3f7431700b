"""구조화 로깅 설정 — structlog.

Structured logging setup built on structlog.
``configure_logging`` is called once from the application lifespan;
modules obtain loggers with ``get_logger(__name__)``.
"""

import logging
from typing import Any

import structlog

from airvik_auth.config import Settings

# 마스킹 대상 키 — Keys whose values never reach the log output
_SENSITIVE_KEYS: tuple[str, ...] = ("password", "secret", "token", "authorization", "api_key")


def _redact_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """토큰/비밀번호 값 마스킹 — Mask token and password values, keeping a short prefix."""
    for key in list(event_dict.keys()):
        if any(marker in key.lower() for marker in _SENSITIVE_KEYS):
            value = event_dict[key]
            if isinstance(value, str) and len(value) > 8:
                event_dict[key] = value[:4] + "***"
            elif value is not None:
                event_dict[key] = "***"
    return event_dict


def configure_logging(config: Settings) -> None:
    """structlog 프로세서 체인을 구성합니다.

    Configure structlog processors. DEBUG mode renders to the console,
    otherwise one JSON object is emitted per event.

    Args:
        config: 애플리케이션 설정 (Application settings; LOG_LEVEL and DEBUG are read)
    """
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if config.DEBUG:
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=False)]
    else:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """모듈 로거 반환 — Return a bound logger for the given module name."""
    return structlog.get_logger(name)
