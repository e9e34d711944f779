from __future__ import annotations

import logging
import os
import re
from typing import Any, MutableMapping

import structlog

# Link tokens are bearer secrets: never log them, not as a field and not inside a path
REDACTED_KEYS = {"client", "client_ip", "headers", "request_headers", "client_addr", "token", "share_link"}
_LINK_PATH_RE = re.compile(r"(/(?:api/share/link|shared)/)[^/\s\"']+")


def _log_level() -> int:
    return getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)


def _lower_level(logger: Any, method_name: str, event_dict: MutableMapping[str, Any]):
    level = event_dict.pop("levelname", None) or event_dict.get("level")
    if level:
        event_dict["level"] = str(level).lower()
    return event_dict


def _redact(logger: Any, method_name: str, event_dict: MutableMapping[str, Any]):
    for k in REDACTED_KEYS.intersection(event_dict.keys()):
        event_dict.pop(k)
    for k, v in event_dict.items():
        if isinstance(v, str) and ("/api/share/link/" in v or "/shared/" in v):
            event_dict[k] = _LINK_PATH_RE.sub(r"\1***", v)
    return event_dict


_SHARED = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", key="ts"),
    _lower_level,
    _redact,
]


def init_logging() -> None:
    """JSON logs on stdout for both structlog loggers and stdlib ``logging.getLogger`` ones.

    Expected fields: ts, level, event, trace_id, user_id_hash, action, duration_ms, result.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_SHARED,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
        )
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(_log_level())

    # uvicorn access lines carry client addresses
    logging.getLogger("uvicorn.access").disabled = True

    structlog.configure(
        processors=[*_SHARED, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(_log_level()),
        cache_logger_on_first_use=True,
    )


def get_logger() -> structlog.stdlib.BoundLogger:  # type: ignore[name-defined]
    return structlog.get_logger()
