"""
Structured logging.

Every module takes its logger from `get_logger(__name__)` and logs an event
name plus keyword fields. Values under sensitive keys are masked by
`redact_sensitive` before rendering, nested request bodies included, and the
current request id is attached to every entry.
"""
import logging
import uuid
from contextvars import ContextVar
from typing import Any

import structlog

SENSITIVE_KEYS = ("password", "token", "secret", "code", "email", "phone", "address", "api_key")

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_request_id() -> str | None:
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Use the caller's id when given, otherwise a fresh UUID4."""
    rid = request_id or str(uuid.uuid4())
    request_id_var.set(rid)
    return rid


def _mask(value: str) -> str:
    if len(value) > 2:
        return value[0] + "*" * min(len(value) - 2, 8) + value[-1]
    return "*" * len(value)


def _is_sensitive(key: Any) -> bool:
    return isinstance(key, str) and any(s in key.lower() for s in SENSITIVE_KEYS)


def censor(data: Any) -> Any:
    """Return a copy of `data` with values of sensitive keys masked."""
    if isinstance(data, dict):
        out = {}
        for k, v in data.items():
            if _is_sensitive(k):
                out[k] = _mask(v) if isinstance(v, str) else "*****"
            else:
                out[k] = censor(v)
        return out
    if isinstance(data, (list, tuple)):
        return type(data)(censor(v) for v in data)
    return data


def _add_request_id(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    rid = get_request_id()
    if rid and "request_id" not in event_dict:
        event_dict["request_id"] = rid
    return event_dict


def redact_sensitive(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key, value in list(event_dict.items()):
        if key == "event":
            continue
        if _is_sensitive(key):
            event_dict[key] = _mask(value) if isinstance(value, str) else "*****"
        elif isinstance(value, (dict, list, tuple)):
            event_dict[key] = censor(value)
    return event_dict


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _add_request_id,
        redact_sensitive,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        # loggers are module globals; reconfiguring must reach them
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    return structlog.get_logger(name)
