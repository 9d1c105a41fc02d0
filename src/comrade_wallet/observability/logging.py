"""
comrade_wallet.observability.logging

Structured logging configuration for the wallet controller.

Responsibilities:
- Configure `structlog` for JSON logs.
- Tag events with the signed-in principal and keep credentials out of log lines.
- Provide a small wrapper for obtaining bound loggers.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

# Event keys that may carry a delegation or bearer token.
_CREDENTIAL_KEYS = frozenset({"authorization", "credential", "delegation", "token"})

_active_principal: str | None = None


def configure_logging(*, service_name: str, level: str) -> None:
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _add_service_name(service_name),
            add_principal,
            redact_credentials,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def bind_principal(principal: str | None) -> None:
    """
    Set the principal attached to every later log event; `None` clears it. Module
    state, process-wide like the orchestrator that calls it.
    """

    global _active_principal
    _active_principal = principal or None


def _add_service_name(service_name: str):
    def processor(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    return processor


def add_principal(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    if _active_principal is not None:
        event_dict.setdefault("principal", _active_principal)
    return event_dict


def redact_credentials(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in _CREDENTIAL_KEYS & event_dict.keys():
        event_dict[key] = "[redacted]"
    return event_dict


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


# --- Module Notes -----------------------------------------------------------
# Request-scoped metadata is bound via contextvars in `observability.middleware`;
# the wallet session's principal is bound by the orchestrator on login and logout.
