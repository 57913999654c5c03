# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Logging setup: structlog rendering for stdlib ``logging`` records.

sessionflow modules log with ``logging.getLogger(__name__)``; ``configure()``
routes those records (and structlog loggers) through one processor chain:

- interactive use (CLI): ``ConsoleRenderer``
- services / log shippers: ``JSONRenderer``, one object per line

Bearer tokens and cookies are masked by :func:`redact_secrets` before any
renderer sees the event.

Leaf module — no sessionflow imports. Safe to call early in startup.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

# Event-dict keys whose values must never reach a log sink.
REDACTED_KEYS = frozenset({"authorization", "cookie", "set-cookie", "access_token", "accesstoken", "token"})
_REDACTED = "[redacted]"

# Transport libraries that log every request line at INFO/DEBUG.
_NOISY_LOGGERS = ("httpx", "httpcore")


def redact_secrets(logger: object, method_name: str, event_dict: dict) -> dict:
    """structlog processor: mask credential keys, including inside a ``headers`` map."""
    for key, value in list(event_dict.items()):
        if key.lower() in REDACTED_KEYS:
            event_dict[key] = _REDACTED
        elif key == "headers" and isinstance(value, dict):
            event_dict[key] = {k: (_REDACTED if k.lower() in REDACTED_KEYS else v) for k, v in value.items()}
    return event_dict


def _pre_chain() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        redact_secrets,
    ]


def configure(*, json_output: bool = False, level: str = "INFO", stream: TextIO | None = None) -> None:
    """Install the structlog formatter on the root logger.

    Args:
        json_output: JSON lines instead of human-readable console output.
        level: Root logger level name; unknown names fall back to INFO.
        stream: Destination, ``sys.stderr`` by default.
    """
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(root.level, logging.WARNING))
