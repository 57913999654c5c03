# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""sessionflow: authenticated request pipeline for envelope-style HTTP APIs.

Sits between application code and a remote API:
- scope header injection from a persisted tenant id
- single-flight session refresh with one replay per request
- one normalized error type for every failure
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx


@dataclass(slots=True)
class RequestConfig:
    """A single logical request, owned by one in-flight ``send`` call."""

    url: str
    method: str = "GET"
    headers: httpx.Headers = field(default_factory=httpx.Headers)  # case-insensitive
    params: dict[str, Any] = field(default_factory=dict)
    body: Any = None  # JSON-serialisable payload
    with_credentials: bool = True  # attach session cookies
    retried: bool = field(default=False, init=False, repr=False)  # set once by the dispatcher

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        if not isinstance(self.headers, httpx.Headers):
            self.headers = httpx.Headers(self.headers)


@dataclass(frozen=True, slots=True)
class TransportResponse:
    """Raw outcome of one network round trip."""

    status_code: int
    payload: Any  # parsed JSON body, None when the body is empty or not JSON
    headers: httpx.Headers
    url: str = ""
    empty: bool = False  # the body had no bytes at all

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def envelope_message(self) -> str:
        """Server-provided ``message`` field, or "" when absent."""
        if isinstance(self.payload, dict):
            message = self.payload.get("message")
            if isinstance(message, str):
                return message
        return ""
