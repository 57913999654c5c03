# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Client configuration — frozen dataclass with ``SESSIONFLOW_*`` env overrides.

Leaf module — no sessionflow imports.
"""

from __future__ import annotations

import dataclasses
import os
from contextlib import suppress
from dataclasses import dataclass
from urllib.parse import urlparse

DEFAULT_BASE_URL = "http://localhost:5000/api/v1"
DEFAULT_REFRESH_PATH = "/auth/refresh"
DEFAULT_LOGIN_PATH = "/login"
DEFAULT_SCOPE_HEADER = "x-shop-id"
DEFAULT_SCOPE_KEY = "activeShopId"
DEFAULT_TIMEOUT = 30.0
DEFAULT_SCOPE_MAX_AGE = 365 * 24 * 3600.0


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Immutable configuration for a :class:`~sessionflow.client.SessionClient`."""

    base_url: str = DEFAULT_BASE_URL
    refresh_path: str = DEFAULT_REFRESH_PATH
    login_path: str = DEFAULT_LOGIN_PATH  # unauthenticated entry point
    scope_header: str = DEFAULT_SCOPE_HEADER
    scope_key: str = DEFAULT_SCOPE_KEY  # cookie name of the persisted scope
    cookie_path: str = ""  # empty: cookies live in memory only
    timeout: float = DEFAULT_TIMEOUT
    scope_max_age: float = DEFAULT_SCOPE_MAX_AGE

    def __post_init__(self) -> None:
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"base_url must be an absolute http(s) URL, got {self.base_url!r}")
        if not self.refresh_path.startswith("/"):
            raise ValueError(f"refresh_path must start with '/', got {self.refresh_path!r}")
        if not self.login_path.startswith("/"):
            raise ValueError(f"login_path must start with '/', got {self.login_path!r}")
        if not self.scope_header.strip():
            raise ValueError("scope_header must not be empty")
        if not self.scope_key.strip():
            raise ValueError("scope_key must not be empty")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")
        if self.scope_max_age <= 0:
            raise ValueError(f"scope_max_age must be > 0, got {self.scope_max_age}")

    def replace(self, **changes: object) -> ClientConfig:
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> ClientConfig:
        """Build a config from ``SESSIONFLOW_*`` variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}

        for field_name, var in (
            ("base_url", "SESSIONFLOW_BASE_URL"),
            ("refresh_path", "SESSIONFLOW_REFRESH_PATH"),
            ("login_path", "SESSIONFLOW_LOGIN_PATH"),
            ("scope_header", "SESSIONFLOW_SCOPE_HEADER"),
            ("scope_key", "SESSIONFLOW_SCOPE_KEY"),
            ("cookie_path", "SESSIONFLOW_COOKIE_FILE"),
        ):
            value = env.get(var, "").strip()
            if value:
                kwargs[field_name] = value

        env_timeout = env.get("SESSIONFLOW_TIMEOUT", "").strip()
        if env_timeout:
            with suppress(ValueError):
                kwargs["timeout"] = float(env_timeout)

        env_max_age = env.get("SESSIONFLOW_SCOPE_MAX_AGE", "").strip()
        if env_max_age:
            with suppress(ValueError):
                kwargs["scope_max_age"] = float(env_max_age)

        return cls(**kwargs)
