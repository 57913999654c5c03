# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""In-memory bearer access token. Never persisted, never logged."""

from __future__ import annotations


class AccessTokenHolder:
    __slots__ = ("_token",)

    def __init__(self, token: str | None = None) -> None:
        self._token = token or None

    def get(self) -> str | None:
        return self._token

    def set(self, token: str | None) -> None:
        self._token = token or None

    def authorization(self) -> str | None:
        """``Authorization`` header value, or None without a token."""
        return f"Bearer {self._token}" if self._token else None

    def __repr__(self) -> str:
        return f"AccessTokenHolder(token={'set' if self._token else None})"
