# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Host navigation — where the application is, and how to send it to login.

The dispatcher only needs :class:`Navigator`.  :class:`HostNavigator` tracks
the current path in memory and forwards each navigation to an optional
callback (a UI router, a CLI message, a test spy).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol, runtime_checkable
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)


@runtime_checkable
class Navigator(Protocol):
    @property
    def current_path(self) -> str: ...

    def navigate(self, path: str) -> None: ...


class HostNavigator:
    def __init__(
        self,
        current_path: str = "/",
        *,
        on_navigate: Callable[[str], None] | None = None,
    ) -> None:
        self._current_path = current_path
        self._on_navigate = on_navigate
        self._history: list[str] = []

    @property
    def current_path(self) -> str:
        return self._current_path

    @property
    def history(self) -> list[str]:
        """Paths navigated to, oldest first."""
        return list(self._history)

    def navigate(self, path: str) -> None:
        self._current_path = path
        self._history.append(path)
        if self._on_navigate is not None:
            self._on_navigate(path)


def _route(path: str) -> str:
    """Path without query, fragment or trailing slash."""
    bare = urlsplit(path).path.rstrip("/")
    return bare or "/"


def redirect_once(navigator: Navigator, path: str) -> bool:
    """Navigate to *path* unless already there. Returns True if navigated."""
    if _route(navigator.current_path) == _route(path):
        return False
    logger.info("Redirecting host to %s", path)
    navigator.navigate(path)
    return True
