# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Active scope (tenant) id — in-memory cache over a durable cookie store.

The durable side is an ``http.cookiejar`` jar, the same jar the HTTP client
uses for session cookies.  A ``FileCookieJar`` is saved after every mutation,
so a fresh process sees the last written value.

Cross-process note: two processes sharing one cookie file share the scope
value but NOT the single-flight refresh state; each can refresh on its own.
"""

from __future__ import annotations

import logging
import time
from http.cookiejar import Cookie, CookieJar, FileCookieJar, LoadError, MozillaCookieJar
from pathlib import Path
from typing import Protocol, runtime_checkable
from urllib.parse import quote, unquote

logger = logging.getLogger(__name__)

ScopeId = int | str


# ---------------------------------------------------------------------------
# Durable store
# ---------------------------------------------------------------------------


@runtime_checkable
class DurableStore(Protocol):
    """Small persisted key/value store (cookie semantics)."""

    def read(self, key: str) -> str | None: ...

    def write(self, key: str, value: str, *, max_age: float) -> None: ...

    def expire(self, key: str) -> None: ...


def open_cookie_jar(path: str | Path | None) -> CookieJar:
    """Return a jar for *path* (loaded if the file exists), or an in-memory jar."""
    if not path:
        return CookieJar()
    jar = MozillaCookieJar(str(path))
    if Path(path).exists():
        try:
            jar.load(ignore_discard=True)
        except (LoadError, OSError) as exc:
            logger.warning("Ignoring unreadable cookie file %s: %s", path, exc)
    return jar


def save_cookie_jar(jar: CookieJar) -> None:
    """Persist *jar* if it is file-backed; no-op otherwise."""
    if isinstance(jar, FileCookieJar) and jar.filename:
        Path(jar.filename).parent.mkdir(parents=True, exist_ok=True)
        jar.save(ignore_discard=True)


class CookieJarStore:
    """``DurableStore`` backed by cookies for one host.

    Values are URL-encoded.  ``expire()`` writes an already-expired cookie
    and purges it, so the key disappears instead of holding an empty value.
    """

    def __init__(self, jar: CookieJar, domain: str, *, path: str = "/") -> None:
        self._jar = jar
        self._domain = domain
        self._path = path

    @property
    def jar(self) -> CookieJar:
        return self._jar

    def read(self, key: str) -> str | None:
        now = time.time()
        for cookie in self._jar:
            if cookie.name != key or cookie.domain != self._domain or cookie.path != self._path:
                continue
            if cookie.is_expired(now) or cookie.value is None:
                return None
            return unquote(cookie.value)
        return None

    def write(self, key: str, value: str, *, max_age: float) -> None:
        self._jar.set_cookie(self._make_cookie(key, quote(value, safe=""), expires=int(time.time() + max_age)))
        save_cookie_jar(self._jar)

    def expire(self, key: str) -> None:
        self._jar.set_cookie(self._make_cookie(key, "", expires=0))
        self._jar.clear_expired_cookies()
        save_cookie_jar(self._jar)

    def _make_cookie(self, name: str, value: str, *, expires: int) -> Cookie:
        return Cookie(
            version=0,
            name=name,
            value=value,
            port=None,
            port_specified=False,
            domain=self._domain,
            domain_specified=False,
            domain_initial_dot=False,
            path=self._path,
            path_specified=True,
            secure=False,
            expires=expires,
            discard=False,
            comment=None,
            comment_url=None,
            rest={},
        )


# ---------------------------------------------------------------------------
# ScopedContextStore
# ---------------------------------------------------------------------------


def parse_scope_id(raw: str) -> ScopeId:
    """Canonical ASCII integers load as int; anything else stays an opaque token."""
    if raw.isascii() and raw.isdigit() and str(int(raw)) == raw:
        return int(raw)
    return raw


class ScopedContextStore:
    """Holds the active scope id; reads are served from memory.

    The durable store is read once, at construction.
    """

    def __init__(
        self,
        durable: DurableStore,
        *,
        key: str = "activeShopId",
        max_age: float = 365 * 24 * 3600.0,
    ) -> None:
        self._durable = durable
        self._key = key
        self._max_age = max_age
        raw = durable.read(key)
        self._scope_id: ScopeId | None = parse_scope_id(raw) if raw else None

    def get(self) -> ScopeId | None:
        return self._scope_id

    def set(self, scope_id: ScopeId | None) -> None:
        """Update memory and the durable store; ``None`` removes the stored value."""
        if scope_id is None:
            self._scope_id = None
            self._durable.expire(self._key)
            logger.debug("Active scope cleared")
            return
        if isinstance(scope_id, bool) or not isinstance(scope_id, int | str):
            raise TypeError(f"scope id must be int or str, got {type(scope_id).__name__}")
        if isinstance(scope_id, str) and not scope_id.strip():
            raise ValueError("scope id must not be empty; use None to clear")
        self._scope_id = scope_id
        self._durable.write(self._key, str(scope_id), max_age=self._max_age)
        logger.debug("Active scope set to %s", scope_id)

    def clear(self) -> None:
        self.set(None)

    def header_value(self) -> str | None:
        """The current scope rendered for the scope header, or None."""
        return None if self._scope_id is None else str(self._scope_id)
