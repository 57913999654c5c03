# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""SessionClient — composition root for the request pipeline.

One client owns one of each: cookie jar, scope store, access token,
transport, refresh coordinator, dispatcher.  Nothing is module-global, so
independent clients (and tests) never share refresh state.

Lifecycle follows the ``AsyncContextManager`` pattern::

    async with SessionClient(ClientConfig.from_env()) as client:
        client.select_scope(42)
        me = await client.get("/me")
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any
from urllib.parse import urlparse

import httpx

from . import RequestConfig
from .config import ClientConfig
from .dispatcher import RequestDispatcher
from .host import HostNavigator, Navigator
from .refresh import RefreshCoordinator, RefreshHealth
from .scope_store import CookieJarStore, ScopedContextStore, ScopeId, open_cookie_jar, save_cookie_jar
from .tokens import AccessTokenHolder
from .transport import Transport

logger = logging.getLogger(__name__)


class SessionClient:
    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        navigator: Navigator | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or ClientConfig()
        self._jar = open_cookie_jar(self._config.cookie_path)
        host = urlparse(self._config.base_url).hostname or "localhost"
        self._scope = ScopedContextStore(
            CookieJarStore(self._jar, host),
            key=self._config.scope_key,
            max_age=self._config.scope_max_age,
        )
        self._tokens = AccessTokenHolder()
        self._navigator = navigator if navigator is not None else HostNavigator()
        self._transport = Transport(
            self._config.base_url,
            cookies=self._jar,
            timeout=self._config.timeout,
            transport=transport,
        )
        self._coordinator = RefreshCoordinator(
            self._transport,
            refresh_path=self._config.refresh_path,
            tokens=self._tokens,
        )
        self._dispatcher = RequestDispatcher(
            self._transport,
            self._coordinator,
            self._scope,
            scope_header=self._config.scope_header,
            tokens=self._tokens,
            navigator=self._navigator,
            login_path=self._config.login_path,
        )

    # -- Async context manager --

    async def __aenter__(self) -> SessionClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client and persist cookies (session + scope)."""
        if not self._transport.is_closed:
            await self._transport.aclose()
        save_cookie_jar(self._jar)

    # -- Components --

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def scope_store(self) -> ScopedContextStore:
        return self._scope

    @property
    def tokens(self) -> AccessTokenHolder:
        return self._tokens

    @property
    def navigator(self) -> Navigator:
        return self._navigator

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def coordinator(self) -> RefreshCoordinator:
        return self._coordinator

    @property
    def dispatcher(self) -> RequestDispatcher:
        return self._dispatcher

    # -- Session context --

    @property
    def active_scope(self) -> ScopeId | None:
        return self._scope.get()

    def select_scope(self, scope_id: ScopeId | None) -> None:
        self._scope.set(scope_id)

    def set_access_token(self, token: str | None) -> None:
        self._tokens.set(token)

    def set_base_url(self, base_url: str | None) -> None:
        """Point the client at another API root; empty resets to the configured one."""
        self._transport.base_url = base_url or self._config.base_url

    def health(self) -> RefreshHealth:
        return self._coordinator.health()

    # -- Requests --

    async def send(self, config: RequestConfig) -> Any:
        return await self._dispatcher.send(config)

    async def request(
        self,
        method: str,
        url: str,
        *,
        body: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        return await self.send(
            RequestConfig(
                url=url,
                method=method,
                headers=httpx.Headers(headers or {}),
                params=params or {},
                body=body,
            )
        )

    async def get(self, url: str, **kwargs: Any) -> Any:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> Any:
        return await self.request("POST", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> Any:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", url, **kwargs)
