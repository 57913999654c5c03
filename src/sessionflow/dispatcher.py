# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""RequestDispatcher — the public ``send`` entry point.

Per attempt:

1. copy the caller's headers; add the scope header unless the caller set it,
   and the bearer token when one is held
2. one :meth:`Transport.call`
3. 2xx: unwrap ``{success, data, message}`` and return ``data``

On 401, checked in this order:

a. the refresh endpoint itself answered 401 -> session is over
b. ``config.retried`` already set           -> session is over
c. otherwise mark ``retried``, join/start the refresh; replay once on success

Any other failure is normalized and raised without touching the session.
An unrecoverable session failure also clears the scope and access token and
sends the host to the login path (unless it is already there).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from . import RequestConfig, TransportResponse
from .errors import HttpStatusError, NormalizedError, TransportError
from .host import redirect_once
from .normalizer import normalize

if TYPE_CHECKING:
    from .host import Navigator
    from .refresh import RefreshCoordinator
    from .scope_store import ScopedContextStore
    from .tokens import AccessTokenHolder
    from .transport import Transport

logger = logging.getLogger(__name__)

UNAUTHORIZED = 401


class RequestDispatcher:
    def __init__(
        self,
        transport: Transport,
        coordinator: RefreshCoordinator,
        scope_store: ScopedContextStore,
        *,
        scope_header: str = "x-shop-id",
        tokens: AccessTokenHolder | None = None,
        navigator: Navigator | None = None,
        login_path: str = "/login",
    ) -> None:
        self._transport = transport
        self._coordinator = coordinator
        self._scope = scope_store
        self._scope_header = scope_header
        self._tokens = tokens
        self._navigator = navigator
        self._login_path = login_path

    @property
    def scope_header(self) -> str:
        return self._scope_header

    async def send(self, config: RequestConfig) -> Any:
        """Send *config* and return the unwrapped ``data`` payload.

        Raises:
            NormalizedError: on every unrecoverable condition.
        """
        try:
            return await self._dispatch(config)
        except NormalizedError:
            raise
        except Exception as exc:
            logger.exception("Unexpected failure dispatching %s %s", config.method, config.url)
            raise normalize(exc) from exc

    # -- Internal --

    async def _dispatch(self, config: RequestConfig) -> Any:
        while True:
            try:
                response = await self._transport.call(self._prepare(config))
            except HttpStatusError as exc:
                if exc.status_code != UNAUTHORIZED:
                    logger.debug("%s %s failed with status %d", config.method, config.url, exc.status_code)
                    raise normalize(exc) from exc
                if await self._recover(config):
                    continue  # replay; ``retried`` is set, so at most once
                self._end_session()
                raise normalize(exc) from exc
            except TransportError as exc:
                raise normalize(exc) from exc
            return self._unwrap(response)

    def _prepare(self, config: RequestConfig) -> RequestConfig:
        headers = httpx.Headers(config.headers)
        scope = self._scope.header_value()
        if scope is not None and self._scope_header not in headers:
            headers[self._scope_header] = scope
        authorization = self._tokens.authorization() if self._tokens is not None else None
        if authorization:
            headers["Authorization"] = authorization
        return RequestConfig(
            url=config.url,
            method=config.method,
            headers=headers,
            params=config.params,
            body=config.body,
            with_credentials=config.with_credentials,
        )

    async def _recover(self, config: RequestConfig) -> bool:
        """Decide whether a 401 on *config* can be replayed after a refresh."""
        if self._is_refresh_url(config.url):
            logger.warning("Refresh endpoint answered 401; not refreshing again")
            return False
        if config.retried:
            logger.warning("%s %s still unauthorized after refresh", config.method, config.url)
            return False
        config.retried = True
        return await self._coordinator.ensure_refreshed()

    def _is_refresh_url(self, url: str) -> bool:
        target = self._transport.resolve_url(url)
        refresh = self._transport.resolve_url(self._coordinator.refresh_path)
        return (target.scheme, target.host, target.port, target.path) == (
            refresh.scheme,
            refresh.host,
            refresh.port,
            refresh.path,
        )

    def _end_session(self) -> None:
        logger.warning("Session could not be recovered; clearing local session state")
        self._scope.clear()
        if self._tokens is not None:
            self._tokens.set(None)
        if self._navigator is not None:
            redirect_once(self._navigator, self._login_path)

    @staticmethod
    def _unwrap(response: TransportResponse) -> Any:
        payload = response.payload
        if payload is None and (response.status_code == 204 or response.empty):
            return None
        if not isinstance(payload, dict):
            raise normalize(TransportError("Malformed response: expected a JSON envelope"))
        if payload.get("success") is False:
            raise normalize(HttpStatusError("Request was not successful", response=response))
        return payload.get("data")
