# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Transport — one HTTP round trip per call, over a shared ``httpx.AsyncClient``.

No retries and no header injection live here: calling :meth:`Transport.call`
directly is the escape hatch that bypasses every dispatcher-level rule
(used by the refresh coordinator).

Outcome mapping:

- 2xx            -> :class:`TransportResponse`
- non-2xx        -> :class:`HttpStatusError` (response attached)
- network/timeout/invalid URL -> :class:`TransportError`

Dependencies: httpx, errors.py.
"""

from __future__ import annotations

import logging
from http.cookiejar import CookieJar
from types import TracebackType

import httpx

from . import RequestConfig, TransportResponse
from .errors import HttpStatusError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


def _describe(exc: Exception) -> str:
    text = str(exc).strip()
    return text or type(exc).__name__


class Transport:
    """Thin async wrapper around ``httpx.AsyncClient``.

    Usage::

        async with Transport("http://localhost:5000/api/v1") as transport:
            response = await transport.call(RequestConfig(url="/me"))
    """

    def __init__(
        self,
        base_url: str,
        *,
        cookies: CookieJar | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            cookies=cookies,
            timeout=timeout,
            headers=DEFAULT_HEADERS,
            transport=transport,
        )

    # -- Async context manager --

    async def __aenter__(self) -> Transport:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # -- Public API --

    @property
    def base_url(self) -> httpx.URL:
        return self._client.base_url

    @base_url.setter
    def base_url(self, url: str) -> None:
        self._client.base_url = url

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    def resolve_url(self, url: str) -> httpx.URL:
        """Absolute URL for *url*, joined onto the base URL the way requests are."""
        target = httpx.URL(url)
        if target.is_relative_url:
            base = self._client.base_url  # httpx keeps a trailing slash on the base path
            return base.copy_with(raw_path=base.raw_path + target.raw_path.lstrip(b"/"))
        return target

    async def call(self, config: RequestConfig) -> TransportResponse:
        """Perform exactly one network round trip for *config*."""
        try:
            request = self._build_request(config)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol, TypeError, ValueError) as exc:
            raise TransportError(f"Invalid request for {config.url!r}: {_describe(exc)}") from exc

        if not config.with_credentials:
            request.headers.pop("cookie", None)

        try:
            response = await self._client.send(request)
        except httpx.HTTPError as exc:
            logger.debug("%s %s transport failure: %s", config.method, config.url, type(exc).__name__)
            raise TransportError(f"Network error: {_describe(exc)}") from exc

        result = TransportResponse(
            status_code=response.status_code,
            payload=self._parse_body(response),
            headers=response.headers,
            url=str(response.request.url),
            empty=not response.content,
        )
        if not result.is_success:
            raise HttpStatusError(
                f"Request failed with status code {response.status_code}",
                response=result,
            )
        return result

    # -- Internal --

    def _build_request(self, config: RequestConfig) -> httpx.Request:
        kwargs: dict = {"headers": config.headers}
        if config.params:
            kwargs["params"] = config.params
        if isinstance(config.body, bytes | str):
            kwargs["content"] = config.body
        elif config.body is not None:
            kwargs["json"] = config.body
        return self._client.build_request(config.method, config.url, **kwargs)

    @staticmethod
    def _parse_body(response: httpx.Response) -> object:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None
