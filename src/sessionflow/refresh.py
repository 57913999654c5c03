# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Single-flight session refresh.

However many requests discover an expired session at once, the refresh
endpoint is called at most once until that call settles; every caller gets
the same boolean outcome.

States: ``Idle`` (no task) and ``Refreshing`` (``_inflight`` task pending).

- The first caller creates the refresh task (``Idle -> Refreshing``).
- Later callers await the same task (waiters).
- The task resets ``_inflight`` before its result is published, so a caller
  arriving after settlement starts a new wave instead of reading a stale one.

The check of ``_inflight`` and the creation/await of the task happen with no
``await`` in between; under asyncio that makes the transition atomic.  Callers
on other threads must go through the owning event loop.

Waiters await through ``asyncio.shield``: a cancelled caller stops waiting,
the refresh itself keeps running for everyone else.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from . import RequestConfig, TransportResponse
from .errors import HttpStatusError, TransportError

if TYPE_CHECKING:
    from .tokens import AccessTokenHolder
    from .transport import Transport

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RefreshHealth:
    """Immutable snapshot of coordinator state for monitoring."""

    refreshing: bool
    waiting: int
    total_refreshes: int  # refresh calls issued
    total_failures: int


class RefreshCoordinator:
    """Owns the refresh protocol; one instance per client."""

    def __init__(
        self,
        transport: Transport,
        *,
        refresh_path: str = "/auth/refresh",
        tokens: AccessTokenHolder | None = None,
    ) -> None:
        self._transport = transport
        self._refresh_path = refresh_path
        self._tokens = tokens
        self._inflight: asyncio.Task[bool] | None = None
        self._waiting = 0
        self._total_refreshes = 0
        self._total_failures = 0

    @property
    def refresh_path(self) -> str:
        return self._refresh_path

    @property
    def refreshing(self) -> bool:
        return self._inflight is not None

    async def ensure_refreshed(self) -> bool:
        """Refresh the session, or join the refresh already in flight.

        Returns True if the session was refreshed, False otherwise.
        """
        task = self._inflight
        if task is None:
            task = asyncio.get_running_loop().create_task(self._run_refresh())
            self._inflight = task
            logger.info("Session refresh started")
        else:
            logger.debug("Joining in-flight session refresh (%d waiting)", self._waiting + 1)

        self._waiting += 1
        try:
            return await asyncio.shield(task)
        finally:
            self._waiting -= 1

    def health(self) -> RefreshHealth:
        return RefreshHealth(
            refreshing=self.refreshing,
            waiting=self._waiting,
            total_refreshes=self._total_refreshes,
            total_failures=self._total_failures,
        )

    # -- Internal --

    async def _run_refresh(self) -> bool:
        self._total_refreshes += 1
        try:
            response = await self._transport.call(
                RequestConfig(url=self._refresh_path, method="POST", with_credentials=True)
            )
        except HttpStatusError as exc:
            logger.warning("Session refresh rejected with status %d", exc.status_code)
            outcome = False
        except TransportError as exc:
            logger.warning("Session refresh failed: %s", exc)
            outcome = False
        else:
            self._store_token(response)
            outcome = True
        finally:
            # Back to Idle before the outcome is delivered to any waiter.
            self._inflight = None

        if not outcome:
            self._total_failures += 1
        logger.info("Session refresh settled (refreshed=%s)", outcome)
        return outcome

    def _store_token(self, response: TransportResponse) -> None:
        if self._tokens is None or not isinstance(response.payload, dict):
            return
        data = response.payload.get("data")
        if isinstance(data, dict):
            token = data.get("accessToken")
            if isinstance(token, str) and token:
                self._tokens.set(token)
