# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""sessionflow exception hierarchy.

Transport-level failures surface as ``TransportError`` or ``HttpStatusError``
inside the pipeline.  Callers of ``RequestDispatcher.send`` only ever see
``NormalizedError``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from . import TransportResponse


class SessionFlowError(Exception):
    """Base exception for all sessionflow errors."""


class TransportError(SessionFlowError):
    """Network failure, timeout, invalid URL, or malformed response."""


class HttpStatusError(SessionFlowError):
    """The server answered with a non-2xx status."""

    def __init__(self, message: str, *, response: TransportResponse) -> None:
        super().__init__(message)
        self.response = response

    @property
    def status_code(self) -> int:
        return self.response.status_code


class ErrorClassification(StrEnum):
    TRANSPORT = "transport"
    SERVER = "server"
    UNKNOWN = "unknown"


class NormalizedError(SessionFlowError):
    """The single error shape exposed to calling code.

    Attributes are read-only once constructed.
    """

    def __init__(
        self,
        message: str,
        *,
        cause: BaseException | None,
        classification: ErrorClassification,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self._message = message
        self._cause = cause
        self._classification = classification
        self._status_code = status_code

    @property
    def message(self) -> str:
        return self._message

    @property
    def cause(self) -> BaseException | None:
        return self._cause

    @property
    def classification(self) -> ErrorClassification:
        return self._classification

    @property
    def status_code(self) -> int | None:
        return self._status_code

    def __repr__(self) -> str:
        return (
            f"NormalizedError(message={self._message!r}, "
            f"classification={self._classification.value!r}, status_code={self._status_code!r})"
        )
