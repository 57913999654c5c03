# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Error normalization: any failure -> :class:`NormalizedError`.

Message precedence:

1. server envelope ``message`` (verbatim)
2. transport-level exception message
3. :data:`GENERIC_MESSAGE`

``normalize()`` is synchronous and never raises.

``friendly_message()`` turns a raw message into a user-facing sentence for
display layers (optionally passed through a translation callable).
"""

from __future__ import annotations

from collections.abc import Callable

from .errors import ErrorClassification, HttpStatusError, NormalizedError, TransportError

GENERIC_MESSAGE = "Something went wrong. Please try again."


def _classify(error: BaseException) -> ErrorClassification:
    if isinstance(error, HttpStatusError):
        return ErrorClassification.SERVER
    if isinstance(error, TransportError):
        return ErrorClassification.TRANSPORT
    return ErrorClassification.UNKNOWN


def _safe_str(error: BaseException) -> str:
    try:
        return str(error).strip()
    except Exception:
        return ""


def normalize(error: BaseException) -> NormalizedError:
    """Convert *error* into the single error shape exposed to callers."""
    if isinstance(error, NormalizedError):
        return error

    status_code: int | None = None
    message = ""
    if isinstance(error, HttpStatusError):
        status_code = error.status_code
        message = error.response.envelope_message
    if not message:
        message = _safe_str(error)
    if not message:
        message = GENERIC_MESSAGE

    return NormalizedError(
        message,
        cause=error,
        classification=_classify(error),
        status_code=status_code,
    )


# ---------------------------------------------------------------------------
# User-facing messages
# ---------------------------------------------------------------------------

# (required substrings, any-of substrings, friendly text); first match wins
_FRIENDLY_RULES: tuple[tuple[tuple[str, ...], tuple[str, ...], str], ...] = (
    (("email",), ("already", "exists"), "This email is already in use."),
    (("password",), ("weak", "length"), "Your password is too weak. Try a longer one."),
    (("password",), ("incorrect", "invalid"), "Email or password is incorrect."),
    ((), ("unauthorized", "invalid credentials"), "Email or password is incorrect."),
    ((), ("token", "expired"), "Your reset link is invalid or expired."),
    (("email", "invalid"), (), "Enter a valid email address."),
    ((), ("conflict", "overlap"), "This request conflicts with an existing record."),
)


def friendly_message(
    error: BaseException | str | None,
    translate: Callable[[str], str] | None = None,
    fallback: str = GENERIC_MESSAGE,
) -> str:
    """Map a raw error to a user-facing sentence.

    Unknown messages resolve to *fallback*.  Every returned string goes
    through *translate* when given.
    """
    tr = translate or (lambda key: key)
    if isinstance(error, BaseException):
        raw = error.message if isinstance(error, NormalizedError) else _safe_str(error)
    elif isinstance(error, str):
        raw = error
    else:
        raw = ""
    lower = raw.lower()

    for required, any_of, text in _FRIENDLY_RULES:
        if all(word in lower for word in required) and (not any_of or any(word in lower for word in any_of)):
            return tr(text)
    return tr(fallback)
