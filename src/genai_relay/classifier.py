"""Failure classification at the provider-adapter boundary.

Every per-attempt failure is mapped into a small closed taxonomy with a
retryability verdict. Structured signals (HTTP status codes on the exception
chain, httpx transport errors) are used when the SDK exposes them; the
provider does not expose a stable code across its streaming and
non-streaming call shapes, so substring heuristics remain the fallback.
All of that fragility lives in this module.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
import re
from typing import Any

import httpx

from genai_relay.errors import _walk_exception_chain


class ErrorKind(Enum):
    """Failure taxonomy for generation attempts."""

    SAFETY = "safety"
    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    TIMEOUT = "timeout"
    NETWORK = "network"
    UNKNOWN = "unknown"


_RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset(
    {
        ErrorKind.RATE_LIMIT,
        ErrorKind.SERVER_ERROR,
        ErrorKind.TIMEOUT,
        ErrorKind.NETWORK,
    }
)


@dataclass(frozen=True)
class AIServiceError:
    """Classified view of one failed attempt."""

    kind: ErrorKind
    message: str
    retryable: bool
    cause: BaseException | None = None
    status_code: int | None = None


_SERVER_ERROR_RE = re.compile(r"\b(500|503|internal|unavailable)\b")
_SAFETY_REASON_RE = re.compile(r"(Reason|Finish Reason):\s*(\w+)", re.IGNORECASE)
_NETWORK_MARKERS = (
    "network error",
    "socket hang up",
    "could not connect",
    "connection refused",
)

_STATUS_KINDS: dict[int, ErrorKind] = {
    408: ErrorKind.TIMEOUT,
    429: ErrorKind.RATE_LIMIT,
    500: ErrorKind.SERVER_ERROR,
    502: ErrorKind.SERVER_ERROR,
    503: ErrorKind.SERVER_ERROR,
    504: ErrorKind.SERVER_ERROR,
}


def extract_status_code(exc: BaseException) -> int | None:
    """Walk the exception chain to find an HTTP status code.

    ``google.genai.errors.APIError`` carries it as ``code``; httpx and most
    other SDKs use ``status_code`` or ``response.status_code``.
    """
    for e in _walk_exception_chain(exc):
        for attr in ("code", "status_code", "status"):
            value = getattr(e, attr, None)
            if isinstance(value, int) and 100 <= value <= 599:
                return value
        response = getattr(e, "response", None)
        value = getattr(response, "status_code", None)
        if isinstance(value, int) and 100 <= value <= 599:
            return value
    return None


def _structured_kind(exc: BaseException) -> tuple[ErrorKind, int | None] | None:
    status_code = extract_status_code(exc)
    if status_code in _STATUS_KINDS:
        return _STATUS_KINDS[status_code], status_code

    for e in _walk_exception_chain(exc):
        # httpx.TimeoutException subclasses RequestError; check it first.
        if isinstance(e, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
            return ErrorKind.TIMEOUT, status_code
        if isinstance(e, httpx.RequestError):
            return ErrorKind.NETWORK, status_code
    return None


def _heuristic_kind(lowered: str) -> ErrorKind:
    if "429" in lowered:
        return ErrorKind.RATE_LIMIT
    if _SERVER_ERROR_RE.search(lowered) or "server error" in lowered:
        return ErrorKind.SERVER_ERROR
    if "deadline_exceeded" in lowered or "timeout" in lowered:
        return ErrorKind.TIMEOUT
    if any(marker in lowered for marker in _NETWORK_MARKERS):
        return ErrorKind.NETWORK
    return ErrorKind.UNKNOWN


def _message_of(raw: Any) -> str:
    if isinstance(raw, BaseException):
        text = str(raw)
        if not text and raw.args:
            text = str(raw.args[0])
        return text
    return "" if raw is None else str(raw)


def classify(raw: BaseException | str | None) -> AIServiceError:
    """Map an arbitrary failure into an ``AIServiceError``.

    Precedence (first match wins):

    1. "blocked"/"safety" anywhere in the text: SAFETY, never retried.
    2. Structured status code or transport exception type.
    3. Case-insensitive substring heuristics.
    """
    message = _message_of(raw)
    lowered = message.lower()
    cause = raw if isinstance(raw, BaseException) else None

    if "blocked" in lowered or "safety" in lowered:
        kind = ErrorKind.SAFETY
        status_code = None
    else:
        structured = _structured_kind(cause) if cause is not None else None
        if structured is not None:
            kind, status_code = structured
        else:
            kind = _heuristic_kind(lowered)
            status_code = extract_status_code(cause) if cause is not None else None

    return AIServiceError(
        kind=kind,
        message=message or "Unknown error",
        retryable=kind in _RETRYABLE_KINDS,
        cause=cause,
        status_code=status_code,
    )


def format_error_message(error: AIServiceError) -> str:
    """Render the terminal, human-readable message for a classified error."""
    if error.kind is ErrorKind.SAFETY:
        match = _SAFETY_REASON_RE.search(error.message)
        reason = match.group(2) if match else "Safety Filter"
        return f"Content generation blocked by {reason}. ({error.message})"

    if error.kind is ErrorKind.RATE_LIMIT:
        return "GenAI API error: Rate limit exceeded (429). Please try again later."

    if error.kind is ErrorKind.SERVER_ERROR:
        match = _SERVER_ERROR_RE.search(error.message)
        if match:
            code = match.group(0)
        elif error.status_code is not None:
            code = str(error.status_code)
        else:
            code = "server error"
        return (
            f"GenAI API error: Server error ({code}). Please try again later. "
            f"({error.message})"
        )

    if error.kind is ErrorKind.TIMEOUT:
        return "GenAI API error: Operation timed out (deadline_exceeded)."

    return f"GenAI API error: {error.message}"
