"""Normalize streaming and non-streaming responses into a ``CallResult``.

Works over SDK response objects by attribute access only
(``prompt_feedback.block_reason``, ``candidates[0].finish_reason``,
``candidates[0].content.parts``), so fakes with the same shape behave
identically in tests.
"""

from __future__ import annotations

from enum import Enum
import logging
from typing import TYPE_CHECKING, Any

from genai_relay.errors import ContentBlockedError, EmptyResponseError
from genai_relay.models import CallResult

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

_BENIGN_FINISH_REASONS: frozenset[str] = frozenset(
    {"STOP", "FINISH_REASON_UNSPECIFIED"}
)
_CALL_BLOCK_MARKERS = ("safety", "prompt blocked", "content blocked")

EMPTY_RESPONSE_MESSAGE = "Received empty or non-text response without function call."


def _enum_name(value: Any) -> str | None:
    """Extract a stable string from SDK enums, plain strings, or None."""
    if value is None:
        return None
    # SDK enums subclass str; read the member name, not its repr.
    if isinstance(value, Enum):
        return value.name or None
    if isinstance(value, str):
        return value or None
    for attr in ("name", "value"):
        v = getattr(value, attr, None)
        if isinstance(v, str) and v:
            return v
    return str(value)


def _first_candidate(response: Any) -> Any:
    candidates = getattr(response, "candidates", None)
    if not candidates:
        return None
    return candidates[0]


def _candidate_parts(response: Any) -> list[Any]:
    content = getattr(_first_candidate(response), "content", None)
    return list(getattr(content, "parts", None) or [])


def block_reason(response: Any) -> str | None:
    feedback = getattr(response, "prompt_feedback", None)
    return _enum_name(getattr(feedback, "block_reason", None))


def finish_reason(response: Any) -> str | None:
    return _enum_name(getattr(_first_candidate(response), "finish_reason", None))


def extract_text(response: Any) -> str | None:
    """Return the first candidate's first text part, skipping thought parts."""
    for part in _candidate_parts(response):
        if getattr(part, "thought", False) is True:
            continue
        text = getattr(part, "text", None)
        if isinstance(text, str):
            return text
    return None


def has_function_call(response: Any) -> bool:
    """True when the first candidate carries at least one function-call part."""
    return any(
        getattr(part, "function_call", None) is not None
        for part in _candidate_parts(response)
    )


def _raise_if_blocked(response: Any, *, where: str) -> None:
    reason = block_reason(response)
    if reason:
        raise ContentBlockedError(f"{where} Reason: {reason}")
    if finish_reason(response) == "SAFETY":
        raise ContentBlockedError(f"{where} Finish Reason: SAFETY")


def check_response(response: Any) -> None:
    """Raise ``ContentBlockedError`` for a blocked single-shot response."""
    _raise_if_blocked(response, where="Content generation blocked. Response")


def rewrap_call_error(exc: Exception) -> Exception:
    """Normalize provider call failures that signal blocking."""
    lowered = str(exc).lower()
    if any(marker in lowered for marker in _CALL_BLOCK_MARKERS) or (
        getattr(exc, "status", None) == "BLOCKED"
    ):
        blocked = ContentBlockedError(f"Content generation blocked. Call Reason: {exc}")
        blocked.__cause__ = exc
        return blocked
    return exc


def validate_result(
    text: str | None, function_call: bool, response: Any = None
) -> CallResult:
    """Single validity gate: text or a function call must be present."""
    if not text and not function_call:
        logger.error(
            "Empty response received and no function call detected. "
            "Final response: %r",
            response,
        )
        raise EmptyResponseError(EMPTY_RESPONSE_MESSAGE)
    return CallResult(text=text or "", has_function_call=function_call)


def unify_response(response: Any) -> CallResult:
    """Normalize a non-streaming response."""
    if not response:
        raise EmptyResponseError(EMPTY_RESPONSE_MESSAGE)
    check_response(response)
    return validate_result(extract_text(response), has_function_call(response), response)


async def _aclose(stream: Any) -> None:
    aclose = getattr(stream, "aclose", None)
    if callable(aclose):
        await aclose()


async def consume_stream(stream: AsyncIterator[Any]) -> tuple[str, Any]:
    """Fold a chunk stream into ``(text, last_chunk)``.

    Consumption stops at the first chunk with a block reason or a SAFETY
    finish; text already accumulated is discarded with the error.
    """
    accumulated: list[str] = []
    last: Any = None
    try:
        async for chunk in stream:
            last = chunk
            _raise_if_blocked(chunk, where="Content generation blocked during stream.")
            text = extract_text(chunk)
            if text:
                accumulated.append(text)
    except ContentBlockedError as e:
        logger.error("Error during stream processing: %s", e)
        raise
    except Exception as e:
        logger.error("Error during stream processing: %s", e)
        lowered = str(e).lower()
        if "safety" in lowered or "blocked" in lowered:
            raise ContentBlockedError(
                f"Content generation blocked. Stream Error: {e}"
            ) from e
        raise
    finally:
        await _aclose(stream)

    text = "".join(accumulated)
    if last is not None:
        # Some providers only flag blocking on the terminal chunk.
        _raise_if_blocked(
            last, where="Content generation blocked. Final Stream Chunk"
        )
        final_reason = finish_reason(last)
        if final_reason and final_reason not in _BENIGN_FINISH_REASONS:
            logger.warning("Stream finished with reason: %s", final_reason)
        if not text:
            # Some providers deliver all text in the final chunk.
            text = extract_text(last) or ""
    return text, last


async def unify_stream(stream: AsyncIterator[Any]) -> CallResult:
    """Normalize a streaming response."""
    text, last = await consume_stream(stream)
    return validate_result(text, has_function_call(last), last)
