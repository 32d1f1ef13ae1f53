"""Exception hierarchy for genai-relay."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class RelayError(Exception):
    """Base exception for all genai-relay errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(RelayError):
    """Configuration validation or resolution failed."""


class InternalError(RelayError):
    """Terminal engine failure surfaced to callers.

    The message is already formatted for humans; per-attempt errors never
    leave the engine in any other shape.
    """


class InitializationError(InternalError):
    """A provider client handle could not be constructed."""


class GenerationError(RelayError):
    """A single generation attempt produced an unusable response.

    Raised inside an attempt and classified by the retry loop; callers only
    ever see the resulting ``InternalError``.
    """


class ContentBlockedError(GenerationError):
    """The provider withheld content (block reason or SAFETY finish)."""


class EmptyResponseError(GenerationError):
    """The response carried neither text nor a function call."""


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
