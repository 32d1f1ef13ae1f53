"""Domain models passed between the tool layer and the generation engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Part:
    """One piece of a content block: text or a structured value."""

    text: str | None = None
    function_call: dict[str, Any] | None = None
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-friendly shape used for request dumps."""
        out: dict[str, Any] = {}
        if self.text is not None:
            out["text"] = self.text
        if self.function_call is not None:
            out["function_call"] = self.function_call
        if self.data is not None:
            out["data"] = self.data
        return out


@dataclass(frozen=True)
class Content:
    """A role-tagged sequence of parts."""

    role: str | None
    parts: tuple[Part, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"parts": [p.to_dict() for p in self.parts]}
        if self.role is not None:
            out["role"] = self.role
        return out


@dataclass(frozen=True)
class RequestPayload:
    """Ordered content blocks plus an optional system instruction."""

    contents: tuple[Content, ...]
    system_instruction: Content | None = None


@dataclass(frozen=True)
class ToolSet:
    """Per-call tool capabilities requested by the caller."""

    web_search: bool = False
    function_declarations: tuple[dict[str, Any], ...] = ()

    @property
    def grounding_requested(self) -> bool:
        return self.web_search

    @property
    def function_calling_requested(self) -> bool:
        return bool(self.function_declarations)

    @property
    def is_empty(self) -> bool:
        return not (self.grounding_requested or self.function_calling_requested)


@dataclass(frozen=True)
class CallResult:
    """Validated outcome of one successful generation attempt."""

    text: str = ""
    has_function_call: bool = False


def build_api_payload(
    system_instruction_text: str | None, user_query_text: str
) -> RequestPayload:
    """Build a single-turn payload from plain prompt strings.

    The system instruction is attached only when it has text; an explicitly
    empty instruction is rejected by some providers.
    """
    contents = (Content(role="user", parts=(Part(text=user_query_text),)),)
    if system_instruction_text:
        return RequestPayload(
            contents=contents,
            system_instruction=Content(
                role=None, parts=(Part(text=system_instruction_text),)
            ),
        )
    return RequestPayload(contents=contents)


def tools_for_api(
    *,
    use_web_search: bool,
    enable_function_calling: bool = False,
    function_declarations: tuple[dict[str, Any], ...] | list[dict[str, Any]] = (),
) -> ToolSet | None:
    """Derive the per-call tool set, or None when nothing is requested."""
    declarations = tuple(function_declarations) if enable_function_calling else ()
    tools = ToolSet(web_search=use_web_search, function_declarations=declarations)
    return None if tools.is_empty else tools
