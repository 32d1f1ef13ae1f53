"""Provider-agnostic request assembly."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from genai_relay.config import GenerationParameters
    from genai_relay.models import Content, RequestPayload, ToolSet


@dataclass(frozen=True)
class SafetySetting:
    """A (harm category, block threshold) pair."""

    category: str
    threshold: str


# Applied to every request regardless of connection method.
DEFAULT_SAFETY_SETTINGS: tuple[SafetySetting, ...] = (
    SafetySetting("HARM_CATEGORY_DANGEROUS_CONTENT", "BLOCK_NONE"),
    SafetySetting("HARM_CATEGORY_HARASSMENT", "BLOCK_NONE"),
    SafetySetting("HARM_CATEGORY_HATE_SPEECH", "BLOCK_NONE"),
    SafetySetting("HARM_CATEGORY_SEXUALLY_EXPLICIT", "BLOCK_NONE"),
)


@dataclass(frozen=True)
class RequestDescriptor:
    """Everything a provider adapter needs to issue one generation call."""

    model: str
    contents: tuple[Content, ...]
    generation: GenerationParameters
    safety_settings: tuple[SafetySetting, ...]
    system_instruction: Content | None = None
    tools: ToolSet | None = None

    def as_log_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable view for debug logging."""
        out: dict[str, Any] = {
            "model": self.model,
            "contents": [c.to_dict() for c in self.contents],
            "config": {
                "temperature": self.generation.temperature,
                "max_output_tokens": self.generation.max_output_tokens,
                "safety_settings": [
                    {"category": s.category, "threshold": s.threshold}
                    for s in self.safety_settings
                ],
            },
        }
        if self.system_instruction is not None:
            out["system_instruction"] = self.system_instruction.to_dict()
        if self.tools is not None:
            out["config"]["tools"] = {
                "web_search": self.tools.web_search,
                "function_declarations": list(self.tools.function_declarations),
            }
        return out


def build_request(
    payload: RequestPayload,
    tools: ToolSet | None,
    model_id: str,
    generation: GenerationParameters,
    safety_settings: tuple[SafetySetting, ...] = DEFAULT_SAFETY_SETTINGS,
) -> RequestDescriptor:
    """Assemble a request descriptor. Pure; performs no I/O.

    The system instruction stays ``None`` when the payload has none so the
    adapter can omit the field entirely.
    """
    return RequestDescriptor(
        model=model_id,
        contents=tuple(payload.contents),
        generation=generation,
        safety_settings=tuple(safety_settings),
        system_instruction=payload.system_instruction,
        tools=None if tools is None or tools.is_empty else tools,
    )
