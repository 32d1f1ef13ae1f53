"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: response fakes mirror the attribute
shape of ``google.genai`` responses, and the transport replays a script so
suites don't grow one-off provider subclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any

from genai_relay.client import ClientHandleManager
from genai_relay.config import ConnectionConfig, EngineConfig, GenerationParameters
from genai_relay.engine import GenerationEngine


def make_part(
    text: str | None = None,
    function_call: Any = None,
    thought: bool | None = None,
) -> SimpleNamespace:
    return SimpleNamespace(text=text, function_call=function_call, thought=thought)


def make_response(
    *texts: str,
    function_call: Any = None,
    finish_reason: Any = None,
    block_reason: Any = None,
    parts: list[Any] | None = None,
) -> SimpleNamespace:
    """Build a response/chunk with one candidate."""
    if parts is None:
        parts = [make_part(text=t) for t in texts]
        if function_call is not None:
            parts.append(make_part(function_call=function_call))
    candidate = SimpleNamespace(
        content=SimpleNamespace(role="model", parts=parts),
        finish_reason=finish_reason,
    )
    feedback = SimpleNamespace(block_reason=block_reason) if block_reason else None
    return SimpleNamespace(candidates=[candidate], prompt_feedback=feedback)


class FakeStream:
    """Async chunk iterator that records consumption and closing."""

    def __init__(self, chunks: list[Any]) -> None:
        self._chunks = list(chunks)
        self.consumed = 0
        self.closed = False

    def __aiter__(self) -> FakeStream:
        return self

    async def __anext__(self) -> Any:
        if self.closed or self.consumed >= len(self._chunks):
            raise StopAsyncIteration
        item = self._chunks[self.consumed]
        self.consumed += 1
        if isinstance(item, BaseException):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


@dataclass
class ScriptedTransport:
    """Transport double replaying a script of responses/streams/exceptions.

    For ``generate`` each item is a response or an exception. For
    ``generate_stream`` each item is a list of chunks or an exception.
    """

    script: list[Any] = field(default_factory=list)
    calls: int = 0
    handles: list[Any] = field(default_factory=list)
    descriptors: list[Any] = field(default_factory=list)
    streams: list[FakeStream] = field(default_factory=list)

    def _next(self, handle: Any, descriptor: Any) -> Any:
        self.calls += 1
        self.handles.append(handle)
        self.descriptors.append(descriptor)
        if not self.script:
            raise AssertionError("ScriptedTransport script exhausted")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def generate(self, handle: Any, descriptor: Any) -> Any:
        return self._next(handle, descriptor)

    async def generate_stream(self, handle: Any, descriptor: Any) -> FakeStream:
        stream = FakeStream(self._next(handle, descriptor))
        self.streams.append(stream)
        return stream


@dataclass
class RecordingSleep:
    """Async sleep double that records requested delays (seconds)."""

    delays: list[float] = field(default_factory=list)

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_config(**overrides: Any) -> EngineConfig:
    """EngineConfig for an API-key connection with test-friendly defaults."""
    values: dict[str, Any] = {
        "connection": ConnectionConfig("api_key", api_key="test-key"),
        "model_id": "gemini-test",
        "generation": GenerationParameters(temperature=0.0, max_output_tokens=256),
        "use_streaming": False,
        "max_retries": 3,
        "retry_delay_ms": 1000,
    }
    values.update(overrides)
    return EngineConfig(**values)


def make_engine(
    transport: ScriptedTransport,
    *,
    config: EngineConfig | None = None,
    sleep: RecordingSleep | None = None,
    rng: Any = None,
    factory: Any = None,
) -> GenerationEngine:
    """Engine wired to fakes; never constructs a real SDK client."""
    manager = ClientHandleManager(
        factory=factory if factory is not None else (lambda _conn: object())
    )
    return GenerationEngine(
        config if config is not None else make_config(),
        manager=manager,
        transport=transport,
        sleep=sleep if sleep is not None else RecordingSleep(),
        rng=rng if rng is not None else (lambda: 0.0),
    )
