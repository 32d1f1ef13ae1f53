"""Gemini adapter characterization tests.

These use fake clients to pin the exact shapes handed to the google-genai
SDK without making network calls.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

from google.genai import types
import pytest

from genai_relay.config import ConnectionConfig, GenerationParameters
from genai_relay.errors import InitializationError
from genai_relay.gemini import GeminiTransport, create_client, to_sdk_config, to_sdk_contents
from genai_relay.models import Content, Part, RequestPayload, ToolSet, build_api_payload
from genai_relay.request import build_request

pytestmark = pytest.mark.contract

_GEN = GenerationParameters(temperature=0.2, max_output_tokens=512)


# =============================================================================
# Client construction
# =============================================================================


class _FakeClient:
    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs


def test_create_client_vertex_passes_project_and_location(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr("google.genai.Client", _FakeClient)

    client = create_client(
        ConnectionConfig("vertex", project_id="proj", location="us-central1")
    )

    assert client.kwargs == {
        "vertexai": True,
        "project": "proj",
        "location": "us-central1",
    }


def test_create_client_vertex_forwards_explicit_credentials(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr("google.genai.Client", _FakeClient)
    creds = object()

    client = create_client(
        ConnectionConfig("vertex", project_id="proj", location="eu"), credentials=creds
    )

    assert client.kwargs["credentials"] is creds


def test_create_client_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("google.genai.Client", _FakeClient)

    client = create_client(ConnectionConfig("api_key", api_key="k"))

    assert client.kwargs == {"vertexai": False, "api_key": "k"}


@pytest.mark.parametrize(
    ("connection", "hint_var"),
    [
        (ConnectionConfig("vertex", location="us-central1"), "GOOGLE_CLOUD_PROJECT"),
        (ConnectionConfig("api_key"), "GEMINI_API_KEY"),
    ],
)
def test_create_client_requires_credentials(
    connection: ConnectionConfig, hint_var: str
) -> None:
    with pytest.raises(InitializationError, match="Failed to initialize AI client") as exc:
        create_client(connection)
    assert exc.value.hint is not None
    assert hint_var in exc.value.hint


def test_create_client_wraps_sdk_constructor_failures(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def _boom(**_kwargs: Any) -> Any:
        raise ValueError("invalid credentials file")

    monkeypatch.setattr("google.genai.Client", _boom)

    with pytest.raises(InitializationError, match="invalid credentials file") as exc:
        create_client(ConnectionConfig("api_key", api_key="k"))
    assert isinstance(exc.value.__cause__, ValueError)


# =============================================================================
# Request shape
# =============================================================================


def test_sdk_config_omits_system_instruction_when_absent() -> None:
    descriptor = build_request(build_api_payload(None, "hi"), None, "m", _GEN)

    config = to_sdk_config(descriptor)

    assert isinstance(config, types.GenerateContentConfig)
    assert config.system_instruction is None
    assert config.tools is None
    assert config.temperature == 0.2
    assert config.max_output_tokens == 512
    assert len(config.safety_settings) == 4
    assert all(
        s.threshold == types.HarmBlockThreshold.BLOCK_NONE for s in config.safety_settings
    )


def test_sdk_config_includes_system_instruction_and_tools() -> None:
    tools = ToolSet(
        web_search=True,
        function_declarations=(
            {
                "name": "lookup",
                "description": "Find a record",
                "parameters": {"type": "OBJECT", "properties": {}},
            },
        ),
    )
    descriptor = build_request(build_api_payload("sys", "hi"), tools, "m", _GEN)

    config = to_sdk_config(descriptor)

    assert config.system_instruction.parts[0].text == "sys"
    assert len(config.tools) == 2
    assert config.tools[0].google_search is not None
    assert config.tools[1].function_declarations[0].name == "lookup"


def test_sdk_contents_preserve_roles_and_part_kinds() -> None:
    payload = RequestPayload(
        contents=(
            Content(role="user", parts=(Part(text="q"),)),
            Content(
                role="model",
                parts=(Part(function_call={"name": "lookup", "args": {"id": 1}}),),
            ),
            Content(
                role="user",
                parts=(Part(data={"inline_data": {"mime_type": "text/plain", "data": b"x"}}),),
            ),
        )
    )
    descriptor = build_request(payload, None, "m", _GEN)

    contents = to_sdk_contents(descriptor)

    assert [c.role for c in contents] == ["user", "model", "user"]
    assert contents[0].parts[0].text == "q"
    assert contents[1].parts[0].function_call.name == "lookup"
    assert contents[1].parts[0].function_call.args == {"id": 1}
    assert contents[2].parts[0].inline_data.mime_type == "text/plain"


@pytest.mark.asyncio
async def test_transport_routes_to_async_models_api() -> None:
    captured: dict[str, Any] = {}

    async def fake_generate_content(*, model: str, contents: Any, config: Any) -> Any:
        captured["single"] = (model, contents, config)
        return "response"

    async def fake_generate_content_stream(
        *, model: str, contents: Any, config: Any
    ) -> Any:
        captured["stream"] = (model, contents, config)
        return "stream"

    handle = MagicMock()
    handle.aio.models.generate_content = fake_generate_content
    handle.aio.models.generate_content_stream = fake_generate_content_stream
    descriptor = build_request(build_api_payload(None, "hi"), None, "gemini-x", _GEN)
    transport = GeminiTransport()

    assert await transport.generate(handle, descriptor) == "response"
    assert await transport.generate_stream(handle, descriptor) == "stream"
    assert captured["single"][0] == "gemini-x"
    assert captured["stream"][0] == "gemini-x"
    assert captured["single"][1][0].parts[0].text == "hi"
