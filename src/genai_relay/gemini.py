"""Gemini / Vertex AI adapter over the ``google-genai`` SDK.

This is the only module that touches SDK types. Generation calls let raw SDK
exceptions propagate; the classifier maps them.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any

from genai_relay.errors import InitializationError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from genai_relay.config import ConnectionConfig
    from genai_relay.models import Content, Part
    from genai_relay.request import RequestDescriptor

logger = logging.getLogger(__name__)


def create_client(connection: ConnectionConfig, *, credentials: Any = None) -> Any:
    """Construct a ``google.genai.Client`` for the given connection.

    Raises:
        InitializationError: Credentials are missing or the SDK refused them.
    """
    if connection.method == "vertex":
        if not connection.project_id or not connection.location:
            raise InitializationError(
                "Failed to initialize AI client: Missing GOOGLE_CLOUD_PROJECT or "
                "GOOGLE_CLOUD_LOCATION for Vertex AI connection.",
                hint="Set GOOGLE_CLOUD_PROJECT and GOOGLE_CLOUD_LOCATION.",
            )
    elif not connection.api_key:
        raise InitializationError(
            "Failed to initialize AI client: Missing GEMINI_API_KEY for API Key "
            "connection.",
            hint="Set GEMINI_API_KEY.",
        )

    try:
        from google import genai
    except ImportError as e:
        raise InitializationError(
            "google-genai package not installed",
            hint="pip install google-genai",
        ) from e

    try:
        if connection.method == "vertex":
            kwargs: dict[str, Any] = {
                "vertexai": True,
                "project": connection.project_id,
                "location": connection.location,
            }
            if credentials is not None:
                kwargs["credentials"] = credentials
                logger.info("Using provided Google credentials for authentication")
            elif creds_path := os.environ.get("GOOGLE_APPLICATION_CREDENTIALS"):
                logger.info(
                    "Using credentials from GOOGLE_APPLICATION_CREDENTIALS: %s",
                    creds_path,
                )
            else:
                logger.info(
                    "Using Application Default Credentials (ADC) for authentication"
                )
            client = genai.Client(**kwargs)
            logger.info(
                "Initialized google-genai client via Vertex AI for project %s in %s",
                connection.project_id,
                connection.location,
            )
        else:
            client = genai.Client(vertexai=False, api_key=connection.api_key)
            logger.info("Initialized google-genai client via API key")
    except InitializationError:
        raise
    except Exception as e:
        logger.error(
            "Error initializing google-genai client (%s): %s", connection.method, e
        )
        raise InitializationError(f"Failed to initialize AI client: {e}") from e
    return client


def _to_sdk_part(part: Part) -> Any:
    from google.genai import types

    if part.text is not None:
        return types.Part(text=part.text)
    if part.function_call is not None:
        return types.Part(
            function_call=types.FunctionCall(
                name=part.function_call.get("name"),
                args=part.function_call.get("args") or {},
            )
        )
    if isinstance(part.data, dict):
        # Raw SDK part shapes (inline_data, file_data, ...) pass through.
        return types.Part.model_validate(part.data)
    return part.data


def _to_sdk_content(content: Content) -> Any:
    from google.genai import types

    return types.Content(
        role=content.role,
        parts=[_to_sdk_part(p) for p in content.parts],
    )


def to_sdk_contents(descriptor: RequestDescriptor) -> list[Any]:
    """Convert descriptor contents into ``types.Content`` objects."""
    return [_to_sdk_content(c) for c in descriptor.contents]


def to_sdk_config(descriptor: RequestDescriptor) -> Any:
    """Build the ``GenerateContentConfig`` for a descriptor."""
    from google.genai import types

    config_kwargs: dict[str, Any] = {
        "temperature": descriptor.generation.temperature,
        "max_output_tokens": descriptor.generation.max_output_tokens,
        "safety_settings": [
            types.SafetySetting(category=s.category, threshold=s.threshold)
            for s in descriptor.safety_settings
        ],
    }
    # Omitted entirely when absent; some endpoints reject an empty instruction.
    if descriptor.system_instruction is not None:
        config_kwargs["system_instruction"] = _to_sdk_content(
            descriptor.system_instruction
        )

    tools = descriptor.tools
    if tools is not None:
        tool_objs: list[Any] = []
        if tools.web_search:
            tool_objs.append(types.Tool(google_search=types.GoogleSearch()))
        if tools.function_declarations:
            tool_objs.append(
                types.Tool(
                    function_declarations=[
                        types.FunctionDeclaration(
                            name=d["name"],
                            description=d.get("description", ""),
                            parameters=d.get("parameters"),
                        )
                        for d in tools.function_declarations
                    ]
                )
            )
        if tool_objs:
            config_kwargs["tools"] = tool_objs

    return types.GenerateContentConfig(**config_kwargs)


class GeminiTransport:
    """Issues generation calls on a ``google.genai.Client`` handle."""

    async def generate(self, handle: Any, descriptor: RequestDescriptor) -> Any:
        """Single round-trip generation; returns the SDK response."""
        return await handle.aio.models.generate_content(
            model=descriptor.model,
            contents=to_sdk_contents(descriptor),
            config=to_sdk_config(descriptor),
        )

    async def generate_stream(
        self, handle: Any, descriptor: RequestDescriptor
    ) -> AsyncIterator[Any]:
        """Open a streaming generation; returns an async iterator of chunks."""
        return await handle.aio.models.generate_content_stream(
            model=descriptor.model,
            contents=to_sdk_contents(descriptor),
            config=to_sdk_config(descriptor),
        )
