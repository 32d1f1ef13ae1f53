"""genai-relay: resilient Gemini / Vertex AI generation for tool servers.

Public API:
    - call_generative_ai(): Prompt payload in, generated text out
    - GenerationEngine: Engine with an explicit config and injectable seams
    - build_api_payload() / tools_for_api(): Engine input helpers
    - load_config(): Environment-derived EngineConfig
    - config_for_tools(): Web-search routing over the direct API key
"""

from __future__ import annotations

import logging

from genai_relay.classifier import AIServiceError, ErrorKind, classify
from genai_relay.config import (
    ConnectionConfig,
    EngineConfig,
    GenerationParameters,
    config_for_tools,
    load_config,
)
from genai_relay.engine import GenerationEngine, call_generative_ai
from genai_relay.errors import (
    ConfigurationError,
    InitializationError,
    InternalError,
    RelayError,
)
from genai_relay.models import (
    CallResult,
    Content,
    Part,
    RequestPayload,
    ToolSet,
    build_api_payload,
    tools_for_api,
)
from genai_relay.retry import RetryPolicy

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("genai-relay")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("genai_relay").addHandler(logging.NullHandler())

__all__ = [
    "AIServiceError",
    "CallResult",
    "ConfigurationError",
    "ConnectionConfig",
    "Content",
    "EngineConfig",
    "ErrorKind",
    "GenerationEngine",
    "GenerationParameters",
    "InitializationError",
    "InternalError",
    "Part",
    "RelayError",
    "RequestPayload",
    "RetryPolicy",
    "ToolSet",
    "build_api_payload",
    "call_generative_ai",
    "classify",
    "config_for_tools",
    "load_config",
    "tools_for_api",
]
