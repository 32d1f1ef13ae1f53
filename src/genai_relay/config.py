"""Configuration: environment resolution into frozen engine settings.

Values are read once from the environment (and a ``.env`` file in the
working directory), validated through a Pydantic schema, and frozen into an
``EngineConfig``. Invalid numeric or boolean values fall back to their
defaults with a warning; missing credentials are a hard error.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import hashlib
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from genai_relay.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from genai_relay.models import ToolSet

logger = logging.getLogger(__name__)

ConnectionMethod = Literal["vertex", "api_key"]

DEFAULT_MODEL_ID = "gemini-2.5-pro-exp-03-25"
DEFAULT_LOCATION = "us-central1"
DEFAULT_TEMPERATURE = 0.0
DEFAULT_USE_STREAMING = True
DEFAULT_MAX_OUTPUT_TOKENS = 8192
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_MS = 1000


@dataclass(frozen=True)
class ConnectionConfig:
    """How to reach the model service. Exactly one method is active."""

    method: ConnectionMethod
    project_id: str | None = None
    location: str | None = None
    api_key: str | None = field(default=None, repr=False)

    def signature(self) -> tuple[str, ...]:
        """Return a hashable identity; changes whenever a new client is needed."""
        if self.method == "vertex":
            return ("vertex", self.project_id or "", self.location or "")
        fingerprint = (
            hashlib.sha256(self.api_key.encode("utf-8")).hexdigest()[:16]
            if self.api_key
            else ""
        )
        return ("api_key", fingerprint)

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        if self.method == "vertex":
            return (
                f"ConnectionConfig(method='vertex', project_id={self.project_id!r}, "
                f"location={self.location!r})"
            )
        return (
            "ConnectionConfig(method='api_key', "
            f"api_key={'[REDACTED]' if self.api_key else None})"
        )

    __repr__ = __str__


@dataclass(frozen=True)
class GenerationParameters:
    """Sampling parameters copied into every request."""

    temperature: float = DEFAULT_TEMPERATURE
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS


@dataclass(frozen=True)
class EngineConfig:
    """Immutable configuration for one engine invocation."""

    connection: ConnectionConfig
    model_id: str = DEFAULT_MODEL_ID
    generation: GenerationParameters = field(default_factory=GenerationParameters)
    use_streaming: bool = DEFAULT_USE_STREAMING
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS
    # Direct-key route for web-search calls; set whenever GEMINI_API_KEY is.
    web_search_connection: ConnectionConfig | None = None
    web_search_model_id: str | None = None

    def with_overrides(self, **changes: Any) -> EngineConfig:
        """Return a copy with the given top-level fields replaced."""
        return replace(self, **changes)


# --- Schema (Pydantic wall) ---


class EnvSettings(BaseModel):
    """Validation schema for the tunable numeric/boolean settings."""

    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    use_streaming: bool = Field(default=DEFAULT_USE_STREAMING)
    max_output_tokens: int = Field(default=DEFAULT_MAX_OUTPUT_TOKENS, gt=0)
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    retry_delay_ms: int = Field(default=DEFAULT_RETRY_DELAY_MS, ge=0)

    @field_validator("use_streaming", mode="before")
    @classmethod
    def strict_bool_string(cls, v: Any) -> Any:
        """Accept only "true"/"false" (any case) for string input."""
        if isinstance(v, str):
            s = v.strip().lower()
            if s not in ("true", "false"):
                raise ValueError("expected 'true' or 'false'")
            return s == "true"
        return v


# Environment variable feeding each EnvSettings field.
_ENV_FIELDS: dict[str, str] = {
    "temperature": "AI_TEMPERATURE",
    "use_streaming": "AI_USE_STREAMING",
    "max_output_tokens": "AI_MAX_OUTPUT_TOKENS",
    "max_retries": "AI_MAX_RETRIES",
    "retry_delay_ms": "AI_RETRY_DELAY_MS",
}


def _field_or_default(name: str, raw: str | None) -> Any:
    default = EnvSettings.model_fields[name].default
    if raw is None or raw.strip() == "":
        return default
    try:
        return getattr(EnvSettings.model_validate({name: raw.strip()}), name)
    except ValidationError:
        logger.warning(
            'Invalid %s value "%s". Using default: %s', _ENV_FIELDS[name], raw, default
        )
        return default


def resolve_env_settings(environ: Mapping[str, str]) -> EnvSettings:
    """Validate tunables field by field so one bad value keeps the rest."""
    values = {
        name: _field_or_default(name, environ.get(env_var))
        for name, env_var in _ENV_FIELDS.items()
    }
    return EnvSettings(**values)


def resolve_connection(environ: Mapping[str, str]) -> ConnectionConfig:
    """Pick the connection method from ``AI_PROVIDER`` and available credentials."""
    project = environ.get("GOOGLE_CLOUD_PROJECT") or None
    location = environ.get("GOOGLE_CLOUD_LOCATION") or DEFAULT_LOCATION
    api_key = environ.get("GEMINI_API_KEY") or None
    provider = (environ.get("AI_PROVIDER") or "vertex").strip().lower()

    if provider == "vertex":
        if not project:
            raise ConfigurationError(
                "AI_PROVIDER is 'vertex' but GOOGLE_CLOUD_PROJECT is not defined",
                hint="Set GOOGLE_CLOUD_PROJECT for Vertex AI.",
            )
        return ConnectionConfig("vertex", project_id=project, location=location)

    if provider == "gemini":
        if not api_key:
            raise ConfigurationError(
                "AI_PROVIDER is 'gemini' but GEMINI_API_KEY is not defined",
                hint="Set GEMINI_API_KEY for Gemini API access.",
            )
        return ConnectionConfig("api_key", api_key=api_key)

    logger.warning(
        'Invalid AI_PROVIDER value "%s". Valid options are "vertex" or "gemini". '
        "Using fallback detection.",
        provider,
    )
    if project:
        logger.warning("Using 'vertex' based on GOOGLE_CLOUD_PROJECT being set.")
        return ConnectionConfig("vertex", project_id=project, location=location)
    if api_key:
        logger.warning("Using 'gemini' based on GEMINI_API_KEY being set.")
        return ConnectionConfig("api_key", api_key=api_key)
    raise ConfigurationError(
        "No AI provider credentials found",
        hint=(
            "Set either GOOGLE_CLOUD_PROJECT (for Vertex AI) or GEMINI_API_KEY "
            "(for Gemini API)."
        ),
    )


def resolve_model_id(method: ConnectionMethod, environ: Mapping[str, str]) -> str:
    """Provider-specific override first, then the shared one, then the default."""
    specific = "VERTEX_MODEL_ID" if method == "vertex" else "GEMINI_MODEL_ID"
    for key in (specific, "AI_MODEL_ID"):
        value = (environ.get(key) or "").strip()
        if value:
            return value
    return DEFAULT_MODEL_ID


def load_config(environ: Mapping[str, str] | None = None) -> EngineConfig:
    """Build an ``EngineConfig`` from the environment.

    When *environ* is None the process environment is used, after loading a
    ``.env`` file from the current working directory (existing variables
    win).
    """
    if environ is None:
        load_dotenv(Path.cwd() / ".env")
        environ = os.environ

    connection = resolve_connection(environ)
    api_key = environ.get("GEMINI_API_KEY") or None
    settings = resolve_env_settings(environ)
    return EngineConfig(
        connection=connection,
        model_id=resolve_model_id(connection.method, environ),
        generation=GenerationParameters(
            temperature=settings.temperature,
            max_output_tokens=settings.max_output_tokens,
        ),
        use_streaming=settings.use_streaming,
        max_retries=settings.max_retries,
        retry_delay_ms=settings.retry_delay_ms,
        web_search_connection=(
            ConnectionConfig("api_key", api_key=api_key) if api_key else None
        ),
        web_search_model_id=(environ.get("GEMINI_MODEL_ID") or "").strip() or None,
    )


def config_for_tools(config: EngineConfig, tools: ToolSet | None) -> EngineConfig:
    """Route web-search calls over the direct API key when one is configured.

    Grounded calls use ``web_search_connection`` with ``GEMINI_MODEL_ID``
    (falling back to the configured model). Anything else is returned as is.
    """
    if tools is None or not tools.grounding_requested:
        return config
    if config.web_search_connection is None:
        return config
    logger.info("Using Gemini API for web search")
    return replace(
        config,
        connection=config.web_search_connection,
        model_id=config.web_search_model_id or config.model_id,
    )
