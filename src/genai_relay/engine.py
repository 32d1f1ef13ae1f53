"""Generation engine: prompt payload in, model text out.

Control flow per invocation::

    ensure handle -> build request -> provider call (stream or single)
      -> unify -> validate -> success
                           \\-> classify -> backoff + retry | terminal error
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from typing import TYPE_CHECKING, Any

from genai_relay._dev_flags import debug_requests_enabled
from genai_relay.client import ClientHandleManager
from genai_relay.config import EngineConfig, load_config
from genai_relay.errors import InitializationError
from genai_relay.gemini import GeminiTransport
from genai_relay.request import DEFAULT_SAFETY_SETTINGS, build_request
from genai_relay.responses import rewrap_call_error, unify_response, unify_stream
from genai_relay.retry import RetryPolicy, run_with_retries

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from genai_relay.models import CallResult, RequestPayload, ToolSet

logger = logging.getLogger(__name__)


class GenerationEngine:
    """Resilient invocation of the generative model.

    Invocations may run concurrently on one event loop; they share the
    handle manager, whose replacement path is serialized internally.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        manager: ClientHandleManager | None = None,
        transport: Any = None,
        rng: Callable[[], float] = random.random,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._config = config if config is not None else load_config()
        self._manager = manager if manager is not None else ClientHandleManager()
        self._transport = transport if transport is not None else GeminiTransport()
        self._rng = rng
        self._sleep = sleep

    @property
    def config(self) -> EngineConfig:
        return self._config

    async def initialize(self) -> None:
        """Construct the default handle.

        A failure here leaves the process without any usable handle; it is
        logged as critical and re-raised for the bootstrap layer to act on.
        """
        try:
            await self._manager.ensure_handle(self._config.connection)
        except InitializationError as e:
            logger.critical("Fatal error initializing default AI client: %s", e)
            raise

    async def call(
        self,
        payload: RequestPayload,
        tools: ToolSet | None = None,
        config_override: EngineConfig | None = None,
    ) -> CallResult:
        """Run one invocation and return the validated ``CallResult``.

        Raises:
            InternalError: Terminal failure after classification and retries.
            InitializationError: No handle for the effective connection.
        """
        config = config_override if config_override is not None else self._config
        handle = await self._manager.ensure_handle(config.connection)

        grounding = bool(tools and tools.grounding_requested)
        function_calling = bool(tools and tools.function_calling_requested)
        descriptor = build_request(
            payload,
            tools,
            config.model_id,
            config.generation,
            DEFAULT_SAFETY_SETTINGS,
        )

        async def attempt(n: int) -> CallResult:
            logger.info(
                "Calling GenAI (%s, %s, temp: %s, grounding: %s, funcCall: %s, "
                "stream: %s, attempt: %d)",
                config.connection.method,
                config.model_id,
                config.generation.temperature,
                grounding,
                function_calling,
                config.use_streaming,
                n + 1,
            )
            if debug_requests_enabled():
                logger.debug(
                    "Request params for GenAI: %s",
                    json.dumps(descriptor.as_log_dict(), indent=2, default=str),
                )

            if config.use_streaming:
                stream = await self._transport.generate_stream(handle, descriptor)
                result = await unify_stream(stream)
                logger.info("Finished processing stream from GenAI.")
                return result

            try:
                response = await self._transport.generate(handle, descriptor)
            except Exception as e:
                blocked = rewrap_call_error(e)
                if blocked is e:
                    raise
                raise blocked from e
            result = unify_response(response)
            logger.info("Received non-streaming response from GenAI.")
            return result

        policy = RetryPolicy(
            max_retries=config.max_retries, retry_delay_ms=config.retry_delay_ms
        )
        return await run_with_retries(attempt, policy, sleep=self._sleep, rng=self._rng)

    async def call_generative_ai(
        self,
        payload: RequestPayload,
        tools: ToolSet | None = None,
        config_override: EngineConfig | None = None,
    ) -> str:
        """Return generated text; ``""`` when the model answered with a function call."""
        result = await self.call(payload, tools, config_override)
        return result.text


_default_engine: GenerationEngine | None = None


def get_default_engine() -> GenerationEngine:
    """Return the process-wide engine, building it from the environment once."""
    global _default_engine
    if _default_engine is None:
        _default_engine = GenerationEngine(load_config())
    return _default_engine


async def call_generative_ai(
    payload: RequestPayload,
    tools: ToolSet | None = None,
    config_override: EngineConfig | None = None,
) -> str:
    """Module-level entry point backed by the default engine."""
    return await get_default_engine().call_generative_ai(
        payload, tools, config_override
    )
