"""Ownership of the provider client handle.

The handle is expensive to construct and safe to reuse while the connection
configuration is unchanged. Replacement is a compare-and-swap over
``(signature, handle)`` guarded by an ``asyncio.Lock`` so concurrent callers
that observe a stale signature construct exactly one new handle.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from genai_relay.errors import InitializationError
from genai_relay.gemini import create_client

if TYPE_CHECKING:
    from collections.abc import Callable

    from genai_relay.config import ConnectionConfig

logger = logging.getLogger(__name__)


class ClientHandleManager:
    """Lazily (re)creates the provider client when the connection changes."""

    def __init__(
        self,
        factory: Callable[[ConnectionConfig], Any] | None = None,
        *,
        credentials: Any = None,
    ) -> None:
        self._factory = factory
        self._credentials = credentials
        self._lock = asyncio.Lock()
        self._signature: tuple[str, ...] | None = None
        self._handle: Any = None

    @property
    def current_signature(self) -> tuple[str, ...] | None:
        """Signature of the connection the cached handle was built for."""
        return self._signature

    def _construct(self, connection: ConnectionConfig) -> Any:
        if self._factory is not None:
            return self._factory(connection)
        return create_client(connection, credentials=self._credentials)

    async def ensure_handle(self, connection: ConnectionConfig) -> Any:
        """Return a handle matching *connection*, constructing one if needed.

        Raises:
            InitializationError: The handle could not be constructed. Cached
                state is left untouched.
        """
        signature = connection.signature()
        if self._handle is not None and self._signature == signature:
            return self._handle

        async with self._lock:
            # Another coroutine may have swapped while we waited.
            if self._handle is not None and self._signature == signature:
                return self._handle

            if self._signature is not None:
                logger.info(
                    "Connection changed (%s -> %s); reinitializing client",
                    self._signature[0],
                    signature[0],
                )
            try:
                handle = self._construct(connection)
            except InitializationError:
                raise
            except Exception as e:
                raise InitializationError(
                    f"Failed to initialize AI client: {e}"
                ) from e

            self._signature, self._handle = signature, handle
            return handle

    def reset(self) -> None:
        """Drop the cached handle; the next call constructs a fresh one."""
        self._signature, self._handle = None, None
