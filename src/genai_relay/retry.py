"""Bounded retry as an explicit three-state machine.

Design goals:
- Transitions are a pure function of (state, outcome, policy), testable
  without I/O
- The driver owns the only suspension points: the attempt and the backoff
  sleep
- Callers see one ``InternalError`` with a formatted message, never raw
  per-attempt errors
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import random
from typing import TYPE_CHECKING

from genai_relay.classifier import AIServiceError, classify, format_error_message
from genai_relay.errors import InternalError
from genai_relay.models import CallResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget with exponential backoff plus additive jitter."""

    max_retries: int = 3
    retry_delay_ms: int = 1000
    max_jitter_ms: int = 500

    def __post_init__(self) -> None:
        """Validate invariants to keep retry behavior predictable."""
        if self.max_retries < 0:
            raise ValueError("RetryPolicy.max_retries must be >= 0")
        if self.retry_delay_ms < 0:
            raise ValueError("RetryPolicy.retry_delay_ms must be >= 0")
        if self.max_jitter_ms < 0:
            raise ValueError("RetryPolicy.max_jitter_ms must be >= 0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


@dataclass(frozen=True)
class Attempting:
    attempt: int


@dataclass(frozen=True)
class Succeeded:
    result: CallResult


@dataclass(frozen=True)
class Failed:
    error: AIServiceError


RetryState = Attempting | Succeeded | Failed


def compute_backoff_delay_ms(
    policy: RetryPolicy,
    attempt: int,
    *,
    rng: Callable[[], float] = random.random,
) -> float:
    """Delay after a failure of *attempt* (0-based).

    ``retry_delay_ms * 2**attempt`` plus jitter drawn from
    ``[0, max_jitter_ms)``; attempt 0 waits the base delay, not zero.
    """
    return policy.retry_delay_ms * (2**attempt) + rng() * policy.max_jitter_ms


def transition(
    state: RetryState,
    outcome: CallResult | AIServiceError,
    policy: RetryPolicy,
) -> RetryState:
    """Advance the machine from ``Attempting(n)`` given the attempt outcome."""
    if not isinstance(state, Attempting):
        raise ValueError(f"cannot transition out of terminal state {state!r}")
    if isinstance(outcome, CallResult):
        return Succeeded(outcome)
    if outcome.retryable and state.attempt < policy.max_retries:
        return Attempting(state.attempt + 1)
    return Failed(outcome)


async def run_with_retries(
    attempt: Callable[[int], Awaitable[CallResult]],
    policy: RetryPolicy,
    *,
    classify: Callable[[BaseException], AIServiceError] = classify,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    rng: Callable[[], float] = random.random,
) -> CallResult:
    """Drive *attempt* until success, a terminal error, or budget exhaustion.

    Raises:
        InternalError: Formatted terminal failure, chained from its cause.
    """
    state: RetryState = Attempting(0)

    # Each iteration performs exactly one attempt.
    for _ in range(policy.max_attempts):
        if not isinstance(state, Attempting):
            break
        n = state.attempt
        try:
            outcome: CallResult | AIServiceError = await attempt(n)
        except Exception as exc:
            logger.error("Error details (attempt %d): %s", n + 1, exc)
            outcome = classify(exc)

        state = transition(state, outcome, policy)

        if isinstance(state, Succeeded):
            return state.result
        if isinstance(state, Failed):
            message = format_error_message(state.error)
            logger.error("Final error message: %s", message)
            raise InternalError(message) from state.error.cause

        delay_ms = compute_backoff_delay_ms(policy, n, rng=rng)
        logger.info("Retrying in %.0fms...", delay_ms)
        await sleep(delay_ms / 1000.0)

    raise InternalError(
        f"Max retries ({policy.max_attempts}) reached for GenAI call without success."
    )
