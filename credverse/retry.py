"""
Bounded retry with exponential backoff for collaborator calls.

Only transient faults are retried: ``TransientLedgerError``, ``TimeoutError``
(including per-attempt timeouts) and ``ConnectionError``. Anything else —
registry conflicts in particular — propagates on the first attempt.

Delay before attempt n (n >= 2): min(base * 2 ** (n - 2), max_delay).
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog

from credverse.config import CredverseSettings
from credverse.errors import RegistryUnavailable, TransientLedgerError

logger = structlog.get_logger()

T = TypeVar("T")

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    TransientLedgerError,
    TimeoutError,
    ConnectionError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Timeout and backoff budget for one logical operation.

    Attributes:
        timeout_s: Per-attempt timeout in seconds.
        max_attempts: Total attempts, including the first (>= 1).
        backoff_base_s: Delay before the second attempt.
        backoff_max_s: Upper bound on any single delay.
    """

    timeout_s: float = 10.0
    max_attempts: int = 4
    backoff_base_s: float = 0.25
    backoff_max_s: float = 4.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got: {self.max_attempts}")
        if self.timeout_s <= 0:
            raise ValueError(f"timeout_s must be > 0, got: {self.timeout_s}")

    @classmethod
    def from_settings(cls, settings: CredverseSettings) -> RetryPolicy:
        return cls(
            timeout_s=settings.registry_timeout_s,
            max_attempts=settings.registry_max_attempts,
            backoff_base_s=settings.registry_backoff_base_s,
            backoff_max_s=settings.registry_backoff_max_s,
        )

    def delay_before(self, attempt: int) -> float:
        """Backoff delay before ``attempt`` (1-indexed; no delay before the first)."""
        if attempt <= 1:
            return 0.0
        return min(self.backoff_base_s * 2 ** (attempt - 2), self.backoff_max_s)


async def call_with_retry(
    operation: str,
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``fn()`` under ``policy``.

    Args:
        operation: Name used in logs and in RegistryUnavailable.
        fn: Zero-arg factory returning a fresh awaitable per attempt.
        policy: Timeout/backoff budget.
        sleep: Injectable sleep for tests.

    Raises:
        RegistryUnavailable: When every attempt failed transiently.
    """
    last_error: BaseException | None = None
    for attempt in range(1, policy.max_attempts + 1):
        delay = policy.delay_before(attempt)
        if delay > 0:
            await sleep(delay)
        try:
            return await asyncio.wait_for(fn(), timeout=policy.timeout_s)
        except TRANSIENT_ERRORS as exc:
            last_error = exc
            logger.warning(
                "registry_retry",
                operation=operation,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                error=type(exc).__name__,
            )

    raise RegistryUnavailable(
        operation,
        policy.max_attempts,
        detail=f"{type(last_error).__name__}: {last_error}" if last_error else None,
    )
