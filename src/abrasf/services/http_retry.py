from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from abrasf.services.exceptions import TransportConnectionError

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Caller-level retry; the transport itself never retries."""

    max_attempts: int
    base_delay: float
    max_delay: float
    backoff_factor: float
    jitter: float
    retryable_exceptions: tuple[type[Exception], ...]


# Only failures where the request never reached the authority are safe to
# repeat: a timed-out GerarNfse may already have produced a document.
CONNECT_ONLY = RetryPolicy(
    max_attempts=3,
    base_delay=1.0,
    max_delay=10.0,
    backoff_factor=2.0,
    jitter=0.25,
    retryable_exceptions=(TransportConnectionError,),
)


def _calc_delay(attempt: int, policy: RetryPolicy) -> float:
    """Exponential backoff with jitter; *attempt* is 0-indexed."""
    delay = policy.base_delay * (policy.backoff_factor**attempt)
    delay = min(delay, policy.max_delay)
    jitter_range = delay * policy.jitter
    delay += random.uniform(-jitter_range, jitter_range)
    return max(0.0, delay)


def retry_call(
    func: Callable[[], T],
    policy: RetryPolicy | None,
    *,
    sleep_func: Callable[[float], object] = time.sleep,
) -> T:
    """Execute *func()* with retry per *policy* (single attempt when None)."""
    if policy is None:
        return func()
    last_exc: Exception | None = None
    for attempt in range(policy.max_attempts):
        try:
            return func()
        except policy.retryable_exceptions as exc:
            last_exc = exc
            if attempt < policy.max_attempts - 1:
                delay = _calc_delay(attempt, policy)
                logger.warning(
                    "Tentativa %d/%d falhou com %s (nova tentativa em %.1fs)",
                    attempt + 1,
                    policy.max_attempts,
                    type(exc).__name__,
                    delay,
                )
                sleep_func(delay)
    raise last_exc  # type: ignore[misc]
