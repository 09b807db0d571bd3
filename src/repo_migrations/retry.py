from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")

@dataclass(frozen=True)
class RetryPolicy:
    """
    max_attempts counts the first try. backoff(attempt) gets the 1-based number
    of the attempt that just failed and returns seconds to wait.
    """

    max_attempts: int
    backoff: Callable[[int], float]
    is_retryable: Callable[[BaseException], bool]


def fixed_backoff(seconds: float) -> Callable[[int], float]:
    return lambda attempt: seconds


def exponential_backoff(base_s: float, max_s: float) -> Callable[[int], float]:
    return lambda attempt: min(max_s, base_s * (2 ** (attempt - 1)))


def is_version_not_found(error: BaseException) -> bool:
    """npm's "dependency version not published yet" failure."""
    msg = str(error)
    return "ETARGET" in msg or "No matching version found" in msg


def version_not_found_policy(max_attempts: int = 3, delay_s: float = 60.0) -> RetryPolicy:
    return RetryPolicy(max_attempts=max_attempts, backoff=fixed_backoff(delay_s), is_retryable=is_version_not_found)


def run_with_retry(
    policy: RetryPolicy,
    fn: Callable[[], T],
    *,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Calls fn until it succeeds, raises a non-retryable error, or runs out of
    attempts. The last error propagates unchanged.
    """
    if policy.max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return fn()
        except Exception as e:
            if attempt >= policy.max_attempts or not policy.is_retryable(e):
                raise
            delay = policy.backoff(attempt)
            log.info("Attempt %d/%d failed (%s), retrying in %.0fs", attempt, policy.max_attempts, e, delay)
            if on_retry is not None:
                on_retry(attempt, e)
            sleep(delay)

    raise RuntimeError("Unexpected run_with_retry() control flow.")
