#!/usr/bin/env python3
"""
Backoff policy for Guesty API calls.

Only rate-limit responses are retried. The delay before retry number N is
initial_wait * 2 ** (N - 1), capped at max_backoff, so a call never waits
longer than max_retries * max_backoff in total.
"""

from typing import Optional

from sync.errors import PMSError, RateLimitError


def backoff_delay(attempt: int, initial_wait: float, max_backoff: float) -> float:
    """Delay in seconds before retry number `attempt` (1-based)."""
    if attempt < 1:
        raise ValueError("attempt is 1-based")
    return min(initial_wait * (2 ** (attempt - 1)), max_backoff)


def retry_delay(attempt: int, error: Optional[PMSError], max_retries: int,
                initial_wait: float, max_backoff: float) -> Optional[float]:
    """
    Decide whether a failed attempt should be retried.

    Args:
        attempt: Retry number that would follow (1 for the first retry).
        error: Error produced by the last attempt, or None on success.
        max_retries: Maximum number of retries after the first attempt.
        initial_wait: Delay before the first retry, in seconds.
        max_backoff: Upper bound for a single delay, in seconds.

    Returns:
        Seconds to wait before retrying, or None when the error must be surfaced.
    """
    if error is None or not isinstance(error, RateLimitError):
        return None
    if attempt > max_retries:
        return None
    return backoff_delay(attempt, initial_wait, max_backoff)
