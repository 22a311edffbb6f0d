"""Bounded exponential backoff for transient pipeline failures."""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, TypeVar

from ...domain.errors import SyncError
from ...domain.policy.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_with_backoff(
    func: Callable[[], T],
    policy: RetryPolicy,
    description: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call `func`, retrying transient SyncErrors with exponential backoff and jitter.

    Non-transient errors propagate immediately. When all attempts fail the last
    transient error is re-raised unchanged so callers still see its type.

    Args:
        func: Zero-argument callable
        policy: RetryPolicy (attempts, base/max delay, jitter)
        description: Short label used in log messages
        sleep: Sleep function (injectable for tests)

    Returns:
        Result of `func`
    """
    for attempt in range(policy.max_attempts):
        try:
            return func()
        except SyncError as e:
            if not e.is_transient:
                raise
            if attempt >= policy.max_attempts - 1:
                logger.error(
                    f"All {policy.max_attempts} attempts of {description} failed: {e}",
                    extra={"max_attempts": policy.max_attempts, "error_kind": e.kind.value},
                )
                raise

            delay = policy.delay_for(attempt)
            # Add jitter (+/-25%)
            if policy.jitter:
                jitter_amount = delay * 0.25 * (2 * random.random() - 1)
                delay = max(0.0, delay + jitter_amount)

            logger.warning(
                f"Attempt {attempt + 1}/{policy.max_attempts} of {description} failed, retrying in {delay:.2f}s: {e}",
                extra={"attempt": attempt + 1, "max_attempts": policy.max_attempts},
            )
            sleep(delay)

    raise AssertionError("unreachable")  # pragma: no cover
