"""Unit tests for retry_with_backoff."""

import pytest

from ficsync.application.services.retry import retry_with_backoff
from ficsync.domain.errors import ContentBlockedError, TransientFetchError
from ficsync.domain.policy.retry_policy import RetryPolicy


class Flaky:
    def __init__(self, failures: list[Exception], result: str = "ok") -> None:
        self.failures = failures
        self.result = result
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.result


def test_transient_errors_are_retried_with_backoff():
    delays: list[float] = []
    func = Flaky([TransientFetchError("boom"), TransientFetchError("boom")])
    policy = RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=10.0, jitter=False)

    assert retry_with_backoff(func, policy, sleep=delays.append) == "ok"
    assert func.calls == 3
    assert delays == [1.0, 2.0]


def test_last_transient_error_is_reraised():
    func = Flaky([TransientFetchError(f"boom {i}") for i in range(3)])
    policy = RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0, jitter=False)

    with pytest.raises(TransientFetchError, match="boom 2"):
        retry_with_backoff(func, policy, sleep=lambda _: None)
    assert func.calls == 3


def test_permanent_errors_are_not_retried():
    func = Flaky([ContentBlockedError("fanfictionnet", "42", 1, "HTTP 403")])

    with pytest.raises(ContentBlockedError):
        retry_with_backoff(func, RetryPolicy(), sleep=lambda _: pytest.fail("should not sleep"))
    assert func.calls == 1


def test_jitter_stays_within_a_quarter_of_the_delay():
    delays: list[float] = []
    func = Flaky([TransientFetchError("boom")] * 4)
    policy = RetryPolicy(max_attempts=5, base_delay=4.0, max_delay=4.0, jitter=True)

    retry_with_backoff(func, policy, sleep=delays.append)
    assert len(delays) == 4
    assert all(3.0 <= d <= 5.0 for d in delays)
