"""Tests for the bounded retry combinator."""
import pytest

from weddingpay.services.retry import RetryPolicy, with_retry


class Flaky:
    def __init__(self, failures, exc=ConnectionError):
        self.failures = failures
        self.exc = exc
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc(f"failure {self.calls}")
        return "ok"


def test_succeeds_after_transient_failures():
    sleeps = []
    fn = Flaky(failures=2)

    result = with_retry(fn, RetryPolicy(max_attempts=3, initial_delay=0.2),
                        retry_on=(ConnectionError,), sleep=sleeps.append)

    assert result == "ok"
    assert fn.calls == 3
    assert sleeps == [0.2, 0.4]


def test_reraises_when_attempts_run_out():
    fn = Flaky(failures=5)

    with pytest.raises(ConnectionError):
        with_retry(fn, RetryPolicy(max_attempts=3), retry_on=(ConnectionError,), sleep=lambda _: None)
    assert fn.calls == 3


def test_other_errors_are_not_retried():
    fn = Flaky(failures=1, exc=KeyError)

    with pytest.raises(KeyError):
        with_retry(fn, RetryPolicy(), retry_on=(ConnectionError,), sleep=lambda _: None)
    assert fn.calls == 1


def test_on_retry_callback():
    seen = []
    with_retry(Flaky(failures=1), RetryPolicy(initial_delay=0), retry_on=(ConnectionError,),
               sleep=lambda _: None, on_retry=lambda attempt, exc: seen.append((attempt, str(exc))))
    assert seen == [(1, "failure 1")]


def test_delay_is_capped():
    policy = RetryPolicy(max_attempts=10, initial_delay=1, multiplier=3, max_delay=5)
    assert [policy.delay_for(n) for n in (1, 2, 3)] == [1, 3, 5]


def test_policy_requires_an_attempt():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
