import pytest

from extension_client.retry import RetryConfig, retry_with_backoff


def test_delays_double_after_each_failure():
    config = RetryConfig()
    assert [config.calculate_delay(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]


def test_delay_is_capped():
    assert RetryConfig(max_delay_seconds=5.0).calculate_delay(10) == 5.0


def test_last_exception_is_raised_after_max_attempts():
    calls = []
    sleeps = []

    def fn():
        calls.append(1)
        raise ConnectionError(f"attempt {len(calls)}")

    with pytest.raises(ConnectionError, match="attempt 3"):
        retry_with_backoff(fn, RetryConfig(), sleep=sleeps.append)

    assert len(calls) == 3
    assert sleeps == [2.0, 4.0]


def test_unlisted_exceptions_are_not_retried():
    calls = []

    def fn():
        calls.append(1)
        raise KeyError("boom")

    with pytest.raises(KeyError):
        retry_with_backoff(fn, retry_on=(ConnectionError,), sleep=lambda _: None)

    assert len(calls) == 1


def test_zero_attempts_is_invalid():
    with pytest.raises(ValueError):
        retry_with_backoff(lambda: 1, RetryConfig(max_attempts=0))
