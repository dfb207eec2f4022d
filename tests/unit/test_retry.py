"""
Unit tests for retry_with_backoff
"""
import pytest

from roomstage.core.retry import retry_with_backoff


class _Flaky:
    def __init__(self, failures, exc_type=ConnectionError):
        self.failures = failures
        self.exc_type = exc_type
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc_type(f"failure {self.calls}")
        return "ok"


class TestRetryWithBackoff:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failure(self):
        fn = _Flaky(failures=1)

        assert await retry_with_backoff(fn, base_delay=0) == "ok"
        assert fn.calls == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reraises_last_exception_when_exhausted(self):
        fn = _Flaky(failures=5)

        with pytest.raises(ConnectionError, match="failure 3"):
            await retry_with_backoff(fn, max_attempts=3, base_delay=0)

        assert fn.calls == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unlisted_exception_not_retried(self):
        fn = _Flaky(failures=1, exc_type=KeyError)

        with pytest.raises(KeyError):
            await retry_with_backoff(fn, base_delay=0, retry_on=(ConnectionError,))

        assert fn.calls == 1
