"""Tests for transient_retry."""

import httpx
import pytest

from legalmemo.retry import transient_retry


class Flaky:
    """Fails with the given errors before succeeding."""

    def __init__(self, *errors: BaseException):
        self.errors = list(errors)
        self.calls = 0

    @transient_retry(attempts=3, min_wait=0, max_wait=0)
    async def call(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


class TestTransientRetry:
    """Tests for the retry decorator."""

    async def test_success_first_try(self):
        """No retry when the call succeeds."""
        flaky = Flaky()

        assert await flaky.call() == "ok"
        assert flaky.calls == 1

    async def test_retries_transient_errors(self):
        """Connection and timeout errors are retried."""
        flaky = Flaky(ConnectionError("reset"), TimeoutError())

        assert await flaky.call() == "ok"
        assert flaky.calls == 3

    async def test_retries_httpx_transport_errors(self):
        """httpx transport errors count as transient."""
        flaky = Flaky(httpx.ConnectError("refused"))

        assert await flaky.call() == "ok"
        assert flaky.calls == 2

    async def test_reraises_after_last_attempt(self):
        """The original exception surfaces once attempts run out."""
        flaky = Flaky(*(ConnectionError("NetworkError") for _ in range(3)))

        with pytest.raises(ConnectionError, match="NetworkError"):
            await flaky.call()
        assert flaky.calls == 3

    async def test_other_errors_not_retried(self):
        """Non-transient errors propagate on the first attempt."""
        flaky = Flaky(ValueError("bad payload"))

        with pytest.raises(ValueError):
            await flaky.call()
        assert flaky.calls == 1
