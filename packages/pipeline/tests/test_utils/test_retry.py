"""
tests/test_utils/test_retry.py — Tests for the with_retry decorator.
"""

from __future__ import annotations

import httpx
import pytest

from nycdata_pipeline.utils.retry import is_transient, with_retry


def _status_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://example.test/query")
    response = httpx.Response(code, request=request)
    return httpx.HTTPStatusError(f"HTTP {code}", request=request, response=response)


class TestIsTransient:
    @pytest.mark.parametrize("code", [429, 500, 502, 503, 504])
    def test_retryable_statuses(self, code):
        assert is_transient(_status_error(code))

    @pytest.mark.parametrize("code", [400, 401, 404])
    def test_client_errors_are_not_transient(self, code):
        assert not is_transient(_status_error(code))

    def test_network_errors_are_transient(self):
        assert is_transient(httpx.ConnectError("reset"))
        assert is_transient(httpx.ReadTimeout("slow"))

    def test_other_exceptions(self):
        assert not is_transient(ValueError("bad json"))


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        calls = []

        @with_retry(max_attempts=3, base_delay=0)
        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise httpx.ConnectError("reset")
            return "ok"

        assert await flaky() == "ok"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_reraises_after_last_attempt(self):
        calls = []

        @with_retry(max_attempts=2, base_delay=0)
        async def always_fails():
            calls.append(1)
            raise httpx.ReadTimeout("slow")

        with pytest.raises(httpx.ReadTimeout):
            await always_fails()
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_server_error_retried(self):
        calls = []

        @with_retry(max_attempts=3, base_delay=0)
        async def overloaded():
            calls.append(1)
            if len(calls) == 1:
                raise _status_error(503)
            return {"features": []}

        assert await overloaded() == {"features": []}
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        calls = []

        @with_retry(max_attempts=3, base_delay=0)
        async def bad_query():
            calls.append(1)
            raise _status_error(400)

        with pytest.raises(httpx.HTTPStatusError):
            await bad_query()
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_custom_predicate(self):
        calls = []

        @with_retry(max_attempts=3, base_delay=0, retry_if=lambda exc: isinstance(exc, KeyError))
        async def missing_key():
            calls.append(1)
            raise KeyError("features")

        with pytest.raises(KeyError):
            await missing_key()
        assert len(calls) == 3
