import asyncio

import httpx
import pytest

from mandarin_tutor.retry import call_with_retry, is_rate_limit_error


def _status_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://example.test/generate")
    response = httpx.Response(code, request=request)
    return httpx.HTTPStatusError(f"{code} error", request=request, response=response)


class Flaky:
    def __init__(self, errors, value="ok"):
        self.errors = list(errors)
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


def _recording_sleep(delays):
    async def sleep(seconds):
        delays.append(seconds)

    return sleep


def test_rate_limit_detection() -> None:
    assert is_rate_limit_error(_status_error(429))
    assert is_rate_limit_error(RuntimeError("RESOURCE_EXHAUSTED: try later"))
    assert is_rate_limit_error(RuntimeError("quota exceeded"))
    assert not is_rate_limit_error(_status_error(500))
    assert not is_rate_limit_error(ValueError("bad json"))


def test_retries_rate_limits_with_doubling_delay() -> None:
    delays = []
    fn = Flaky([_status_error(429), _status_error(429)])
    result = asyncio.run(call_with_retry(fn, retries=3, delay=2.0, sleep=_recording_sleep(delays)))
    assert result == "ok"
    assert fn.calls == 3
    assert delays == [2.0, 4.0]


def test_gives_up_after_retries() -> None:
    delays = []
    fn = Flaky([_status_error(429)] * 5)
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(call_with_retry(fn, retries=1, delay=1.0, sleep=_recording_sleep(delays)))
    assert fn.calls == 2
    assert delays == [1.0]


def test_other_errors_are_not_retried() -> None:
    delays = []
    fn = Flaky([_status_error(500)])
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(call_with_retry(fn, retries=3, delay=1.0, sleep=_recording_sleep(delays)))
    assert fn.calls == 1
    assert delays == []
