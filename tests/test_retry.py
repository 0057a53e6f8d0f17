import asyncio

import pytest

from lusocards.exceptions import CollaboratorError, RateLimitError
from lusocards.utils.retry import call_with_retry, is_rate_limit_error


class _Flaky:
    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def _recording_sleep(delays):
    async def sleep(seconds):
        delays.append(seconds)
    return sleep


def test_rate_limit_is_retried_with_doubling_delays():
    delays = []
    call = _Flaky([RateLimitError(), RateLimitError(), RateLimitError()])

    result = asyncio.run(call_with_retry(call, retries=3, delay=2.0, sleep=_recording_sleep(delays)))

    assert result == "ok"
    assert call.calls == 4
    assert delays == [2.0, 4.0, 8.0]


def test_exhausted_retries_raise_collaborator_error():
    call = _Flaky([RateLimitError()] * 3)

    with pytest.raises(CollaboratorError):
        asyncio.run(call_with_retry(call, retries=2, delay=0.5, sleep=_recording_sleep([])))
    assert call.calls == 3


def test_other_errors_are_not_retried():
    delays = []
    call = _Flaky([CollaboratorError("bad request", status=400)])

    with pytest.raises(CollaboratorError, match="bad request"):
        asyncio.run(call_with_retry(call, sleep=_recording_sleep(delays)))
    assert call.calls == 1
    assert delays == []


@pytest.mark.parametrize("error, expected", [
    (RateLimitError(), True),
    (CollaboratorError("throttled", status=429), True),
    (CollaboratorError("Resource has been exhausted"), True),
    (RuntimeError("quota exceeded"), True),
    (CollaboratorError("server error", status=500), False),
    (ValueError("bad json"), False),
])
def test_is_rate_limit_error(error, expected):
    assert is_rate_limit_error(error) is expected
