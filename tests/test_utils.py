import pytest

from ledgerflow.utils.bytes import ensure_bytes, to_hex
from ledgerflow.utils.retry import RetryError, backoff_delay, retry_call


def test_ensure_bytes_accepts_prefixed_hex():
    assert ensure_bytes("0xABcd") == b"\xab\xcd"
    assert ensure_bytes(bytearray(b"\x01")) == b"\x01"
    assert to_hex(b"\xab", prefix=True) == "0xab"


@pytest.mark.parametrize("bad", ["abc", "zz"])
def test_ensure_bytes_rejects_bad_hex(bad):
    with pytest.raises(ValueError):
        ensure_bytes(bad)


def test_backoff_delay_stays_under_cap():
    for attempt in range(1, 10):
        assert 0.0 <= backoff_delay(attempt, base=0.1, max_delay=0.5) <= 0.5
    assert backoff_delay(0, base=0.0, max_delay=1.0) == 0.0


def test_retry_call_gives_up_after_budget():
    calls = []

    def flaky():
        calls.append(1)
        raise ConnectionError("down")

    with pytest.raises(RetryError) as ei:
        retry_call(flaky, retries=2, base=0.0, max_delay=0.0, exceptions=ConnectionError)
    assert ei.value.attempts == 3
    assert len(calls) == 3


def test_retry_call_does_not_retry_other_errors():
    def broken():
        raise KeyError("x")

    with pytest.raises(KeyError):
        retry_call(broken, retries=5, base=0.0, max_delay=0.0, exceptions=ConnectionError)
