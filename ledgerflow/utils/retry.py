"""
Retry helpers with exponential backoff and full jitter.

Each delay is drawn from U(0, min(base * 2**(attempt-1), max_delay)).

The submission resolver uses `retry_call` to retry *transient* network
failures only (node unreachable, throttling). Anything the network actually
decided on is never retried here.

Example
-------
from ledgerflow.utils.retry import retry_call

result = retry_call(flaky, retries=5, base=0.2, max_delay=2.0, exceptions=NetworkError)

Notes
-----
- Retries only on the types in `exceptions`, further filtered by `retry_if`.
- `on_retry` callback receives (attempt_index, exception, sleep_seconds).
- `total_timeout` puts a ceiling on overall time spent retrying.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Optional, Sequence, Tuple, Type, TypeVar, Union

__all__ = [
    "RetryError",
    "backoff_delay",
    "retry_call",
]

log = logging.getLogger(__name__)

T = TypeVar("T")

ExcTypes = Union[Type[BaseException], Sequence[Type[BaseException]]]


class RetryError(RuntimeError):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, last_exception: BaseException, attempts: int) -> None:
        super().__init__(f"exhausted after {attempts} attempts: {last_exception!r}")
        self.last_exception = last_exception
        self.attempts = attempts


def backoff_delay(attempt: int, *, base: float, max_delay: float) -> float:
    """
    Compute a backoff delay (in seconds) for the given attempt (1-based).

    - base: initial backoff (seconds), e.g. 0.1
    - max_delay: maximum per-attempt delay (cap)
    """
    if attempt < 1:
        attempt = 1
    cap = min(base * (2 ** (attempt - 1)), max_delay)
    return max(0.0, random.uniform(0.0, cap))


def _exc_tuple(exceptions: ExcTypes) -> Tuple[Type[BaseException], ...]:
    if isinstance(exceptions, type):
        return (exceptions,)
    return tuple(exceptions)


def _should_retry(
    exc: BaseException,
    exceptions: Tuple[Type[BaseException], ...],
    retry_if: Optional[Callable[[BaseException], bool]],
) -> bool:
    if not isinstance(exc, exceptions):
        return False
    if retry_if is not None:
        return bool(retry_if(exc))
    return True


def _notify(
    on_retry: Optional[Callable[[int, BaseException, float], None]],
    attempt: int,
    exc: BaseException,
    sleep_s: float,
) -> None:
    if on_retry is None:
        return
    try:
        on_retry(attempt, exc, sleep_s)
    except Exception:
        # callback errors are logged, never raised
        log.exception("on_retry callback failed (attempt=%d)", attempt)


def retry_call(
    fn: Callable[..., T],
    *args: Any,
    retries: int = 5,
    base: float = 0.2,
    max_delay: float = 3.0,
    exceptions: ExcTypes = Exception,
    retry_if: Optional[Callable[[BaseException], bool]] = None,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
    total_timeout: Optional[float] = None,
    **kwargs: Any,
) -> T:
    """
    Call `fn` with retries. `retries` is the number of *re*-tries, so `fn` runs
    at most `retries + 1` times before `RetryError` is raised.
    """
    exc_types = _exc_tuple(exceptions)
    deadline = time.monotonic() + total_timeout if total_timeout is not None else None

    attempt = 0
    while True:
        attempt += 1
        try:
            return fn(*args, **kwargs)
        except BaseException as exc:  # noqa: BLE001
            if not _should_retry(exc, exc_types, retry_if):
                raise
            if attempt > retries:
                raise RetryError(exc, attempts=attempt) from exc
            sleep_s = backoff_delay(attempt, base=base, max_delay=max_delay)
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise RetryError(exc, attempts=attempt) from exc
                sleep_s = min(sleep_s, remaining)
            _notify(on_retry, attempt, exc, sleep_s)
            time.sleep(sleep_s)
