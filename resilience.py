"""Caller-side retry for remote CMS calls.

The CMS client makes exactly one attempt per call. Callers that want retries
wrap the call here: only ServiceUnavailable results without a 4xx status are
retried (an expired token, a missing record or a garbled payload will not fix
itself), with exponential backoff.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    RetryError,
    Retrying,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from errors import Result, ServiceUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_transient(result: Result) -> bool:
    """Check if a failed result is worth retrying (network errors, 429, 5xx)."""
    if not result.is_failure(ServiceUnavailable):
        return False
    status = result.error.status_code
    return status is None or status == 429 or status >= 500


def _log_retry(retry_state) -> None:
    logger.info(
        "CMS unavailable, retrying (attempt %d)", retry_state.attempt_number,
    )


def call_with_retry(
    fn: Callable[[], Result[T]],
    attempts: int = 1,
    wait_min: float = 0.5,
    wait_max: float = 8.0,
) -> Result[T]:
    """Call *fn* up to *attempts* times while it reports ServiceUnavailable.

    Returns the first non-transient result, or the last transient failure once
    attempts are exhausted. ``attempts=1`` is a single plain call.
    """
    if attempts <= 1:
        return fn()

    retrying = Retrying(
        retry=retry_if_result(_is_transient),
        wait=wait_exponential(multiplier=wait_min, min=wait_min, max=wait_max),
        stop=stop_after_attempt(attempts),
        before_sleep=_log_retry,
    )
    try:
        return retrying(fn)
    except RetryError as e:
        return e.last_attempt.result()
