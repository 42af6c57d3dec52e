"""Retry logic for registry API calls."""

import logging
import time
from typing import Callable

from tenacity import (
    Retrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from leadscout.core.exceptions import TransientError
from leadscout.core.logging import get_logger

logger = get_logger("registry.retry")


def registry_retrying(
    retries: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Retrying:
    """Build the retry controller for registry requests.

    - 1 attempt + `retries` retries
    - Exponential backoff: base_delay * 2**n before retry n (0-based)
    - Only TransientError (5xx, 429, timeouts, unusable bodies) is retried;
      PermanentError surfaces on the first attempt

    Args:
        retries: Number of retries after the first attempt
        base_delay: Delay before the first retry in seconds
        sleep: Sleep function (injectable for tests)

    Returns:
        tenacity Retrying instance; call it with the function to retry
    """
    return Retrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=base_delay, exp_base=2, min=0),
        retry=retry_if_exception_type(TransientError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep,
        reraise=True,
    )
