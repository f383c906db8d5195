"""
Bounded retry for transient remote errors.

Used only around the first remote call of a create, where the remote side
is known to need some time before a freshly referenced object becomes
usable. Every other call propagates errors immediately.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Iterable, TypeVar

from aws import error_code, error_code_equals

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_on_codes(
    fn: Callable[[], Awaitable[T]],
    codes: Iterable[str],
    timeout: float,
    min_delay: float = 1.0,
    max_delay: float = 10.0,
) -> T:
    """
    Call fn until it succeeds, retrying only errors carrying one of codes.

    Delays grow exponentially from min_delay and are capped at max_delay.
    Once timeout seconds have elapsed one last attempt is made and its
    outcome, success or error, is returned as is.

    Args:
        fn: Zero-argument coroutine function performing the remote call
        codes: AWS error codes considered transient
        timeout: Retry budget in seconds
        min_delay: First delay between attempts
        max_delay: Upper bound for a single delay

    Returns:
        Whatever fn returns.
    """
    codes = tuple(codes)
    deadline = time.monotonic() + timeout
    delay = min_delay
    attempt = 0

    while True:
        attempt += 1
        try:
            return await fn()
        except Exception as e:
            if not error_code_equals(e, *codes):
                raise

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break

            logger.info(
                f"Retryable error {error_code(e)} on attempt {attempt}, "
                f"retrying in {min(delay, remaining):.1f}s"
            )
            await asyncio.sleep(min(delay, remaining))
            delay = min(delay * 2, max_delay)

    logger.warning(f"Retry budget of {timeout}s exhausted, making a final attempt")
    return await fn()
