"""
Bounded exponential-backoff retry for idempotent, likely-transient calls.

Only reads are retried (image downloads, model listing). Paid generation calls
are never retried here; the orchestrator falls back to another provider instead.
"""
import asyncio
import logging
import random
from typing import Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_attempts: int = 2,
    base_delay: float = 0.6,
    jitter: float = 0.3,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """
    Call ``fn`` up to ``max_attempts`` times.

    The delay before attempt n+1 is ``base_delay * 2**(n-1)`` seconds, varied
    by +/- ``jitter`` of itself. The last exception is re-raised.
    """
    last_exception = None

    for attempt in range(1, max_attempts + 1):
        try:
            return await fn()
        except asyncio.CancelledError:
            raise
        except retry_on as e:
            last_exception = e
            if attempt < max_attempts:
                delay = base_delay * (2 ** (attempt - 1))
                delay += delay * jitter * (2 * random.random() - 1)
                logger.warning(f"Attempt {attempt}/{max_attempts} failed: {e}. Retrying in {delay:.2f}s...")
                await asyncio.sleep(delay)
            else:
                logger.error(f"Max attempts ({max_attempts}) reached. Last error: {e}")

    raise last_exception
