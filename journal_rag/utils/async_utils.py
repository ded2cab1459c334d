"""Async utility functions."""

import asyncio
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

T = TypeVar('T')


def backoff_delay(attempt: int, base_delay: float, max_delay: float = 60.0) -> float:
    """Delay to wait after the given (1-based) failed attempt."""
    return min(base_delay * (2 ** (attempt - 1)), max_delay)


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    no_retry_on: Tuple[Type[BaseException], ...] = (),
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
) -> T:
    """Retry a function with exponential backoff.

    ``max_attempts`` counts every call, so 3 attempts sleep base_delay and
    then 2 * base_delay between them. Exceptions in ``no_retry_on`` are
    raised immediately.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            return await func()
        except no_retry_on:
            raise
        except retry_on as e:
            if attempt >= max_attempts:
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            if on_retry:
                on_retry(attempt, e, delay)
            await asyncio.sleep(delay)

    raise RuntimeError("retry_with_backoff called with max_attempts < 1")


async def cancel_task(task: Optional[asyncio.Task]) -> None:
    """Cancel a background task and wait for it to finish."""
    if task is None or task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
