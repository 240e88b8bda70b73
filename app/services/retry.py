"""Retry-with-backoff for store operations that may hit a transient outage."""

import asyncio
import functools
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from app.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoreUnavailableError(Exception):
    """The store stayed unreachable after every retry; ``__cause__`` holds the last error."""

    def __init__(self, operation: str, attempts: int):
        super().__init__(f"{operation} failed after {attempts} attempts")
        self.operation = operation
        self.attempts = attempts


def is_transient_db_error(exc: BaseException) -> bool:
    """Return True for errors worth retrying (connection drops, pool timeouts, locks)."""
    if isinstance(exc, (OperationalError, InterfaceError, PoolTimeoutError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return isinstance(exc, (ConnectionError, asyncio.TimeoutError))


def retry_async(
    *,
    max_retries: int,
    base_delay: float,
    predicate: Callable[[BaseException], bool],
):
    """
    Decorate an async callable so transient failures are retried.

    Only exceptions for which ``predicate`` returns True are retried; the
    n-th retry waits ``base_delay * 2 ** (n - 1)`` seconds. Once the budget
    is spent a :class:`StoreUnavailableError` is raised from the last error.
    Any other exception propagates on the first occurrence.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            retries = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not predicate(e):
                        raise
                    if retries >= max_retries:
                        logger.error(f"{func.__name__}: giving up after {retries + 1} attempts: {e}")
                        raise StoreUnavailableError(func.__name__, retries + 1) from e
                    retries += 1
                    delay = base_delay * (2 ** (retries - 1))
                    logger.warning(
                        f"{func.__name__}: transient store error, retry {retries}/{max_retries} in {delay:.2f}s: {e}"
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator


def store_retry(
    func: Optional[Callable[..., Awaitable[T]]] = None,
    *,
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
):
    """``retry_async`` bound to the configured budget and the DB error classifier."""
    decorator = retry_async(
        max_retries=settings.STORE_MAX_RETRIES if max_retries is None else max_retries,
        base_delay=settings.STORE_RETRY_BASE_DELAY if base_delay is None else base_delay,
        predicate=is_transient_db_error,
    )
    if func is not None:
        return decorator(func)
    return decorator
