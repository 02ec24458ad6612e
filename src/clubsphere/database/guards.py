"""Translation of driver errors into domain errors."""

import functools
from typing import Awaitable, Callable, TypeVar

from pymongo.errors import PyMongoError

from clubsphere.errors import UpstreamFailure
from clubsphere.managers.logging_manager import get_logger

logger = get_logger(prefix="[DATABASE]")

T = TypeVar("T")


def storage_guard(operation: str) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorate a service coroutine so uncaught `PyMongoError`s surface as `UpstreamFailure`.

    Errors the service handles itself (e.g. `DuplicateKeyError` on a guarded insert)
    never reach the decorator.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            try:
                return await func(*args, **kwargs)
            except PyMongoError as e:
                logger.error("Storage failure during %s: %s", operation, e, exc_info=True)
                raise UpstreamFailure(f"Storage unavailable during {operation}") from e

        return wrapper

    return decorator
