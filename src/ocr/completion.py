"""Awaitable bridge for callback-style work that must complete exactly once."""

import asyncio
from collections.abc import Generator
from typing import Any, Generic, TypeVar

from src.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class SingleResolutionFuture(Generic[T]):
    """An awaitable that accepts exactly one result.

    Worker threads hand their result over with :meth:`resolve_threadsafe`;
    any resolution after the first is rejected and leaves the stored value
    untouched.

    Args:
        loop: Event loop the awaiting coroutine runs on.
        name: Label used in log messages.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, name: str = "operation") -> None:
        self._loop = loop
        self._future: asyncio.Future[T] = loop.create_future()
        self.name = name

    @property
    def done(self) -> bool:
        return self._future.done()

    def resolve(self, value: T) -> bool:
        """Store the result if none has been stored yet.

        Must be called on the event loop thread.

        Args:
            value: Result to deliver to the awaiting coroutine.

        Returns:
            True if this call resolved the future, False if it was
            already resolved or the awaiting side was cancelled.
        """
        if self._future.cancelled():
            logger.info("Dropping result of cancelled %s", self.name)
            return False
        if self._future.done():
            logger.warning("Ignoring repeated resolution of %s", self.name)
            return False
        self._future.set_result(value)
        return True

    def resolve_threadsafe(self, value: T) -> None:
        """Schedule :meth:`resolve` on the event loop from any thread."""
        self._loop.call_soon_threadsafe(self.resolve, value)

    def __await__(self) -> Generator[Any, None, T]:
        return self._future.__await__()
