from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterable, AsyncIterator

from ._async_streamer import AsyncStream
from ._common import FINISHED, Elem

logger = logging.getLogger(__name__)


class AsyncIterableBuilder(AsyncIterable[Elem]):
    """
    Turn push-style callbacks into an async iterable.

    A producer calls :meth:`value` any number of times, then :meth:`done`
    or :meth:`error`; a consumer iterates the builder with ``async for``.
    Values pushed while nobody is waiting are queued, and are delivered before
    a subsequent error or end. After :meth:`done` or :meth:`error` has been called,
    any further call to :meth:`value`, :meth:`done`, or :meth:`error` is ignored.

    This is meant for producers that are callbacks running on the same event loop
    as the consumer, for example::

        builder = AsyncIterableBuilder()
        emitter.on('data', builder.value)
        emitter.on('error', builder.error)
        emitter.on('end', builder.done)

        async for x in builder:
            ...

    There should be a single consumer; the methods are not thread-safe.
    """

    def __init__(self):
        self._values: deque = deque()
        self._error: BaseException | None = None
        self._closed = False
        # `True` once `done` or `error` has been called.
        self._receiver: asyncio.Future | None = None
        # The consumer waiting for the next push, if any.

    def _take_receiver(self) -> asyncio.Future | None:
        fut = self._receiver
        self._receiver = None
        if fut is not None and fut.done():
            # The waiting consumer has been cancelled.
            return None
        return fut

    def value(self, obj: Elem) -> None:
        if self._closed:
            logger.debug("value pushed after the builder was closed; ignored")
            return
        fut = self._take_receiver()
        if fut is not None:
            fut.set_result(obj)
        else:
            self._values.append(obj)

    def error(self, exc: BaseException) -> None:
        if not isinstance(exc, BaseException):
            raise TypeError(f"exc should be an exception object, got {type(exc).__name__}")
        if self._closed:
            logger.debug("error %r pushed after the builder was closed; ignored", exc)
            return
        self._closed = True
        fut = self._take_receiver()
        if fut is not None:
            fut.set_exception(exc)
        else:
            self._error = exc

    def done(self) -> None:
        if self._closed:
            logger.debug("done called after the builder was closed; ignored")
            return
        self._closed = True
        fut = self._take_receiver()
        if fut is not None:
            fut.set_result(FINISHED)

    def closed(self) -> bool:
        return self._closed

    async def __aiter__(self) -> AsyncIterator[Elem]:
        finished = FINISHED
        while True:
            if self._values:
                yield self._values.popleft()
                continue
            if self._error is not None:
                e = self._error
                self._error = None
                raise e
            if self._closed:
                return
            self._receiver = asyncio.get_running_loop().create_future()
            x = await self._receiver
            if x is finished:
                return
            yield x

    def to_stream(self) -> AsyncStream[Elem]:
        """
        Return an :class:`~polystream.AsyncStream` over this builder.
        """
        return AsyncStream(self)
