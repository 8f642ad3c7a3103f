'''
Order-preserving concurrent mapping over an async stream.

The scheme is the same as the one behind a "fifo stream": a placeholder for
every element is queued in input order before the element's work completes,
and the consumer waits on the placeholders in that same order. Here the
placeholders are :class:`Slot` objects kept in a fixed-size :class:`Ring`,
so there is no feeder task; work is started by the consumer's own pulls and
by the completion of earlier work.
'''

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Iterable
from typing import Any, NamedTuple

from ._common import (
    TT,
    AsyncIter,
    T,
    check_function,
    isasynciterable,
    isiterable,
    resolve_concurrency,
)
from ._ring import Ring

logger = logging.getLogger(__name__)


class MappedItem(NamedTuple):
    original: Any
    mapped: Any
    index: int


class Slot:
    # One element's worth of pipeline state.
    __slots__ = ('index', 'original', 'done', 'fetched', 'task')

    def __init__(self, index: int, fetched: asyncio.Future):
        self.index = index
        self.original = None
        self.done = False  # `True` if the source was found exhausted at this index
        self.fetched = fetched  # resolved once the pull for this index has returned or failed
        self.task: asyncio.Task | None = None


class ConcurrentMapper(AsyncIterator[MappedItem]):
    '''
    Apply ``func`` to the elements of ``instream`` with bounded concurrency,
    yielding :class:`MappedItem` objects ``(original, mapped, index)``
    strictly in the order of ``instream``.

    At most ``max(concurrency, 1)`` slots are fetching or transforming at any time,
    and at most ``buffer_size`` slots exist that have been started but not yet
    delivered. Finishing one slot immediately frees capacity for the next,
    so the work proceeds in a sliding window ahead of the consumer.

    If the source or ``func`` fails on an element, the exception is raised
    when that element's turn comes to be delivered, not when the failure happens.
    All previous elements are delivered first. After that the mapper
    is exhausted and issues no more pulls on ``instream``.

    Nothing that has started is cancelled. If the consumer stops early,
    the started work runs to completion in the background and the results are
    discarded.
    '''

    def __init__(
        self,
        instream: AsyncIterable[T] | Iterable[T],
        func: Callable[[T, int], TT | Awaitable[TT]],
        *,
        concurrency: int = 0,
        buffer_size: int | None = None,
        name: str = 'concurrent-mapper',
    ):
        '''
        Parameters
        ----------
        instream
            The source elements, possibly unlimited.
            A sync iterable is accepted and walked in-line on the event loop.
        func
            Called as ``func(element, index)``. It may be a sync function or
            return an awaitable. Calls on different elements may overlap and
            finish in any order.
        concurrency
            Max number of elements that are being fetched or transformed at once.
            ``0`` (the default) behaves like ``1``, except that nothing is started
            in anticipation; an element is fetched only when it is requested.
        buffer_size
            Max number of elements that have been started but not yet delivered.
            Must be ``>= max(concurrency, 1)``, which is also the default.
        '''
        check_function(func, 'func')
        concurrency, buffer_size = resolve_concurrency(concurrency, buffer_size)
        if isasynciterable(instream):
            self._instream = aiter(instream)
        elif isiterable(instream):
            self._instream = aiter(AsyncIter(instream))
        else:
            raise TypeError('instream should be sync or async iterable')

        self._func = func
        self._concurrency = concurrency
        self._buffer_size = buffer_size
        self._name = name
        self._slots = Ring(buffer_size)
        self._next_index = 0
        self._n_active = 0
        self._last_fetched: asyncio.Future | None = None
        self._source_done = False  # source signaled end or failed; no new slot will be created
        self._exhausted = False  # end or failure has been delivered to the consumer

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def buffer_size(self) -> int:
        return self._buffer_size

    def __aiter__(self):
        return self

    async def __anext__(self) -> MappedItem:
        if self._exhausted:
            raise StopAsyncIteration
        self._fill()

        slot = self._slots.head()
        task = slot.task
        try:
            mapped = await asyncio.shield(task)
        except BaseException as e:
            if not task.done():
                # The consumer itself was cancelled. The slot stays at the head
                # and will be delivered on the next call.
                raise
            self._slots.pop()
            self._exhausted = True
            logger.debug("%s stopped at index %d due to %r", self._name, slot.index, e)
            raise

        self._slots.pop()
        if slot.done:
            self._exhausted = True
            raise StopAsyncIteration
        return MappedItem(slot.original, mapped, slot.index)

    def _fill(self) -> None:
        slots = self._slots
        max_active = max(self._concurrency, 1)
        while (
            not self._exhausted
            and not self._source_done
            and not slots.full()
            and self._n_active < max_active
        ):
            loop = asyncio.get_running_loop()
            slot = Slot(self._next_index, loop.create_future())
            self._next_index += 1
            previous = self._last_fetched
            self._last_fetched = slot.fetched
            slot.task = loop.create_task(
                self._run(slot, previous), name=f"{self._name}-{slot.index}"
            )
            slots.push(slot)
            self._n_active += 1
            slot.task.add_done_callback(self._on_settled)

    def _on_settled(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        e = task.exception()
        # Fetching the exception marks it "retrieved". The consumer still
        # gets it if the slot is delivered; otherwise this is the only trace.
        if e is not None:
            logger.debug(
                "%s: task %s failed with %r; raised on delivery unless discarded",
                self._name,
                task.get_name(),
                e,
            )
        if self._concurrency > 0:
            self._fill()

    async def _run(self, slot: Slot, previous: asyncio.Future | None) -> Any:
        # The active count drops before the task is done, so a consumer that
        # finds the task done never sees a stale count.
        try:
            try:
                if previous is not None:
                    # Pulls on the source are issued one at a time, in index order.
                    await previous
                if self._source_done:
                    slot.done = True
                    return None
                try:
                    slot.original = await anext(self._instream)
                except StopAsyncIteration:
                    self._source_done = True
                    slot.done = True
                    return None
                except BaseException:
                    self._source_done = True
                    raise
            finally:
                if not slot.fetched.done():
                    slot.fetched.set_result(None)

            y = self._func(slot.original, slot.index)
            if inspect.isawaitable(y):
                y = await y
            return y
        finally:
            self._n_active -= 1
