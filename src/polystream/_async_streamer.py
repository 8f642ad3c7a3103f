# Async generator returns an async iterator.
#
# The operators that call a user function on every element (`map`, `filter`,
# `tap`, `find`, and so on) are built on `ConcurrentMapper`, hence take the
# `concurrency` and `buffer_size` options. The function may be sync or async.

from __future__ import annotations

import asyncio
import functools
import logging
from collections import deque
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Iterable
from typing import Any

import asyncstdlib
import asyncstdlib.itertools
from deprecation import deprecated
from typing_extensions import Self  # In 3.11, import this from `typing`

from ._common import (
    FINISHED,
    NOTSET,
    TT,
    AsyncIter,
    Elem,
    T,
    await_if_needed,
    check_function,
    check_integer,
    check_non_negative_integer,
    check_positive_integer,
    identity,
    is_not_none,
    isasynciterable,
    isiterable,
    resolve_concurrency,
)
from ._concurrency import ConcurrentMapper
from ._duplicate import async_forks

logger = logging.getLogger(__name__)


class AsyncStream(AsyncIterable[Elem]):
    """
    The async counterpart of :class:`~polystream.Stream`.

    The operators are the same; the terminal methods are coroutines.
    The input may be a sync or async iterable; a sync one is walked
    in-line on the event loop.

    Operators that call a function on every element accept two keyword options:

    concurrency
        Max number of elements whose function calls (and upstream pulls)
        are in progress at the same time. Default ``0``, which means one element
        at a time without starting any work ahead of the consumer.
    buffer_size
        Max number of elements that have been started but not yet passed
        downstream. Must be ``>= max(concurrency, 1)``, which is also the default.

    Regardless of the order in which the calls finish, elements come out in
    the order they went in. An exception in the upstream or in the function
    is raised when the failing element's turn comes.
    """

    def __init__(self, instream: AsyncIterable | Iterable, /):
        if isasynciterable(instream):
            pass
        elif isiterable(instream):
            instream = AsyncIter(instream)
        else:
            raise TypeError(
                f"instream should be sync or async iterable, got {type(instream).__name__}"
            )
        self.streamlets: list[AsyncIterable] = [instream]

    def __aiter__(self) -> AsyncIterator[Elem]:
        return self.streamlets[-1].__aiter__()

    def _mapped(self, func, concurrency, buffer_size, name):
        return ConcurrentMapper(
            self.streamlets[-1],
            func,
            concurrency=concurrency,
            buffer_size=buffer_size,
            name=name,
        )

    def to_async(self) -> Self:
        return self

    def prefetch(self) -> Self:
        """
        Keep one pull of the upstream in progress ahead of the consumer,
        so that the upstream's next element is being prepared while the
        current one is being processed downstream.
        """
        self.streamlets.append(AsyncPrefetcher(self.streamlets[-1]))
        return self

    def append(self, other: AsyncIterable[TT] | Iterable[TT], /) -> Self:
        if not (isasynciterable(other) or isiterable(other)):
            raise TypeError('other should be sync or async iterable')
        self.streamlets.append(AsyncConcatenator(self.streamlets[-1], other))
        return self

    def concat(self, other: AsyncIterable[TT] | Iterable[TT], /) -> Self:
        return self.append(other)

    def prepend(self, other: AsyncIterable[TT] | Iterable[TT], /) -> Self:
        if not (isasynciterable(other) or isiterable(other)):
            raise TypeError('other should be sync or async iterable')
        self.streamlets.append(AsyncConcatenator(other, self.streamlets[-1]))
        return self

    def drop(self, n: int) -> Self:
        check_non_negative_integer(n, 'n')
        self.streamlets.append(AsyncDropper(self.streamlets[-1], n))
        return self

    def take(self, n: int) -> Self:
        check_non_negative_integer(n, 'n')
        self.streamlets.append(AsyncHeader(self.streamlets[-1], n))
        return self

    def drop_last(self, n: int) -> Self:
        check_non_negative_integer(n, 'n')
        self.streamlets.append(AsyncLastDropper(self.streamlets[-1], n))
        return self

    def take_last(self, n: int) -> Self:
        check_non_negative_integer(n, 'n')
        self.streamlets.append(AsyncTailor(self.streamlets[-1], n))
        return self

    def drop_while(self, func: Callable[[T, int], bool | Awaitable[bool]], /) -> Self:
        check_function(func, 'func')
        self.streamlets.append(AsyncDropWhiler(self.streamlets[-1], func))
        return self

    def take_while(self, func: Callable[[T, int], bool | Awaitable[bool]], /) -> Self:
        check_function(func, 'func')
        self.streamlets.append(AsyncTakeWhiler(self.streamlets[-1], func))
        return self

    def slice(self, start: int, end: int | None = None) -> Self:
        check_integer(start, 'start')
        if end is not None:
            check_integer(end, 'end')
        self.streamlets.append(AsyncSlicer(self.streamlets[-1], start, end))
        return self

    def filter(
        self,
        func: Callable[[T, int], bool | Awaitable[bool]],
        /,
        *,
        concurrency: int = 0,
        buffer_size: int | None = None,
    ) -> Self:
        self.streamlets.append(
            AsyncFilter(
                self.streamlets[-1],
                func,
                concurrency=concurrency,
                buffer_size=buffer_size,
            )
        )
        return self

    def filter_not_none(self) -> Self:
        return self.filter(is_not_none)

    def unique(
        self,
        func: Callable[[T, int], Any] = identity,
        /,
        *,
        concurrency: int = 0,
        buffer_size: int | None = None,
    ) -> Self:
        self.streamlets.append(
            AsyncUniquer(
                self.streamlets[-1],
                func,
                concurrency=concurrency,
                buffer_size=buffer_size,
            )
        )
        return self

    def map(
        self,
        func: Callable[[T, int], TT | Awaitable[TT]],
        /,
        *,
        concurrency: int = 0,
        buffer_size: int | None = None,
    ) -> Self:
        """
        Replace each element ``x`` by ``func(x, index)``, awaiting the result
        if it is awaitable.

        For example, to fetch a few URLs at a time while keeping the results
        in the order of the URLs::

            async def fetch(url, index):
                ...

            stream = AsyncStream(urls).map(fetch, concurrency=8)
        """
        self.streamlets.append(
            AsyncMapper(
                self.streamlets[-1],
                func,
                concurrency=concurrency,
                buffer_size=buffer_size,
            )
        )
        return self

    def map_keys(
        self,
        func: Callable[[tuple, int], Any],
        /,
        *,
        concurrency: int = 0,
        buffer_size: int | None = None,
    ) -> Self:
        check_function(func, 'func')

        async def foo(kv, index):
            return (await await_if_needed(func(kv, index)), kv[1])

        return self.map(foo, concurrency=concurrency, buffer_size=buffer_size)

    def map_values(
        self,
        func: Callable[[tuple, int], Any],
        /,
        *,
        concurrency: int = 0,
        buffer_size: int | None = None,
    ) -> Self:
        check_function(func, 'func')

        async def foo(kv, index):
            return (kv[0], await await_if_needed(func(kv, index)))

        return self.map(foo, concurrency=concurrency, buffer_size=buffer_size)

    def tap(
        self,
        func: Callable[[T, int], Any],
        /,
        *,
        concurrency: int = 0,
        buffer_size: int | None = None,
    ) -> Self:
        self.streamlets.append(
            AsyncTapper(
                self.streamlets[-1],
                func,
                concurrency=concurrency,
                buffer_size=buffer_size,
            )
        )
        return self

    def flatten(self) -> Self:
        self.streamlets.append(AsyncFlattener(self.streamlets[-1]))
        return self

    def flat(self) -> Self:
        return self.flatten()

    def flat_map(
        self,
        func: Callable[[T, int], Any],
        /,
        *,
        concurrency: int = 0,
        buffer_size: int | None = None,
    ) -> Self:
        return self.map(func, concurrency=concurrency, buffer_size=buffer_size).flatten()

    def chunk(self, n: int = 1) -> Self:
        check_positive_integer(n, 'n')
        self.streamlets.append(AsyncChunker(self.streamlets[-1], n))
        return self

    def chunk_while(self, func: Callable[[T, T, T], bool | Awaitable[bool]], /) -> Self:
        check_function(func, 'func')
        self.streamlets.append(AsyncChunkWhiler(self.streamlets[-1], func))
        return self

    def group_by(
        self,
        func: Callable[[T, int], Any],
        /,
        *,
        concurrency: int = 0,
        buffer_size: int | None = None,
    ) -> Self:
        self.streamlets.append(
            AsyncGrouper(
                self.streamlets[-1],
                func,
                concurrency=concurrency,
                buffer_size=buffer_size,
            )
        )
        return self

    def reverse(self) -> Self:
        self.streamlets.append(AsyncReverser(self.streamlets[-1]))
        return self

    def sort(self, func: Callable[[T, T], int] | None = None, /) -> Self:
        if func is not None:
            check_function(func, 'func')
        self.streamlets.append(AsyncSorter(self.streamlets[-1], func))
        return self

    async def collect(self) -> list[Elem]:
        return await asyncstdlib.list(self)

    async def to_partition_lists(
        self,
        func: Callable[[T, int], bool | Awaitable[bool]],
        /,
        *,
        concurrency: int = 0,
        buffer_size: int | None = None,
    ) -> tuple[list[Elem], list[Elem]]:
        trues = []
        falses = []
        async for x, y, _ in self._mapped(func, concurrency, buffer_size, 'to_partition_lists'):
            if y:
                trues.append(x)
            else:
                falses.append(x)
        return trues, falses

    async def to_dict(self) -> dict:
        return {k: v async for k, v in self}

    async def find(
        self,
        func: Callable[[T, int], bool | Awaitable[bool]],
        /,
        *,
        concurrency: int = 0,
        buffer_size: int | None = None,
    ) -> Elem | None:
        """
        Return the first element for which ``func`` returns true, or ``None``.

        With ``concurrency > 0``, ``func`` may have been called on a few elements
        after the one that is found; those calls run to completion in the background
        and their results are discarded.
        """
        async for x, y, _ in self._mapped(func, concurrency, buffer_size, 'find'):
            if y:
                return x
        return None

    async def find_last(
        self,
        func: Callable[[T, int], bool | Awaitable[bool]],
        /,
        *,
        concurrency: int = 0,
        buffer_size: int | None = None,
    ) -> Elem | None:
        found = None
        async for x, y, _ in self._mapped(func, concurrency, buffer_size, 'find_last'):
            if y:
                found = x
        return found

    async def find_index(
        self,
        func: Callable[[T, int], bool | Awaitable[bool]],
        /,
        *,
        concurrency: int = 0,
        buffer_size: int | None = None,
    ) -> int:
        async for _, y, idx in self._mapped(func, concurrency, buffer_size, 'find_index'):
            if y:
                return idx
        return -1

    async def find_last_index(
        self,
        func: Callable[[T, int], bool | Awaitable[bool]],
        /,
        *,
        concurrency: int = 0,
        buffer_size: int | None = None,
    ) -> int:
        found = -1
        async for _, y, idx in self._mapped(func, concurrency, buffer_size, 'find_last_index'):
            if y:
                found = idx
        return found

    async def includes(self, obj: Any) -> bool:
        async for x in self:
            if x is obj or x == obj:
                return True
        return False

    async def some(
        self,
        func: Callable[[T, int], bool | Awaitable[bool]],
        /,
        *,
        concurrency: int = 0,
        buffer_size: int | None = None,
    ) -> bool:
        async for _, y, _ in self._mapped(func, concurrency, buffer_size, 'some'):
            if y:
                return True
        return False

    async def every(
        self,
        func: Callable[[T, int], bool | Awaitable[bool]],
        /,
        *,
        concurrency: int = 0,
        buffer_size: int | None = None,
    ) -> bool:
        async for _, y, _ in self._mapped(func, concurrency, buffer_size, 'every'):
            if not y:
                return False
        return True

    async def reduce(self, func: Callable[[Any, T, int], Any], init: Any = NOTSET, /) -> Any:
        check_function(func, 'func')
        it = aiter(self)
        z = init
        if z is NOTSET:
            try:
                z = await anext(it)
            except StopAsyncIteration:
                raise TypeError('reduce of empty stream with no initial value') from None
        idx = 0
        async for x in it:
            z = await await_if_needed(func(z, x, idx))
            idx += 1
        return z

    async def count(self) -> int:
        n = 0
        async for _ in self:
            n += 1
        return n

    async def for_each(
        self,
        func: Callable[[T, int], Any],
        /,
        *,
        concurrency: int = 0,
        buffer_size: int | None = None,
    ) -> None:
        async for _ in self._mapped(func, concurrency, buffer_size, 'for_each'):
            pass

    async def join(
        self,
        glue: str = ',',
        *,
        concurrency: int = 0,
        buffer_size: int | None = None,
    ) -> str:
        parts = []
        async for x, _, _ in self._mapped(identity, concurrency, buffer_size, 'join'):
            parts.append('' if x is None else str(x))
        return glue.join(parts)

    async def complete(self, *, concurrency: int = 0, buffer_size: int | None = None) -> None:
        """
        Iterate the stream to its end, for the side effects of the operators.

        With ``concurrency > 0``, up to that many upstream pulls overlap.
        """
        async for _ in self._mapped(identity, concurrency, buffer_size, 'complete'):
            pass

    @deprecated(
        deprecated_in='0.2.0', removed_in='0.4.0', details='use ``complete`` instead'
    )
    async def drain(self) -> None:
        await self.complete()

    def duplicate(self, n: int) -> tuple[AsyncStream[Elem], ...]:
        return tuple(AsyncStream(f) for f in async_forks(self.streamlets[-1], n))


async def _next_or_finished(it: AsyncIterator):
    try:
        return await anext(it)
    except StopAsyncIteration:
        return FINISHED


def _discard(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    e = task.exception()
    if e is not None:
        logger.debug("prefetched pull %s discarded with error %r", task.get_name(), e)


class AsyncPrefetcher(AsyncIterable):
    def __init__(self, instream: AsyncIterable, /):
        self._instream = instream

    async def __aiter__(self):
        it = aiter(self._instream)
        loop = asyncio.get_running_loop()
        finished = FINISHED
        pending = None
        try:
            pending = loop.create_task(_next_or_finished(it))
            while True:
                task, pending = pending, None
                x = await task
                if x is finished:
                    break
                pending = loop.create_task(_next_or_finished(it))
                yield x
        finally:
            if pending is not None:
                # The consumer stopped early; the last pull is left to finish alone.
                pending.add_done_callback(_discard)


class AsyncConcatenator(AsyncIterable):
    def __init__(self, *instreams: AsyncIterable | Iterable):
        self._instreams = instreams

    async def __aiter__(self):
        async for x in asyncstdlib.itertools.chain(*self._instreams):
            yield x


class AsyncDropper(AsyncIterable):
    def __init__(self, instream: AsyncIterable, /, n: int):
        self._instream = instream
        self.n = n

    async def __aiter__(self):
        async for x in asyncstdlib.itertools.islice(self._instream, self.n, None):
            yield x


class AsyncHeader(AsyncIterable):
    def __init__(self, instream: AsyncIterable, /, n: int):
        self._instream = instream
        self.n = n

    async def __aiter__(self):
        if self.n <= 0:
            return
        n = 0
        async for v in self._instream:
            yield v
            n += 1
            if n >= self.n:
                break


class AsyncLastDropper(AsyncIterable):
    def __init__(self, instream: AsyncIterable, /, n: int):
        self._instream = instream
        self.n = n

    async def __aiter__(self):
        n = self.n
        data = deque()
        async for v in self._instream:
            data.append(v)
            if len(data) > n:
                yield data.popleft()


class AsyncTailor(AsyncIterable):
    def __init__(self, instream: AsyncIterable, /, n: int):
        self._instream = instream
        self.n = n

    async def __aiter__(self):
        data = deque(maxlen=self.n)
        async for v in self._instream:
            data.append(v)
        for x in data:
            yield x


class AsyncDropWhiler(AsyncIterable):
    def __init__(self, instream: AsyncIterable, func: Callable):
        self._instream = instream
        self.func = func

    async def __aiter__(self):
        func = self.func
        dropping = True
        idx = 0
        async for v in self._instream:
            if dropping:
                if await await_if_needed(func(v, idx)):
                    idx += 1
                    continue
                dropping = False
            yield v


class AsyncTakeWhiler(AsyncIterable):
    def __init__(self, instream: AsyncIterable, func: Callable):
        self._instream = instream
        self.func = func

    async def __aiter__(self):
        func = self.func
        idx = 0
        async for v in self._instream:
            if not await await_if_needed(func(v, idx)):
                break
            yield v
            idx += 1


class AsyncSlicer(AsyncIterable):
    def __init__(self, instream: AsyncIterable, /, start: int, end: int | None = None):
        self._instream = instream
        self.start = start
        self.end = end

    def _streamlet(self):
        instream = self._instream
        start, end = self.start, self.end
        if end is None:
            if start >= 0:
                return AsyncDropper(instream, start)
            return AsyncTailor(instream, -start)
        if start >= 0:
            if end >= 0:
                return AsyncHeader(AsyncDropper(instream, start), max(end - start, 0))
            return AsyncLastDropper(AsyncDropper(instream, start), -end)
        if end >= 0:
            return _AsyncTailBefore(instream, -start, end)
        return AsyncLastDropper(AsyncTailor(instream, -start), -end)

    async def __aiter__(self):
        async for x in self._streamlet():
            yield x


class _AsyncTailBefore(AsyncIterable):
    # The last `n` elements that are at positions before `end`.
    def __init__(self, instream: AsyncIterable, n: int, end: int):
        self._instream = instream
        self.n = n
        self.end = end

    async def __aiter__(self):
        data = deque(maxlen=self.n)
        idx = 0
        async for v in self._instream:
            data.append((idx, v))
            idx += 1
        for idx, v in data:
            if idx >= self.end:
                break
            yield v


class _AsyncMapped(AsyncIterable):
    # Base of the operators that interpret the `MappedItem`s of a `ConcurrentMapper`.
    name = 'mapped'

    def __init__(
        self,
        instream: AsyncIterable,
        func: Callable,
        *,
        concurrency: int = 0,
        buffer_size: int | None = None,
    ):
        check_function(func, 'func')
        concurrency, buffer_size = resolve_concurrency(concurrency, buffer_size)
        self._instream = instream
        self.func = func
        self.concurrency = concurrency
        self.buffer_size = buffer_size

    def _items(self) -> ConcurrentMapper:
        return ConcurrentMapper(
            self._instream,
            self.func,
            concurrency=self.concurrency,
            buffer_size=self.buffer_size,
            name=self.name,
        )


class AsyncMapper(_AsyncMapped):
    name = 'map'

    async def __aiter__(self):
        async for item in self._items():
            yield item.mapped


class AsyncFilter(_AsyncMapped):
    name = 'filter'

    async def __aiter__(self):
        async for item in self._items():
            if item.mapped:
                yield item.original


class AsyncTapper(_AsyncMapped):
    name = 'tap'

    async def __aiter__(self):
        async for item in self._items():
            yield item.original


class AsyncUniquer(_AsyncMapped):
    name = 'unique'

    async def __aiter__(self):
        seen = set()
        async for item in self._items():
            if item.mapped not in seen:
                seen.add(item.mapped)
                yield item.original


class AsyncGrouper(_AsyncMapped):
    name = 'group_by'

    async def __aiter__(self):
        groups = {}
        async for item in self._items():
            groups.setdefault(item.mapped, []).append(item.original)
        for kv in groups.items():
            yield kv


class AsyncFlattener(AsyncIterable):
    def __init__(self, instream: AsyncIterable, /):
        self._instream = instream

    async def __aiter__(self):
        async for x in self._instream:
            # `x` must be iterable or async iterable.
            if isasynciterable(x):
                async for y in x:
                    yield y
            else:
                for y in x:
                    yield y


class AsyncChunker(AsyncIterable):
    def __init__(self, instream: AsyncIterable, /, n: int):
        self._instream = instream
        self._n = n

    async def __aiter__(self):
        n = self._n
        chunk = []
        async for x in self._instream:
            chunk.append(x)
            if len(chunk) == n:
                yield chunk
                chunk = []
        if chunk:
            yield chunk


class AsyncChunkWhiler(AsyncIterable):
    def __init__(self, instream: AsyncIterable, func: Callable):
        self._instream = instream
        self.func = func

    async def __aiter__(self):
        func = self.func
        chunk = []
        async for x in self._instream:
            if not chunk or await await_if_needed(func(x, chunk[-1], chunk[0])):
                chunk.append(x)
            else:
                yield chunk
                chunk = [x]
        if chunk:
            yield chunk


class AsyncReverser(AsyncIterable):
    def __init__(self, instream: AsyncIterable, /):
        self._instream = instream

    async def __aiter__(self):
        data = await asyncstdlib.list(self._instream)
        for x in reversed(data):
            yield x


class AsyncSorter(AsyncIterable):
    def __init__(self, instream: AsyncIterable, /, func: Callable | None = None):
        self._instream = instream
        self.func = func

    async def __aiter__(self):
        data = await asyncstdlib.list(self._instream)
        if self.func is None:
            data.sort()
        else:
            data.sort(key=functools.cmp_to_key(self.func))
        for x in data:
            yield x
