'''
Replay one single-use iteration to a fixed number of independent consumers.

The consumers ("forks") share one buffer. Each buffered entry remembers how
many forks have yet to read it; once every fork has read the oldest entry,
it is dropped and the buffer's ``offset`` (the logical index of its first
entry) advances. The source is pulled by whichever fork is furthest ahead.
'''

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator

from ._common import check_non_negative_integer

logger = logging.getLogger(__name__)


class Entry:
    __slots__ = ('value', 'pending', 'done', 'error')
    # `pending` is the number of forks that have not read this entry.
    # An entry with `done` or `error` is terminal; it is never dropped and
    # nothing comes after it.

    def __init__(self, value=None, pending: int = 0, *, done: bool = False, error: BaseException | None = None):
        self.value = value
        self.pending = pending
        self.done = done
        self.error = error


class _BufferBase:
    def __init__(self, n_forks: int):
        self.n_forks = n_forks
        self.entries: deque[Entry] = deque()
        self.offset = 0
        self.terminal: Entry | None = None
        self.n_pulled = 0

    def __len__(self):
        # Number of buffered elements, not counting the terminal marker.
        return len(self.entries)

    def _lookup(self, index: int) -> Entry | None:
        i = index - self.offset
        if i < len(self.entries):
            return self.entries[i]
        return self.terminal

    def _record(self, entry: Entry) -> None:
        if entry.done or entry.error is not None:
            self.terminal = entry
        else:
            self.entries.append(entry)
            self.n_pulled += 1

    def _consume(self, entry: Entry) -> None:
        entry.pending -= 1
        entries = self.entries
        while entries and entries[0].pending <= 0:
            entries.popleft()
            self.offset += 1


class DuplicationBuffer(_BufferBase):
    '''
    The shared state behind :class:`Fork` objects over a sync iterable.

    Methods are thread-safe, so that forks can be consumed in different threads.
    '''

    def __init__(self, instream: Iterable, n_forks: int):
        super().__init__(n_forks)
        self._instream = iter(instream)
        self._lock = threading.Lock()

    def _pull(self) -> None:
        try:
            x = next(self._instream)
        except StopIteration:
            self._record(Entry(done=True))
        except Exception as e:
            self._record(Entry(error=e))
        else:
            self._record(Entry(x, self.n_forks))

    def get(self, index: int) -> Entry:
        with self._lock:
            entry = self._lookup(index)
            while entry is None:
                self._pull()
                entry = self._lookup(index)
            return entry

    def consume(self, entry: Entry) -> None:
        with self._lock:
            self._consume(entry)


class AsyncDuplicationBuffer(_BufferBase):
    '''
    The shared state behind :class:`AsyncFork` objects over an async iterable.

    Forks may be consumed in concurrent tasks on the same event loop.
    Pulls on the source are serialized by a lock, so each element is
    pulled exactly once.
    '''

    def __init__(self, instream: AsyncIterable, n_forks: int):
        super().__init__(n_forks)
        self._instream = aiter(instream)
        self._lock = asyncio.Lock()

    async def _pull(self) -> None:
        try:
            x = await anext(self._instream)
        except StopAsyncIteration:
            self._record(Entry(done=True))
        except Exception as e:
            self._record(Entry(error=e))
        else:
            self._record(Entry(x, self.n_forks))

    async def get(self, index: int) -> Entry:
        entry = self._lookup(index)
        if entry is not None:
            return entry
        async with self._lock:
            # Another fork may have pulled while we waited on the lock.
            entry = self._lookup(index)
            while entry is None:
                await self._pull()
                entry = self._lookup(index)
            return entry

    def consume(self, entry: Entry) -> None:
        self._consume(entry)


class Fork(Iterator):
    def __init__(self, buffer: DuplicationBuffer, fork_idx: int):
        self.buffer = buffer
        self._fork_idx = fork_idx
        self._index = 0  # logical index of the next element for this fork
        self._finished = False

    def __iter__(self):
        return self

    def __next__(self):
        if self._finished:
            raise StopIteration
        entry = self.buffer.get(self._index)
        if entry.done:
            self._finished = True
            logger.debug("fork %d finished after %d elements", self._fork_idx, self._index)
            raise StopIteration
        if entry.error is not None:
            self._finished = True
            raise entry.error
        self._index += 1
        value = entry.value
        self.buffer.consume(entry)
        return value


class AsyncFork(AsyncIterator):
    def __init__(self, buffer: AsyncDuplicationBuffer, fork_idx: int):
        self.buffer = buffer
        self._fork_idx = fork_idx
        self._index = 0
        self._finished = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._finished:
            raise StopAsyncIteration
        entry = await self.buffer.get(self._index)
        if entry.done:
            self._finished = True
            logger.debug("fork %d finished after %d elements", self._fork_idx, self._index)
            raise StopAsyncIteration
        if entry.error is not None:
            self._finished = True
            raise entry.error
        self._index += 1
        value = entry.value
        self.buffer.consume(entry)
        return value


def forks(instream: Iterable, n: int) -> tuple[Fork, ...]:
    '''
    Return ``n`` iterators that each yield all the elements of ``instream``.

    ``instream`` is iterated at most once. Elements are buffered from the time
    the fastest fork obtains them until the slowest fork does, hence a fork that
    is never consumed causes every element to be kept in memory.
    '''
    check_non_negative_integer(n, 'n')
    buffer = DuplicationBuffer(instream, n)
    return tuple(Fork(buffer, i) for i in range(n))


def async_forks(instream: AsyncIterable, n: int) -> tuple[AsyncFork, ...]:
    '''Analogous to :func:`forks` for an async iterable.'''
    check_non_negative_integer(n, 'n')
    buffer = AsyncDuplicationBuffer(instream, n)
    return tuple(AsyncFork(buffer, i) for i in range(n))
