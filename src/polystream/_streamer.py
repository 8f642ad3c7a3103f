# Iterable vs iterator
#
# A `Stream` is an "iterable": each operator appends a "streamlet", which is
# itself an iterable whose `__iter__` is a generator pulling from the streamlet
# before it. Nothing runs until the last streamlet is iterated.
#
# User callbacks are called with the data element and its zero-based index
# in the stream that the operator sees, i.e. `func(x, index)`.

from __future__ import annotations

import functools
import itertools
import logging
from collections import deque
from collections.abc import Callable, Iterable, Iterator
from typing import Any

from deprecation import deprecated
from typing_extensions import Self  # In 3.11, import this from `typing`

from ._async_streamer import AsyncStream
from ._common import (
    NOTSET,
    Elem,
    T,
    TT,
    check_function,
    check_integer,
    check_non_negative_integer,
    check_positive_integer,
    identity,
    is_not_none,
    isiterable,
)
from ._duplicate import forks

logger = logging.getLogger(__name__)


class Stream(Iterable[Elem]):
    """
    The class ``Stream`` wraps an `Iterable`_ and provides a chainable API
    of lazy operators and terminal reductions over it.

    Most of the methods return the object itself, facilitating calls
    in a "chained" fashion, like this::

        s = Stream(...).map(...).filter(...).chunk(...)

    However, these methods modify the object in-place, hence the above is equivalent
    to calling the methods one by one::

        s = Stream(...)
        s.map(...)
        s.filter(...)
        s.chunk(...)

    The "terminal" methods, such as :meth:`collect`, :meth:`find`, :meth:`reduce`,
    consume the stream and return a result. A ``Stream`` can be consumed only as many
    times as its input iterable can; if it is a generator, only once.
    Use :meth:`duplicate` to consume one stream in several independent ways.

    Callbacks are called like ``func(x, index)``, where ``index`` is the position
    of ``x`` in the stream the operator is applied to.
    """

    def __init__(self, instream: Iterable, /):
        """
        Parameters
        ----------
        instream
            The input stream of elements, possibly unlimited.
        """
        if not isiterable(instream):
            raise TypeError(f"instream should be iterable, got {type(instream).__name__}")
        self.streamlets: list[Iterable] = [instream]

    def __iter__(self) -> Iterator[Elem]:
        return self.streamlets[-1].__iter__()

    def to_async(self) -> AsyncStream[Elem]:
        """
        Return an :class:`~polystream.AsyncStream` that yields the elements of this stream.

        The sync iteration is carried out in-line on the event loop.
        """
        return AsyncStream(self.streamlets[-1])

    def append(self, other: Iterable[TT], /) -> Self:
        """
        Yield the elements of ``other`` after those of this stream.
        """
        if not isiterable(other):
            raise TypeError('other should be iterable')
        self.streamlets.append(Concatenator(self.streamlets[-1], other))
        return self

    def concat(self, other: Iterable[TT], /) -> Self:
        """Alias to :meth:`append`."""
        return self.append(other)

    def prepend(self, other: Iterable[TT], /) -> Self:
        """
        Yield the elements of ``other`` before those of this stream.
        """
        if not isiterable(other):
            raise TypeError('other should be iterable')
        self.streamlets.append(Concatenator(other, self.streamlets[-1]))
        return self

    def drop(self, n: int) -> Self:
        """
        Skip the first ``n`` elements.
        """
        check_non_negative_integer(n, 'n')
        self.streamlets.append(Dropper(self.streamlets[-1], n))
        return self

    def take(self, n: int) -> Self:
        """
        Take the first ``n`` elements and ignore the rest.
        If the entire stream has less than ``n`` elements, just take all of them.

        The upstream is not pulled beyond the ``n``-th element.
        """
        check_non_negative_integer(n, 'n')
        self.streamlets.append(Header(self.streamlets[-1], n))
        return self

    def drop_last(self, n: int) -> Self:
        """
        Skip the last ``n`` elements.

        Elements are yielded with a lag of ``n``, hence ``n`` elements are
        held in memory.
        """
        check_non_negative_integer(n, 'n')
        self.streamlets.append(LastDropper(self.streamlets[-1], n))
        return self

    def take_last(self, n: int) -> Self:
        """
        Take the last ``n`` elements and ignore all the previous ones.
        If the entire stream has less than ``n`` elements, just take all of them.

        .. note:: ``n`` data elements need to be kept in memory, hence ``n`` should
            not be "too large" for the typical size of the data elements.
        """
        check_non_negative_integer(n, 'n')
        self.streamlets.append(Tailer(self.streamlets[-1], n))
        return self

    def drop_while(self, func: Callable[[T, int], bool], /) -> Self:
        """
        Skip elements as long as ``func`` returns true; yield everything from
        the first element for which it returns false.
        """
        check_function(func, 'func')
        self.streamlets.append(DropWhiler(self.streamlets[-1], func))
        return self

    def take_while(self, func: Callable[[T, int], bool], /) -> Self:
        """
        Yield elements as long as ``func`` returns true; stop at the first
        element for which it returns false.
        """
        check_function(func, 'func')
        self.streamlets.append(TakeWhiler(self.streamlets[-1], func))
        return self

    def slice(self, start: int, end: int | None = None) -> Self:
        """
        Select elements in positions ``start`` (inclusive) to ``end`` (exclusive).

        The result is the same as ``list(stream)[start:end]``; in particular,
        negative positions count from the end of the stream.
        Unless both positions are non-negative, the whole stream is walked and
        up to ``abs(start)`` (or ``abs(end)``) elements are held in memory.

        Examples
        --------
        >>> Stream(range(10)).slice(2, 5).collect()
        [2, 3, 4]
        >>> Stream(range(10)).slice(-3).collect()
        [7, 8, 9]
        >>> Stream(range(10)).slice(-4, 8).collect()
        [6, 7]
        """
        check_integer(start, 'start')
        if end is not None:
            check_integer(end, 'end')
        self.streamlets.append(Slicer(self.streamlets[-1], start, end))
        return self

    def filter(self, func: Callable[[T, int], bool], /) -> Self:
        """
        Select data elements to keep in the stream according to the predicate ``func``.

        Parameters
        ----------
        func
            A function that takes a data element and its index, and returns
            a truthy or falsy value to indicate the element should be kept in
            or dropped from the stream.
        """
        check_function(func, 'func')
        self.streamlets.append(Filter(self.streamlets[-1], func))
        return self

    def filter_not_none(self) -> Self:
        """
        Drop elements that are ``None``.
        """
        return self.filter(is_not_none)

    def unique(self, func: Callable[[T, int], Any] = identity, /) -> Self:
        """
        Yield an element only if its key, as computed by ``func``,
        has not been seen on a previous element.

        By default the key is the element itself. Keys must be hashable.
        """
        check_function(func, 'func')
        self.streamlets.append(Uniquer(self.streamlets[-1], func))
        return self

    def map(self, func: Callable[[T, int], TT], /) -> Self:
        """
        Perform a simple transformation on each data element.

        This is a 1-to-1 transform from the input stream to the output stream.
        This method can neither add nor skip elements in the stream.

        If the logic needs to keep some state or history info, then define a class and implement
        its ``__call__`` method.

        Parameters
        ----------
        func
            A function that takes a data element and its index, and returns a new value;
            the new values form the new stream going forward.
        """
        check_function(func, 'func')
        self.streamlets.append(Mapper(self.streamlets[-1], func))
        return self

    def map_keys(self, func: Callable[[tuple, int], Any], /) -> Self:
        """
        For a stream of ``(key, value)`` pairs, replace ``key`` by ``func((key, value), index)``.
        """
        check_function(func, 'func')

        def foo(kv, index):
            return (func(kv, index), kv[1])

        return self.map(foo)

    def map_values(self, func: Callable[[tuple, int], Any], /) -> Self:
        """
        For a stream of ``(key, value)`` pairs, replace ``value`` by ``func((key, value), index)``.
        """
        check_function(func, 'func')

        def foo(kv, index):
            return (kv[0], func(kv, index))

        return self.map(foo)

    def tap(self, func: Callable[[T, int], Any], /) -> Self:
        """
        Call ``func`` on each element for its side effect, and pass the element on unchanged.
        """
        check_function(func, 'func')
        self.streamlets.append(Tapper(self.streamlets[-1], func))
        return self

    def flatten(self) -> Self:
        """
        Turn a stream of iterables into a stream of their elements.

        Examples
        --------
        >>> Stream([[0, 1], [], (2, 3)]).flatten().collect()
        [0, 1, 2, 3]
        """
        self.streamlets.append(Flattener(self.streamlets[-1]))
        return self

    def flat(self) -> Self:
        """Alias to :meth:`flatten`."""
        return self.flatten()

    def flat_map(self, func: Callable[[T, int], Iterable[TT]], /) -> Self:
        """
        Equivalent to ``map(func).flatten()``.
        """
        return self.map(func).flatten()

    def chunk(self, n: int = 1) -> Self:
        """
        Bundle elements into lists of size ``n``.
        The last list may be shorter.

        Examples
        --------
        >>> Stream(range(10)).chunk(3).collect()
        [[0, 1, 2], [3, 4, 5], [6, 7, 8], [9]]
        """
        check_positive_integer(n, 'n')
        self.streamlets.append(Chunker(self.streamlets[-1], n))
        return self

    def chunk_while(self, func: Callable[[T, T, T], bool], /) -> Self:
        """
        Bundle consecutive elements into lists.

        ``func(x, last, first)`` is called with the upcoming element and the last
        and first elements of the current chunk; ``x`` is added to the chunk if
        it returns true, otherwise ``x`` starts a new chunk.

        Examples
        --------
        >>> Stream([1, 2, 4, 5, 6, 9]).chunk_while(lambda x, last, first: x == last + 1).collect()
        [[1, 2], [4, 5, 6], [9]]
        """
        check_function(func, 'func')
        self.streamlets.append(ChunkWhiler(self.streamlets[-1], func))
        return self

    def group_by(self, func: Callable[[T, int], Any], /) -> Self:
        """
        ``func`` takes a data element and its index and outputs a key.
        Elements are collected into a list per key, and the stream becomes
        ``(key, list)`` tuples in the order in which the keys were first seen.

        Unlike ``itertools.groupby``, the elements of a group do not need to be
        consecutive, hence the entire stream is walked before anything is yielded.

        Examples
        --------
        >>> data = ['atlas', 'apple', 'bee', 'away', 'block', 'peter']
        >>> Stream(data).group_by(lambda x, _: x[0]).collect()
        [('a', ['atlas', 'apple', 'away']), ('b', ['bee', 'block']), ('p', ['peter'])]
        """
        check_function(func, 'func')
        self.streamlets.append(Grouper(self.streamlets[-1], func))
        return self

    def reverse(self) -> Self:
        """
        Yield the elements in reverse order. The entire stream is held in memory.
        """
        self.streamlets.append(Reverser(self.streamlets[-1]))
        return self

    def sort(self, func: Callable[[T, T], int] | None = None, /) -> Self:
        """
        Yield the elements in sorted order. The entire stream is held in memory.

        Parameters
        ----------
        func
            An "old-style" comparison function, which returns a negative number,
            zero, or a positive number when its first argument is less than,
            equal to, or greater than its second argument.
            If ``None`` (the default), elements are compared by their natural order.
            The sort is stable.
        """
        if func is not None:
            check_function(func, 'func')
        self.streamlets.append(Sorter(self.streamlets[-1], func))
        return self

    def collect(self) -> list[Elem]:
        """
        Return all the elements in a list.

        .. warning:: Do not call this method on "big data".
        """
        return list(self)

    def to_partition_lists(self, func: Callable[[T, int], bool], /) -> tuple[list[Elem], list[Elem]]:
        """
        Return two lists: the elements for which ``func`` returns true, and the others.
        """
        check_function(func, 'func')
        trues = []
        falses = []
        for idx, x in enumerate(self):
            if func(x, idx):
                trues.append(x)
            else:
                falses.append(x)
        return trues, falses

    def to_dict(self) -> dict:
        """
        Return a dict built from a stream of ``(key, value)`` pairs.
        A later pair overrides an earlier one with the same key.
        """
        return {k: v for k, v in self}

    def find(self, func: Callable[[T, int], bool], /) -> Elem | None:
        """
        Return the first element for which ``func`` returns true, or ``None``
        if there is no such element.

        The stream is not pulled beyond the element that is found.
        """
        check_function(func, 'func')
        for idx, x in enumerate(self):
            if func(x, idx):
                return x
        return None

    def find_last(self, func: Callable[[T, int], bool], /) -> Elem | None:
        check_function(func, 'func')
        found = None
        for idx, x in enumerate(self):
            if func(x, idx):
                found = x
        return found

    def find_index(self, func: Callable[[T, int], bool], /) -> int:
        """
        Return the index of the first element for which ``func`` returns true,
        or ``-1`` if there is no such element.
        """
        check_function(func, 'func')
        for idx, x in enumerate(self):
            if func(x, idx):
                return idx
        return -1

    def find_last_index(self, func: Callable[[T, int], bool], /) -> int:
        check_function(func, 'func')
        found = -1
        for idx, x in enumerate(self):
            if func(x, idx):
                found = idx
        return found

    def includes(self, obj: Any) -> bool:
        """
        Return whether any element is ``obj`` or equals ``obj``.
        """
        for x in self:
            if x is obj or x == obj:
                return True
        return False

    def some(self, func: Callable[[T, int], bool], /) -> bool:
        """
        Return whether ``func`` returns true for any element.
        Stops at the first such element.
        """
        check_function(func, 'func')
        for idx, x in enumerate(self):
            if func(x, idx):
                return True
        return False

    def every(self, func: Callable[[T, int], bool], /) -> bool:
        """
        Return whether ``func`` returns true for all elements.
        Stops at the first element for which it does not.
        """
        check_function(func, 'func')
        for idx, x in enumerate(self):
            if not func(x, idx):
                return False
        return True

    def reduce(self, func: Callable[[Any, T, int], Any], init: Any = NOTSET, /) -> Any:
        """
        Combine the elements into one value.

        If the last combined value is ``z`` and the upcoming element is ``x``,
        then the next combined value is ``func(z, x, i)``, where ``i`` counts
        the calls to ``func`` starting at 0.

        Parameters
        ----------
        func
            The combining function.
        init
            The starting value. If missing, the first element is the starting value,
            and ``func`` is first called on the second element.

        Raises
        ------
        TypeError
            If the stream is empty and ``init`` is missing.
        """
        check_function(func, 'func')
        it = iter(self)
        z = init
        if z is NOTSET:
            try:
                z = next(it)
            except StopIteration:
                raise TypeError('reduce of empty stream with no initial value') from None
        for idx, x in enumerate(it):
            z = func(z, x, idx)
        return z

    def count(self) -> int:
        """
        Return the number of elements.
        """
        n = 0
        for _ in self:
            n += 1
        return n

    def for_each(self, func: Callable[[T, int], Any], /) -> None:
        """
        Call ``func`` on each element for its side effect.
        """
        check_function(func, 'func')
        for idx, x in enumerate(self):
            func(x, idx)

    def join(self, glue: str = ',') -> str:
        """
        Concatenate the string forms of the elements, separated by ``glue``.
        ``None`` elements become empty strings.
        """
        return glue.join('' if x is None else str(x) for x in self)

    def complete(self) -> None:
        """
        Iterate the stream to its end, for the side effects of the operators.
        """
        for _ in self:
            pass

    @deprecated(
        deprecated_in='0.2.0', removed_in='0.4.0', details='use ``complete`` instead'
    )
    def drain(self) -> None:
        self.complete()

    def duplicate(self, n: int) -> tuple[Stream[Elem], ...]:
        """
        Return ``n`` streams that each yield all the elements of this stream.

        This stream is iterated at most once. The returned streams can be consumed
        at different paces, in any order, or in different threads; elements are
        buffered between the fastest and the slowest of them.
        """
        return tuple(Stream(f) for f in forks(self.streamlets[-1], n))


class Concatenator(Iterable):
    def __init__(self, *instreams: Iterable):
        self._instreams = instreams

    def __iter__(self):
        return itertools.chain.from_iterable(self._instreams)


class Dropper(Iterable):
    def __init__(self, instream: Iterable, /, n: int):
        self._instream = instream
        self.n = n

    def __iter__(self):
        return itertools.islice(self._instream, self.n, None)


class Header(Iterable):
    def __init__(self, instream: Iterable, /, n: int):
        """
        Keeps the first ``n`` elements and ignores all the rest.
        """
        self._instream = instream
        self.n = n

    def __iter__(self):
        return itertools.islice(self._instream, self.n)


class LastDropper(Iterable):
    def __init__(self, instream: Iterable, /, n: int):
        self._instream = instream
        self.n = n

    def __iter__(self):
        n = self.n
        data = deque()
        for v in self._instream:
            data.append(v)
            if len(data) > n:
                yield data.popleft()


class Tailer(Iterable):
    def __init__(self, instream: Iterable, /, n: int):
        """
        Keeps the last ``n`` elements and ignores all the previous ones.
        If there are less than ``n`` data elements in total, then keep all of them.

        This object needs to walk through the entire input stream before
        starting to yield elements.
        """
        self._instream = instream
        self.n = n

    def __iter__(self):
        data = deque(maxlen=self.n)
        for v in self._instream:
            data.append(v)
        yield from data


class DropWhiler(Iterable):
    def __init__(self, instream: Iterable, func: Callable[[T, int], bool]):
        self._instream = instream
        self.func = func

    def __iter__(self):
        func = self.func
        it = iter(self._instream)
        for idx, v in enumerate(it):
            if not func(v, idx):
                yield v
                break
        yield from it


class TakeWhiler(Iterable):
    def __init__(self, instream: Iterable, func: Callable[[T, int], bool]):
        self._instream = instream
        self.func = func

    def __iter__(self):
        func = self.func
        for idx, v in enumerate(self._instream):
            if not func(v, idx):
                break
            yield v


class Slicer(Iterable):
    """
    See :meth:`Stream.slice`.
    """

    def __init__(self, instream: Iterable, /, start: int, end: int | None = None):
        self._instream = instream
        self.start = start
        self.end = end

    def __iter__(self):
        instream = self._instream
        start, end = self.start, self.end
        if end is None:
            if start >= 0:
                yield from Dropper(instream, start)
            else:
                yield from Tailer(instream, -start)
        elif start >= 0:
            if end >= 0:
                yield from Header(Dropper(instream, start), max(end - start, 0))
            else:
                yield from LastDropper(Dropper(instream, start), -end)
        elif end >= 0:
            # Keep the last `-start` elements with their positions,
            # then yield those before position `end`.
            data = deque(maxlen=-start)
            for idx, v in enumerate(instream):
                data.append((idx, v))
            for idx, v in data:
                if idx >= end:
                    break
                yield v
        else:
            yield from LastDropper(Tailer(instream, -start), -end)


class Filter(Iterable):
    def __init__(self, instream: Iterable, func: Callable[[T, int], bool]):
        self._instream = instream
        self.func = func

    def __iter__(self):
        func = self.func
        for idx, v in enumerate(self._instream):
            if func(v, idx):
                yield v


class Uniquer(Iterable):
    def __init__(self, instream: Iterable, func: Callable[[T, int], Any]):
        self._instream = instream
        self.func = func

    def __iter__(self):
        func = self.func
        seen = set()
        for idx, v in enumerate(self._instream):
            key = func(v, idx)
            if key not in seen:
                seen.add(key)
                yield v


class Mapper(Iterable):
    def __init__(self, instream: Iterable, func: Callable[[T, int], Any]):
        self._instream = instream
        self.func = func

    def __iter__(self):
        func = self.func
        for idx, v in enumerate(self._instream):
            yield func(v, idx)


class Tapper(Iterable):
    def __init__(self, instream: Iterable, func: Callable[[T, int], Any]):
        self._instream = instream
        self.func = func

    def __iter__(self):
        func = self.func
        for idx, v in enumerate(self._instream):
            func(v, idx)
            yield v


class Flattener(Iterable):
    """
    See :meth:`Stream.flatten`.
    This is comparable to the standard ``itertools.chain.from_iterable``.
    """

    def __init__(self, instream: Iterable, /):
        self._instream = instream

    def __iter__(self):
        for x in self._instream:
            yield from x


class Chunker(Iterable):
    """
    See :meth:`Stream.chunk`.
    """

    def __init__(self, instream: Iterable, /, n: int):
        self._instream = instream
        self._n = n

    def __iter__(self):
        n = self._n
        chunk = []
        for x in self._instream:
            chunk.append(x)
            if len(chunk) == n:
                yield chunk
                chunk = []
        if chunk:
            yield chunk


class ChunkWhiler(Iterable):
    def __init__(self, instream: Iterable, func: Callable[[T, T, T], bool]):
        self._instream = instream
        self.func = func

    def __iter__(self):
        func = self.func
        chunk = []
        for x in self._instream:
            if not chunk or func(x, chunk[-1], chunk[0]):
                chunk.append(x)
            else:
                yield chunk
                chunk = [x]
        if chunk:
            yield chunk


class Grouper(Iterable):
    def __init__(self, instream: Iterable, /, func: Callable[[T, int], Any]):
        self._instream = instream
        self.func = func

    def __iter__(self):
        func = self.func
        groups = {}
        for idx, x in enumerate(self._instream):
            groups.setdefault(func(x, idx), []).append(x)
        yield from groups.items()


class Reverser(Iterable):
    def __init__(self, instream: Iterable, /):
        self._instream = instream

    def __iter__(self):
        data = list(self._instream)
        yield from reversed(data)


class Sorter(Iterable):
    def __init__(self, instream: Iterable, /, func: Callable[[T, T], int] | None = None):
        self._instream = instream
        self.func = func

    def __iter__(self):
        if self.func is None:
            data = sorted(self._instream)
        else:
            data = sorted(self._instream, key=functools.cmp_to_key(self.func))
        yield from data
