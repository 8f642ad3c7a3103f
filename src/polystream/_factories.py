'''
Functions that create a :class:`Stream` or :class:`AsyncStream`.

Where an "iterable or factory" is accepted, a factory is a function that
takes no argument and returns an iterable.
'''

from __future__ import annotations

import itertools
import logging
from collections.abc import AsyncIterable, Callable, Iterable, Mapping
from typing import Any

from ._async_streamer import AsyncStream
from ._builder import AsyncIterableBuilder
from ._common import (
    T,
    await_if_needed,
    check_function,
    isasynciterable,
    isiterable,
)
from ._streamer import Stream

logger = logging.getLogger(__name__)


def _resolve(iterable_or_factory):
    x = iterable_or_factory
    if not (isiterable(x) or isasynciterable(x)) and callable(x):
        x = x()
    return x


def from_(iterable_or_factory) -> Stream | AsyncStream:
    """
    Return a :class:`Stream` if the input is a sync iterable,
    or an :class:`AsyncStream` if it is an async iterable.

    A ``Stream`` or ``AsyncStream`` is returned as is.
    """
    if isinstance(iterable_or_factory, (Stream, AsyncStream)):
        return iterable_or_factory
    x = _resolve(iterable_or_factory)
    if isasynciterable(x):
        return AsyncStream(x)
    if isiterable(x):
        return Stream(x)
    raise TypeError(f"argument is not sync or async iterable: {type(x).__name__}")


def sync_from(iterable_or_factory: Iterable[T] | Callable[[], Iterable[T]]) -> Stream[T]:
    if isinstance(iterable_or_factory, Stream):
        return iterable_or_factory
    x = _resolve(iterable_or_factory)
    if isiterable(x):
        return Stream(x)
    raise TypeError(f"argument is not iterable: {type(x).__name__}")


def async_from(iterable_or_factory) -> AsyncStream:
    """
    Like :func:`from_`, but always return an :class:`AsyncStream`.
    A sync iterable is walked in-line on the event loop.
    """
    if isinstance(iterable_or_factory, AsyncStream):
        return iterable_or_factory
    if isinstance(iterable_or_factory, Stream):
        return iterable_or_factory.to_async()
    x = _resolve(iterable_or_factory)
    if isasynciterable(x) or isiterable(x):
        return AsyncStream(x)
    raise TypeError(f"argument is not sync or async iterable: {type(x).__name__}")


def builder() -> AsyncIterableBuilder:
    return AsyncIterableBuilder()


def build_with(func: Callable[[AsyncIterableBuilder], Any]) -> AsyncStream:
    """
    Create an :class:`AsyncIterableBuilder`, pass it to ``func``,
    and return an :class:`AsyncStream` over it.

    ``func`` is called right away. Typically it registers the builder's methods
    as callbacks of some event source.
    """
    check_function(func, 'func')
    bld = builder()
    func(bld)
    return bld.to_stream()


def empty() -> Stream:
    return Stream(())


def _mapping(obj) -> Mapping:
    if isinstance(obj, Mapping):
        return obj
    # The attributes of a plain object.
    return vars(obj)


def entries(obj) -> Stream[tuple]:
    """
    Stream over the ``(key, value)`` pairs of a mapping,
    or the ``(name, value)`` pairs of the attributes of an object.
    """
    m = _mapping(obj)
    return Stream(m.items())


def keys(obj) -> Stream:
    return Stream(_mapping(obj).keys())


def values(obj) -> Stream:
    return Stream(_mapping(obj).values())


class _Range(Iterable):
    def __init__(self, start, to, step):
        self.start = start
        self.to = to
        self.step = step

    def __iter__(self):
        n, to, step = self.start, self.to, self.step
        if step > 0:
            while n < to:
                yield n
                n += step
        else:
            while n > to:
                yield n
                n += step


def range(start_or_to, to=None, step=1) -> Stream:
    """
    Stream over numbers from ``start`` (inclusive) to ``to`` (exclusive) by ``step``.

    Called with one argument, that argument is ``to``, and ``start`` is 0.
    Unlike the builtin ``range``, floats are accepted.

    Examples
    --------
    >>> import polystream
    >>> polystream.range(3).collect()
    [0, 1, 2]
    >>> polystream.range(5, 0, -2).collect()
    [5, 3, 1]
    """
    if to is None:
        start, to = 0, start_or_to
    else:
        start = start_or_to
    if step == 0:
        raise ValueError("step can't be 0")
    return Stream(_Range(start, to, step))


def repeat(value) -> Stream:
    """
    An unlimited stream of ``value``.
    """
    return Stream(itertools.repeat(value))


class _Iterate(Iterable):
    def __init__(self, func, init):
        self.func = func
        self.init = init

    def __iter__(self):
        func = self.func
        x = self.init
        while True:
            x = func(x)
            yield x


class _AsyncIterate(AsyncIterable):
    def __init__(self, func, init):
        self.func = func
        self.init = init

    async def __aiter__(self):
        func = self.func
        x = self.init
        while True:
            x = await await_if_needed(func(x))
            yield x


def sync_iterate(func: Callable[[Any], Any], init=None) -> Stream:
    """
    An unlimited stream of ``func(init)``, ``func(func(init))``, and so on.
    """
    check_function(func, 'func')
    return Stream(_Iterate(func, init))


def async_iterate(func: Callable[[Any], Any], init=None) -> AsyncStream:
    """
    Like :func:`sync_iterate`, but ``func`` may be an async function.
    """
    check_function(func, 'func')
    return AsyncStream(_AsyncIterate(func, init))


def duplicate(instream, n: int) -> tuple:
    """
    Return ``n`` streams that each yield all the elements of ``instream``,
    which is iterated at most once.

    If ``instream`` is async iterable, the results are :class:`AsyncStream` objects,
    otherwise they are :class:`Stream` objects.
    """
    return from_(instream).duplicate(n)
