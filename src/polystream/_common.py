from __future__ import annotations

import inspect
from collections.abc import AsyncIterable, Iterable
from typing import Any, TypeVar

T = TypeVar('T')  # indicates input data element
TT = TypeVar('TT')  # indicates output after an op on `T`
Elem = TypeVar('Elem')

NOTSET = object()
FINISHED = object()


def isiterable(x):
    try:
        iter(x)
        return True
    except (TypeError, AttributeError):
        return False


def isasynciterable(x):
    try:
        aiter(x)
        return True
    except (TypeError, AttributeError):
        return False


def identity(x, index=None):
    return x


async def async_identity(x, index=None):
    return x


def is_not_none(x, index=None) -> bool:
    return x is not None


def check_function(arg: Any, name: str = 'argument') -> None:
    if not callable(arg):
        raise TypeError(f"{name} should be a function, got {type(arg).__name__}")


def check_integer(arg: Any, name: str = 'argument') -> None:
    # `bool` is a subclass of `int`, but `take(True)` is almost certainly a bug.
    if isinstance(arg, bool) or not isinstance(arg, int):
        raise TypeError(f"{name} should be an integer, got {arg!r}")


def check_non_negative_integer(arg: Any, name: str = 'argument') -> None:
    check_integer(arg, name)
    if arg < 0:
        raise ValueError(f"{name} should be a non-negative integer, got {arg}")


def check_positive_integer(arg: Any, name: str = 'argument') -> None:
    check_integer(arg, name)
    if arg <= 0:
        raise ValueError(f"{name} should be a positive integer, got {arg}")


def check_iterable(arg: Any, name: str = 'argument') -> None:
    if not (isiterable(arg) or isasynciterable(arg)):
        raise TypeError(f"{name} should be sync or async iterable")


def resolve_concurrency(concurrency: int = 0, buffer_size: int | None = None) -> tuple[int, int]:
    '''
    Validate the concurrency options and fill in the default ``buffer_size``.

    Returns
    -------
    tuple
        ``(concurrency, buffer_size)``, where ``buffer_size >= max(concurrency, 1)``.
    '''
    check_non_negative_integer(concurrency, 'concurrency')
    if buffer_size is None:
        buffer_size = max(concurrency, 1)
    check_integer(buffer_size, 'buffer_size')
    if buffer_size < concurrency:
        raise ValueError(
            f"buffer_size ({buffer_size}) must be >= concurrency ({concurrency})"
        )
    if buffer_size < 1:
        raise ValueError(f"buffer_size should be at least 1, got {buffer_size}")
    return concurrency, buffer_size


class AsyncIter(AsyncIterable):
    '''
    Present a sync or async iterable as an async iterable.

    A sync ``instream`` is walked in-line on the event loop, hence it should not
    block for long on each element.
    '''

    def __init__(self, instream: Iterable | AsyncIterable):
        self._instream = instream

    async def __aiter__(self):
        if isasynciterable(self._instream):
            async for x in self._instream:
                yield x
        else:
            for x in self._instream:
                yield x


async def await_if_needed(y):
    # Callbacks of async operators may be sync or async functions.
    if inspect.isawaitable(y):
        return await y
    return y
