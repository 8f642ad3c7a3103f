"""
The package ``polystream`` provides chainable, lazy operators over sync and async iterables.

1. :class:`Stream` wraps an `Iterable`_. Operators such as ``map``, ``filter``, ``take``,
   ``chunk``, ``group_by`` add steps to the stream; terminal methods such as ``collect``,
   ``find``, ``reduce`` consume it.
2. :class:`AsyncStream` is the async counterpart. Operators that call a function on
   every element accept ``concurrency`` and ``buffer_size`` options, so that several
   calls (typically I/O) overlap while the elements still come out in their original order.
3. ``duplicate`` serves one single-use iteration to several independent consumers.
4. :class:`AsyncIterableBuilder` turns push-style callbacks into an async iterable.

For example,

>>> import polystream
>>> polystream.from_(range(10)).filter(lambda x, _: x % 2).map(lambda x, _: x * x).collect()
[1, 9, 25, 49, 81]

To install, do

::

   python3 -m pip install polystream
"""

__version__ = '0.2.1'


from ._async_streamer import AsyncStream
from ._builder import AsyncIterableBuilder
from ._common import NOTSET
from ._concurrency import ConcurrentMapper, MappedItem
from ._factories import (
    async_from,
    async_iterate,
    build_with,
    builder,
    duplicate,
    empty,
    entries,
    from_,
    keys,
    range,
    repeat,
    sync_from,
    sync_iterate,
    values,
)
from ._streamer import Stream
