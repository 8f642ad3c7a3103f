import asyncio
import random
from concurrent.futures import ThreadPoolExecutor

import pytest

import polystream
from polystream import AsyncStream, Stream
from polystream._duplicate import async_forks, forks


class Counter:
    def __init__(self):
        self.n = 0

    def gen(self, data):
        for x in data:
            self.n += 1
            yield x

    async def agen(self, data):
        for x in data:
            self.n += 1
            await asyncio.sleep(0)
            yield x


def test_lockstep():
    counter = Counter()
    streams = Stream(counter.gen([1, 2, 3])).duplicate(3)
    assert len(streams) == 3
    assert all(isinstance(s, Stream) for s in streams)

    iters = [iter(s) for s in streams]
    results = [[], [], []]
    for _ in range(3):
        for i, it in enumerate(iters):
            results[i].append(next(it))
    for it in iters:
        assert next(it, None) is None

    assert results == [[1, 2, 3]] * 3
    assert counter.n == 3


def test_skew():
    data = list(range(5))
    f1, f2 = forks(iter(data), 2)
    assert f1.buffer is f2.buffer
    buffer = f1.buffer

    assert list(f1) == data
    assert len(buffer) == len(data)

    for i, x in enumerate(f2):
        assert x == data[i]
        assert len(buffer) == len(data) - i - 1
    assert len(buffer) == 0


def test_buffer_follows_the_spread():
    f1, f2 = forks(range(100), 2)
    sizes = []
    for x, y in zip(f1, f2):
        assert x == y
        sizes.append(len(f1.buffer))
    assert max(sizes) <= 1


def test_error():
    def source():
        yield 1
        yield 2
        raise ValueError('bad source')

    f1, f2, f3 = forks(source(), 3)

    got = []
    with pytest.raises(ValueError) as e1:
        for x in f1:
            got.append(x)
    assert got == [1, 2]
    # A failed fork is finished.
    assert list(f1) == []

    assert next(f2) == 1
    got = []
    with pytest.raises(ValueError) as e2:
        for x in f2:
            got.append(x)
    assert got == [2]
    assert e2.value is e1.value

    with pytest.raises(ValueError):
        list(f3)


def test_n():
    counter = Counter()
    assert Stream(counter.gen([1, 2])).duplicate(0) == ()
    assert counter.n == 0

    (s,) = Stream([1, 2]).duplicate(1)
    assert s.collect() == [1, 2]

    with pytest.raises(ValueError):
        Stream([1, 2]).duplicate(-1)
    with pytest.raises(TypeError):
        Stream([1, 2]).duplicate(2.0)
    with pytest.raises(TypeError):
        Stream([1, 2]).duplicate(True)


def test_chained():
    a, b = Stream(range(10)).map(lambda x, _: x * 2).duplicate(2)
    a.filter(lambda x, _: x > 10)
    b.take(3)
    assert b.collect() == [0, 2, 4]
    assert a.collect() == [12, 14, 16, 18]


def test_threads():
    counter = Counter()
    data = list(range(1000))
    streams = polystream.duplicate(counter.gen(data), 4)

    with ThreadPoolExecutor(4) as pool:
        results = list(pool.map(lambda s: s.collect(), streams))

    assert results == [data] * 4
    assert counter.n == len(data)


@pytest.mark.asyncio
async def test_async_concurrent_consumers():
    counter = Counter()
    data = list(range(30))
    streams = AsyncStream(counter.agen(data)).duplicate(3)
    assert all(isinstance(s, AsyncStream) for s in streams)

    async def consume(s):
        got = []
        async for x in s:
            got.append(x)
            await asyncio.sleep(random.uniform(0, 0.002))
        return got

    results = await asyncio.gather(*(consume(s) for s in streams))
    assert results == [data] * 3
    assert counter.n == len(data)


@pytest.mark.asyncio
async def test_async_skew():
    counter = Counter()
    f1, f2 = async_forks(counter.agen(range(4)), 2)
    assert [x async for x in f1] == [0, 1, 2, 3]
    assert len(f1.buffer) == 4
    assert [x async for x in f2] == [0, 1, 2, 3]
    assert len(f1.buffer) == 0
    assert counter.n == 4


@pytest.mark.asyncio
async def test_async_error():
    async def source():
        yield 1
        raise KeyError('x')

    a, b = polystream.duplicate(source(), 2)
    assert isinstance(a, AsyncStream)

    with pytest.raises(KeyError):
        await a.collect()
    got = []
    with pytest.raises(KeyError):
        async for x in b:
            got.append(x)
    assert got == [1]
