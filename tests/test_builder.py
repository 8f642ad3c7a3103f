import asyncio
import logging

import pytest

import polystream
from polystream import AsyncIterableBuilder, AsyncStream


@pytest.mark.asyncio
async def test_values_before_iteration():
    b = AsyncIterableBuilder()
    b.value(1)
    b.value(2)
    b.done()
    assert [x async for x in b] == [1, 2]


@pytest.mark.asyncio
async def test_consumer_waits():
    loop = asyncio.get_running_loop()
    b = AsyncIterableBuilder()
    for i, x in enumerate('abc'):
        loop.call_later(0.01 * (i + 1), b.value, x)
    loop.call_later(0.05, b.done)
    assert [x async for x in b] == ['a', 'b', 'c']
    assert b.closed()


@pytest.mark.asyncio
async def test_error_after_values():
    b = AsyncIterableBuilder()
    b.value(1)
    b.error(ValueError('boom'))
    got = []
    with pytest.raises(ValueError, match='boom'):
        async for x in b:
            got.append(x)
    assert got == [1]
    # The error is delivered once; afterwards the iteration is over.
    assert [x async for x in b] == []


@pytest.mark.asyncio
async def test_error_while_waiting():
    loop = asyncio.get_running_loop()
    b = AsyncIterableBuilder()
    loop.call_later(0.01, b.value, 3)
    loop.call_later(0.02, b.error, KeyError('k'))
    got = []
    with pytest.raises(KeyError):
        async for x in b:
            got.append(x)
    assert got == [3]


@pytest.mark.asyncio
async def test_calls_after_close_are_ignored(caplog):
    caplog.set_level(logging.DEBUG, logger='polystream._builder')
    b = AsyncIterableBuilder()
    b.value(1)
    b.done()
    b.value(2)
    b.error(ValueError())
    b.done()
    assert [x async for x in b] == [1]
    assert len([r for r in caplog.records if 'ignored' in r.getMessage()]) == 3

    b = AsyncIterableBuilder()
    b.error(ValueError('first'))
    b.error(ValueError('second'))
    b.done()
    with pytest.raises(ValueError, match='first'):
        await b.to_stream().collect()


def test_bad_error():
    b = AsyncIterableBuilder()
    with pytest.raises(TypeError):
        b.error('not an exception')


@pytest.mark.asyncio
async def test_to_stream():
    b = polystream.builder()
    s = b.to_stream()
    assert isinstance(s, AsyncStream)
    b.value(1)
    b.value(2)
    b.value(3)
    b.done()
    assert await s.map(lambda x, _: x * 10).collect() == [10, 20, 30]


@pytest.mark.asyncio
async def test_build_with():
    loop = asyncio.get_running_loop()

    def register(bld):
        for x in range(3):
            loop.call_soon(bld.value, x)
        loop.call_soon(bld.done)

    s = polystream.build_with(register)
    assert await s.collect() == [0, 1, 2]

    with pytest.raises(TypeError):
        polystream.build_with(None)
