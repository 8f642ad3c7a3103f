import pytest

from polystream import AsyncStream, Stream


def gen(n=10):
    for x in range(n):
        yield x


class Pulls:
    # Wraps an iterable and records how many elements have been pulled from it.
    def __init__(self, data):
        self.data = data
        self.n = 0

    def __iter__(self):
        for x in self.data:
            self.n += 1
            yield x


def test_stream():
    class D:
        def __iter__(self):
            for x in [1, 2, 3]:
                yield x

    assert Stream(range(4)).collect() == [0, 1, 2, 3]
    assert list(Stream(D())) == [1, 2, 3]
    assert list(Stream(['a', 'b', 'c'])) == ['a', 'b', 'c']

    with pytest.raises(TypeError):
        Stream(3)


def test_chaining_is_in_place():
    s = Stream(range(10))
    assert s.map(lambda x, _: x + 1) is s
    s.filter(lambda x, _: x % 2 == 0)
    assert len(s.streamlets) == 3
    assert s.collect() == [2, 4, 6, 8, 10]


def test_generator_is_consumed_once():
    s = Stream(gen(3))
    assert s.collect() == [0, 1, 2]
    assert s.collect() == []


def test_append_prepend():
    assert Stream([1, 2]).append([3]).collect() == [1, 2, 3]
    assert Stream([1, 2]).concat(gen(2)).collect() == [1, 2, 0, 1]
    assert Stream([1, 2]).prepend('ab').collect() == ['a', 'b', 1, 2]
    with pytest.raises(TypeError):
        Stream([1]).append(3)
    with pytest.raises(TypeError):
        Stream([1]).prepend(None)


def test_drop_take():
    assert Stream(range(5)).drop(2).collect() == [2, 3, 4]
    assert Stream(range(5)).drop(0).collect() == [0, 1, 2, 3, 4]
    assert Stream(range(5)).drop(9).collect() == []
    assert Stream(range(5)).take(2).collect() == [0, 1]
    assert Stream(range(5)).take(9).collect() == [0, 1, 2, 3, 4]

    p = Pulls(range(100))
    assert Stream(p).take(3).collect() == [0, 1, 2]
    assert p.n == 3
    p = Pulls(range(100))
    assert Stream(p).take(0).collect() == []
    assert p.n == 0

    with pytest.raises(ValueError):
        Stream(range(5)).take(-1)
    with pytest.raises(TypeError):
        Stream(range(5)).drop(1.5)


def test_drop_last_take_last():
    assert Stream(range(5)).drop_last(2).collect() == [0, 1, 2]
    assert Stream(range(5)).drop_last(0).collect() == [0, 1, 2, 3, 4]
    assert Stream(range(5)).drop_last(7).collect() == []
    assert Stream(range(5)).take_last(2).collect() == [3, 4]
    assert Stream(range(5)).take_last(0).collect() == []
    assert Stream(range(5)).take_last(7).collect() == [0, 1, 2, 3, 4]


def test_drop_while_take_while():
    data = [1, 3, 5, 2, 7, 4]
    assert Stream(data).drop_while(lambda x, _: x % 2).collect() == [2, 7, 4]
    assert Stream(data).take_while(lambda x, _: x % 2).collect() == [1, 3, 5]
    assert Stream(data).take_while(lambda x, i: i < 2).collect() == [1, 3]
    assert Stream(data).drop_while(lambda x, i: i < 4).collect() == [7, 4]
    with pytest.raises(TypeError):
        Stream(data).drop_while(3)


@pytest.mark.parametrize(
    'start,end',
    [
        (0, None), (3, None), (20, None), (-3, None), (-20, None),
        (2, 5), (5, 2), (0, 0), (2, 20),
        (-4, 8), (-4, 3), (-20, 2), (-3, 20),
        (2, -3), (8, -3), (0, -20),
        (-5, -2), (-2, -5), (-20, -8),
    ],
)
def test_slice(start, end):
    data = list(range(10))
    assert Stream(data).slice(start, end).collect() == data[start:end]


def test_slice_validation():
    with pytest.raises(TypeError):
        Stream([]).slice(1.0)
    with pytest.raises(TypeError):
        Stream([]).slice(0, '3')


def test_filter():
    assert Stream(range(7)).filter(lambda n, _: (n % 2) == 0).collect() == [0, 2, 4, 6]
    assert Stream('abcd').filter(lambda x, i: i != 1).collect() == ['a', 'c', 'd']
    assert Stream([0, None, '', None, 3]).filter_not_none().collect() == [0, '', 3]
    with pytest.raises(TypeError):
        Stream(range(3)).filter(None)


def test_unique():
    assert Stream([1, 2, 1, 3, 2]).unique().collect() == [1, 2, 3]
    assert Stream(['a', 'B', 'A', 'b', 'c']).unique(lambda x, _: x.lower()).collect() == [
        'a',
        'B',
        'c',
    ]


def test_map():
    assert Stream(range(5)).map(lambda x, _: x * 2).collect() == [0, 2, 4, 6, 8]
    assert Stream('abc').map(lambda x, i: f'{i}{x}').collect() == ['0a', '1b', '2c']
    with pytest.raises(TypeError):
        Stream(range(5)).map('upper')


def test_map_keys_values():
    pairs = [('a', 1), ('b', 2)]
    assert Stream(pairs).map_keys(lambda kv, _: kv[0].upper()).collect() == [('A', 1), ('B', 2)]
    assert Stream(pairs).map_values(lambda kv, i: kv[1] + i).collect() == [('a', 1), ('b', 3)]


def test_tap():
    seen = []
    s = Stream(range(3)).tap(lambda x, i: seen.append((x, i)))
    assert seen == []
    assert s.collect() == [0, 1, 2]
    assert seen == [(0, 0), (1, 1), (2, 2)]


def test_flatten():
    assert Stream([[0, 1], [], (2,), 'ab']).flatten().collect() == [0, 1, 2, 'a', 'b']
    assert Stream([[0], [1]]).flat().collect() == [0, 1]
    assert Stream([1, 2, 3]).flat_map(lambda x, _: [x] * x).collect() == [1, 2, 2, 3, 3, 3]


def test_chunk():
    assert Stream(range(7)).chunk(3).collect() == [[0, 1, 2], [3, 4, 5], [6]]
    assert Stream(range(2)).chunk().collect() == [[0], [1]]
    assert Stream([]).chunk(3).collect() == []
    with pytest.raises(ValueError):
        Stream(range(3)).chunk(0)


def test_chunk_while():
    data = [1, 2, 4, 5, 6, 9]
    assert Stream(data).chunk_while(lambda x, last, first: x == last + 1).collect() == [
        [1, 2],
        [4, 5, 6],
        [9],
    ]
    assert Stream(data).chunk_while(lambda x, last, first: x - first < 4).collect() == [
        [1, 2, 4],
        [5, 6],
        [9],
    ]
    assert Stream([]).chunk_while(lambda x, last, first: True).collect() == []


def test_group_by():
    data = ['atlas', 'apple', 'bee', 'away', 'block', 'peter']
    assert Stream(data).group_by(lambda x, _: x[0]).collect() == [
        ('a', ['atlas', 'apple', 'away']),
        ('b', ['bee', 'block']),
        ('p', ['peter']),
    ]
    assert Stream(range(6)).group_by(lambda x, i: i % 2).to_dict() == {
        0: [0, 2, 4],
        1: [1, 3, 5],
    }


def test_reverse_sort():
    assert Stream(gen(4)).reverse().collect() == [3, 2, 1, 0]
    assert Stream([3, 1, 2]).sort().collect() == [1, 2, 3]
    assert Stream([3, 1, 2]).sort(lambda a, b: b - a).collect() == [3, 2, 1]
    # Stable
    data = [(1, 'a'), (0, 'b'), (1, 'c'), (0, 'd')]
    assert Stream(data).sort(lambda a, b: a[0] - b[0]).collect() == [
        (0, 'b'),
        (0, 'd'),
        (1, 'a'),
        (1, 'c'),
    ]


def test_to_partition_lists():
    assert Stream(range(6)).to_partition_lists(lambda x, _: x % 3 == 0) == (
        [0, 3],
        [1, 2, 4, 5],
    )


def test_to_dict():
    assert Stream([('a', 1), ('b', 2), ('a', 3)]).to_dict() == {'a': 3, 'b': 2}


def test_find():
    data = [5, 8, 3, 8, 1]
    assert Stream(data).find(lambda x, _: x > 5) == 8
    assert Stream(data).find(lambda x, _: x > 10) is None
    assert Stream(data).find_index(lambda x, _: x == 8) == 1
    assert Stream(data).find_index(lambda x, _: x == 0) == -1
    assert Stream(data).find_last(lambda x, _: x < 5) == 1
    assert Stream(data).find_last(lambda x, _: x > 10) is None
    assert Stream(data).find_last_index(lambda x, _: x == 8) == 3
    assert Stream(data).find_last_index(lambda x, _: x == 0) == -1

    p = Pulls(range(100))
    assert Stream(p).find(lambda x, _: x == 4) == 4
    assert p.n == 5


def test_includes():
    a = object()
    assert Stream([1, a, 3]).includes(a)
    assert Stream([1.0, 2.0]).includes(2)
    assert not Stream([1, 2]).includes(5)
    nan = float('nan')
    assert Stream([nan]).includes(nan)


def test_some_every():
    assert Stream([1, 3, 4]).some(lambda x, _: x % 2 == 0)
    assert not Stream([1, 3]).some(lambda x, _: x % 2 == 0)
    assert not Stream([]).some(lambda x, _: True)
    assert Stream([2, 4]).every(lambda x, _: x % 2 == 0)
    assert not Stream([2, 3]).every(lambda x, _: x % 2 == 0)
    assert Stream([]).every(lambda x, _: False)

    p = Pulls(range(100))
    assert not Stream(p).every(lambda x, _: x < 3)
    assert p.n == 4


def test_reduce():
    assert Stream([1, 2, 3, 4]).reduce(lambda z, x, _: z + x) == 10
    assert Stream([1, 2, 3]).reduce(lambda z, x, _: z + x, 10) == 16
    assert Stream([]).reduce(lambda z, x, _: z + x, 0) == 0
    assert Stream([7]).reduce(lambda z, x, _: z + x) == 7
    assert Stream('abc').reduce(lambda z, x, i: z + [(x, i)], []) == [
        ('a', 0),
        ('b', 1),
        ('c', 2),
    ]
    with pytest.raises(TypeError):
        Stream([]).reduce(lambda z, x, _: z + x)


def test_count():
    assert Stream(range(8)).count() == 8
    assert Stream(gen(3)).filter(lambda x, _: x > 0).count() == 2


def test_for_each():
    seen = []
    assert Stream('ab').for_each(lambda x, i: seen.append((i, x))) is None
    assert seen == [(0, 'a'), (1, 'b')]


def test_join():
    assert Stream([1, 'a', None, 2.5]).join() == '1,a,,2.5'
    assert Stream(['x', 'y']).join(' - ') == 'x - y'
    assert Stream([]).join() == ''


def test_complete():
    p = Pulls(range(5))
    seen = []
    assert Stream(p).tap(lambda x, _: seen.append(x)).complete() is None
    assert seen == [0, 1, 2, 3, 4]
    assert p.n == 5


def test_drain_is_deprecated():
    p = Pulls(range(5))
    with pytest.deprecated_call():
        Stream(p).drain()
    assert p.n == 5


@pytest.mark.asyncio
async def test_to_async():
    s = Stream(range(4)).map(lambda x, _: x + 1).to_async()
    assert isinstance(s, AsyncStream)
    assert await s.collect() == [1, 2, 3, 4]
