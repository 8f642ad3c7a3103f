class Full(Exception):
    pass


class Empty(Exception):
    pass


class Ring:
    '''
    A fixed-capacity FIFO whose items are addressed by a logical index.

    The logical index of an item is the number of items pushed before it.
    It keeps increasing for the lifetime of the ring, while the storage is
    reused in a circle.
    '''

    def __init__(self, maxlen: int):
        if maxlen < 1:
            raise ValueError(f"maxlen should be at least 1, got {maxlen}")
        self._maxlen = maxlen
        self._n = 0
        self._start = 0  # logical index of the first/oldest element
        self._data = [None for _ in range(maxlen)]

    def _position(self, index: int) -> int:
        # The only place where a logical index is turned into a storage position.
        return index % self._maxlen

    @property
    def maxlen(self) -> int:
        return self._maxlen

    @property
    def start(self) -> int:
        '''Logical index of the oldest element.'''
        return self._start

    def __len__(self):
        return self._n

    def full(self):
        return self._n == self._maxlen

    def empty(self):
        return self._n == 0

    def push(self, x):
        # Push an element at the "tail" (i.e. latest) end.
        if self.full():
            raise Full
        self._data[self._position(self._start + self._n)] = x
        self._n += 1

    def pop(self):
        # Remove and return the "head" (i.e. oldest) element.
        if self.empty():
            raise Empty
        h = self._position(self._start)
        x = self._data[h]
        self._data[h] = None
        self._n -= 1
        self._start += 1
        return x

    def head(self):
        # Return (w/o removing) the oldest element.
        if self.empty():
            raise Empty
        return self._data[self._position(self._start)]

    def tail(self):
        # Return (w/o removing) the latest element.
        if self.empty():
            raise Empty
        return self._data[self._position(self._start + self._n - 1)]

    def __getitem__(self, index: int):
        # `index` is logical.
        if not self._start <= index < self._start + self._n:
            raise IndexError(index)
        return self._data[self._position(index)]
