import asyncio
import random

import pytest


# Async transforms used in the concurrency tests report, through this object,
# how many of them are running at the same time and in what order they started.
# The delay of each call is random unless specified, so that calls finish
# in an order that differs from the order they started.
class Recorder:
    def __init__(self):
        self.active = 0
        self.max_active = 0
        self.started = []  # indices, in the order the calls started

    def transform(self, func=None, *, delay=None):
        async def f(x, index):
            self.started.append(index)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            try:
                if delay is None:
                    await asyncio.sleep(random.uniform(0, 0.01))
                else:
                    await asyncio.sleep(delay)
                if func is None:
                    return x
                return func(x)
            finally:
                self.active -= 1

        return f


@pytest.fixture
def recorder():
    return Recorder()
