import logging
import pytest

from rt_collector.errors import TransportError

#———————————————————————————————————————————————————————————————————————————————

class FakeClock:

	def __init__(self, start: float = 1000.0):

		self.now = start

	def __call__(self) -> float:

		return self.now

	def advance(self, sec: float):

		self.now += sec

#———————————————————————————————————————————————————————————————————————————————

class MemorySink:

	def __init__(self):

		self.batches = []
		self.close_calls = 0

	@property
	def closed(self) -> bool:

		return self.close_calls > 0

	def append(self, batch):

		self.batches.append(batch)

	def close(self):

		self.close_calls += 1
		return self.close_calls == 1

	@property
	def rows(self) -> int:

		return sum(b.num_rows for b in self.batches)

class FailingSink(MemorySink):

	def append(self, batch):

		raise OSError("disk full")

#———————————————————————————————————————————————————————————————————————————————

async def scripted_frames(frames, clock=None, step=0.0, error=None):

	"""
	Yields `frames` in order, advancing `clock` by `step` before each one,
	then raises `error` if given.
	"""

	for frame in frames:

		if clock is not None: clock.advance(step)
		yield frame

	if error is not None:

		raise error

#———————————————————————————————————————————————————————————————————————————————

@pytest.fixture
def logger():

	return logging.getLogger("rt_collector.tests")

@pytest.fixture
def clock():

	return FakeClock()

@pytest.fixture
def memory_sink():

	return MemorySink()

@pytest.fixture
def transport_error():

	return TransportError("connection reset")
