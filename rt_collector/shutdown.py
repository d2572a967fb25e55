# shutdown.py

import logging, threading

from rt_collector.batch import BatchAccumulator, BatchFlusher
from rt_collector.errors import SinkWriteError
from rt_collector.util import my_name

#———————————————————————————————————————————————————————————————————————————————
# One exit path for every terminal condition:
#	drain → flush if non-empty → close the sink (exactly once)
#———————————————————————————————————————————————————————————————————————————————

class ShutdownManager:

	def __init__(self,
		accumulator: BatchAccumulator,
		flusher:	 BatchFlusher,
		sink,
		logger:		 logging.Logger,
	):

		self.accumulator = accumulator
		self.flusher	 = flusher
		self.sink		 = sink
		self.logger		 = logger

		self._lock = threading.Lock()
		self._shutdown_complete = False
		self.final_rows = 0
		self.errors: list[SinkWriteError] = []

	#———————————————————————————————————————————————————————————————————————————

	def is_shutdown_complete(self) -> bool:

		with self._lock:

			return self._shutdown_complete

	#———————————————————————————————————————————————————————————————————————————

	def final_flush(self) -> int:

		batch = self.accumulator.drain()

		if batch.num_rows == 0:

			self.logger.info(
				f"[{my_name()}] nothing buffered"
			)
			return 0

		try:

			self.flusher.write(batch, self.sink)

		except SinkWriteError as e:

			self.errors.append(e)
			self.logger.error(
				f"[{my_name()}] final flush lost "
				f"{batch.num_rows} rows"
			)
			return 0

		self.logger.info(
			f"[{my_name()}] final flush: {batch.num_rows} rows"
		)

		return batch.num_rows

	#———————————————————————————————————————————————————————————————————————————

	def close_sink(self):

		try:

			self.sink.close()

		except SinkWriteError as e:

			self.errors.append(e)
			self.logger.error(
				f"[{my_name()}] {e}",
				exc_info = True,
			)

	#———————————————————————————————————————————————————————————————————————————

	def graceful_shutdown(self) -> int:

		with self._lock:

			if self._shutdown_complete:

				return 0

			self._shutdown_complete = True

		self.logger.info(f"[{my_name()}] closing parquet...")

		try:

			self.final_rows = self.final_flush()

		finally:

			self.close_sink()

		self.logger.info(f"[{my_name()}] done")

		return self.final_rows
