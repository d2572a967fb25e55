# core.py

#———————————————————————————————————————————————————————————————————————————————
# Streaming → (Deadline | StreamEnd | TransportError | SinkError)
#			→ FinalFlush → Closed
#
# Connecting belongs to the transport; the controller starts at Streaming.
# The deadline is checked once per received frame, before it is processed,
# so its precision is bounded by the inter-frame gap.
#———————————————————————————————————————————————————————————————————————————————

import time, logging, orjson
from typing import AsyncIterator, Callable, Optional

from rt_collector.batch import BatchAccumulator, BatchFlusher
from rt_collector.classify import EventClassifier
from rt_collector.errors import TransportError, SinkWriteError
from rt_collector.monitor import IngestMonitor
from rt_collector.normalize import EventNormalizer, RawFrame, Row
from rt_collector.shutdown import ShutdownManager
from rt_collector.util import (
	my_name,
	get_current_time_ms,
	ensure_logging_on_exception,
)

STATE_STREAMING	  = "STREAMING"
STATE_FINAL_FLUSH = "FINAL_FLUSH"
STATE_CLOSED	  = "CLOSED"

STOP_DEADLINE		 = "DEADLINE"
STOP_STREAM_END		 = "STREAM_END"
STOP_TRANSPORT_ERROR = "TRANSPORT_ERROR"
STOP_SINK_ERROR		 = "SINK_ERROR"

PLANNED_STOPS = frozenset({STOP_DEADLINE, STOP_STREAM_END})

#———————————————————————————————————————————————————————————————————————————————

class RunController:

	def __init__(self,
		#———————————————————————————————————————————————————————————————————————
		# Pipeline
		#———————————————————————————————————————————————————————————————————————
		classifier:		  EventClassifier,
		normalizer:		  EventNormalizer,
		accumulator:	  BatchAccumulator,
		flusher:		  BatchFlusher,
		sink,
		#———————————————————————————————————————————————————————————————————————
		# Run Control
		#———————————————————————————————————————————————————————————————————————
		max_duration_sec: float,
		logger:			  logging.Logger,
		monitor:		  Optional[IngestMonitor] = None,
		clock:			  Callable[[], float] = time.monotonic,
		now_ms:			  Callable[[], int]	  = get_current_time_ms,
		#———————————————————————————————————————————————————————————————————————
	):

		self.classifier	 = classifier
		self.normalizer	 = normalizer
		self.accumulator = accumulator
		self.flusher	 = flusher
		self.sink		 = sink

		self.max_duration_sec = max_duration_sec
		self.logger	 = logger
		self.monitor = monitor or IngestMonitor()
		self.clock	 = clock
		self.now_ms	 = now_ms

		self.started_at = clock()		# includes the transport's connect time
		self.state		= STATE_STREAMING
		self.stop_reason: Optional[str] = None

		self.shutdown_manager = ShutdownManager(
			accumulator, flusher, sink, logger,
		)

	#———————————————————————————————————————————————————————————————————————————

	def deadline_reached(self) -> bool:

		return (
			(self.clock() - self.started_at)
			>= self.max_duration_sec
		)

	#———————————————————————————————————————————————————————————————————————————

	def process_frame(self,
		raw: str,
	) -> Optional[Row]:

		self.monitor.frames += 1

		frame = RawFrame(raw, self.now_ms())

		try:

			message = orjson.loads(frame.text)

		except orjson.JSONDecodeError as e:

			self.monitor.decode_errors += 1
			self.logger.warning(
				f"[{my_name()}] undecodable frame "
				f"({e}): {frame.text[:200]!r}"
			)
			return None

		#———————————————————————————————————————————————————————————————————————
		# stay in the websocket loop on any record-level failure
		#———————————————————————————————————————————————————————————————————————

		try:

			event = self.classifier.classify(message)
			row	  = self.normalizer.normalize(event, frame)

			if row is None: return None

			self.accumulator.append(row)

		except Exception as e:

			self.monitor.frame_errors += 1
			self.logger.warning(
				f"[{my_name()}] failed to process ws msg: {e}",
				exc_info = True,
			)
			return None

		self.monitor.count_row(row.event_type)

		if self.accumulator.is_full():

			self.flusher.write(		# SinkWriteError is fatal
				self.accumulator.drain(),
				self.sink,
			)

		return row

	#———————————————————————————————————————————————————————————————————————————

	@ensure_logging_on_exception
	async def run(self,
		frames: AsyncIterator[str | bytes],
	) -> str:

		try:

			async for raw in frames:

				if self.deadline_reached():

					self.stop_reason = STOP_DEADLINE
					self.logger.info(f"[{my_name()}]⏰ time's up!")
					break

				if not isinstance(raw, str):

					self.monitor.non_text += 1
					self.logger.debug(
						f"[{my_name()}] non-text frame ignored"
					)
					continue

				self.process_frame(raw)

			else:

				self.stop_reason = STOP_STREAM_END
				self.logger.info(f"[{my_name()}]📴 stream ended")

		except TransportError as e:

			self.stop_reason = STOP_TRANSPORT_ERROR
			self.logger.error(f"[{my_name()}] network error: {e}")

		except SinkWriteError as e:

			self.stop_reason = STOP_SINK_ERROR
			self.logger.critical(f"[{my_name()}] {e}")

		finally:

			self.state = STATE_FINAL_FLUSH
			self.shutdown_manager.graceful_shutdown()
			self.state = STATE_CLOSED
			self.monitor.log_summary(self.logger)

		if self.shutdown_manager.errors:

			self.stop_reason = STOP_SINK_ERROR

		return self.stop_reason
