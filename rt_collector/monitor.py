# monitor.py

#———————————————————————————————————————————————————————————————————————————————
# Observability for the ingestion loop: every discard path bumps a counter
# here, and trade latencies feed a rolling window for the run summary.
#———————————————————————————————————————————————————————————————————————————————

import logging, statistics
import numpy as np
from collections import deque

from rt_collector.util import my_name

#———————————————————————————————————————————————————————————————————————————————

class IngestMonitor:

	def __init__(self,
		latency_deque_size: int = 1000,
	):

		self.frames			 = 0		# text frames handed to the pipeline
		self.non_text		 = 0		# binary frames, ignored
		self.decode_errors	 = 0		# body is not JSON
		self.unknown		 = 0		# structured, but no rule matched
		self.frame_errors	 = 0		# unexpected failure inside a rule
		self.field_fallbacks = 0		# numeric field defaulted to 0.0

		self.rows:	 dict[str, int] = {}
		self.chunks	 = 0
		self.rows_flushed = 0

		self.latency: deque[int] = deque(
			maxlen = latency_deque_size
		)

	#———————————————————————————————————————————————————————————————————————————

	def count_row(self, event_type: str):

		self.rows[event_type] = self.rows.get(event_type, 0) + 1

	#———————————————————————————————————————————————————————————————————————————

	def count_flush(self, num_rows: int):

		self.chunks += 1
		self.rows_flushed += num_rows

	#———————————————————————————————————————————————————————————————————————————

	def record_latency(self, latency_ms: int):

		self.latency.append(latency_ms)

	#———————————————————————————————————————————————————————————————————————————

	@property
	def rows_total(self) -> int:

		return sum(self.rows.values())

	#———————————————————————————————————————————————————————————————————————————

	def latency_stats(self) -> dict[str, float | None]:

		if not self.latency:

			return {"median": None, "p90": None}

		return {
			"median": float(statistics.median(self.latency)),
			"p90":	  float(np.percentile(self.latency, 90)),
		}

	#———————————————————————————————————————————————————————————————————————————

	def summary(self) -> dict:

		return {
			"frames":			self.frames,
			"non_text":			self.non_text,
			"decode_errors":	self.decode_errors,
			"unknown":			self.unknown,
			"frame_errors":		self.frame_errors,
			"field_fallbacks":	self.field_fallbacks,
			"rows":				dict(self.rows),
			"rows_total":		self.rows_total,
			"rows_flushed":		self.rows_flushed,
			"chunks":			self.chunks,
			"latency_ms":		self.latency_stats(),
		}

	#———————————————————————————————————————————————————————————————————————————

	def log_summary(self, logger: logging.Logger):

		lat = self.latency_stats()
		lat_str = (
			f"{lat['median']:.1f}/{lat['p90']:.1f}ms"
			if lat["median"] is not None
			else "n/a"
		)

		logger.info(
			f"[{my_name()}]📊 frames {self.frames} / "
			f"rows {self.rows_total} {dict(self.rows)} / "
			f"flushed {self.rows_flushed} in {self.chunks} chunks / "
			f"decode_errors {self.decode_errors} / "
			f"unknown {self.unknown} / "
			f"non_text {self.non_text} / "
			f"frame_errors {self.frame_errors} / "
			f"fallbacks {self.field_fallbacks} / "
			f"latency median/p90 {lat_str}"
		)
