# errors.py

#———————————————————————————————————————————————————————————————————————————————
# Fatal conditions only. Decode failures, unknown event shapes and numeric
# parse fallbacks never leave the classify/normalize stage; they are counted
# by IngestMonitor instead.
#———————————————————————————————————————————————————————————————————————————————

class CollectorError(RuntimeError):
	pass

#———————————————————————————————————————————————————————————————————————————————

class TransportError(CollectorError):

	"""
	The websocket failed (connect, protocol or abnormal close).
	Terminal for the run; never retried or reconnected.
	"""

#———————————————————————————————————————————————————————————————————————————————

class SinkInitError(CollectorError):

	"""
	The parquet file could not be created. Raised before any frame is read.
	"""

#———————————————————————————————————————————————————————————————————————————————

class SinkWriteError(CollectorError):

	"""
	A batch could not be appended as a chunk. The run ends after the sink is
	closed; the batch is not retried since the writer state is unknown.
	"""
