# batch.py

#———————————————————————————————————————————————————————————————————————————————
# Row → column buffers → pa.RecordBatch → one parquet row group per flush
#———————————————————————————————————————————————————————————————————————————————

import os, logging
import pyarrow as pa
import pyarrow.parquet as pq
from typing import Any, Callable, Optional

from rt_collector.errors import SinkInitError, SinkWriteError
from rt_collector.monitor import IngestMonitor
from rt_collector.normalize import Row
from rt_collector.util import my_name, INT64_MIN, INT64_MAX

#———————————————————————————————————————————————————————————————————————————————
# Fixed for the lifetime of the sink; column order matters
#———————————————————————————————————————————————————————————————————————————————

SCHEMA = pa.schema([
	pa.field("timestamp",	pa.string(),  nullable = False),
	pa.field("event_type",	pa.string(),  nullable = False),
	pa.field("latency_ms",	pa.int64(),	  nullable = False),
	pa.field("symbol",		pa.string(),  nullable = False),
	# trade data
	pa.field("trade_price", pa.float64(), nullable = False),
	pa.field("trade_qty",	pa.float64(), nullable = False),
	pa.field("trade_side",	pa.string(),  nullable = False),
	# orderbook data (full l20 as json string)
	pa.field("bids_json",	pa.string(),  nullable = False),
	pa.field("asks_json",	pa.string(),  nullable = False),
])

#———————————————————————————————————————————————————————————————————————————————

def _as_str(value: Any) -> str:

	if not isinstance(value, str):

		raise TypeError(f"expected str, got {type(value).__name__}")

	return value

def _as_int(value: Any) -> int:

	if isinstance(value, bool) or not isinstance(value, int):

		raise TypeError(f"expected int, got {type(value).__name__}")

	if not INT64_MIN <= value <= INT64_MAX:

		raise ValueError(f"int64 overflow: {value}")

	return value

def _as_float(value: Any) -> float:

	if isinstance(value, bool) or not isinstance(value, (int, float)):

		raise TypeError(f"expected float, got {type(value).__name__}")

	return float(value)

def _caster(dtype: pa.DataType) -> Callable[[Any], Any]:

	if pa.types.is_string(dtype):	return _as_str
	if pa.types.is_int64(dtype):	return _as_int
	if pa.types.is_float64(dtype):	return _as_float

	raise TypeError(f"[{my_name()}] unsupported column type: {dtype}")

#———————————————————————————————————————————————————————————————————————————————

class BatchAccumulator:

	"""
	Single-owner column buffers. `drain()` is the only way the buffers are
	emptied; append and drain are never called concurrently.
	"""

	def __init__(self,
		batch_size: int,
		schema:		pa.Schema = SCHEMA,
	):

		if batch_size < 1:

			raise ValueError(
				f"[{my_name()}] batch_size must be ≥ 1, got {batch_size}"
			)

		self.batch_size = batch_size
		self.schema		= schema
		self._casts		= [_caster(field.type) for field in schema]

		self._reset()

	#———————————————————————————————————————————————————————————————————————————

	def _reset(self):

		self._columns: list[list] = [[] for _ in self.schema]
		self._count = 0

	#———————————————————————————————————————————————————————————————————————————

	def __len__(self) -> int:

		return self._count

	#———————————————————————————————————————————————————————————————————————————

	def append(self, row: Row):

		values = row.values()

		if len(values) != len(self._columns):

			raise ValueError(
				f"[{my_name()}] row has {len(values)} values, "
				f"schema has {len(self._columns)} columns"
			)

		# convert everything first: all columns grow together or none do
		converted = [
			cast(value)
			for cast, value in zip(self._casts, values)
		]

		for column, value in zip(self._columns, converted):

			column.append(value)

		self._count += 1

	#———————————————————————————————————————————————————————————————————————————

	def is_full(self) -> bool:

		return self._count >= self.batch_size

	#———————————————————————————————————————————————————————————————————————————

	def drain(self) -> pa.RecordBatch:

		batch = pa.RecordBatch.from_arrays(
			[
				pa.array(column, type = field.type)
				for column, field in zip(self._columns, self.schema)
			],
			schema = self.schema,
		)

		self._reset()

		return batch

#———————————————————————————————————————————————————————————————————————————————

class ParquetSink:

	def __init__(self,
		path:		 str,
		schema:		 pa.Schema = SCHEMA,
		compression: str = "snappy",
		logger:		 Optional[logging.Logger] = None,
	):

		self.path		 = path
		self.schema		 = schema
		self.compression = compression
		self.logger		 = logger or logging.getLogger(__name__)

		self._writer: Optional[pq.ParquetWriter] = None
		self._closed = False

		self.chunks = 0
		self.rows	= 0

	#———————————————————————————————————————————————————————————————————————————

	@property
	def closed(self) -> bool:

		return self._closed

	#———————————————————————————————————————————————————————————————————————————

	def open(self) -> "ParquetSink":

		if self._writer is not None or self._closed:

			raise SinkInitError(
				f"[{my_name()}] sink can be opened only once: {self.path}"
			)

		try:

			parent = os.path.dirname(os.path.abspath(self.path))
			os.makedirs(parent, exist_ok = True)

			self._writer = pq.ParquetWriter(
				self.path,
				self.schema,
				compression = self.compression,
			)

		except Exception as e:

			raise SinkInitError(
				f"[{my_name()}] failed to create "
				f"{self.path}: {e}"
			) from e

		self.logger.info(
			f"[{my_name()}]💾 {self.path} ({self.compression})"
		)

		return self

	#———————————————————————————————————————————————————————————————————————————

	def append(self, batch: pa.RecordBatch):

		if self._writer is None or self._closed:

			raise RuntimeError(
				f"[{my_name()}] sink is not open: {self.path}"
			)

		if batch.num_rows == 0:

			raise ValueError(f"[{my_name()}] empty chunk")

		self._writer.write_table(
			pa.Table.from_batches([batch]),
			row_group_size = batch.num_rows,	# one chunk per batch
		)

		self.chunks += 1
		self.rows	+= batch.num_rows

	#———————————————————————————————————————————————————————————————————————————

	def close(self) -> bool:

		if self._closed:

			self.logger.debug(
				f"[{my_name()}] {self.path} already closed"
			)
			return False

		self._closed = True

		if self._writer is None:

			return True

		try:

			self._writer.close()

		except Exception as e:

			raise SinkWriteError(
				f"[{my_name()}] failed to close "
				f"{self.path}: {e}"
			) from e

		self.logger.info(
			f"[{my_name()}]💾 {self.path} safely closes: "
			f"{self.rows} rows / {self.chunks} chunks"
		)

		return True

#———————————————————————————————————————————————————————————————————————————————

class BatchFlusher:

	def __init__(self,
		schema:	 pa.Schema = SCHEMA,
		logger:	 Optional[logging.Logger] = None,
		monitor: Optional[IngestMonitor]  = None,
	):

		self.schema	 = schema
		self.logger	 = logger or logging.getLogger(__name__)
		self.monitor = monitor

	#———————————————————————————————————————————————————————————————————————————

	def write(self,
		batch: pa.RecordBatch,
		sink,
	):

		if batch.num_rows == 0:

			raise ValueError(
				f"[{my_name()}] an empty batch must not be flushed"
			)

		if not batch.schema.equals(self.schema):

			raise ValueError(
				f"[{my_name()}] batch schema mismatch: "
				f"{batch.schema.names} != {self.schema.names}"
			)

		try:

			sink.append(batch)

		except Exception as e:

			self.logger.error(
				f"[{my_name()}] failed to write "
				f"{batch.num_rows} rows: {e}",
				exc_info = True,
			)

			raise SinkWriteError(
				f"[{my_name()}] chunk write failed: {e}"
			) from e

		if self.monitor is not None:

			self.monitor.count_flush(batch.num_rows)

		self.logger.debug(
			f"[{my_name()}] flushed {batch.num_rows} rows"
		)
