# stream_parquet.py

r"""————————————————————————————————————————————————————————————————————————————

Binance full-depth collector (depth20 + trades) → parquet

	wss://stream.binance.com:9443/ws/{symbol}@depth20@100ms/{symbol}@trade

	Runs for RUN_TIME_MINUTES, buffers BATCH_SIZE rows per parquet row group,
	and flushes whatever is still buffered before closing the file.

————————————————————————————————————————————————————————————————————————————————

How to Run:

	python -m rt_collector.stream_parquet			# reads ./app.conf
	rt-collector --config path/to/app.conf

————————————————————————————————————————————————————————————————————————————————

Dependency:

	python>=3.10
	websockets>=12
	orjson>=3.9
	pyarrow>=14
	numpy>=1.26
	certifi
	uvloop			(optional; not on Windows)

————————————————————————————————————————————————————————————————————————————————

Exit Code:

	0	deadline reached or the stream ended normally
	1	transport error, sink write error, or the parquet file could not be
		created

—————————————————————————————————————————————————————————————————————————————"""

import sys, asyncio, argparse, logging
from contextlib import aclosing

from rt_collector.init import setup_uvloop, load_config
from rt_collector.batch import (
	SCHEMA,
	BatchAccumulator,
	BatchFlusher,
	ParquetSink,
)
from rt_collector.classify import EventClassifier
from rt_collector.core import RunController, PLANNED_STOPS
from rt_collector.errors import SinkInitError
from rt_collector.monitor import IngestMonitor
from rt_collector.normalize import EventNormalizer
from rt_collector.transport import stream_frames
from rt_collector.util import (
	my_name,
	set_global_logger,
	force_print_exception,
)

#———————————————————————————————————————————————————————————————————————————————

async def collect(
	config: tuple,
	logger: logging.Logger,
) -> int:

	(
		symbol,
		ws_url,
		subscribe_msg,
		parquet_path,
		parquet_compression,
		batch_size,
		run_time_sec,
		ws_ping_interval,
		ws_ping_timeout,
		maker_side_rule,
		latency_deque_size,
	) = config

	logger.info(
		f"[{my_name()}] binance full-depth collector (l20 + trades)... "
		f"{symbol.upper()} / batch {batch_size} / "
		f"{run_time_sec / 60.0:g} min / {maker_side_rule.name}"
	)

	#———————————————————————————————————————————————————————————————————————————
	# SinkInitError aborts before any frame is read
	#———————————————————————————————————————————————————————————————————————————

	sink = ParquetSink(
		parquet_path,
		SCHEMA,
		compression = parquet_compression,
		logger		= logger,
	)

	try: sink.open()

	except SinkInitError as e:

		logger.critical(f"[{my_name()}] {e}", exc_info=True)
		return 1

	monitor = IngestMonitor(latency_deque_size)

	controller = RunController(
		classifier	= EventClassifier(monitor=monitor, logger=logger),
		normalizer	= EventNormalizer(
			symbol,
			side_rule = maker_side_rule,
			monitor	  = monitor,
			logger	  = logger,
		),
		accumulator = BatchAccumulator(batch_size, SCHEMA),
		flusher		= BatchFlusher(SCHEMA, logger, monitor),
		sink		= sink,
		max_duration_sec = run_time_sec,
		logger		= logger,
		monitor		= monitor,
	)

	async with aclosing(
		stream_frames(
			ws_url,
			subscribe_msg,
			ws_ping_interval,
			ws_ping_timeout,
			logger,
		)
	) as frames:

		stop_reason = await controller.run(frames)

	logger.info(f"[{my_name()}] stop reason: {stop_reason}")

	return 0 if stop_reason in PLANNED_STOPS else 1

#———————————————————————————————————————————————————————————————————————————————

def main(argv: list[str] | None = None) -> int:

	parser = argparse.ArgumentParser(prog="rt-collector")
	parser.add_argument("--config", default="app.conf")
	parser.add_argument("--log-file", default="stream_parquet.log")
	args = parser.parse_args(argv)

	logger, queue_listener = set_global_logger(filename=args.log_file)

	setup_uvloop(logger = logger)

	try:

		config = load_config(logger, args.config)

	except SystemExit:

		queue_listener.stop()
		return 1

	try:

		return asyncio.run(collect(config, logger))

	except KeyboardInterrupt:

		logger.info(
			f"[{my_name()}] application terminated "
			f"by user (Ctrl + C)."
		)
		return 0

	except Exception as e:

		logger.critical(
			f"[{my_name()}] unhandled exception: {e}",
			exc_info=True
		)
		return 1

	finally:

		try: queue_listener.stop()
		except Exception as e: force_print_exception(my_name(), e)

#———————————————————————————————————————————————————————————————————————————————

if __name__ == "__main__":

	sys.exit(main())
