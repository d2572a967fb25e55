import logging

from rt_collector.batch import BatchAccumulator, BatchFlusher
from rt_collector.normalize import Row
from rt_collector.shutdown import ShutdownManager

from conftest import MemorySink, FailingSink

logger = logging.getLogger("rt_collector.tests")

ROW = Row("00:00:00.000", "TRADE", 1, "BTCUSDC", 1.0, 1.0, "BUY", "", "")

#———————————————————————————————————————————————————————————————————————————————

def make_manager(sink, rows: int = 0) -> ShutdownManager:

	acc = BatchAccumulator(100)
	for _ in range(rows): acc.append(ROW)
	return ShutdownManager(acc, BatchFlusher(logger=logger), sink, logger)

def test_flushes_buffered_rows_then_closes():

	sink = MemorySink()
	manager = make_manager(sink, rows=37)

	assert manager.graceful_shutdown() == 37
	assert sink.rows == 37
	assert sink.close_calls == 1
	assert manager.is_shutdown_complete()

def test_nothing_buffered_still_closes():

	sink = MemorySink()

	assert make_manager(sink).graceful_shutdown() == 0
	assert sink.batches == []
	assert sink.close_calls == 1

def test_idempotent():

	sink = MemorySink()
	manager = make_manager(sink, rows=2)

	manager.graceful_shutdown()
	assert manager.graceful_shutdown() == 0

	assert sink.rows == 2
	assert sink.close_calls == 1

def test_final_flush_failure_is_recorded_and_sink_closed():

	sink = FailingSink()
	manager = make_manager(sink, rows=5)

	assert manager.graceful_shutdown() == 0
	assert len(manager.errors) == 1
	assert sink.close_calls == 1
