import logging

from rt_collector.monitor import IngestMonitor

#———————————————————————————————————————————————————————————————————————————————

def test_latency_stats_empty():

	assert IngestMonitor().latency_stats() == {"median": None, "p90": None}

def test_latency_stats():

	monitor = IngestMonitor()

	for ms in range(1, 11):
		monitor.record_latency(ms)

	stats = monitor.latency_stats()

	assert stats["median"] == 5.5
	assert abs(stats["p90"] - 9.1) < 1e-9

def test_latency_window_is_bounded():

	monitor = IngestMonitor(latency_deque_size=3)

	for ms in (100, 1, 2, 3):
		monitor.record_latency(ms)

	assert list(monitor.latency) == [1, 2, 3]

def test_counts_and_summary(caplog):

	monitor = IngestMonitor()
	monitor.count_row("TRADE")
	monitor.count_row("TRADE")
	monitor.count_row("DEPTH")
	monitor.count_flush(3)

	summary = monitor.summary()

	assert summary["rows"] == {"TRADE": 2, "DEPTH": 1}
	assert summary["rows_total"] == 3
	assert summary["chunks"] == 1
	assert summary["rows_flushed"] == 3

	with caplog.at_level(logging.INFO):
		monitor.log_summary(logging.getLogger("rt_collector.tests"))

	assert "rows 3" in caplog.text
	assert "latency median/p90 n/a" in caplog.text
