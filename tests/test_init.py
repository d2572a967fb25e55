import asyncio
import logging
import pytest

from rt_collector import stream_parquet
from rt_collector.init import load_config, read_conf_file, setup_uvloop
from rt_collector.normalize import MAKER_IS_BUY, MAKER_IS_SELL

logger = logging.getLogger("rt_collector.tests")

CONF = """
# feed
SYMBOL = BTCUSDC
STREAMS = depth20@100ms, trade, trade
WS_BASE_URL = wss://stream.binance.com:9443
SUBSCRIBE = 0		# streams in the path
WS_PING_INTERVAL = 20
WS_PING_TIMEOUT = 0

PARQUET_PATH = {parquet_path}
BATCH_SIZE = 100
RUN_TIME_MINUTES = 10
"""

#———————————————————————————————————————————————————————————————————————————————

@pytest.fixture
def write_conf(tmp_path):

	def write(text: str = CONF, **overrides) -> str:

		values = {"parquet_path": str(tmp_path / "out.parquet")}
		values.update(overrides)

		path = tmp_path / "app.conf"
		path.write_text(text.format(**values), encoding="utf-8")
		return str(path)

	return write

#———————————————————————————————————————————————————————————————————————————————

def test_read_conf_file_strips_comments(write_conf):

	conf = read_conf_file(write_conf())

	assert conf["SUBSCRIBE"] == "0"
	assert conf["SYMBOL"] == "BTCUSDC"
	assert "# feed" not in conf

def test_load_config_defaults(write_conf):

	(
		symbol, ws_url, subscribe_msg,
		parquet_path, parquet_compression,
		batch_size, run_time_sec,
		ws_ping_interval, ws_ping_timeout,
		maker_side_rule, latency_deque_size,
	) = load_config(logger, write_conf())

	assert symbol == "btcusdc"
	assert ws_url == (
		"wss://stream.binance.com:9443/ws/"
		"btcusdc@depth20@100ms/btcusdc@trade"
	)
	assert subscribe_msg is None
	assert parquet_path.endswith("out.parquet")
	assert parquet_compression == "snappy"
	assert batch_size == 100
	assert run_time_sec == 600.0
	assert ws_ping_interval == 20
	assert ws_ping_timeout is None
	assert maker_side_rule is MAKER_IS_SELL
	assert latency_deque_size == 1000

def test_load_config_subscribe_and_side_rule(write_conf):

	path = write_conf(CONF + "SUBSCRIBE = 1\nMAKER_SIDE_RULE = maker_is_buy\n")

	config = load_config(logger, path)

	assert config[1] == "wss://stream.binance.com:9443/ws"
	assert '"SUBSCRIBE"' in config[2]
	assert config[9] is MAKER_IS_BUY

@pytest.mark.parametrize("extra", [
	"BATCH_SIZE = 0\n",
	"BATCH_SIZE = ten\n",
	"RUN_TIME_MINUTES = 0\n",
	"MAKER_SIDE_RULE = MAKER_IS_BOTH\n",
	"SYMBOL =\n",
])
def test_invalid_config_exits(write_conf, extra):

	with pytest.raises(SystemExit):
		load_config(logger, write_conf(CONF + extra))

def test_missing_config_file_exits(tmp_path):

	with pytest.raises(SystemExit):
		load_config(logger, str(tmp_path / "nope.conf"))

#———————————————————————————————————————————————————————————————————————————————

def test_setup_uvloop_never_raises(monkeypatch):

	monkeypatch.setattr(asyncio, "set_event_loop_policy", lambda policy: None)

	assert setup_uvloop(logger) in (True, False)

#———————————————————————————————————————————————————————————————————————————————

@pytest.fixture
def isolated_root_logger(monkeypatch):

	root = logging.getLogger()
	handlers, level = list(root.handlers), root.level

	monkeypatch.setattr(stream_parquet, "setup_uvloop", lambda logger: False)

	yield

	root.handlers[:] = handlers
	root.setLevel(level)

def test_main_exits_1_on_bad_config(tmp_path, write_conf, isolated_root_logger):

	code = stream_parquet.main([
		"--config", write_conf(CONF + "BATCH_SIZE = 0\n"),
		"--log-file", str(tmp_path / "run.log"),
	])

	assert code == 1

def test_main_exits_1_when_sink_cannot_be_created(
	tmp_path, write_conf, isolated_root_logger,
):

	blocker = tmp_path / "file"
	blocker.write_text("x")

	code = stream_parquet.main([
		"--config", write_conf(parquet_path=str(blocker / "out.parquet")),
		"--log-file", str(tmp_path / "run.log"),
	])

	assert code == 1
