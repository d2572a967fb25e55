# init.py

#———————————————————————————————————————————————————————————————————————————————

import logging, asyncio
from collections import OrderedDict
from typing import Optional

from rt_collector.normalize import MakerSideRule, SIDE_RULES
from rt_collector.transport import build_ws_url, build_subscribe_msg
from rt_collector.util import my_name, resource_path

#———————————————————————————————————————————————————————————————————————————————

def setup_uvloop(
	logger:  logging.Logger = None,
	verbose: bool = False,
) -> bool:

	try:

		import uvloop
		asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())

		to_prt = f"[{my_name()}]⚡ uvloop"
		if logger:	  logger.info(to_prt)
		elif verbose: print(to_prt, flush = True)

		return True

	except ImportError:

		to_prt = (
			f"[{my_name()}] "
			f"uvloop not available - using default asyncio."
		)
		if logger:	  logger.warning(to_prt)
		elif verbose: print(to_prt, flush = True)

		return False

	except Exception as e:

		to_prt = f"[{my_name()}] Failed to setup uvloop: {e}"
		if logger:	  logger.error(to_prt)
		elif verbose: print(to_prt, flush = True)

		return False

#———————————————————————————————————————————————————————————————————————————————

def read_conf_file(
	path: str,
) -> dict[str, str]:

	config: dict[str, str] = {}	# loaded from .conf

	with open(path, 'r', encoding='utf-8') as f:

		for line in f:

			line = line.strip()

			if (
				not line
				or line.startswith("#")
				or "=" not in line
			):
				continue

			line = line.split("#", 1)[0].strip()
			parts = line.split("=", 1)
			if len(parts) != 2:
				continue
			key, val = parts
			config[key.strip()] = val.strip()

	return config

#———————————————————————————————————————————————————————————————————————————————

def load_config(
	logger:		 logging.Logger,
	config_path: str = "app.conf"
) -> tuple[
	str,			# symbol
	str,			# ws_url
	Optional[str],	# subscribe_msg
	str,			# parquet_path
	str,			# parquet_compression
	int,			# batch_size
	float,			# run_time_sec
	Optional[int],	# ws_ping_interval
	Optional[int],	# ws_ping_timeout
	MakerSideRule,	# maker_side_rule
	int,			# latency_deque_size
]:

	#——————————————————————————————————————————————————————————————

	def extract_comma_delimited(
		config: dict[str, str],
		key: str,
	) -> list[str]:

		val_str = config.get(key)

		if not isinstance(val_str, str):

			raise ValueError(
				f"{key} field missing or not a string."
			)

		return list(
			# the input order is preserved
			OrderedDict.fromkeys(
				s.strip()
				for s in val_str.split(",")
				if s.strip()
			)
		)

	#——————————————————————————————————————————————————————————————

	def require(
		config: dict[str, str],
		key: str,
	) -> str:

		val_str = config.get(key)

		if not val_str:

			raise ValueError(f"{key} field missing.")

		return val_str

	#——————————————————————————————————————————————————————————————

	try:

		config = read_conf_file(
			resource_path(config_path, logger)
		)

		symbol = require(config, "SYMBOL").lower()
		streams = extract_comma_delimited(config, "STREAMS")

		if not streams:

			raise ValueError("STREAMS is empty.")

		subscribe = int(config.get("SUBSCRIBE", "0")) != 0

		ws_url = build_ws_url(
			require(config, "WS_BASE_URL"),
			symbol, streams, subscribe,
		)
		subscribe_msg = (
			build_subscribe_msg(symbol, streams)
			if subscribe else None
		)

		parquet_path = require(config, "PARQUET_PATH")
		parquet_compression = config.get("PARQUET_COMPRESSION") or "snappy"

		batch_size = int(require(config, "BATCH_SIZE"))
		if batch_size < 1:
			raise ValueError("BATCH_SIZE must be ≥ 1")

		run_time_min = float(require(config, "RUN_TIME_MINUTES"))
		if run_time_min <= 0:
			raise ValueError("RUN_TIME_MINUTES must be > 0")

		ws_ping_interval = int(config.get("WS_PING_INTERVAL", "0"))
		ws_ping_timeout  = int(config.get("WS_PING_TIMEOUT", "0"))
		if ws_ping_interval == 0: ws_ping_interval = None
		if ws_ping_timeout  == 0: ws_ping_timeout  = None

		rule_name = config.get("MAKER_SIDE_RULE", "MAKER_IS_SELL").upper()
		if rule_name not in SIDE_RULES:
			raise ValueError(
				f"MAKER_SIDE_RULE must be one of "
				f"{sorted(SIDE_RULES)}, got {rule_name}"
			)

		latency_deque_size = int(config.get("LATENCY_DEQUE_SIZE", "1000"))

		return (
			symbol,
			ws_url,
			subscribe_msg,
			parquet_path,
			parquet_compression,
			batch_size,
			run_time_min * 60.0,
			ws_ping_interval,
			ws_ping_timeout,
			SIDE_RULES[rule_name],
			latency_deque_size,
		)

	except Exception as e:

		logger.critical(
			f"[{my_name()}] Failed to load config: "
			f"{e}", exc_info=True
		)
		raise SystemExit from e
