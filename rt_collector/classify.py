# classify.py

#———————————————————————————————————————————————————————————————————————————————
# Binance raw streams
#	https://tinyurl.com/BinanceWsMan
#
#	<symbol>@trade			{"e": "trade", "E": .., "s": .., "T": .., "p": .., "q": .., "m": ..}
#	<symbol>@aggTrade		{"e": "aggTrade", ... same T/p/q/m fields ...}
#	<symbol>@depth20@100ms	{"lastUpdateId": .., "bids": [[p, q], ..], "asks": [[p, q], ..]}
#
# Combined streams wrap each payload as {"stream": "<symbol>@<name>", "data": {..}}.
#———————————————————————————————————————————————————————————————————————————————

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from rt_collector.monitor import IngestMonitor
from rt_collector.util import my_name, INT64_MIN, INT64_MAX

EVENT_TRADE = "TRADE"
EVENT_DEPTH = "DEPTH"

#———————————————————————————————————————————————————————————————————————————————
# Tagged Variants
#———————————————————————————————————————————————————————————————————————————————

@dataclass(frozen=True)
class Trade:

	event_time_ms:	Optional[int]	# `T`; None when absent, not an integer or not int64
	price:			Any				# decimal string, parsed by the normalizer
	quantity:		Any
	is_maker:		bool
	symbol:			Optional[str] = None

	kind = EVENT_TRADE

#———————————————————————————————————————————————————————————————————————————————

@dataclass(frozen=True)
class DepthSnapshot:

	bids:	Any		# verbatim [[price, qty], ...]; strings stay strings
	asks:	Any
	symbol:	Optional[str] = None

	kind = EVENT_DEPTH

#———————————————————————————————————————————————————————————————————————————————

class Unknown:

	kind = None

	def __repr__(self) -> str:

		return "UNKNOWN"

UNKNOWN = Unknown()

ClassifiedEvent = Trade | DepthSnapshot | Unknown

#———————————————————————————————————————————————————————————————————————————————
# Rule Table
#———————————————————————————————————————————————————————————————————————————————

@dataclass(frozen=True)
class ClassifierRule:

	name:	 str
	matches: Callable[[dict], bool]
	build:	 Callable[[dict, Optional[str]], ClassifiedEvent]

#———————————————————————————————————————————————————————————————————————————————

def build_trade(
	payload: dict,
	symbol:	 Optional[str],
) -> Trade:

	event_time = payload.get("T")

	if (
		not isinstance(event_time, int)
		or isinstance(event_time, bool)
		or not INT64_MIN <= event_time <= INT64_MAX
	):
		event_time = None

	return Trade(
		event_time_ms = event_time,
		price		  = payload.get("p"),
		quantity	  = payload.get("q"),
		is_maker	  = payload.get("m") is True,
		symbol		  = symbol,
	)

#———————————————————————————————————————————————————————————————————————————————

def build_depth(
	payload: dict,
	symbol:	 Optional[str],
) -> DepthSnapshot:

	return DepthSnapshot(
		bids   = payload.get("bids"),
		asks   = payload.get("asks"),
		symbol = symbol,
	)

#———————————————————————————————————————————————————————————————————————————————
# evaluated in order; first match wins
#———————————————————————————————————————————————————————————————————————————————

DEFAULT_RULES: tuple[ClassifierRule, ...] = (
	ClassifierRule(
		"trade",
		lambda m: m.get("e") == "trade",
		build_trade,
	),
	ClassifierRule(
		"aggTrade",
		lambda m: m.get("e") == "aggTrade",
		build_trade,
	),
	ClassifierRule(
		"depth",
		lambda m: m.get("bids") is not None,
		build_depth,
	),
)

#———————————————————————————————————————————————————————————————————————————————

def unwrap_envelope(
	message: dict,
) -> tuple[dict, Optional[str]]:

	stream = message.get("stream")
	data   = message.get("data")

	if (
		isinstance(stream, str)
		and isinstance(data, dict)
	):

		symbol = stream.split("@", 1)[0]

		return data, (symbol.upper() or None)

	return message, None

#———————————————————————————————————————————————————————————————————————————————

class EventClassifier:

	def __init__(self,
		rules:	 tuple[ClassifierRule, ...] = DEFAULT_RULES,
		monitor: Optional[IngestMonitor]	= None,
		logger:	 Optional[logging.Logger]	= None,
	):

		if not rules:

			raise ValueError(
				f"[{my_name()}] at least one rule is required"
			)

		self.rules	 = tuple(rules)
		self.monitor = monitor
		self.logger	 = logger or logging.getLogger(__name__)

	#———————————————————————————————————————————————————————————————————————————

	def classify(self,
		message: Any,
	) -> ClassifiedEvent:

		if isinstance(message, dict):

			payload, symbol = unwrap_envelope(message)

			for rule in self.rules:

				if rule.matches(payload):

					return rule.build(payload, symbol)

		#———————————————————————————————————————————————————————————————————————
		# e.g. the {"result": null, "id": 1} subscription ack
		#———————————————————————————————————————————————————————————————————————

		if self.monitor is not None:

			self.monitor.unknown += 1

		self.logger.debug(
			f"[{my_name()}] unclassified message: "
			f"{str(message)[:200]}"
		)

		return UNKNOWN
