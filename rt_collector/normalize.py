# normalize.py

#———————————————————————————————————————————————————————————————————————————————

import logging, orjson
from dataclasses import dataclass
from typing import Any, Optional

from rt_collector.classify import (
	Trade, DepthSnapshot,
	ClassifiedEvent,
)
from rt_collector.monitor import IngestMonitor
from rt_collector.util import (
	my_name,
	format_hms_ms,
	INT64_MIN, INT64_MAX,
)

#———————————————————————————————————————————————————————————————————————————————
# Placeholders for columns that do not apply to a row's event kind
#———————————————————————————————————————————————————————————————————————————————

DEPTH_LATENCY_SENTINEL = -1
PRICE_PLACEHOLDER	   = 0.0
QTY_PLACEHOLDER		   = 0.0
SIDE_PLACEHOLDER	   = ""
LEVELS_PLACEHOLDER	   = ""

#———————————————————————————————————————————————————————————————————————————————

@dataclass(frozen=True)
class RawFrame:

	text:	 str
	recv_ms: int		# local receipt time, epoch ms

#———————————————————————————————————————————————————————————————————————————————

@dataclass(frozen=True)
class Row:

	timestamp:	 str
	event_type:	 str
	latency_ms:	 int
	symbol:		 str
	trade_price: float
	trade_qty:	 float
	trade_side:	 str
	bids_json:	 str
	asks_json:	 str

	def values(self) -> tuple:

		return (
			self.timestamp,
			self.event_type,
			self.latency_ms,
			self.symbol,
			self.trade_price,
			self.trade_qty,
			self.trade_side,
			self.bids_json,
			self.asks_json,
		)

#———————————————————————————————————————————————————————————————————————————————
# Binance `m`: "is the buyer the market maker?"
#	m == true  → the seller was the aggressor → SELL
#	m == false → the buyer was the aggressor  → BUY
# Other feeds may define the flag from the other side; pick a rule per feed.
#———————————————————————————————————————————————————————————————————————————————

@dataclass(frozen=True)
class MakerSideRule:

	name:		str
	maker_side: str
	taker_side: str

	def side(self, is_maker: bool) -> str:

		return self.maker_side if is_maker else self.taker_side

MAKER_IS_SELL = MakerSideRule("MAKER_IS_SELL", "SELL", "BUY")
MAKER_IS_BUY  = MakerSideRule("MAKER_IS_BUY",  "BUY",  "SELL")

SIDE_RULES: dict[str, MakerSideRule] = {
	rule.name: rule
	for rule in (MAKER_IS_SELL, MAKER_IS_BUY)
}

#———————————————————————————————————————————————————————————————————————————————

def parse_decimal(value: Any) -> tuple[float, bool]:

	"""
	Parses a decimal string such as "50000.5".

	Returns (value, True) on success and (0.0, False) when the field is
	missing, not a string, or not a plain ASCII number (no surrounding
	whitespace, no digit separators). The caller keeps the row.
	"""

	if (
		not isinstance(value, str)
		or not value.isascii()
		or value != value.strip()
		or "_" in value
	):

		return 0.0, False

	try: return float(value), True

	except ValueError: return 0.0, False

#———————————————————————————————————————————————————————————————————————————————

class EventNormalizer:

	def __init__(self,
		symbol:		str,
		side_rule:	MakerSideRule = MAKER_IS_SELL,
		monitor:	Optional[IngestMonitor]	 = None,
		logger:		Optional[logging.Logger] = None,
	):

		self.symbol	   = symbol.upper()
		self.side_rule = side_rule
		self.monitor   = monitor
		self.logger	   = logger or logging.getLogger(__name__)

	#———————————————————————————————————————————————————————————————————————————

	def normalize(self,
		event: ClassifiedEvent,
		frame: RawFrame,
	) -> Optional[Row]:

		if isinstance(event, Trade):

			return self._from_trade(event, frame)

		if isinstance(event, DepthSnapshot):

			return self._from_depth(event, frame)

		return None

	#———————————————————————————————————————————————————————————————————————————

	def _from_trade(self,
		event: Trade,
		frame: RawFrame,
	) -> Row:

		event_time_ms = (
			event.event_time_ms
			if event.event_time_ms is not None
			else frame.recv_ms
		)

		latency_ms = frame.recv_ms - event_time_ms		# signed, not clamped

		if not INT64_MIN <= latency_ms <= INT64_MAX:

			raise ValueError(
				f"[{my_name()}] latency {latency_ms} does not fit int64"
			)

		price,	  price_ok = parse_decimal(event.price)
		quantity, qty_ok   = parse_decimal(event.quantity)

		for field_name, ok, raw in (
			("p", price_ok, event.price),
			("q", qty_ok,	event.quantity),
		):

			if ok: continue

			if self.monitor is not None:

				self.monitor.field_fallbacks += 1

			self.logger.debug(
				f"[{my_name()}] `{field_name}` = {raw!r} "
				f"unparsable; using 0.0"
			)

		side = self.side_rule.side(event.is_maker)

		if self.monitor is not None:

			self.monitor.record_latency(latency_ms)

		self.logger.debug(
			f"[{my_name()}][TRADE] latency: {latency_ms}ms | "
			f"price: {price} | side: {side}"
		)

		return Row(
			timestamp	= format_hms_ms(frame.recv_ms),
			event_type	= event.kind,
			latency_ms	= latency_ms,
			symbol		= event.symbol or self.symbol,
			trade_price = price,
			trade_qty	= quantity,
			trade_side	= side,
			bids_json	= LEVELS_PLACEHOLDER,
			asks_json	= LEVELS_PLACEHOLDER,
		)

	#———————————————————————————————————————————————————————————————————————————

	def _from_depth(self,
		event: DepthSnapshot,
		frame: RawFrame,
	) -> Row:

		#———————————————————————————————————————————————————————————————————————
		# levels stay as the feed's decimal strings; a missing side
		# serializes as `null`
		#———————————————————————————————————————————————————————————————————————

		return Row(
			timestamp	= format_hms_ms(frame.recv_ms),
			event_type	= event.kind,
			latency_ms	= DEPTH_LATENCY_SENTINEL,
			symbol		= event.symbol or self.symbol,
			trade_price = PRICE_PLACEHOLDER,
			trade_qty	= QTY_PLACEHOLDER,
			trade_side	= SIDE_PLACEHOLDER,
			bids_json	= orjson.dumps(event.bids).decode("utf-8"),
			asks_json	= orjson.dumps(event.asks).decode("utf-8"),
		)
