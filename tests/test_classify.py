import pytest

from rt_collector.classify import (
	EventClassifier, ClassifierRule,
	Trade, DepthSnapshot, UNKNOWN,
	unwrap_envelope,
)
from rt_collector.monitor import IngestMonitor

#———————————————————————————————————————————————————————————————————————————————

@pytest.fixture
def monitor():

	return IngestMonitor()

@pytest.fixture
def classifier(monitor):

	return EventClassifier(monitor=monitor)

#———————————————————————————————————————————————————————————————————————————————

def test_trade_message(classifier):

	event = classifier.classify({
		"e": "trade", "T": 1700000000000,
		"p": "50000.5", "q": "0.01", "m": True,
	})

	assert isinstance(event, Trade)
	assert event.event_time_ms == 1700000000000
	assert event.price == "50000.5"
	assert event.quantity == "0.01"
	assert event.is_maker is True
	assert event.symbol is None

def test_agg_trade_is_a_trade(classifier):

	event = classifier.classify({
		"e": "aggTrade", "T": 1, "p": "1", "q": "2", "m": False,
	})

	assert isinstance(event, Trade)
	assert event.is_maker is False

def test_depth_message(classifier):

	event = classifier.classify({
		"lastUpdateId": 1,
		"bids": [["50000", "1"]],
		"asks": [["50001", "2"]],
	})

	assert isinstance(event, DepthSnapshot)
	assert event.bids == [["50000", "1"]]
	assert event.asks == [["50001", "2"]]

def test_trade_rule_wins_over_depth(classifier):

	event = classifier.classify({"e": "trade", "bids": [], "p": "1"})

	assert isinstance(event, Trade)

def test_empty_bids_is_still_depth(classifier):

	assert isinstance(classifier.classify({"bids": []}), DepthSnapshot)

@pytest.mark.parametrize("message", [
	{"result": None, "id": 1},
	{"bids": None, "asks": []},
	{"e": "kline"},
	[1, 2, 3],
	"trade",
	42,
])
def test_unknown_messages(classifier, monitor, message):

	assert classifier.classify(message) is UNKNOWN
	assert monitor.unknown == 1

def test_missing_fields_default(classifier):

	event = classifier.classify({"e": "trade"})

	assert event.event_time_ms is None
	assert event.price is None
	assert event.is_maker is False

@pytest.mark.parametrize("value", ["1700000000000", 1.5, True, None])
def test_non_integer_event_time_is_dropped(classifier, value):

	event = classifier.classify({"e": "trade", "T": value})

	assert event.event_time_ms is None

@pytest.mark.parametrize("value", [2 ** 64 - 1, 2 ** 63, -(2 ** 63) - 1])
def test_event_time_outside_int64_is_dropped(classifier, value):

	event = classifier.classify({"e": "trade", "T": value})

	assert event.event_time_ms is None

def test_event_time_int64_bounds_are_kept(classifier):

	assert classifier.classify({"e": "trade", "T": 2 ** 63 - 1}).event_time_ms == 2 ** 63 - 1
	assert classifier.classify({"e": "trade", "T": -(2 ** 63)}).event_time_ms == -(2 ** 63)

def test_variant_kinds(classifier):

	assert classifier.classify({"e": "trade"}).kind == "TRADE"
	assert classifier.classify({"bids": []}).kind == "DEPTH"
	assert classifier.classify({}).kind is None

def test_non_boolean_maker_flag_is_false(classifier):

	assert classifier.classify({"e": "trade", "m": "true"}).is_maker is False
	assert classifier.classify({"e": "trade", "m": 1}).is_maker is False

#———————————————————————————————————————————————————————————————————————————————

def test_combined_stream_envelope(classifier):

	event = classifier.classify({
		"stream": "ethusdt@trade",
		"data": {"e": "trade", "p": "1", "q": "1"},
	})

	assert isinstance(event, Trade)
	assert event.symbol == "ETHUSDT"

def test_unwrap_envelope_passthrough():

	message = {"e": "trade", "data": {"x": 1}}

	assert unwrap_envelope(message) == (message, None)

#———————————————————————————————————————————————————————————————————————————————

def test_custom_rule_table():

	rules = (
		ClassifierRule(
			"depth-any",
			lambda m: "asks" in m,
			lambda m, s: DepthSnapshot(None, m["asks"], s),
		),
	)
	classifier = EventClassifier(rules)

	assert isinstance(classifier.classify({"asks": []}), DepthSnapshot)
	assert classifier.classify({"e": "trade"}) is UNKNOWN

def test_empty_rule_table_is_rejected():

	with pytest.raises(ValueError):
		EventClassifier(rules=())
