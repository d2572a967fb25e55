# transport.py

#———————————————————————————————————————————————————————————————————————————————
# The only contract the core relies on: an async iterator of raw frames that
# ends on a normal close and raises TransportError on anything else.
# There is no reconnection here; a broken connection ends the run.
#———————————————————————————————————————————————————————————————————————————————

import asyncio, logging, orjson
import websockets
from typing import AsyncIterator, Optional

from rt_collector.errors import TransportError
from rt_collector.util import my_name, get_ssl_context

#———————————————————————————————————————————————————————————————————————————————

def build_ws_url(
	base_url:  str,
	symbol:	   str,
	streams:   list[str],
	subscribe: bool,
) -> str:

	"""
	wss://stream.binance.com:9443 + btcusdc + [depth20@100ms, trade]
	→ wss://stream.binance.com:9443/ws/btcusdc@depth20@100ms/btcusdc@trade
	"""

	base_url = base_url.rstrip("/")

	if subscribe:

		return f"{base_url}/ws"

	return (
		f"{base_url}/ws/"
		f"{'/'.join(f'{symbol.lower()}@{s}' for s in streams)}"
	)

#———————————————————————————————————————————————————————————————————————————————

def build_subscribe_msg(
	symbol:	 str,
	streams: list[str],
	req_id:	 int = 1,
) -> str:

	return orjson.dumps({
		"method": "SUBSCRIBE",
		"params": [f"{symbol.lower()}@{s}" for s in streams],
		"id":	  req_id,
	}).decode("utf-8")

#———————————————————————————————————————————————————————————————————————————————

async def stream_frames(
	ws_url:			  str,
	subscribe_msg:	  Optional[str],
	ws_ping_interval: Optional[int],
	ws_ping_timeout:  Optional[int],
	logger:			  logging.Logger,
) -> AsyncIterator[str | bytes]:

	logger.info(f"[{my_name()}] connecting... {ws_url}")

	try:

		async with websockets.connect(
			ws_url,
			ssl			  = (
				get_ssl_context()
				if ws_url.startswith("wss://")
				else None
			),
			ping_interval = ws_ping_interval,
			ping_timeout  = ws_ping_timeout,
			compression	  = None,
			max_size	  = None,
		) as ws:

			logger.info(
				f"[{my_name()}]🌐 connected: {ws.remote_address}"
			)

			if subscribe_msg:

				await ws.send(subscribe_msg)
				logger.info(f"[{my_name()}] subscribed: {subscribe_msg}")

			#———————————————————————————————————————————————————————————————————
			# `async for` ends quietly on a normal close and raises
			# ConnectionClosedError on an abnormal one
			#———————————————————————————————————————————————————————————————————

			async for raw in ws:

				yield raw

	except asyncio.CancelledError:

		raise 	# logging unnecessary

	except websockets.exceptions.ConnectionClosedError as e:

		close_reason = (
			getattr(e.rcvd, "reason", None)
			if getattr(e, "rcvd", None) is not None
			else None
		) or "no close frame"

		raise TransportError(
			f"[{my_name()}] ws connection closed: {close_reason}"
		) from e

	except (
		websockets.exceptions.WebSocketException,
		OSError,
		asyncio.TimeoutError,
	) as e:

		raise TransportError(
			f"[{my_name()}] ws error: {e}"
		) from e

	logger.info(f"[{my_name()}]📴 ws closed")
