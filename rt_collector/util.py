# util.py

#———————————————————————————————————————————————————————————————————————————————

import sys, os, time, asyncio, logging, queue
import ssl, certifi
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener
from typing import Callable

#———————————————————————————————————————————————————————————————————————————
# https://tinyurl.com/ANSI-256-Color-Palette
#———————————————————————————————————————————————————————————————————————————

CMAP4TXT = {
	#
	'DEBUG':		'\033[38;5;242m',  # cool gray
	'INFO':	 		'\033[38;5;34m',   # green
	'WARNING':  	'\033[38;5;214m',  # orange
	'ERROR':		'\033[38;5;196m',  # bright red
	'CRITICAL': 	'\033[38;5;199m',  # magenta red
	#
}
RESET4TXT = '\033[0m'

#———————————————————————————————————————————————————————————————————————————————
# Technical Utilities
#———————————————————————————————————————————————————————————————————————————————

def my_name() -> str:

	f = sys._getframe(1)
	try: return f"{f.f_code.co_name}:{f.f_lineno}"
	finally: del f

#———————————————————————————————————————————————————————————————————————————————

def resource_path(
	relative_path:	str,
	logger: logging.Logger = None,
) -> str:

	try:

		if logger is not None:

			if not isinstance(logger, logging.Logger):

				raise TypeError(
					f"logger must be an instance of "
					f"logging.Logger"
				)

			logger.info(
				f"[{my_name()}]📂 {relative_path}"
			)

		if hasattr(sys, "_MEIPASS"):		# PyInstaller

			base_path = sys._MEIPASS

		else:

			base_path = os.path.abspath(".")

		# an absolute `relative_path` wins over `base_path`
		return os.path.join(
			base_path, relative_path
		)

	except Exception as e:

		raise RuntimeError(
			f"[{my_name()}] Failed to "
			f"resolve path: {relative_path}"
		) from e

#———————————————————————————————————————————————————————————————————————————————

_SSL_CTX = None

def get_ssl_context() -> ssl.SSLContext:

	global _SSL_CTX

	if _SSL_CTX is None:

		ctx = ssl.create_default_context(cafile=certifi.where())

		ctx.check_hostname = True
		ctx.verify_mode	   = ssl.CERT_REQUIRED

		_SSL_CTX = ctx

	return _SSL_CTX

#———————————————————————————————————————————————————————————————————————————————
# Time Utilities
#———————————————————————————————————————————————————————————————————————————————

# range of a parquet int64 column; epoch ms and latencies must fit
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

def get_current_time_ms() -> int:

	"""
	Returns the current time in milliseconds as an integer.
	Uses nanosecond precision for maximum accuracy.
	"""

	return time.time_ns() // 1_000_000

#———————————————————————————————————————————————————————————————————————————————

def format_hms_ms(ms: int) -> str:

	"""
	1700000000050 → '22:13:20.050' (UTC)
	"""

	secs, millis = divmod(int(ms), 1000)
	dt = datetime.fromtimestamp(secs, tz = timezone.utc)

	return f"{dt.strftime('%H:%M:%S')}.{millis:03d}"

#———————————————————————————————————————————————————————————————————————————————
# Unified Logger
#———————————————————————————————————————————————————————————————————————————————
# Any Coroutine
# → QueueHandler
# → QueueListener
# → Flush One Time (RotatingFileHandler + StreamHandler)
#———————————————————————————————————————————————————————————————————————————————

class UTCFormatter(logging.Formatter):

	def format(self, record):

		original_levelname = record.levelname
		color = CMAP4TXT.get(original_levelname, '')
		if color:
			record.levelname = f"{color}{original_levelname}{RESET4TXT}"

		formatted = super().format(record)

		record.levelname = original_levelname
		return formatted

	def formatTime(self, record, datefmt = None):

		dt = datetime.fromtimestamp(
			record.created,
			tz = timezone.utc,
		)

		if datefmt: return dt.strftime(datefmt)

		return (
			dt.strftime("%Y-%m-%d %H:%M:%S.")
			+ f"{dt.microsecond // 1000:03d}Z"
		)

#———————————————————————————————————————————————————————————————————————————————

def set_global_logger(
	filename:	  str = "stream_parquet.log",
	maxBytes:	  int = 10_485_760,		# Rotate after 10 MB
	backupCount:  int = 100,			# Keep # of backups
	logLevel:	  int = logging.INFO,
) -> tuple[
	logging.Logger,		# logger.error(), etc
	QueueListener,		# queue_listener.stop()
]:

	from logging.handlers import RotatingFileHandler

	try:

		formatter = UTCFormatter(
			"[%(asctime)s] %(levelname)s: %(message)s"
		)

		loggingStreamHandler = logging.StreamHandler()
		loggingRotatingFileHandler = RotatingFileHandler(
			filename	= filename,
			mode		= "a",
			maxBytes	= maxBytes,
			backupCount = backupCount,
			encoding	= "utf-8",
		)

		#———————————————————————————————————————————————————————————————————————
		# the listener's handlers do the formatting; QueueHandler only
		# forwards records
		#———————————————————————————————————————————————————————————————————————

		for handler in (
			loggingStreamHandler,
			loggingRotatingFileHandler,
		):
			handler.setFormatter(formatter)

		log_queue: queue.SimpleQueue = queue.SimpleQueue()
		queue_listener = QueueListener(
			log_queue,
			loggingRotatingFileHandler,
			loggingStreamHandler,
		)

		logger = logging.getLogger()
		logger.handlers.clear()
		logger.setLevel(logLevel)

		queue_listener.start()
		logger.addHandler(
			QueueHandler(log_queue)
		)

		for name in [
			"websockets",
			"websockets.client",
			"asyncio",
		]:
			individual_logger = logging.getLogger(name)
			individual_logger.setLevel(logging.INFO)
			individual_logger.propagate = True

		return logger, queue_listener

	except Exception as e:

		print(
			f"[{datetime.now(timezone.utc).isoformat()}] "
			f"ERROR: [{my_name()}] Failed to "
			f"initialize logging: {e}",
			file  = sys.stderr,
			flush = True
		)
		sys.exit(1)

"""—————————————————————————————————————————————————————————————————————————————
@ensure_logging_on_exception
async def your_coroutine():
	...
—————————————————————————————————————————————————————————————————————————————"""

def ensure_logging_on_exception(
	coro_func: Callable,
):

	"""
	Decorator that guarantees exception logging with minimal overhead.
	Only activates when exceptions occur - zero cost during normal operation.
	"""

	async def wrapper(
		*args, **kwargs
	):

		try:

			return await coro_func(*args, **kwargs)

		except asyncio.CancelledError:

			raise

		except Exception as e:

			logger = logging.getLogger()

			logger.critical(
				f"{coro_func.__name__} failed: {e}",
				exc_info = True,
			)

			for handler in logger.handlers:

				handler.flush()

			raise

	wrapper.__name__ = coro_func.__name__
	wrapper.__doc__  = coro_func.__doc__

	return wrapper

#———————————————————————————————————————————————————————————————————————————————

def force_print_exception(
	scope_name: str,
	e: Exception | None = None,
):

	try:

		print(
			f"[{scope_name}] {e or 'Unknown exception'}",
			file=sys.stderr,
			flush=True
		)

	except Exception:

		pass  # even this shouldn't fail
