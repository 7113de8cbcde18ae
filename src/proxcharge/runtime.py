"""Ingestion thread and processing tick.

The ingestion thread blocks on the line source, parses each line and hands
the results over through a queue. Everything stateful (sensor filters, the
trigger gate, level controllers) lives in the processing side, which drains
the queue at the start of every tick and then advances each controller once.
"""
from __future__ import annotations

import queue
import time
from collections.abc import Callable, Iterable
from threading import Event, Thread

import structlog

from .exceptions import SourceClosedError, SourceError
from .level.blink import HoldBlinker
from .level.controller import LevelController
from .processing.pipeline import SensorProcessor
from .sensor.config import ParserConfig
from .sensor.parser import LegacyTrigger, LineKind, SensorRecord, parse_line
from .sensor.source import LineSource

logger = structlog.get_logger(__name__)

READ_ERROR_BACKOFF_S = 0.05


class PresenceEngine:
	"""Wires a line source to a processor and its level controllers.

	Example:
		engine = PresenceEngine(SerialLineSource(cfg.serial), processor, [controller])
		if engine.start():
			engine.run(duration=60.0)
		engine.stop()
	"""

	def __init__(
		self,
		source: LineSource,
		processor: SensorProcessor,
		controllers: Iterable[LevelController] = (),
		parser_config: ParserConfig | None = None,
		tick_hz: float = 60.0,
		clock: Callable[[], float] = time.monotonic,
		log_all_lines: bool = False,
	) -> None:
		self.source = source
		self.processor = processor
		self.controllers = list(controllers)
		self.blinkers: list[HoldBlinker] = []
		self.parser_config = parser_config or ParserConfig()
		self.tick_hz = tick_hz
		self.clock = clock
		self.log_all_lines = log_all_lines

		self._queue: queue.SimpleQueue[SensorRecord | LegacyTrigger] = queue.SimpleQueue()
		self._running = False
		self._stop_event = Event()
		self._reader_thread: Thread | None = None
		self._last_tick: float | None = None
		self._line_count = 0

		for controller in self.controllers:
			controller.attach(processor)

	@property
	def is_running(self) -> bool:
		return self._running

	@property
	def line_count(self) -> int:
		return self._line_count

	def add_controller(self, controller: LevelController) -> None:
		controller.attach(self.processor)
		self.controllers.append(controller)

	def add_blinker(self, blinker: HoldBlinker) -> None:
		self.blinkers.append(blinker)

	# ---------- ingestion side ----------

	def start(self) -> bool:
		"""Open the source and start reading. Returns False if it could not be opened."""
		if self._reader_thread and self._reader_thread.is_alive():
			raise RuntimeError("Already running")

		try:
			self.source.open()
		except (SourceError, OSError) as e:
			logger.error("source_open_failed", error=str(e))
			return False

		self._running = True
		self._last_tick = None
		self._stop_event.clear()
		self._reader_thread = Thread(target=self._read_loop, name="proxcharge-reader", daemon=True)
		self._reader_thread.start()
		logger.info("engine_started", tick_hz=self.tick_hz, controllers=len(self.controllers))
		return True

	def stop(self) -> None:
		"""Stop reading. Closing the source unblocks a read in progress."""
		self._running = False
		self._stop_event.set()
		try:
			self.source.close()
		except Exception as e:
			logger.warning("source_close_failed", error=str(e))

		if self._reader_thread and self._reader_thread.is_alive():
			self._reader_thread.join(timeout=2.0)
		self._reader_thread = None
		self._last_tick = None
		logger.info("engine_stopped", lines=self._line_count, triggers=self.processor.trigger_count)

	def _read_loop(self) -> None:
		while self._running:
			try:
				raw = self.source.read_line()
			except SourceClosedError as e:
				if self._running:
					logger.error("source_closed", error=str(e))
				else:
					logger.debug("source_closed_on_stop")
				break
			except Exception as e:
				if self._running:
					logger.warning("read_error", error=str(e))
				self._stop_event.wait(READ_ERROR_BACKOFF_S)
				continue

			if raw is None:
				continue
			self.feed_line(raw)

		self._running = False

	def feed_line(self, raw: str, timestamp: float | None = None) -> LineKind:
		"""Parse a raw line and queue its items for the next tick."""
		line = raw.strip()
		stamp = self.clock() if timestamp is None else timestamp
		self._line_count += 1

		parsed = parse_line(line, self.parser_config)
		if self.log_all_lines:
			logger.debug("line_received", line=line, kind=parsed.kind.value, readings=parsed.readings)

		for item in parsed.to_items(stamp):
			self._queue.put(item)
		return parsed.kind

	# ---------- processing side ----------

	def drain(self, now: float) -> int:
		"""Process every queued item in arrival order. Returns the count."""
		count = 0
		self.processor.begin_tick()
		while True:
			try:
				item = self._queue.get_nowait()
			except queue.Empty:
				return count
			self.processor.process(item, now)
			count += 1

	def tick(self, now: float | None = None) -> None:
		"""One processing step: drain the queue, then advance every controller."""
		if now is None:
			now = self.clock()
		dt = 0.0 if self._last_tick is None else max(0.0, now - self._last_tick)
		self._last_tick = now

		self.drain(now)
		for controller in self.controllers:
			controller.tick(now, dt)
		for blinker in self.blinkers:
			blinker.update(now)

	def run(
		self,
		duration: float | None = None,
		on_tick: Callable[[PresenceEngine], None] | None = None,
	) -> None:
		"""Tick at tick_hz until stopped, the source closes or `duration` elapses."""
		period = 1.0 / self.tick_hz
		start = self.clock()
		next_tick = start

		while not self._stop_event.is_set():
			now = self.clock()
			self.tick(now)
			if on_tick is not None:
				on_tick(self)

			if duration is not None and now - start >= duration:
				break
			if not self._running and self._queue.empty():
				break

			next_tick += period
			delay = next_tick - self.clock()
			if delay > 0:
				self._stop_event.wait(delay)
			else:
				next_tick = self.clock()

	def __enter__(self):
		self.start()
		return self

	def __exit__(self, exc_type, exc_val, exc_tb):
		self.stop()
