"""Tests for the presence engine."""

import time

import pytest

from proxcharge.exceptions import SourceClosedError, SourceOpenError
from proxcharge.level.blink import HoldBlinker
from proxcharge.level.controller import LevelConfig, LevelController
from proxcharge.processing.pipeline import SensorProcessor
from proxcharge.runtime import PresenceEngine
from proxcharge.sensor.config import InputUnit, ParserConfig
from proxcharge.sensor.mock import ReplayLineSource
from proxcharge.sensor.parser import LineKind


class ScriptedSource:
	"""Plays back a script of lines, None (timeout) and exceptions."""

	def __init__(self, script, fail_open=False):
		self.script = list(script)
		self.fail_open = fail_open
		self.opened = False
		self.closed = False

	def open(self):
		if self.fail_open:
			raise SourceOpenError("no such port")
		self.opened = True

	def read_line(self):
		if self.closed or not self.script:
			raise SourceClosedError("done")
		step = self.script.pop(0)
		if isinstance(step, Exception):
			raise step
		return step

	def close(self):
		self.closed = True


def wait_for_reader(engine, timeout=2.0):
	deadline = time.monotonic() + timeout
	while engine.is_running and time.monotonic() < deadline:
		time.sleep(0.01)
	assert not engine.is_running


@pytest.fixture
def engine(processor, controller, parser_config, clock):
	return PresenceEngine(
		ScriptedSource([]),
		processor,
		[controller],
		parser_config=parser_config,
		clock=clock,
	)


class TestFeedAndTick:
	def test_feed_line_classifies(self, engine):
		assert engine.feed_line("A=30,B=80\r\n") is LineKind.KEY_VALUE
		assert engine.feed_line("  true ") is LineKind.LEGACY
		assert engine.feed_line("12") is LineKind.SINGLE
		assert engine.feed_line("garbage") is LineKind.UNRECOGNIZED
		assert engine.line_count == 4

	def test_items_processed_on_tick_in_order(self, engine, recorder):
		engine.processor.on_parsed.subscribe(recorder)
		engine.feed_line("A=30,B=80")
		engine.feed_line("B=70")
		assert len(recorder) == 0

		engine.tick()
		assert recorder.values == [("A", 30.0), ("B", 80.0), ("B", 70.0)]

	def test_records_stamped_at_receipt(self, engine, clock):
		engine.feed_line("A=100")
		clock.advance(0.5)
		engine.feed_line("A=0")
		engine.tick(clock.advance(1.0))
		state = engine.processor.smoother.state("A")
		assert state.last_sample_time == 100.5

	def test_unrecognized_lines_queue_nothing(self, engine):
		engine.feed_line("hello")
		assert engine.drain(0.0) == 0

	def test_trigger_reaches_controller(self, engine, controller, clock):
		engine.feed_line("A=30")
		engine.tick()
		assert controller.presence.last_pulse_time == clock.now

		engine.tick(clock.advance(0.25))
		assert controller.level == pytest.approx(6.0 * 0.25)

	def test_first_tick_has_zero_dt(self, engine, controller, clock):
		controller.register_presence_pulse(clock.now)
		engine.tick()
		assert controller.level == 0.0

	def test_two_sensors_one_any_trigger(self, engine, recorder):
		engine.processor.on_any_trigger.subscribe(recorder)
		engine.feed_line("A=30,B=20")
		engine.tick()
		assert [e.sensor_id for e in recorder.values] == ["A"]

	def test_blinkers_updated(self, engine, controller, clock):
		blinker = HoldBlinker(controller)
		engine.add_blinker(blinker)
		controller.register_presence_pulse(clock.now)
		engine.tick()
		for _ in range(120):
			engine.tick(clock.advance(1 / 60))
			if controller.hold_phase:
				break
		assert blinker.frame == "A"

	def test_add_controller_attaches(self, engine, clock):
		extra = LevelController(LevelConfig(max_index=3), name="extra")
		engine.add_controller(extra)
		engine.feed_line("A=10")
		engine.tick()
		assert extra.presence.last_pulse_time == clock.now


class TestReaderThread:
	def test_open_failure(self, processor):
		source = ScriptedSource([], fail_open=True)
		engine = PresenceEngine(source, processor)
		assert engine.start() is False
		assert not engine.is_running

	def test_reads_until_closed(self, processor, parser_config, recorder):
		processor.on_parsed.subscribe(recorder)
		source = ReplayLineSource(["A=10", "", "B=20", "true"])
		engine = PresenceEngine(source, processor, parser_config=parser_config)

		assert engine.start()
		wait_for_reader(engine)
		engine.tick()
		engine.stop()

		assert engine.line_count == 4
		assert recorder.values == [("A", 10.0), ("B", 20.0)]

	def test_timeouts_and_read_errors_are_survived(self, processor, parser_config, recorder):
		processor.on_parsed.subscribe(recorder)
		source = ScriptedSource(["A=1", None, OSError("glitch"), "A=2"])
		engine = PresenceEngine(source, processor, parser_config=parser_config)

		engine.start()
		wait_for_reader(engine)
		engine.tick()
		engine.stop()

		assert recorder.values == [("A", 1.0), ("A", 2.0)]
		assert source.closed

	def test_already_running(self, processor):
		source = ScriptedSource(["A=1"] * 3)
		source.read_line = lambda: time.sleep(0.01)
		engine = PresenceEngine(source, processor)
		engine.start()
		try:
			with pytest.raises(RuntimeError):
				engine.start()
		finally:
			engine.stop()

	def test_run_ends_when_source_closes(self, processor, recorder):
		processor.on_any_trigger.subscribe(recorder)
		source = ReplayLineSource(["A=300", "A=200", "A=100"])
		engine = PresenceEngine(
			source,
			processor,
			parser_config=ParserConfig(input_unit=InputUnit.MILLIMETERS),
			tick_hz=200.0,
		)

		ticks = []
		assert engine.start()
		engine.run(duration=5.0, on_tick=ticks.append)
		engine.stop()

		assert ticks and ticks[0] is engine
		assert engine.line_count == 3
		assert processor.record_count == 3
		assert len(recorder) >= 1

	def test_run_respects_duration(self, processor, clock):
		source = ScriptedSource([])
		source.read_line = lambda: time.sleep(0.01)
		engine = PresenceEngine(source, processor, tick_hz=100.0, clock=clock)

		def advance(_):
			clock.advance(0.1)

		engine.start()
		engine.run(duration=0.5, on_tick=advance)
		engine.stop()
		assert clock.now >= 100.5

	def test_restart_does_not_carry_downtime_into_dt(self, processor, controller, clock):
		source = ScriptedSource([])
		source.read_line = lambda: time.sleep(0.01)
		engine = PresenceEngine(source, processor, [controller], clock=clock)

		engine.start()
		engine.tick()
		engine.stop()

		clock.advance(30.0)
		controller.register_presence_pulse(clock.now)
		engine.start()
		try:
			engine.tick()
			assert controller.level == 0.0
			engine.tick(clock.advance(0.1))
			assert controller.level == pytest.approx(0.6)
		finally:
			engine.stop()

	def test_two_ticks_at_same_time_both_reach_any_channel(self, engine, recorder, clock):
		engine.processor.on_any_trigger.subscribe(recorder)
		engine.feed_line("A=30")
		engine.tick(clock.now)
		engine.feed_line("B=20")
		engine.tick(clock.now)
		assert [e.sensor_id for e in recorder.values] == ["A", "B"]

	def test_context_manager(self, processor):
		source = ScriptedSource([])
		with PresenceEngine(source, processor):
			assert source.opened
		assert source.closed


def test_processor_channels_shared_by_controllers(parser_config, clock):
	processor = SensorProcessor(log_triggers=False)
	first = LevelController(name="first")
	second = LevelController(name="second")
	engine = PresenceEngine(ScriptedSource([]), processor, [first, second], parser_config=parser_config, clock=clock)

	engine.feed_line("A=10")
	engine.tick()

	assert first.presence.last_pulse_time == clock.now
	assert second.presence.last_pulse_time == clock.now
