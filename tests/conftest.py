"""Pytest fixtures."""

import pytest

from proxcharge.level.controller import LevelConfig, LevelController
from proxcharge.processing.pipeline import SensorProcessor
from proxcharge.processing.trigger import TriggerConfig
from proxcharge.sensor.config import InputUnit, ParserConfig


class FakeClock:
	"""Manually advanced monotonic clock."""

	def __init__(self, start: float = 100.0) -> None:
		self.now = start

	def __call__(self) -> float:
		return self.now

	def advance(self, seconds: float) -> float:
		self.now += seconds
		return self.now


class Recorder:
	"""Collects everything emitted on a channel."""

	def __init__(self) -> None:
		self.calls: list[tuple] = []

	def __call__(self, *args) -> None:
		self.calls.append(args)

	@property
	def values(self) -> list:
		return [args[0] if len(args) == 1 else args for args in self.calls]

	def __len__(self) -> int:
		return len(self.calls)


@pytest.fixture
def clock() -> FakeClock:
	return FakeClock()


@pytest.fixture
def recorder() -> Recorder:
	return Recorder()


@pytest.fixture
def make_recorder():
	"""Factory for tests that watch several channels."""
	return Recorder


@pytest.fixture
def parser_config() -> ParserConfig:
	"""Centimeter input, no whitelist."""
	return ParserConfig(input_unit=InputUnit.CENTIMETERS)


@pytest.fixture
def raw_trigger_config() -> TriggerConfig:
	"""Less-than 50 cm, no smoothing, no cooldown, single sample."""
	return TriggerConfig(
		less_than_triggers=True,
		threshold_cm=50.0,
		retrigger_cooldown_s=0.0,
		smoothing_s=0.0,
		max_step_cm=0.0,
		min_consecutive_samples=1,
	)


@pytest.fixture
def processor(raw_trigger_config) -> SensorProcessor:
	return SensorProcessor(raw_trigger_config, log_triggers=False)


@pytest.fixture
def level_config() -> LevelConfig:
	return LevelConfig(
		max_index=5,
		presence_timeout_s=2.0,
		hold_at_max_s=5.0,
		fill_speed_lps=6.0,
		drain_speed_lps=4.0,
	)


@pytest.fixture
def controller(level_config) -> LevelController:
	return LevelController(level_config)
