"""Centralized configuration for proxcharge.

All configuration can be set via environment variables or config file.
Environment variables take precedence over config file values when both are
applied with AppConfig.from_file(...).apply_env().
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import structlog

from .exceptions import ConfigError
from .level.blink import BlinkConfig
from .level.controller import LevelConfig
from .processing.trigger import TriggerConfig
from .sensor.config import InputUnit, ParserConfig, SerialConfig


@dataclass
class RuntimeConfig:
	"""Processing loop configuration."""

	tick_hz: float = 60.0

	def validate(self) -> list[str]:
		if self.tick_hz <= 0 or self.tick_hz > 1000:
			return [f"runtime.tick_hz ({self.tick_hz}) must be between 0 and 1000"]
		return []


@dataclass
class DebugConfig:
	"""Logging switches."""

	log_level: str = "INFO"
	log_all_lines: bool = False  # every received line, at debug level
	log_triggers: bool = True
	log_per_sensor: bool = False  # raw/capped/smoothed per sample


@dataclass
class AppConfig:
	"""Complete application configuration."""

	serial: SerialConfig = field(default_factory=SerialConfig)
	parser: ParserConfig = field(default_factory=ParserConfig)
	trigger: TriggerConfig = field(default_factory=TriggerConfig)
	level: LevelConfig = field(default_factory=LevelConfig)
	blink: BlinkConfig = field(default_factory=BlinkConfig)
	runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
	debug: DebugConfig = field(default_factory=DebugConfig)

	@classmethod
	def from_env(cls) -> AppConfig:
		"""Load configuration from environment variables."""
		return cls().apply_env()

	def apply_env(self) -> AppConfig:
		"""Override values from PROXCHARGE_* environment variables."""
		env = os.environ

		# Serial config
		self.serial.port = env.get("PROXCHARGE_PORT", self.serial.port)
		if baud := env.get("PROXCHARGE_BAUD"):
			self.serial.baud = int(baud)
		if timeout := env.get("PROXCHARGE_READ_TIMEOUT"):
			self.serial.timeout = float(timeout)

		# Parser config
		if unit := env.get("PROXCHARGE_INPUT_UNIT"):
			self.parser.input_unit = InputUnit.coerce(unit)
		self.parser.default_sensor_id = env.get("PROXCHARGE_DEFAULT_SENSOR", self.parser.default_sensor_id)
		if "PROXCHARGE_LEGACY_LITERAL" in env:
			self.parser.legacy_true_literal = env["PROXCHARGE_LEGACY_LITERAL"]
		if allowed := env.get("PROXCHARGE_ALLOWED_SENSORS"):
			self.parser.allowed_sensor_ids = [s.strip() for s in allowed.split(",") if s.strip()]

		# Trigger config
		less_than = env.get("PROXCHARGE_LESS_THAN_TRIGGERS", "").lower()
		if less_than:
			self.trigger.less_than_triggers = less_than == "true"
		if threshold := env.get("PROXCHARGE_THRESHOLD_CM"):
			self.trigger.threshold_cm = float(threshold)
		if cooldown := env.get("PROXCHARGE_COOLDOWN_S"):
			self.trigger.retrigger_cooldown_s = float(cooldown)
		if smoothing := env.get("PROXCHARGE_SMOOTHING_S"):
			self.trigger.smoothing_s = float(smoothing)
		if max_step := env.get("PROXCHARGE_MAX_STEP_CM"):
			self.trigger.max_step_cm = float(max_step)
		if consecutive := env.get("PROXCHARGE_MIN_CONSECUTIVE"):
			self.trigger.min_consecutive_samples = int(consecutive)

		# Level config
		if timeout_s := env.get("PROXCHARGE_PRESENCE_TIMEOUT_S"):
			self.level.presence_timeout_s = float(timeout_s)
		if hold := env.get("PROXCHARGE_HOLD_S"):
			self.level.hold_at_max_s = float(hold)
		if fill := env.get("PROXCHARGE_FILL_LPS"):
			self.level.fill_speed_lps = float(fill)
		if drain := env.get("PROXCHARGE_DRAIN_LPS"):
			self.level.drain_speed_lps = float(drain)
		if max_index := env.get("PROXCHARGE_MAX_INDEX"):
			self.level.max_index = int(max_index)

		# Runtime / debug config
		if tick_hz := env.get("PROXCHARGE_TICK_HZ"):
			self.runtime.tick_hz = float(tick_hz)
		self.debug.log_level = env.get("PROXCHARGE_LOG_LEVEL", self.debug.log_level)
		self.debug.log_all_lines = env.get("PROXCHARGE_LOG_ALL_LINES", "").lower() == "true" or self.debug.log_all_lines

		return self

	@classmethod
	def from_file(cls, path: str | Path) -> AppConfig:
		"""Load configuration from JSON file."""
		path = Path(path)
		try:
			with open(path) as f:
				data = json.load(f)
		except (OSError, json.JSONDecodeError) as e:
			raise ConfigError(f"Cannot load config {path}: {e}") from e
		if not isinstance(data, dict):
			raise ConfigError(f"Config {path} must contain a JSON object")
		return cls._from_dict(data)

	@classmethod
	def _from_dict(cls, data: dict[str, Any]) -> AppConfig:
		"""Create config from dictionary. Unknown sections and keys are ignored.

		Values are coerced to the type of the field's default, so JSON strings
		such as "false" or "5" load the same as their native counterparts.
		"""
		config = cls()

		for section in fields(config):
			values = data.get(section.name)
			if not isinstance(values, dict):
				continue
			target = getattr(config, section.name)
			known = {f.name for f in fields(target)}
			for key, value in values.items():
				if key in known:
					setattr(target, key, _coerce(f"{section.name}.{key}", value, getattr(target, key)))

		return config

	def to_dict(self) -> dict[str, Any]:
		data = asdict(self)
		data["parser"]["input_unit"] = self.parser.input_unit.value
		return data

	def validate(self) -> list[str]:
		"""Validate all configuration values. Returns list of error messages."""
		errors = []
		errors.extend(self.serial.validate())
		errors.extend(self.parser.validate())
		errors.extend(self.trigger.validate())
		errors.extend(self.level.validate())
		errors.extend(self.blink.validate())
		errors.extend(self.runtime.validate())

		if self.debug.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
			errors.append(f"debug.log_level ({self.debug.log_level}) is not a logging level")

		return errors


def _coerce(name: str, value: Any, current: Any) -> Any:
	"""Convert a loaded value to the type of the field's current value."""
	try:
		if isinstance(current, InputUnit):
			return InputUnit.coerce(value)
		if isinstance(current, bool):
			if isinstance(value, str):
				text = value.strip().lower()
				if text in ("true", "1", "yes", "on"):
					return True
				if text in ("false", "0", "no", "off"):
					return False
				raise ValueError(f"not a boolean: {value!r}")
			return bool(value)
		if isinstance(current, int):
			if isinstance(value, float) and not value.is_integer():
				raise ValueError(f"not an integer: {value!r}")
			return int(value)
		if isinstance(current, float):
			return float(value)
		if isinstance(current, str):
			return str(value)
		if isinstance(current, list):
			if isinstance(value, str):
				return [s.strip() for s in value.split(",") if s.strip()]
			return [str(v) for v in value]
	except (TypeError, ValueError) as e:
		raise ConfigError(f"Invalid value for {name}: {e}") from e
	return value


# Global config instance (CLI only; library code takes configs explicitly)
_config: AppConfig | None = None


def get_config() -> AppConfig:
	"""Get the global configuration instance."""
	global _config
	if _config is None:
		_config = AppConfig.from_env()
	return _config


def configure_logging(level: str = "INFO") -> None:
	"""Configure structured logging for the application."""
	log_level = getattr(logging, level.upper(), logging.INFO)

	# Configure structlog
	structlog.configure(
		processors=[
			structlog.stdlib.filter_by_level,
			structlog.stdlib.add_logger_name,
			structlog.stdlib.add_log_level,
			structlog.stdlib.PositionalArgumentsFormatter(),
			structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
			structlog.processors.StackInfoRenderer(),
			structlog.processors.format_exc_info,
			structlog.processors.UnicodeDecoder(),
			structlog.dev.ConsoleRenderer(),
		],
		wrapper_class=structlog.stdlib.BoundLogger,
		context_class=dict,
		logger_factory=structlog.stdlib.LoggerFactory(),
		cache_logger_on_first_use=True,
	)

	# Configure standard logging
	logging.basicConfig(
		format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
		level=log_level,
	)

	# Reduce noise from third-party libraries
	logging.getLogger("serial").setLevel(logging.WARNING)
