"""Serial and line-format configuration for range sensors."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

STANDARD_BAUD_RATES = (9600, 14400, 19200, 38400, 57600, 115200)


class InputUnit(str, Enum):
	"""Unit in which the device prints numeric values."""
	MILLIMETERS = "mm"
	CENTIMETERS = "cm"

	@classmethod
	def coerce(cls, value: InputUnit | str) -> InputUnit:
		"""Accept enum members, values ("mm") or names ("Millimeters")."""
		if isinstance(value, cls):
			return value
		text = str(value).strip().lower()
		for unit in cls:
			if text in (unit.value, unit.name.lower()):
				return unit
		raise ValueError(f"Unknown input unit: {value!r}")

	def to_cm(self, value: float) -> float:
		return value / 10.0 if self is InputUnit.MILLIMETERS else value


@dataclass
class SerialConfig:
	port: str = "/dev/ttyUSB0"
	baud: int = 115200
	timeout: float = 1.0  # read timeout, seconds
	dtr: bool = True
	rts: bool = True

	def validate(self) -> list[str]:
		errors = []
		if not self.port:
			errors.append("serial.port must not be empty")
		if self.baud not in STANDARD_BAUD_RATES:
			errors.append(f"serial.baud ({self.baud}) must be one of {STANDARD_BAUD_RATES}")
		if self.timeout <= 0:
			errors.append(f"serial.timeout ({self.timeout}) must be positive")
		return errors


@dataclass
class ParserConfig:
	"""How raw text lines are turned into sensor records.

	Lines are either a legacy literal ("true"), key/value pairs
	("A=412,B=980") or a single number for the default sensor.
	"""
	legacy_true_literal: str = "true"
	default_sensor_id: str = "DEFAULT"
	input_unit: InputUnit = InputUnit.MILLIMETERS
	allowed_sensor_ids: list[str] = field(default_factory=list)  # empty = accept any key

	def __post_init__(self) -> None:
		self.input_unit = InputUnit.coerce(self.input_unit)

	def is_allowed(self, sensor_id: str) -> bool:
		if not self.allowed_sensor_ids:
			return True
		key = sensor_id.casefold()
		return any(key == allowed.casefold() for allowed in self.allowed_sensor_ids)

	def validate(self) -> list[str]:
		errors = []
		if not self.default_sensor_id:
			errors.append("parser.default_sensor_id must not be empty")
		return errors
