"""Sensor line parsing and record structures."""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from enum import Enum

from .config import ParserConfig

_NUMBER = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_TOKEN_SPLIT = re.compile(r"[,\s]+")


class LineKind(str, Enum):
	LEGACY = "legacy"
	KEY_VALUE = "key_value"
	SINGLE = "single"
	UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class SensorRecord:
	"""One distance reading, normalized to centimeters."""
	sensor_id: str
	distance_cm: float
	timestamp: float


@dataclass(frozen=True)
class LegacyTrigger:
	"""A line matching the legacy literal; fires the "any" channel directly."""
	timestamp: float


@dataclass
class ParsedLine:
	kind: LineKind
	readings: list[tuple[str, float]] = field(default_factory=list)  # (sensor_id, cm)

	def to_items(self, timestamp: float) -> list[SensorRecord | LegacyTrigger]:
		"""Stamp the parse result with its receipt time."""
		if self.kind is LineKind.LEGACY:
			return [LegacyTrigger(timestamp)]
		return [SensorRecord(sid, cm, timestamp) for sid, cm in self.readings]


def parse_number(text: str) -> float | None:
	"""Parse a finite decimal number. Returns None when text is not one."""
	text = text.strip()
	if not _NUMBER.fullmatch(text):
		return None
	value = float(text)
	return value if math.isfinite(value) else None


def _parse_key_values(line: str, config: ParserConfig) -> list[tuple[str, float]]:
	readings = []
	for token in _TOKEN_SPLIT.split(line):
		parts = token.split("=")
		if len(parts) != 2:
			continue
		key, raw = parts[0].strip(), parts[1].strip()
		if not key or not config.is_allowed(key):
			continue
		value = parse_number(raw)
		if value is None:
			continue
		readings.append((key, config.input_unit.to_cm(value)))
	return readings


def parse_line(line: str, config: ParserConfig) -> ParsedLine:
	"""Classify a trimmed line and extract its readings.

	Bad tokens inside a key/value line are dropped individually; a key/value
	line without any valid pair falls through to the single-number case.

	Args:
		line: Line with surrounding whitespace already removed
		config: Parser configuration

	Returns:
		ParsedLine; readings are (sensor_id, distance_cm) pairs
	"""
	literal = config.legacy_true_literal
	if literal and line.casefold() == literal.casefold():
		return ParsedLine(LineKind.LEGACY)

	if "=" in line:
		readings = _parse_key_values(line, config)
		if readings:
			return ParsedLine(LineKind.KEY_VALUE, readings)

	value = parse_number(line)
	if value is not None:
		return ParsedLine(
			LineKind.SINGLE,
			[(config.default_sensor_id, config.input_unit.to_cm(value))],
		)

	return ParsedLine(LineKind.UNRECOGNIZED)
