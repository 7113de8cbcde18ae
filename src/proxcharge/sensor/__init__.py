"""Sensor interface: line sources and line parsing."""
from .config import STANDARD_BAUD_RATES, InputUnit, ParserConfig, SerialConfig
from .mock import MockConfig, MockLineSource, ReplayLineSource, is_mock_enabled
from .parser import (
	LegacyTrigger,
	LineKind,
	ParsedLine,
	SensorRecord,
	parse_line,
	parse_number,
)
from .source import LineSource, SerialLineSource

__all__ = [
	"LineSource",
	"SerialLineSource",
	"SerialConfig",
	"STANDARD_BAUD_RATES",
	# Parsing
	"InputUnit",
	"ParserConfig",
	"LineKind",
	"ParsedLine",
	"SensorRecord",
	"LegacyTrigger",
	"parse_line",
	"parse_number",
	# Mock sources
	"MockConfig",
	"MockLineSource",
	"ReplayLineSource",
	"is_mock_enabled",
]
