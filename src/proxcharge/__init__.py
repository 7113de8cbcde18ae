"""Presence-driven charge level indicator fed by serial range sensors."""
__version__ = "0.1.0"

from proxcharge.exceptions import ConfigError, ProxchargeError, SourceClosedError, SourceError, SourceOpenError
from proxcharge.level import HoldBlinker, LevelChange, LevelConfig, LevelController
from proxcharge.processing import SensorProcessor, TriggerConfig, TriggerEvent
from proxcharge.runtime import PresenceEngine
from proxcharge.sensor import InputUnit, MockLineSource, ParserConfig, SerialConfig, SerialLineSource, parse_line

__all__ = [
	"PresenceEngine",
	"SerialLineSource",
	"MockLineSource",
	"SerialConfig",
	"ParserConfig",
	"InputUnit",
	"parse_line",
	"SensorProcessor",
	"TriggerConfig",
	"TriggerEvent",
	"LevelController",
	"LevelConfig",
	"LevelChange",
	"HoldBlinker",
	"ProxchargeError",
	"ConfigError",
	"SourceError",
	"SourceOpenError",
	"SourceClosedError",
]
