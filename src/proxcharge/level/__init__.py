"""Presence-driven level indicator."""

from proxcharge.level.blink import BlinkConfig, HoldBlinker
from proxcharge.level.controller import (
	Direction,
	LevelChange,
	LevelConfig,
	LevelController,
	LevelPhase,
	LevelSnapshot,
)
from proxcharge.level.presence import PresenceGate

__all__ = [
	"LevelController",
	"LevelConfig",
	"LevelChange",
	"LevelPhase",
	"LevelSnapshot",
	"Direction",
	"PresenceGate",
	"HoldBlinker",
	"BlinkConfig",
]
