"""Signal processing for range readings."""

from proxcharge.processing.pipeline import LEGACY_SENSOR_ID, SensorProcessor
from proxcharge.processing.smoothing import SensorSmoother, SensorState
from proxcharge.processing.trigger import (
	GlobalTriggerGate,
	TriggerConfig,
	TriggerEvaluator,
	TriggerEvent,
)

__all__ = [
	"SensorProcessor",
	"LEGACY_SENSOR_ID",
	"SensorSmoother",
	"SensorState",
	# Triggering
	"TriggerConfig",
	"TriggerEvaluator",
	"TriggerEvent",
	"GlobalTriggerGate",
]
