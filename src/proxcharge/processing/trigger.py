"""Threshold triggering with debounce and a global cooldown."""
from __future__ import annotations

from dataclasses import dataclass

import structlog

from .smoothing import SensorSmoother

logger = structlog.get_logger(__name__)


@dataclass
class TriggerConfig:
	"""Trigger and smoothing parameters (distances in centimeters)."""
	less_than_triggers: bool = True     # trigger when smoothed <= threshold
	threshold_cm: float = 50.0
	retrigger_cooldown_s: float = 0.5   # minimum spacing between triggers of any sensor
	smoothing_s: float = 0.25           # EMA time constant, 0 = no smoothing
	max_step_cm: float = 0.0            # per-sample jump cap, 0 = no cap
	min_consecutive_samples: int = 1

	def validate(self) -> list[str]:
		errors = []
		if self.threshold_cm < 0:
			errors.append(f"trigger.threshold_cm ({self.threshold_cm}) must be >= 0")
		if self.retrigger_cooldown_s < 0:
			errors.append(f"trigger.retrigger_cooldown_s ({self.retrigger_cooldown_s}) must be >= 0")
		if self.smoothing_s < 0:
			errors.append(f"trigger.smoothing_s ({self.smoothing_s}) must be >= 0")
		if self.max_step_cm < 0:
			errors.append(f"trigger.max_step_cm ({self.max_step_cm}) must be >= 0")
		return errors


@dataclass(frozen=True)
class TriggerEvent:
	"""An accepted trigger: someone is in front of sensor_id."""
	sensor_id: str
	distance_cm: float
	timestamp: float


class GlobalTriggerGate:
	"""Single cooldown shared by every sensor."""

	def __init__(self, cooldown_s: float = 0.5) -> None:
		self.cooldown_s = cooldown_s
		self.last_trigger_time = float("-inf")

	def try_accept(self, now: float) -> bool:
		"""Accept a trigger at `now` unless still cooling down."""
		if now - self.last_trigger_time < self.cooldown_s:
			return False
		self.last_trigger_time = now
		return True

	def reset(self) -> None:
		self.last_trigger_time = float("-inf")


class TriggerEvaluator:
	"""Turns smoothed distances into trigger events.

	A sensor must satisfy the condition for `min_consecutive_samples`
	processed samples in a row. Reaching that count always restarts the
	streak, even when the global gate is still cooling down and nothing
	fires, so a sensor held below threshold has to build a new streak once
	the cooldown lapses.
	"""

	def __init__(
		self,
		config: TriggerConfig | None = None,
		smoother: SensorSmoother | None = None,
		gate: GlobalTriggerGate | None = None,
	) -> None:
		self.config = config or TriggerConfig()
		self._smoother = smoother or SensorSmoother(self.config.smoothing_s, self.config.max_step_cm)
		self.gate = gate or GlobalTriggerGate(self.config.retrigger_cooldown_s)

	def condition(self, smoothed_cm: float) -> bool:
		if self.config.less_than_triggers:
			return smoothed_cm <= self.config.threshold_cm
		return smoothed_cm >= self.config.threshold_cm

	def evaluate(self, sensor_id: str, smoothed_cm: float, now: float) -> TriggerEvent | None:
		"""Update the sensor's streak. Returns the event if a trigger fired."""
		s = self._smoother.state(sensor_id, now)

		if self.condition(smoothed_cm):
			s.consecutive_true += 1
		else:
			s.consecutive_true = 0
			return None

		if s.consecutive_true < max(1, self.config.min_consecutive_samples):
			return None

		s.consecutive_true = 0
		if not self.gate.try_accept(now):
			logger.debug("trigger_suppressed", sensor=sensor_id, distance_cm=round(smoothed_cm, 1))
			return None

		return TriggerEvent(sensor_id, smoothed_cm, now)
