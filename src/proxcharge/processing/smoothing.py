"""Per-sensor smoothing of raw distance samples.

Each sensor gets a time-based exponential moving average, so the filter
responds the same whether the device prints at 5 Hz or 50 Hz:

	alpha = 1 - exp(-dt / tau)
	smoothed += alpha * (input - smoothed)

Before smoothing, the per-sample jump can be capped to suppress single-sample
glitches (ultrasonic dropouts reading 0 cm, multipath spikes).
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import structlog

logger = structlog.get_logger(__name__)

MIN_DT_S = 1e-4
MIN_TAU_S = 1e-4


@dataclass
class SensorState:
	"""Filter and debounce state for one sensor id."""
	sensor_id: str
	smoothed_cm: float = 0.0
	has_value: bool = False
	last_sample_time: float = 0.0
	consecutive_true: int = 0


class SensorSmoother:
	"""Exponential moving average with optional anti-glitch step cap.

	Sensor ids are matched case-insensitively. State is created on the first
	sample for an id and kept for the lifetime of the smoother.

	Example:
		smoother = SensorSmoother(smoothing_s=0.25, max_step_cm=20.0)
		smoothed = smoother.update("A", 42.0, now=time.monotonic())
	"""

	def __init__(self, smoothing_s: float = 0.25, max_step_cm: float = 0.0, log_per_sensor: bool = False) -> None:
		self.smoothing_s = smoothing_s
		self.max_step_cm = max_step_cm
		self.log_per_sensor = log_per_sensor
		self._states: dict[str, SensorState] = {}

	def state(self, sensor_id: str, now: float = 0.0) -> SensorState:
		"""Get the state for a sensor, creating it if needed."""
		key = sensor_id.casefold()
		state = self._states.get(key)
		if state is None:
			state = SensorState(sensor_id=sensor_id, last_sample_time=now)
			self._states[key] = state
		return state

	def update(self, sensor_id: str, raw_cm: float, now: float) -> float:
		"""Feed one raw sample. Returns the new smoothed distance."""
		s = self.state(sensor_id, now)

		# Anti-glitch: cap the per-sample jump before smoothing
		value = raw_cm
		if s.has_value and self.max_step_cm > 0:
			delta = value - s.smoothed_cm
			if abs(delta) > self.max_step_cm:
				value = s.smoothed_cm + float(np.sign(delta)) * self.max_step_cm

		if s.has_value:
			alpha = 1.0
			if self.smoothing_s > MIN_TAU_S:
				dt = max(MIN_DT_S, now - s.last_sample_time)
				alpha = 1.0 - float(np.exp(-dt / self.smoothing_s))
			s.smoothed_cm = s.smoothed_cm + alpha * (value - s.smoothed_cm)
		else:
			s.smoothed_cm = value
			s.has_value = True
		s.last_sample_time = now

		if self.log_per_sensor:
			logger.debug(
				"sensor_sample",
				sensor=sensor_id,
				raw_cm=round(raw_cm, 1),
				capped_cm=round(value, 1),
				smoothed_cm=round(s.smoothed_cm, 1),
			)

		return s.smoothed_cm

	def get_smoothed(self, sensor_id: str) -> float | None:
		"""Latest smoothed distance, or None if the sensor has no value yet."""
		s = self._states.get(sensor_id.casefold())
		if s is None or not s.has_value:
			return None
		return s.smoothed_cm

	def average_smoothed(self) -> float | None:
		"""Mean smoothed distance over all sensors with a value."""
		values = [s.smoothed_cm for s in self._states.values() if s.has_value]
		if not values:
			return None
		return float(np.mean(values))

	@property
	def sensors(self) -> list[SensorState]:
		return list(self._states.values())

	def reset(self) -> None:
		self._states.clear()
