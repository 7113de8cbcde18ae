"""Sensor stream processing: smoothing, triggering and event fan-out."""

from __future__ import annotations

import math

import structlog

from ..sensor.parser import LegacyTrigger, SensorRecord
from ..utils.events import EventChannel
from .smoothing import SensorSmoother
from .trigger import GlobalTriggerGate, TriggerConfig, TriggerEvaluator, TriggerEvent

logger = structlog.get_logger(__name__)

LEGACY_SENSOR_ID = "(legacy)"


class SensorProcessor:
	"""Owns all per-sensor state and publishes trigger events.

	Must only be driven from one thread (the engine's processing tick).
	Consumers subscribe to the channels:

	- on_parsed(sensor_id, raw_cm)
	- on_smoothed(sensor_id, smoothed_cm)
	- on_sensor_trigger(TriggerEvent): every accepted trigger
	- on_any_trigger(TriggerEvent): first accepted trigger since begin_tick()
	"""

	def __init__(
		self,
		config: TriggerConfig | None = None,
		log_triggers: bool = True,
		log_per_sensor: bool = False,
	) -> None:
		self.config = config or TriggerConfig()
		self.log_triggers = log_triggers

		self.smoother = SensorSmoother(
			smoothing_s=self.config.smoothing_s,
			max_step_cm=self.config.max_step_cm,
			log_per_sensor=log_per_sensor,
		)
		self.gate = GlobalTriggerGate(self.config.retrigger_cooldown_s)
		self.evaluator = TriggerEvaluator(self.config, smoother=self.smoother, gate=self.gate)

		self.on_parsed = EventChannel("sensor_parsed")
		self.on_smoothed = EventChannel("sensor_smoothed")
		self.on_sensor_trigger = EventChannel("sensor_trigger")
		self.on_any_trigger = EventChannel("any_trigger")

		self._any_claimed_at: float | None = None
		self._record_count = 0
		self._trigger_count = 0

		logger.info("processor_init", threshold_cm=self.config.threshold_cm, less_than=self.config.less_than_triggers)

	@property
	def record_count(self) -> int:
		return self._record_count

	@property
	def trigger_count(self) -> int:
		return self._trigger_count

	def process(self, item: SensorRecord | LegacyTrigger, now: float) -> TriggerEvent | None:
		"""Process one queued item. Errors are logged, never raised."""
		try:
			if isinstance(item, SensorRecord):
				return self.process_record(item, now)
			return self.process_legacy(now)
		except Exception:
			logger.exception("record_failed", item=repr(item))
			return None

	def process_record(self, record: SensorRecord, now: float) -> TriggerEvent | None:
		"""Smooth a reading and evaluate its trigger.

		Smoothing uses the receipt time stamped on the record; the cooldown is
		gated on `now`, the processing tick time.
		"""
		self._record_count += 1
		self.on_parsed.emit(record.sensor_id, record.distance_cm)

		smoothed = self.smoother.update(record.sensor_id, record.distance_cm, record.timestamp)
		self.on_smoothed.emit(record.sensor_id, smoothed)

		event = self.evaluator.evaluate(record.sensor_id, smoothed, now)
		if event is None:
			return None

		self._trigger_count += 1
		if self.log_triggers:
			logger.info(
				"trigger_fired",
				sensor=event.sensor_id,
				distance_cm=round(event.distance_cm, 1),
				threshold_cm=self.config.threshold_cm,
			)
		self.on_sensor_trigger.emit(event)
		self._publish_any(event)
		return event

	def process_legacy(self, now: float) -> TriggerEvent | None:
		"""Legacy literal: straight to the "any" channel, still cooldown-gated."""
		if not self.gate.try_accept(now):
			return None

		event = TriggerEvent(LEGACY_SENSOR_ID, math.nan, now)
		self._trigger_count += 1
		if self.log_triggers:
			logger.info("trigger_fired", sensor=LEGACY_SENSOR_ID)
		self._publish_any(event)
		return event

	def begin_tick(self) -> None:
		"""Open a processing tick. The next accepted trigger goes to on_any_trigger."""
		self._any_claimed_at = None

	def _publish_any(self, event: TriggerEvent) -> None:
		# Between begin_tick() calls, triggers sharing a timestamp belong to one tick
		if self._any_claimed_at == event.timestamp:
			return
		self._any_claimed_at = event.timestamp
		self.on_any_trigger.emit(event)

	def get_smoothed(self, sensor_id: str) -> float | None:
		return self.smoother.get_smoothed(sensor_id)

	def average_smoothed(self) -> float | None:
		return self.smoother.average_smoothed()

	def reset(self) -> None:
		self.smoother.reset()
		self.gate.reset()
		self._any_claimed_at = None
		self._record_count = 0
		self._trigger_count = 0
		logger.info("processor_reset")
