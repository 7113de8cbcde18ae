"""Presence-driven charge level state machine.

Models a battery-style indicator: sustained presence fills it, absence
drains it. Once full it locks out: the level is pinned at the top for a
hold period, then drains all the way to empty ignoring presence, and only
then starts reacting again.

Phases:
1. FILLING / DRAINING: follows presence
2. HOLD_AT_MAX: lockout, level pinned at max_index until hold_until
3. FORCED_DRAIN: lockout, draining to zero regardless of presence
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from ..utils.events import EventChannel, Unsubscribe
from .presence import PresenceGate

if TYPE_CHECKING:
	from ..processing.pipeline import SensorProcessor
	from ..processing.trigger import TriggerEvent

logger = structlog.get_logger(__name__)


class LevelPhase(str, Enum):
	FILLING = "filling"
	DRAINING = "draining"
	HOLD_AT_MAX = "hold_at_max"
	FORCED_DRAIN = "forced_drain"


class Direction(str, Enum):
	UP = "up"
	DOWN = "down"
	SAME = "same"


@dataclass
class LevelConfig:
	"""Configuration for one level indicator."""
	max_index: int = 5                  # levels 0..max_index; < 0 = no levels defined
	presence_timeout_s: float = 2.0     # presence lasts this long after a pulse
	hold_at_max_s: float = 5.0          # time pinned at max before draining
	fill_speed_lps: float = 6.0         # levels per second
	drain_speed_lps: float = 4.0        # levels per second

	def validate(self) -> list[str]:
		errors = []
		if self.max_index < 0:
			errors.append(f"level.max_index ({self.max_index}) must be >= 0 (no levels defined)")
		if self.presence_timeout_s < 0:
			errors.append(f"level.presence_timeout_s ({self.presence_timeout_s}) must be >= 0")
		if self.hold_at_max_s < 0:
			errors.append(f"level.hold_at_max_s ({self.hold_at_max_s}) must be >= 0")
		if self.fill_speed_lps <= 0:
			errors.append(f"level.fill_speed_lps ({self.fill_speed_lps}) must be positive")
		if self.drain_speed_lps <= 0:
			errors.append(f"level.drain_speed_lps ({self.drain_speed_lps}) must be positive")
		return errors


@dataclass(frozen=True)
class LevelChange:
	"""A discrete index transition (or forced re-apply of the same index)."""
	previous_index: int | None
	index: int
	direction: Direction


@dataclass(frozen=True)
class LevelSnapshot:
	level: float
	index: int
	phase: LevelPhase
	lockout: bool
	hold_phase: bool
	hold_until: float

	def to_dict(self) -> dict:
		return {
			"level": self.level,
			"index": self.index,
			"phase": self.phase.value,
			"lockout": self.lockout,
			"hold_phase": self.hold_phase,
			"hold_until": self.hold_until,
		}


class LevelController:
	"""Tick-driven level indicator fed by presence pulses.

	Outputs (subscribe with `channel.subscribe(callback)`):
	- on_level_changed(LevelChange)
	- on_lockout_changed(bool)
	- on_hold_phase_changed(bool)
	- on_hold_at_max()

	Several controllers may share one SensorProcessor, each with its own
	configuration and state.

	Example:
		controller = LevelController(LevelConfig(max_index=5))
		controller.attach(processor)

		while running:
			now = time.monotonic()
			controller.tick(now, now - last)
	"""

	def __init__(self, config: LevelConfig | None = None, name: str = "level") -> None:
		self.config = config or LevelConfig()
		self.name = name
		self.presence = PresenceGate()

		self.on_level_changed = EventChannel(f"{name}.level_changed")
		self.on_lockout_changed = EventChannel(f"{name}.lockout_changed")
		self.on_hold_phase_changed = EventChannel(f"{name}.hold_phase_changed")
		self.on_hold_at_max = EventChannel(f"{name}.hold_at_max")

		self._level = 0.0
		self._lockout = False
		self._hold_phase = False
		self._hold_until = 0.0
		self._last_applied: int | None = None
		self._filling = False
		self._unsubscribe: Unsubscribe | None = None

		errors = self.config.validate()
		if errors:
			logger.warning("level_config_invalid", controller=name, errors=errors)

	@property
	def is_configured(self) -> bool:
		return not self.config.validate()

	@property
	def max_index(self) -> int:
		return max(0, self.config.max_index)

	@property
	def level(self) -> float:
		return self._level

	@property
	def lockout(self) -> bool:
		return self._lockout

	@property
	def hold_phase(self) -> bool:
		return self._hold_phase

	@property
	def hold_until(self) -> float:
		return self._hold_until

	@property
	def index(self) -> int:
		return self._project(self._level)

	@property
	def last_applied_index(self) -> int | None:
		return self._last_applied

	@property
	def phase(self) -> LevelPhase:
		if self._hold_phase:
			return LevelPhase.HOLD_AT_MAX
		if self._lockout:
			return LevelPhase.FORCED_DRAIN
		return LevelPhase.FILLING if self._filling else LevelPhase.DRAINING

	# ---------- presence source ----------

	def attach(self, processor: SensorProcessor) -> None:
		"""Subscribe to a processor's "any" trigger channel."""
		self.detach()
		self._unsubscribe = processor.on_any_trigger.subscribe(self._on_trigger)
		if self.is_configured:
			self._apply()

	def detach(self) -> None:
		if self._unsubscribe is not None:
			self._unsubscribe()
			self._unsubscribe = None

	@property
	def is_attached(self) -> bool:
		return self._unsubscribe is not None

	def _on_trigger(self, event: TriggerEvent) -> None:
		# Which sensor fired does not matter, any trigger is a presence pulse
		self.register_presence_pulse(event.timestamp)

	def register_presence_pulse(self, now: float) -> bool:
		"""Mark presence at `now`. Ignored while locked out."""
		if not self.is_configured:
			return False
		return self.presence.register_pulse(now)

	# ---------- state machine ----------

	def tick(self, now: float, dt: float) -> None:
		"""Advance the state machine by one tick of `dt` seconds ending at `now`."""
		if not self.is_configured:
			return

		top = self.max_index

		if self._lockout:
			if now < self._hold_until:
				self._level = float(top)
				self._apply()
				return

			self._set_hold_phase(False)
			self._level = max(0.0, self._level - self.config.drain_speed_lps * dt)
			self._apply()
			if self._level <= 0.0:
				self._set_lockout(False)
			return

		if self.presence.is_present(now, self.config.presence_timeout_s):
			self._filling = True
			if self._level < top:
				self._level = min(float(top), self._level + self.config.fill_speed_lps * dt)
				self._apply()
			if self._level >= top:
				self._enter_hold(now)
		else:
			self._filling = False
			if self._level > 0.0:
				self._level = max(0.0, self._level - self.config.drain_speed_lps * dt)
				self._apply()

	def set_level_instant(self, index: int) -> None:
		"""Jump straight to `index` (clamped) and re-apply even if unchanged."""
		if not self.is_configured:
			return
		self._level = float(min(max(index, 0), self.max_index))
		self._apply(force=True)

	def _enter_hold(self, now: float) -> None:
		if self._lockout:
			return
		self._set_lockout(True)
		self._set_hold_phase(True)
		self._hold_until = now + self.config.hold_at_max_s
		logger.info("hold_at_max", controller=self.name, hold_until=round(self._hold_until, 3))
		self.on_hold_at_max.emit()

	def _set_lockout(self, value: bool) -> None:
		if self._lockout == value:
			return
		self._lockout = value
		self.presence.locked = value
		logger.info("lockout_changed", controller=self.name, lockout=value)
		self.on_lockout_changed.emit(value)

	def _set_hold_phase(self, value: bool) -> None:
		if self._hold_phase == value:
			return
		self._hold_phase = value
		self.on_hold_phase_changed.emit(value)

	def _project(self, level: float) -> int:
		top = self.max_index
		return int(round(min(max(level, 0.0), float(top))))

	def _apply(self, force: bool = False) -> None:
		"""Publish the discrete index if it changed (or when forced)."""
		idx = self._project(self._level)
		prev = self._last_applied
		if not force and idx == prev:
			return

		if prev is None or idx == prev:
			direction = Direction.SAME
		else:
			direction = Direction.UP if idx > prev else Direction.DOWN

		self._last_applied = idx
		logger.debug("level_changed", controller=self.name, previous=prev, index=idx, direction=direction.value)
		self.on_level_changed.emit(LevelChange(prev, idx, direction))

	def snapshot(self) -> LevelSnapshot:
		return LevelSnapshot(
			level=self._level,
			index=self.index,
			phase=self.phase,
			lockout=self._lockout,
			hold_phase=self._hold_phase,
			hold_until=self._hold_until,
		)

	def reset(self) -> None:
		"""Back to empty, unlocked, nothing applied yet."""
		self._level = 0.0
		self._lockout = False
		self._hold_phase = False
		self._hold_until = 0.0
		self._last_applied = None
		self._filling = False
		self.presence.reset()
		logger.info("controller_reset", controller=self.name)
