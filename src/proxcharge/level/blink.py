"""Two-frame blink while a controller is holding at max."""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..utils.events import EventChannel, Unsubscribe

if TYPE_CHECKING:
	from .controller import LevelController


@dataclass
class BlinkConfig:
	frequency_hz: float = 6.0  # full A/B cycles per second

	@property
	def half_period_s(self) -> float:
		return 0.5 / max(1e-4, self.frequency_hz)

	def validate(self) -> list[str]:
		if self.frequency_hz <= 0:
			return [f"blink.frequency_hz ({self.frequency_hz}) must be positive"]
		return []


class HoldBlinker:
	"""Alternates two frames for as long as the hold phase lasts.

	Driven by `update(now)` from the engine tick. `frame` is "A" or "B"
	while blinking and None when hidden; every change is published on
	on_frame_changed.
	"""

	def __init__(self, controller: LevelController, config: BlinkConfig | None = None) -> None:
		self.config = config or BlinkConfig()
		self.on_frame_changed = EventChannel(f"{controller.name}.blink_frame")

		self._frame: str | None = None
		self._active = False
		self._next_flip = float("-inf")
		self._unsubscribe: Unsubscribe | None = controller.on_hold_phase_changed.subscribe(self._on_hold_changed)

		# Enabled mid-hold: start straight away
		if controller.hold_phase:
			self._active = True

	@property
	def frame(self) -> str | None:
		return self._frame

	@property
	def is_blinking(self) -> bool:
		return self._active

	def _on_hold_changed(self, active: bool) -> None:
		if active:
			self._active = True
			self._next_flip = float("-inf")
		else:
			self._active = False
			self._set_frame(None)

	def update(self, now: float) -> None:
		if not self._active or now < self._next_flip:
			return
		self._set_frame("B" if self._frame == "A" else "A")
		self._next_flip = now + self.config.half_period_s

	def _set_frame(self, frame: str | None) -> None:
		if frame == self._frame:
			return
		self._frame = frame
		self.on_frame_changed.emit(frame)

	def close(self) -> None:
		if self._unsubscribe is not None:
			self._unsubscribe()
			self._unsubscribe = None
		self._active = False
		self._set_frame(None)
