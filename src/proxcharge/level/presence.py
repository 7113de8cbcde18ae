"""Presence from trigger pulses."""
from __future__ import annotations


class PresenceGate:
	"""Remembers the last presence pulse.

	Presence is active for `timeout_s` after a pulse. While `locked` (the
	owning controller is in lockout) pulses are dropped, so presence cannot
	extend or interrupt a hold/drain cycle.
	"""

	def __init__(self) -> None:
		self.last_pulse_time = float("-inf")
		self.locked = False

	def register_pulse(self, now: float) -> bool:
		"""Record a pulse. Returns False if it was ignored."""
		if self.locked:
			return False
		self.last_pulse_time = now
		return True

	def is_present(self, now: float, timeout_s: float) -> bool:
		return (now - self.last_pulse_time) <= timeout_s

	def reset(self) -> None:
		self.last_pulse_time = float("-inf")
		self.locked = False
