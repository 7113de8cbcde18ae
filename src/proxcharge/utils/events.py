"""Observer registration for processor and controller outputs."""
from __future__ import annotations

from collections.abc import Callable

import structlog

logger = structlog.get_logger(__name__)

Unsubscribe = Callable[[], None]


class EventChannel:
	"""Named multicast channel.

	Subscribers are called in registration order. A failing subscriber is
	logged and skipped so one consumer cannot stall the others.

	Example:
		channel = EventChannel("lockout_changed")
		unsubscribe = channel.subscribe(print)
		channel.emit(True)
		unsubscribe()
	"""

	def __init__(self, name: str) -> None:
		self.name = name
		self._callbacks: list[Callable[..., None]] = []

	def subscribe(self, callback: Callable[..., None]) -> Unsubscribe:
		"""Register a callback. Returns a handle that removes it again."""
		self._callbacks.append(callback)

		def unsubscribe() -> None:
			try:
				self._callbacks.remove(callback)
			except ValueError:
				pass

		return unsubscribe

	def emit(self, *args: object) -> None:
		for cb in list(self._callbacks):
			try:
				cb(*args)
			except Exception:
				logger.exception("callback_failed", channel=self.name)

	def clear(self) -> None:
		self._callbacks.clear()

	def __len__(self) -> int:
		return len(self._callbacks)
