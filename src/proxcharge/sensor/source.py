"""Line sources: the transport side of the sensor stream."""
from __future__ import annotations

import logging
from typing import Protocol

import serial
import serial.tools.list_ports

from ..exceptions import SourceClosedError, SourceOpenError
from .config import SerialConfig

logger = logging.getLogger(__name__)

MAX_PENDING_BYTES = 4096


class LineSource(Protocol):
	"""Anything that yields newline-delimited text readings.

	read_line() blocks until a line arrives and returns it undecorated
	(trimming is the caller's job), returns None when the read timeout
	elapses, and raises SourceClosedError once the channel is gone.
	"""

	def open(self) -> None: ...

	def read_line(self) -> str | None: ...

	def close(self) -> None: ...


class SerialLineSource:
	"""Range sensor(s) printing readings over a serial port.

	Use as context manager for automatic cleanup.
	"""

	def __init__(self, config: SerialConfig | None = None):
		self._config = config or SerialConfig()
		self._serial: serial.Serial | None = None
		self._pending = b""

	@property
	def config(self) -> SerialConfig:
		return self._config

	@property
	def is_open(self) -> bool:
		return self._serial is not None and self._serial.is_open

	@staticmethod
	def find_ports() -> list[str]:
		"""List candidate serial devices, USB adapters first."""
		ports = sorted(p.device for p in serial.tools.list_ports.comports())
		usb = [p for p in ports if "USB" in p or "ACM" in p or "usbserial" in p or "usbmodem" in p]
		return usb + [p for p in ports if p not in usb]

	def open(self) -> None:
		"""Open the port. Failure is final for this instance."""
		if self.is_open:
			return

		try:
			self._serial = serial.Serial(
				self._config.port,
				self._config.baud,
				timeout=self._config.timeout,
			)
			self._serial.dtr = self._config.dtr
			self._serial.rts = self._config.rts
		except (serial.SerialException, ValueError) as e:
			self._serial = None
			raise SourceOpenError(f"Failed to open {self._config.port}: {e}") from e

		logger.info(f"Listening on {self._config.port} @ {self._config.baud}")

	def read_line(self) -> str | None:
		port = self._serial
		if port is None or not port.is_open:
			raise SourceClosedError("Serial port is closed")

		try:
			raw = port.readline()
		except (serial.SerialException, OSError, TypeError, AttributeError) as e:
			# pyserial raises one of these when the port is closed mid-read
			raise SourceClosedError(str(e)) from e

		# readline() returns what it has when the timeout hits; keep the
		# fragment until its newline arrives
		if not raw.endswith(b"\n"):
			self._pending += raw
			if len(self._pending) > MAX_PENDING_BYTES:
				logger.warning(f"Dropping {len(self._pending)} bytes without a line ending")
				self._pending = b""
			return None
		line, self._pending = self._pending + raw, b""
		return line.decode("ascii", errors="ignore")

	def close(self) -> None:
		if self._serial and self._serial.is_open:
			self._serial.close()
		self._serial = None
		self._pending = b""
		logger.info("Serial port closed")

	def __enter__(self):
		self.open()
		return self

	def __exit__(self, exc_type, exc_val, exc_tb):
		self.close()
