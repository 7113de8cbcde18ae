"""Exception types raised by proxcharge."""
from __future__ import annotations


class ProxchargeError(Exception):
	"""Base class for all proxcharge errors."""


class ConfigError(ProxchargeError):
	"""Configuration could not be loaded or is invalid."""


class SourceError(ProxchargeError):
	"""Line source failure."""


class SourceOpenError(SourceError):
	"""The line source could not be opened. Not retried."""


class SourceClosedError(SourceError):
	"""The line source was closed or the device disconnected."""
