"""Utility modules for proxcharge."""

from proxcharge.utils.events import EventChannel, Unsubscribe

__all__ = ["EventChannel", "Unsubscribe"]
