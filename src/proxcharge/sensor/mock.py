"""Mock line sources for running without hardware.

Generates synthetic range readings including:
- A visitor periodically walking up to the sensors and leaving again
- Gaussian measurement noise
- Occasional single-sample glitches (the kind the step cap suppresses)

Enable with PROXCHARGE_MOCK_SENSOR=true environment variable.
"""
from __future__ import annotations

import logging
import os
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from ..exceptions import SourceClosedError
from .config import InputUnit

logger = logging.getLogger(__name__)


def is_mock_enabled() -> bool:
    """Check if mock mode is enabled via environment variable."""
    return os.environ.get("PROXCHARGE_MOCK_SENSOR", "").lower() in ("true", "1", "yes")


@dataclass
class MockConfig:
    """Configuration for synthetic reading generation."""
    sensor_ids: list[str] = field(default_factory=lambda: ["A", "B"])
    line_rate_hz: float = 20.0
    unit: InputUnit = InputUnit.MILLIMETERS

    # Scene simulation (centimeters)
    idle_distance_cm: float = 180.0   # Nothing in front of the sensor
    visitor_distance_cm: float = 30.0  # Someone standing close
    visit_period_s: float = 20.0       # One approach/leave cycle
    visit_fraction: float = 0.5        # Share of the cycle spent close

    # Signal quality
    noise_cm: float = 1.5
    glitch_probability: float = 0.01   # 1% chance per sample
    glitch_distance_cm: float = 0.0    # Typical ultrasonic dropout value

    max_lines: int | None = None       # None = unlimited


class MockLineSource:
    """Line source that generates synthetic key/value readings.

    Implements the same interface as SerialLineSource for drop-in testing.
    Every line carries one reading per configured sensor, e.g. "A=1804,B=1795".

    Usage:
        source = MockLineSource(MockConfig(line_rate_hz=50))
        source.open()
        line = source.read_line()
        source.close()
    """

    def __init__(self, config: MockConfig | None = None, seed: int | None = None, realtime: bool = True):
        self._config = config or MockConfig()
        self._rng = np.random.default_rng(seed)
        self._realtime = realtime
        self._open = False
        self._count = 0
        self._last_line_time = 0.0
        self._t = 0.0

        # Stagger the sensors so they do not cross the threshold together
        self._phase_offsets = {
            sid: i * 0.1 * self._config.visit_period_s
            for i, sid in enumerate(self._config.sensor_ids)
        }

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        self._open = True
        self._last_line_time = time.monotonic()
        logger.info("MockLineSource opened (synthetic data mode)")

    def close(self) -> None:
        self._open = False
        logger.info("MockLineSource closed")

    def distance_at(self, sensor_id: str, t: float) -> float:
        """Noise-free distance for a sensor at simulated time t."""
        cfg = self._config
        phase = ((t + self._phase_offsets.get(sensor_id, 0.0)) % cfg.visit_period_s) / cfg.visit_period_s
        if phase < cfg.visit_fraction:
            return cfg.visitor_distance_cm
        return cfg.idle_distance_cm

    def read_line(self) -> str | None:
        if not self._open:
            raise SourceClosedError("Mock source is closed")
        if self._config.max_lines is not None and self._count >= self._config.max_lines:
            raise SourceClosedError("Mock source exhausted")

        period = 1.0 / self._config.line_rate_hz
        if self._realtime:
            elapsed = time.monotonic() - self._last_line_time
            if elapsed < period:
                time.sleep(period - elapsed)
            self._last_line_time = time.monotonic()

        self._t += period
        self._count += 1
        return self._generate_line()

    def _generate_line(self) -> str:
        cfg = self._config
        tokens = []
        for sid in cfg.sensor_ids:
            cm = self.distance_at(sid, self._t) + self._rng.normal(0.0, cfg.noise_cm)
            if self._rng.random() < cfg.glitch_probability:
                cm = cfg.glitch_distance_cm
            cm = max(0.0, cm)
            value = cm * 10.0 if cfg.unit is InputUnit.MILLIMETERS else cm
            tokens.append(f"{sid}={value:.0f}")
        return ",".join(tokens) + "\n"


class ReplayLineSource:
    """Replays captured lines, then reports the channel as closed.

    Args:
        lines: Lines to replay (newlines optional)
        interval_s: Delay between lines; 0 replays as fast as possible
    """

    def __init__(self, lines: Iterable[str], interval_s: float = 0.0):
        self._lines = iter(lines)
        self._interval_s = interval_s
        self._open = False

    @classmethod
    def from_file(cls, path: str | Path, interval_s: float = 0.0) -> ReplayLineSource:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Capture not found: {path}")
        with open(path) as f:
            lines = f.read().splitlines()
        logger.info(f"Loaded {len(lines)} lines from {path}")
        return cls(lines, interval_s=interval_s)

    def open(self) -> None:
        self._open = True

    def close(self) -> None:
        self._open = False

    def read_line(self) -> str | None:
        if not self._open:
            raise SourceClosedError("Replay source is closed")
        try:
            line = next(self._lines)
        except StopIteration:
            raise SourceClosedError("End of capture") from None
        if self._interval_s > 0:
            time.sleep(self._interval_s)
        return line
