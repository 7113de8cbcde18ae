"""Command-line interface."""

from __future__ import annotations

import json
import sys
import time
from pathlib import Path

import click
import structlog
from rich.console import Console
from rich.live import Live
from rich.table import Table

from proxcharge.config import AppConfig, configure_logging
from proxcharge.exceptions import ConfigError

logger = structlog.get_logger(__name__)
console = Console()

BAR_FULL = "█"
BAR_EMPTY = "░"


def _load_config(config_path: str | None) -> AppConfig:
	try:
		cfg = AppConfig.from_file(config_path) if config_path else AppConfig()
		return cfg.apply_env()
	except (ConfigError, ValueError) as e:
		console.print(f"[red]Invalid config: {e}[/]")
		sys.exit(1)


def _build_engine(cfg: AppConfig, source):
	from proxcharge.level import HoldBlinker, LevelController
	from proxcharge.processing import SensorProcessor
	from proxcharge.runtime import PresenceEngine

	processor = SensorProcessor(
		cfg.trigger,
		log_triggers=cfg.debug.log_triggers,
		log_per_sensor=cfg.debug.log_per_sensor,
	)
	controller = LevelController(cfg.level, name="battery")
	engine = PresenceEngine(
		source,
		processor,
		[controller],
		parser_config=cfg.parser,
		tick_hz=cfg.runtime.tick_hz,
		log_all_lines=cfg.debug.log_all_lines,
	)
	engine.add_blinker(HoldBlinker(controller, cfg.blink))
	return engine


def _make_table(engine) -> Table:
	t = Table(title="Presence Level Monitor")
	t.add_column("Item", style="cyan")
	t.add_column("Value", style="green")

	for state in engine.processor.smoother.sensors:
		value = f"{state.smoothed_cm:.1f} cm" if state.has_value else "---"
		t.add_row(f"Sensor {state.sensor_id}", value)

	for controller, blinker in zip(engine.controllers, engine.blinkers):
		snap = controller.snapshot()
		top = controller.max_index
		bar = BAR_FULL * snap.index + BAR_EMPTY * (top - snap.index)
		if blinker.frame == "B":
			bar = bar.replace(BAR_FULL, "▓")
		t.add_row("Level", f"{bar}  {snap.index}/{top} ({snap.level:.2f})")
		t.add_row("Phase", snap.phase.value)
		t.add_row("Lockout", "yes" if snap.lockout else "no")

	t.add_row("Lines", str(engine.line_count))
	t.add_row("Triggers", str(engine.processor.trigger_count))
	return t


def _run_engine(engine, duration: float) -> None:
	"""Start the engine and show live state until Ctrl+C, close or duration."""
	if not engine.start():
		console.print("[red]Could not open the line source[/]")
		sys.exit(1)

	start = time.time()
	refresh_every = max(1, int(engine.tick_hz / 4))
	ticks = 0

	try:
		with Live(_make_table(engine), refresh_per_second=4) as live:

			def on_tick(e) -> None:
				nonlocal ticks
				ticks += 1
				if ticks % refresh_every == 0:
					live.update(_make_table(e))

			engine.run(duration=duration if duration > 0 else None, on_tick=on_tick)
			live.update(_make_table(engine))
	except KeyboardInterrupt:
		console.print("\n[yellow]Stopped[/]")
	except Exception as e:
		console.print(f"[red]Error: {e}[/]")
		logger.exception("run_error")
		sys.exit(1)
	finally:
		engine.stop()

	elapsed = time.time() - start
	console.print(f"\n[green]Done![/] {engine.line_count} lines, {engine.processor.trigger_count} triggers, {elapsed:.1f}s")


@click.group()
@click.version_option()
def main() -> None:
	"""Proxcharge - presence-driven charge level from range sensors."""
	pass


@main.command()
@click.option("--port", default=None, help="Serial port (default from config)")
@click.option("--baud", type=int, default=None, help="Baud rate")
@click.option("--config", "config_path", type=click.Path(exists=True), help="JSON config file")
@click.option("-d", "--duration", type=float, default=0, help="Run duration in seconds (0=unlimited)")
def run(port: str | None, baud: int | None, config_path: str | None, duration: float) -> None:
	"""Read range sensors from a serial port and drive the level indicator."""
	from proxcharge.sensor import MockLineSource, SerialLineSource, is_mock_enabled

	cfg = _load_config(config_path)
	if port:
		cfg.serial.port = port
	if baud:
		cfg.serial.baud = baud
	_check(cfg)
	configure_logging(cfg.debug.log_level)

	if is_mock_enabled():
		console.print("[yellow]PROXCHARGE_MOCK_SENSOR set - using synthetic readings[/]")
		source = MockLineSource()
	else:
		source = SerialLineSource(cfg.serial)

	console.print(f"[bold green]Proxcharge[/] - listening on {cfg.serial.port} @ {cfg.serial.baud}")
	console.print("Press Ctrl+C to stop...")
	_run_engine(_build_engine(cfg, source), duration)


@main.command()
@click.option("--sensors", default="A,B", help="Comma-separated sensor ids")
@click.option("--rate", type=float, default=20.0, help="Lines per second")
@click.option("--seed", type=int, default=None, help="Random seed")
@click.option("--config", "config_path", type=click.Path(exists=True), help="JSON config file")
@click.option("-d", "--duration", type=float, default=30.0, help="Run duration in seconds (0=unlimited)")
def simulate(sensors: str, rate: float, seed: int | None, config_path: str | None, duration: float) -> None:
	"""Drive the indicator from synthetic sensor readings."""
	from proxcharge.sensor import MockConfig, MockLineSource

	cfg = _load_config(config_path)
	_check(cfg)
	configure_logging(cfg.debug.log_level)

	ids = [s.strip() for s in sensors.split(",") if s.strip()]
	source = MockLineSource(
		MockConfig(sensor_ids=ids, line_rate_hz=rate, unit=cfg.parser.input_unit),
		seed=seed,
	)
	console.print(f"[bold green]Proxcharge[/] - simulating sensors {', '.join(ids)} @ {rate:g} Hz")
	_run_engine(_build_engine(cfg, source), duration)


@main.command()
@click.argument("capture", type=click.Path(exists=True))
@click.option("--interval", type=float, default=0.05, help="Seconds between replayed lines")
@click.option("--config", "config_path", type=click.Path(exists=True), help="JSON config file")
def replay(capture: str, interval: float, config_path: str | None) -> None:
	"""Replay a captured line log through the processor."""
	from proxcharge.sensor import ReplayLineSource

	cfg = _load_config(config_path)
	_check(cfg)
	configure_logging(cfg.debug.log_level)

	source = ReplayLineSource.from_file(capture, interval_s=interval)
	console.print(f"[bold green]Proxcharge[/] - replaying {capture}")
	_run_engine(_build_engine(cfg, source), 0)


@main.command()
def ports() -> None:
	"""List serial ports."""
	from proxcharge.sensor import SerialLineSource

	found = SerialLineSource.find_ports()
	if not found:
		console.print("[yellow]No serial ports found[/]")
		return

	t = Table(title="Serial Ports")
	t.add_column("Device", style="cyan")
	for device in found:
		t.add_row(device)
	console.print(t)


@main.group()
def config() -> None:
	"""Inspect and validate configuration."""
	pass


@config.command("show")
@click.option("--config", "config_path", type=click.Path(exists=True), help="JSON config file")
def config_show(config_path: str | None) -> None:
	"""Show the effective configuration (file + environment)."""
	cfg = _load_config(config_path)
	console.print_json(json.dumps(cfg.to_dict()))


@config.command("validate")
@click.argument("path", type=click.Path(exists=True))
def config_validate(path: str) -> None:
	"""Validate a JSON configuration file."""
	try:
		cfg = AppConfig.from_file(Path(path))
	except Exception as e:
		console.print(f"[red]Invalid config: {e}[/]")
		sys.exit(1)

	errors = cfg.validate()
	if errors:
		for err in errors:
			console.print(f"[red]  {err}[/]")
		sys.exit(1)

	console.print("[green]Valid configuration[/]")
	console.print(f"  Trigger: {'<=' if cfg.trigger.less_than_triggers else '>='} {cfg.trigger.threshold_cm} cm")
	console.print(f"  Levels: 0..{cfg.level.max_index}, hold {cfg.level.hold_at_max_s}s")


def _check(cfg: AppConfig) -> None:
	errors = cfg.validate()
	if errors:
		console.print("[red]Invalid configuration:[/]")
		for err in errors:
			console.print(f"[red]  {err}[/]")
		sys.exit(1)


if __name__ == "__main__":
	main()
