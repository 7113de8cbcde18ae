"""Tests for line sources."""

from unittest.mock import MagicMock, patch

import pytest
import serial

from proxcharge.exceptions import SourceClosedError, SourceOpenError
from proxcharge.sensor.config import InputUnit, ParserConfig, SerialConfig
from proxcharge.sensor.mock import MockConfig, MockLineSource, ReplayLineSource, is_mock_enabled
from proxcharge.sensor.parser import LineKind, parse_line
from proxcharge.sensor.source import SerialLineSource


@pytest.fixture
def fake_port():
	port = MagicMock()
	port.is_open = True
	with patch("proxcharge.sensor.source.serial.Serial", return_value=port) as factory:
		yield factory, port


class TestSerialConfig:
	def test_defaults(self):
		config = SerialConfig()
		assert config.baud == 115200
		assert config.dtr is True
		assert config.rts is True
		assert config.validate() == []

	def test_nonstandard_baud(self):
		errors = SerialConfig(baud=12345).validate()
		assert any("baud" in e for e in errors)

	def test_empty_port(self):
		assert SerialConfig(port="").validate()


class TestSerialLineSource:
	def test_open_sets_lines(self, fake_port):
		factory, port = fake_port
		source = SerialLineSource(SerialConfig(port="/dev/ttyACM0", baud=9600, dtr=False))
		source.open()

		factory.assert_called_once_with("/dev/ttyACM0", 9600, timeout=1.0)
		assert port.dtr is False
		assert port.rts is True
		assert source.is_open

	def test_open_failure(self):
		with patch("proxcharge.sensor.source.serial.Serial", side_effect=serial.SerialException("busy")):
			source = SerialLineSource()
			with pytest.raises(SourceOpenError):
				source.open()
			assert not source.is_open

	def test_read_line(self, fake_port):
		_, port = fake_port
		port.readline.side_effect = [b"A=412,B=980\r\n"]
		source = SerialLineSource()
		source.open()
		assert source.read_line() == "A=412,B=980\r\n"

	def test_timeout_returns_none(self, fake_port):
		_, port = fake_port
		port.readline.side_effect = [b""]
		source = SerialLineSource()
		source.open()
		assert source.read_line() is None

	def test_partial_line_kept_until_newline(self, fake_port):
		_, port = fake_port
		port.readline.side_effect = [b"A=4", b"12\n"]
		source = SerialLineSource()
		source.open()
		assert source.read_line() is None
		assert source.read_line() == "A=412\n"

	def test_unterminated_data_is_dropped(self, fake_port):
		_, port = fake_port
		port.readline.side_effect = [b"x" * 3000, b"x" * 3000, b"A=1\n"]
		source = SerialLineSource()
		source.open()
		assert source.read_line() is None
		assert source.read_line() is None
		assert source.read_line() == "A=1\n"

	def test_read_when_closed(self):
		with pytest.raises(SourceClosedError):
			SerialLineSource().read_line()

	def test_port_error_closes_channel(self, fake_port):
		_, port = fake_port
		port.readline.side_effect = serial.SerialException("device reports readiness to read but returned no data")
		source = SerialLineSource()
		source.open()
		with pytest.raises(SourceClosedError):
			source.read_line()

	def test_close(self, fake_port):
		_, port = fake_port
		source = SerialLineSource()
		source.open()
		source.close()
		port.close.assert_called_once()
		with pytest.raises(SourceClosedError):
			source.read_line()

	def test_context_manager(self, fake_port):
		_, port = fake_port
		with SerialLineSource() as source:
			assert source.is_open
		port.close.assert_called_once()

	def test_find_ports_usb_first(self):
		ports = [MagicMock(device=d) for d in ("/dev/ttyS0", "/dev/ttyUSB0", "/dev/ttyACM1")]
		with patch("proxcharge.sensor.source.serial.tools.list_ports.comports", return_value=ports):
			found = SerialLineSource.find_ports()
		assert found == ["/dev/ttyACM1", "/dev/ttyUSB0", "/dev/ttyS0"]


class TestMockLineSource:
	def test_env_switch(self, monkeypatch):
		monkeypatch.delenv("PROXCHARGE_MOCK_SENSOR", raising=False)
		assert not is_mock_enabled()
		monkeypatch.setenv("PROXCHARGE_MOCK_SENSOR", "true")
		assert is_mock_enabled()

	def test_lines_parse_as_key_value(self):
		source = MockLineSource(MockConfig(max_lines=20), seed=1, realtime=False)
		source.open()
		config = ParserConfig()
		for _ in range(20):
			parsed = parse_line(source.read_line().strip(), config)
			assert parsed.kind is LineKind.KEY_VALUE
			assert [sid for sid, _ in parsed.readings] == ["A", "B"]

	def test_max_lines_closes(self):
		source = MockLineSource(MockConfig(max_lines=2), seed=1, realtime=False)
		source.open()
		source.read_line()
		source.read_line()
		with pytest.raises(SourceClosedError):
			source.read_line()

	def test_closed(self):
		with pytest.raises(SourceClosedError):
			MockLineSource(realtime=False).read_line()

	def test_centimeter_output(self):
		config = MockConfig(
			sensor_ids=["X"],
			unit=InputUnit.CENTIMETERS,
			noise_cm=0.0,
			glitch_probability=0.0,
			visit_fraction=1.0,
		)
		source = MockLineSource(config, seed=0, realtime=False)
		source.open()
		assert source.read_line() == "X=30\n"

	def test_visitor_cycle(self):
		source = MockLineSource(MockConfig(sensor_ids=["A"]), realtime=False)
		assert source.distance_at("A", 1.0) == 30.0
		assert source.distance_at("A", 15.0) == 180.0


class TestReplayLineSource:
	def test_replays_then_closes(self):
		source = ReplayLineSource(["A=1", "true"])
		source.open()
		assert source.read_line() == "A=1"
		assert source.read_line() == "true"
		with pytest.raises(SourceClosedError):
			source.read_line()

	def test_from_file(self, tmp_path):
		capture = tmp_path / "capture.txt"
		capture.write_text("A=10\nB=20\n")
		source = ReplayLineSource.from_file(capture)
		source.open()
		assert source.read_line() == "A=10"
		assert source.read_line() == "B=20"

	def test_missing_file(self, tmp_path):
		with pytest.raises(FileNotFoundError):
			ReplayLineSource.from_file(tmp_path / "nope.txt")
