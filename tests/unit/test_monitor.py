"""Unit tests for the serial monitor service."""

import json

import pytest

from serialmon.core.errors import ConfigParseError
from serialmon.core.models import DesiredState, PortSpec, SessionState
from serialmon.core.monitor import SerialMonitor


@pytest.fixture
def monitor(config, opener):
    m = SerialMonitor(config, opener=opener, device_lister=lambda: [{"path": "/dev/ttyUSB0"}])
    yield m
    m.shutdown()


@pytest.fixture
def listening(monitor, recorder):
    """Recorder subscribed to the monitor's broadcaster."""
    monitor.broadcaster.subscribe(recorder)
    return recorder


def write_state(config, document):
    config.state_file.parent.mkdir(parents=True, exist_ok=True)
    config.state_file.write_text(json.dumps(document))


class TestStart:
    """Tests for SerialMonitor.start."""

    def test_start_without_state(self, monitor):
        assert monitor.start() == []
        assert monitor.desired.ports == []

    def test_start_opens_saved_ports(self, monitor, config, opener):
        write_state(config, {"ports": [{"path": "COM1", "baudRate": 9600}], "layout": []})

        monitor.start()

        assert monitor.registry.is_live("COM1")
        assert opener.calls == [("COM1", 9600)]

    def test_start_with_malformed_state(self, monitor, config):
        config.state_file.parent.mkdir(parents=True, exist_ok=True)
        config.state_file.write_text("not json")

        assert monitor.start() == []
        assert monitor.desired.ports == []

    def test_start_publishes_failures(self, monitor, config, opener, listening, wait_for):
        write_state(config, {"ports": [{"path": "BAD", "baudRate": 9600}]})
        opener.unavailable.add("BAD")

        failures = monitor.start()

        assert [f.path for f in failures] == ["BAD"]
        assert wait_for(lambda: listening.named("port-error"))
        assert listening.named("port-error")[0].path == "BAD"


class TestPortOperations:
    """Tests for open/write/close requests."""

    def test_open_port(self, monitor):
        session = monitor.open_port("COM1", 9600)
        assert session.state == SessionState.OPEN

    def test_open_port_default_baud(self, monitor, opener, config):
        monitor.open_port("COM1")
        assert opener.calls == [("COM1", config.serial.default_baud)]

    def test_open_port_failure_published(self, monitor, opener, listening, wait_for):
        opener.unavailable.add("COM9")

        assert monitor.open_port("COM9", 9600) is None
        assert wait_for(lambda: listening.named("port-error"))
        assert listening.named("port-error")[0].path == "COM9"

    def test_write_port_text(self, monitor, opener):
        monitor.open_port("COM1", 9600)

        assert monitor.write_port("COM1", "AT\n") is True
        assert bytes(opener.handle("COM1").written) == b"AT\n"

    def test_write_port_not_open(self, monitor, listening, wait_for):
        """Test writing to a closed port publishes an error and does not raise."""
        assert monitor.write_port("COM1", "AT\n") is False

        assert wait_for(lambda: listening.named("port-error"))
        error = listening.named("port-error")[0]
        assert error.path == "COM1"
        assert error.error == "Write failed: port not open"

    def test_close_port(self, monitor):
        monitor.open_port("COM1", 9600)

        assert monitor.close_port("COM1") is True
        assert monitor.close_port("COM1") is False

    def test_list_ports(self, monitor):
        assert monitor.list_ports() == [{"path": "/dev/ttyUSB0"}]

    def test_scenario_data_reaches_log_and_observers(self, monitor, opener, config, wait_for, recorder):
        """Test bytes from a device reach the log and every observer once."""
        second = type(recorder)()
        monitor.broadcaster.subscribe(recorder)
        monitor.broadcaster.subscribe(second)

        monitor.open_port("/dev/ttyUSB0", 9600)
        opener.handle("/dev/ttyUSB0").feed(b"OK\r\n")

        assert wait_for(lambda: recorder.named("port-data") and second.named("port-data"))
        for r in (recorder, second):
            events = r.named("port-data")
            assert len(events) == 1
            assert events[0].data == b"OK\r\n"
        assert (config.log_dir / "_dev_ttyUSB0.log").read_bytes() == b"OK\r\n"


class TestDesiredState:
    """Tests for load/save of the desired state."""

    def test_save_config_persists_and_opens(self, monitor, config):
        state = monitor.save_config({
            "ports": [{"path": "COM1", "baudRate": 9600}],
            "layout": [{"path": "COM1", "x": 0}],
        })

        assert state.paths == ["COM1"]
        assert monitor.desired is state
        assert monitor.registry.is_live("COM1")
        saved = json.loads(config.state_file.read_text())
        assert saved["layout"] == [{"path": "COM1", "x": 0}]

    def test_save_config_publishes_saved(self, monitor, listening, wait_for):
        monitor.save_config({"ports": [], "layout": []})

        assert wait_for(lambda: listening.named("config-saved"))
        assert listening.named("config-saved")[0].state.ports == []

    def test_save_empty_state_keeps_sessions(self, monitor, listening):
        """Test saving zero ports leaves existing sessions open."""
        monitor.open_port("COM1", 9600)

        monitor.save_config({"ports": [], "layout": []})

        assert monitor.registry.is_live("COM1")
        assert listening.named("port-error") == []

    def test_save_malformed_config_rejected(self, monitor, config):
        monitor.save_config({"ports": [{"path": "COM1", "baudRate": 9600}]})

        with pytest.raises(ConfigParseError):
            monitor.save_config({"ports": [{"path": "COM2", "baudRate": "fast"}]})

        assert monitor.desired.paths == ["COM1"]
        assert json.loads(config.state_file.read_text())["ports"][0]["path"] == "COM1"

    def test_save_reports_failures(self, monitor, opener, listening, wait_for):
        opener.unavailable.add("BAD")

        monitor.save_config({"ports": [{"path": "BAD", "baudRate": 9600}]})

        assert wait_for(lambda: listening.named("port-error"))
        assert listening.named("port-error")[0].path == "BAD"

    def test_save_accepts_desired_state(self, monitor):
        state = DesiredState(ports=[PortSpec("COM1", 9600)])
        assert monitor.save_config(state) is state

    def test_load_config(self, monitor, config):
        write_state(config, {"ports": [{"path": "COM3", "baudRate": 19200}]})

        state = monitor.load_config()

        assert state.paths == ["COM3"]
        assert monitor.desired is state

    def test_load_malformed_keeps_current_state(self, monitor, config):
        monitor.save_config({"ports": [{"path": "COM1", "baudRate": 9600}]})
        config.state_file.write_text("{broken")

        with pytest.raises(ConfigParseError):
            monitor.load_config()

        assert monitor.desired.paths == ["COM1"]


class TestObservers:
    """Tests for observer attach/detach."""

    def test_attach_reconciles(self, monitor, opener, recorder):
        from serialmon.serial.broadcast import CallbackObserver

        monitor.save_config({"ports": [{"path": "COM1", "baudRate": 9600}]})
        monitor.close_port("COM1")

        monitor.attach(CallbackObserver(recorder, observer_id="client-1"))

        assert monitor.registry.is_live("COM1")
        assert monitor.broadcaster.observer_count == 1
        assert monitor.detach("client-1") is True
