"""
Pytest configuration and shared fixtures for modem-bringup tests

Provides fake serial channels, a scratch device namespace and mocked system
tools so no modem, tty or systemd is needed.
"""

import json
import pytest
from unittest.mock import Mock, MagicMock, patch

from modem_bringup.errors import ChannelUnavailable
from modem_bringup.providers.base import ConnectionMode, Endpoint


class FakeChannel:
    """
    Stand-in for CommandChannel.

    replies maps command -> bytes, or command -> list of bytes consumed one
    per query. Unknown commands time out (b"").
    """

    def __init__(self, endpoint, replies):
        self.endpoint = endpoint
        self.replies = replies
        self.sent = []
        self.timeouts = []
        self.closed = False
        self._last = None

    def send(self, command):
        self.sent.append(command)
        self._last = command

    def recv(self, timeout):
        self.timeouts.append(timeout)
        reply = self.replies.get(self._last, b"")
        if isinstance(reply, list):
            return reply.pop(0) if reply else b""
        return reply

    def query(self, command, timeout):
        self.send(command)
        return self.recv(timeout)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class FakeModem:
    """
    Channel factory keyed by device path.

    Records the order endpoints were opened in, so tests can assert which
    candidates were (and were not) probed.
    """

    def __init__(self, replies_by_path=None, unavailable=()):
        self.replies_by_path = replies_by_path or {}
        self.unavailable = set(unavailable)
        self.opened = []
        self.channels = []

    def __call__(self, endpoint):
        self.opened.append(endpoint.path)
        if endpoint.path in self.unavailable:
            raise ChannelUnavailable(f"{endpoint.path} busy")
        channel = FakeChannel(endpoint, self.replies_by_path.get(endpoint.path, {}))
        self.channels.append(channel)
        return channel


AT_OK = b"AT\r\r\nOK\r\n"

HEALTHY_MODEM_REPLIES = {
    "AT": AT_OK,
    "ATI": b"ATI\r\r\nQuectel\r\nEC25\r\nRevision: EC25AFAR05A07M4G\r\n\r\nOK\r\n",
    "AT+GSN": b"AT+GSN\r\r\n861234567890123\r\n\r\nOK\r\n",
    "AT+CCID": b"AT+CCID\r\r\n+CCID: 89860012345678901234\r\n\r\nOK\r\n",
    "AT+CPIN?": b"AT+CPIN?\r\r\n+CPIN: READY\r\n\r\nOK\r\n",
    "AT+CSQ": b"+CSQ: 18,2",
    "AT+CREG?": b"+CREG: 0,1",
}


@pytest.fixture
def fake_modem():
    """Factory fixture: fake_modem({path: replies}, unavailable=[...])"""

    def _make(replies_by_path=None, unavailable=()):
        return FakeModem(replies_by_path, unavailable)

    return _make


@pytest.fixture
def healthy_replies():
    return dict(HEALTHY_MODEM_REPLIES)


@pytest.fixture
def null_reclaimer():
    """Reclaimer that finds no holders"""
    reclaimer = Mock()
    reclaimer.reclaim.return_value = 0
    return reclaimer


@pytest.fixture
def usb_endpoints():
    return [Endpoint(f"/dev/ttyUSB{i}", ConnectionMode.USB, index=i) for i in range(4)]


@pytest.fixture
def usb_device_root(tmp_path):
    """
    Scratch device namespace with an EC25-style USB layout:
    ttyUSB0..3 plus cdc-wdm0.
    """
    for i in range(4):
        (tmp_path / f"ttyUSB{i}").write_text("")
    (tmp_path / "cdc-wdm0").write_text("")
    return tmp_path


@pytest.fixture
def mock_subprocess():
    """
    Mock subprocess.run for system command tests

    Returns successful execution by default
    """
    with patch("subprocess.run") as mock:
        mock_result = Mock()
        mock_result.returncode = 0
        mock_result.stdout = "Mock command output"
        mock_result.stderr = ""
        mock.return_value = mock_result
        yield mock


@pytest.fixture
def temp_preferences(tmp_path):
    """
    Create temporary preferences.json file for testing

    Returns:
        Path to temporary preferences file
    """
    prefs_file = tmp_path / "preferences.json"
    prefs_data = {
        "serial": {"baudrate": 9600},
        "probe": {"command": "AT", "max_attempts": 2, "settle_delay": 0.5},
        "session": {"stabilization_delay": 1, "manager_service": "ModemManager"},
        "scratch": {"last_at_port": "/dev/ttyUSB2"},
    }
    prefs_file.write_text(json.dumps(prefs_data, indent=2))
    return prefs_file


@pytest.fixture
def manager_stub():
    manager = MagicMock()
    manager.disable.return_value = {"success": True, "steps": {}, "killed": [], "active": False}
    return manager


# Pytest configuration hooks
def pytest_configure(config):
    """
    Pytest configuration hook

    Add custom markers and configuration
    """
    config.addinivalue_line("markers", "hardware: tests requiring a physical modem (deselect in CI)")
    config.addinivalue_line("markers", "slow: slow running tests")
    config.addinivalue_line("markers", "integration: integration tests")
