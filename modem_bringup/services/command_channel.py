"""
Command Channel - Write-then-read byte channel over a modem serial endpoint
"""

import logging
import os
import time
from typing import Callable, Optional

import serial

from ..errors import ChannelUnavailable
from ..providers.base import Endpoint
from ..providers.modem.constants import DEFAULT_BAUDRATE, FINAL_RESULT_CODES

logger = logging.getLogger(__name__)


class CommandChannel:
    """
    Duplex channel around a pyserial port.

    recv() treats a timeout as an expected outcome and returns b"" rather
    than raising.
    """

    # Poll interval while waiting for bytes
    POLL_INTERVAL = 0.05

    def __init__(self, endpoint: Endpoint, port: serial.Serial, clock: Callable[[], float] = time.monotonic):
        self.endpoint = endpoint
        self._port = port
        self._clock = clock

    @property
    def is_open(self) -> bool:
        return self._port is not None and self._port.is_open

    def send(self, command: str):
        if not self.is_open:
            raise ChannelUnavailable(f"{self.endpoint.path} is closed")

        try:
            self._port.reset_input_buffer()
            self._port.write((command + "\r").encode())
            self._port.flush()
        except (serial.SerialException, OSError) as e:
            raise ChannelUnavailable(f"Write to {self.endpoint.path} failed: {e}")

        logger.debug(f"{self.endpoint.path} <- {command!r}")

    def recv(self, timeout: float) -> bytes:
        """
        Read until a final result code arrives or the timeout expires.
        Returns whatever was read, b"" if nothing.
        """
        if not self.is_open:
            raise ChannelUnavailable(f"{self.endpoint.path} is closed")

        buffer = b""
        deadline = self._clock() + timeout

        try:
            while self._clock() < deadline:
                waiting = self._port.in_waiting
                if waiting > 0:
                    buffer += self._port.read(waiting)
                    if self._has_final_result(buffer):
                        break
                else:
                    time.sleep(self.POLL_INTERVAL)
        except (serial.SerialException, OSError) as e:
            raise ChannelUnavailable(f"Read from {self.endpoint.path} failed: {e}")

        logger.debug(f"{self.endpoint.path} -> {buffer!r}")
        return buffer

    def query(self, command: str, timeout: float) -> bytes:
        self.send(command)
        return self.recv(timeout)

    @staticmethod
    def _has_final_result(buffer: bytes) -> bool:
        text = buffer.decode("ascii", errors="ignore")
        for line in text.splitlines():
            if line.strip().startswith(FINAL_RESULT_CODES):
                return True
        return False

    def close(self):
        if self._port is not None:
            try:
                self._port.close()
            except (serial.SerialException, OSError) as e:
                logger.debug(f"Close of {self.endpoint.path} failed: {e}")
            self._port = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def open_channel(endpoint: Endpoint, baudrate: int = DEFAULT_BAUDRATE, write_timeout: Optional[float] = 1) -> CommandChannel:
    """Open an endpoint. Raises ChannelUnavailable if it is missing or busy."""
    if not os.path.exists(endpoint.path):
        raise ChannelUnavailable(f"{endpoint.path} does not exist")

    try:
        port = serial.Serial(port=endpoint.path, baudrate=baudrate, timeout=0.1, write_timeout=write_timeout)
    except (serial.SerialException, OSError, ValueError) as e:
        raise ChannelUnavailable(f"Cannot open {endpoint.path}: {e}")

    logger.debug(f"Opened {endpoint.path} @ {baudrate}")
    return CommandChannel(endpoint, port)
