"""
Endpoint Enumerator - List candidate modem device paths
USB modems expose numbered ttyUSB character devices plus a cdc-wdm QMI
control device; PCIe modems expose MHI/wwan devices.
"""

import logging
import os
import re
import subprocess
from typing import Dict, List, Optional, Tuple

from ..providers.base import ConnectionMode, Endpoint, EndpointRole
from ..providers.modem.constants import (
    DEVICE_ROOT,
    KNOWN_USB_MODEMS,
    PCIE_AT_PREFIXES,
    PCIE_QMI_PREFIXES,
    QUECTEL_VENDOR_ID,
    USB_AT_PREFIX,
    USB_QMI_PREFIX,
)

logger = logging.getLogger(__name__)

LSUSB_PATTERN = re.compile(r"ID\s+([0-9a-fA-F]{4}:[0-9a-fA-F]{4})\s*(.*)")


class EndpointEnumerator:
    """
    Read-only listing of candidate endpoints.

    USB paths come back in ascending numeric order (ttyUSB2 before
    ttyUSB10); PCIe paths in directory listing order.
    """

    def __init__(self, device_root: str = DEVICE_ROOT):
        self.device_root = device_root

    def _list_device_names(self) -> List[str]:
        try:
            return os.listdir(self.device_root)
        except (FileNotFoundError, NotADirectoryError, PermissionError) as e:
            logger.debug(f"Device namespace {self.device_root} not readable: {e}")
            return []

    @staticmethod
    def _numeric_suffix(name: str, prefix: str) -> Optional[int]:
        suffix = name[len(prefix):]
        return int(suffix) if suffix.isdigit() else None

    def _numbered(self, prefix: str) -> List[Tuple[int, str]]:
        found = []
        for name in self._list_device_names():
            if not name.startswith(prefix):
                continue
            number = self._numeric_suffix(name, prefix)
            if number is not None:
                found.append((number, name))
        return sorted(found)

    def _prefixed(self, prefixes: Tuple[str, ...]) -> List[str]:
        return [name for name in self._list_device_names() if name.startswith(prefixes)]

    def enumerate(self, connection_mode: ConnectionMode) -> List[Endpoint]:
        """Candidate AT-style endpoints for a connection mode"""
        if connection_mode is ConnectionMode.USB:
            return [
                Endpoint(os.path.join(self.device_root, name), ConnectionMode.USB, index=number)
                for number, name in self._numbered(USB_AT_PREFIX)
            ]

        return [
            Endpoint(os.path.join(self.device_root, name), ConnectionMode.PCIE, index=position)
            for position, name in enumerate(self._prefixed(PCIE_AT_PREFIXES))
        ]

    def enumerate_qmi(self, connection_mode: ConnectionMode) -> List[Endpoint]:
        """QMI control devices for a connection mode"""
        if connection_mode is ConnectionMode.USB:
            return [
                Endpoint(os.path.join(self.device_root, name), ConnectionMode.USB, EndpointRole.QMI, number)
                for number, name in self._numbered(USB_QMI_PREFIX)
            ]

        return [
            Endpoint(os.path.join(self.device_root, name), ConnectionMode.PCIE, EndpointRole.QMI, position)
            for position, name in enumerate(self._prefixed(PCIE_QMI_PREFIXES))
        ]

    def detect_connection_mode(self) -> Optional[ConnectionMode]:
        """USB first, then PCIe; None if neither has candidates"""
        for mode in (ConnectionMode.USB, ConnectionMode.PCIE):
            if self.enumerate(mode):
                return mode
        return None

    def list_all(self) -> Dict[str, List[Dict]]:
        """Every endpoint the host currently exposes, for reporting"""
        return {
            mode.value: [ep.to_dict() for ep in self.enumerate(mode) + self.enumerate_qmi(mode)]
            for mode in ConnectionMode
        }


def identify_usb_modem() -> Optional[Dict[str, str]]:
    """
    Look the modem up in lsusb output.
    Informational only: returns None when lsusb is missing or no modem matches.
    """
    try:
        result = subprocess.run(["lsusb"], capture_output=True, text=True, timeout=5)
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.debug(f"lsusb unavailable: {e}")
        return None

    if result.returncode != 0:
        return None

    for line in result.stdout.splitlines():
        match = LSUSB_PATTERN.search(line)
        if not match:
            continue
        usb_id = match.group(1).lower()
        if usb_id in KNOWN_USB_MODEMS or usb_id.startswith(QUECTEL_VENDOR_ID + ":"):
            return {
                "usb_id": usb_id,
                "name": KNOWN_USB_MODEMS.get(usb_id, match.group(2).strip()),
                "description": line.strip(),
            }

    return None
