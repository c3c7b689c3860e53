"""
QMI Transport
Structured queries through the qmicli command line utility. Fields come back
already decoded, so no AT text scraping is involved; preferred whenever a
QMI control device exists and qmicli is installed.
"""

import logging
import re
import shutil
import subprocess
from typing import Dict, List, Optional

from ...errors import AuxiliaryQueryFailed, TransportError
from ...services.response_interpreter import classify_rssi, registration_from_name, rssi_index_from_dbm
from ..base import (
    Endpoint,
    ModemIdentity,
    ModemQueryTransport,
    RegistrationState,
    SignalReading,
    SignalTier,
    SimState,
)
from .constants import QMI_REGISTRATION_STATES, QMICLI_BINARY, QMICLI_TIMEOUT, QmiCommands

logger = logging.getLogger(__name__)

# "	Manufacturer: 'QUALCOMM INCORPORATED'"
QMI_FIELD_PATTERN = re.compile(r"^\s*([A-Za-z0-9 ]+?):\s*'([^']*)'", re.MULTILINE)
# "RSSI:\n	Network 'lte': '-65 dBm'"
QMI_RSSI_PATTERN = re.compile(r"RSSI:\s*\n\s*Network\s+'[^']+':\s*'(-?\d+(?:\.\d+)?)\s*dBm'")


def parse_qmi_fields(output: str) -> Dict[str, str]:
    """First occurrence of every "Key: 'value'" pair in qmicli output"""
    fields: Dict[str, str] = {}
    for key, value in QMI_FIELD_PATTERN.findall(output):
        fields.setdefault(key.strip(), value)
    return fields


def parse_qmi_signal(output: str) -> SignalReading:
    match = QMI_RSSI_PATTERN.search(output)
    if not match:
        return SignalReading(tier=SignalTier.UNPARSEABLE, raw=output)

    index = rssi_index_from_dbm(float(match.group(1)))
    return SignalReading(tier=classify_rssi(index), rssi_index=index, raw=output)


def parse_qmi_registration(output: str) -> RegistrationState:
    fields = parse_qmi_fields(output)
    state = registration_from_name(QMI_REGISTRATION_STATES.get(fields.get("Registration state", ""), ""))

    if state is RegistrationState.REGISTERED_HOME and fields.get("Roaming status") == "on":
        return RegistrationState.REGISTERED_ROAMING
    return state


def parse_qmi_card_status(output: str) -> SimState:
    fields = parse_qmi_fields(output)
    app_state = fields.get("Application state", "")
    pin_state = fields.get("PIN1 state", "")

    if app_state == "ready":
        return SimState.READY
    if "pin" in app_state and "required" in app_state:
        return SimState.PIN_REQUIRED
    if pin_state == "enabled-not-verified":
        return SimState.PIN_REQUIRED
    return SimState.UNKNOWN


class QMITransport(ModemQueryTransport):
    """qmicli wrapper bound to one QMI control device"""

    def __init__(self, device: Endpoint, use_sudo: bool = False):
        super().__init__()
        self.name = "qmi"
        self.device = device
        self.use_sudo = use_sudo

    @staticmethod
    def find_qmicli() -> Optional[str]:
        return shutil.which(QMICLI_BINARY)

    def is_available(self) -> bool:
        return self.device is not None and self.find_qmicli() is not None

    def _run(self, *args: str) -> str:
        exe = self.find_qmicli()
        if not exe:
            raise TransportError("qmicli not found")

        cmd: List[str] = (["sudo", "-n"] if self.use_sudo else []) + [exe, "-d", self.device.path, *args]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=QMICLI_TIMEOUT)
        except subprocess.TimeoutExpired:
            raise TransportError(f"qmicli {' '.join(args)} timed out")

        if result.returncode != 0:
            raise TransportError(f"qmicli {' '.join(args)} failed: {result.stderr.strip()}")
        return result.stdout

    def get_identity(self) -> ModemIdentity:
        identity = ModemIdentity()
        queries = (
            (QmiCommands.MANUFACTURER, "Manufacturer", "manufacturer"),
            (QmiCommands.MODEL, "Model", "model"),
            (QmiCommands.REVISION, "Revision", "revision"),
            (QmiCommands.IDS, "IMEI", "imei"),
        )

        for flag, key, attr in queries:
            try:
                value = parse_qmi_fields(self._run(flag)).get(key, "")
            except TransportError as e:
                logger.warning(f"QMI {key} query failed: {e}")
                continue
            setattr(identity, attr, value)

        if not (identity.manufacturer or identity.model or identity.imei):
            raise AuxiliaryQueryFailed(f"No identity fields from {self.device.path}")
        return identity

    def get_sim_state(self) -> SimState:
        try:
            return parse_qmi_card_status(self._run(QmiCommands.CARD_STATUS))
        except TransportError as e:
            raise AuxiliaryQueryFailed(f"QMI card status failed: {e}")

    def get_signal(self) -> SignalReading:
        try:
            return parse_qmi_signal(self._run(QmiCommands.SIGNAL_STRENGTH))
        except TransportError as e:
            logger.warning(f"QMI signal query failed: {e}")
            return SignalReading(tier=SignalTier.UNPARSEABLE)

    def get_registration(self) -> RegistrationState:
        try:
            return parse_qmi_registration(self._run(QmiCommands.SERVING_SYSTEM))
        except TransportError as e:
            logger.warning(f"QMI serving system query failed: {e}")
            return RegistrationState.UNKNOWN
