"""
Modem Provider - Data model and transport abstraction for modem diagnostics
Endpoints, probe attempts, signal readings and the query-transport interface
shared by the AT (serial) and QMI (qmicli) implementations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, List, Optional


class ConnectionMode(Enum):
    """How the modem is attached to the host"""

    USB = "usb"
    PCIE = "pcie"


class EndpointRole(Enum):
    """What a device path has been confirmed to speak"""

    UNKNOWN = "unknown"
    AT_CAPABLE = "at_capable"
    QMI = "qmi"


class ProbeOutcome(Enum):
    OK = "ok"
    TIMEOUT = "timeout"
    NO_MATCH = "no_match"
    UNAVAILABLE = "unavailable"


class SignalTier(Enum):
    """
    Signal quality tiers derived from the AT+CSQ rssi index.

    NO_SIGNAL and UNPARSEABLE are deliberately distinct: the first is an
    antenna diagnosis, the second a transport/format fault.
    """

    NO_SIGNAL = "no_signal"
    WEAK = "weak"
    ADEQUATE = "adequate"
    GOOD = "good"
    EXCELLENT = "excellent"
    UNKNOWN = "unknown"
    UNPARSEABLE = "unparseable"


class RegistrationState(Enum):
    NOT_REGISTERED = "not_registered"
    SEARCHING = "searching"
    REGISTERED_HOME = "registered_home"
    REGISTERED_ROAMING = "registered_roaming"
    UNKNOWN = "unknown"


class SimState(Enum):
    READY = "ready"
    PIN_REQUIRED = "pin_required"
    UNKNOWN = "unknown"


class Remediation(Enum):
    """Operator guidance attached to every fatal and warning outcome"""

    CHECK_ANTENNA = "Check antenna seating: UFL connector firmly on the main port, cable undamaged"
    REPOSITION_ANTENNA = "Reposition the antenna or move to a location with better coverage"
    CHECK_POWER = "Check power/voltage: the modem needs a stable 5V/3A+ supply"
    CHECK_CONNECTION = "Check physical connection: USB/PCIe seating and cable"
    CHECK_CHANNEL = "Check the command channel: port selection, baudrate and command syntax"
    CHECK_SIM = "Check SIM card: inserted, unlocked (PIN) and provisioned"
    CHECK_MANAGER = "Check ModemManager: stop and mask it so it does not hold the ports"


@dataclass(frozen=True)
class Endpoint:
    """A candidate device path. Immutable; use with_role() to assign a role."""

    path: str
    connection_mode: ConnectionMode
    role: EndpointRole = EndpointRole.UNKNOWN
    index: int = 0

    def with_role(self, role: EndpointRole) -> "Endpoint":
        if self.role is not EndpointRole.UNKNOWN and self.role is not role:
            raise ValueError(f"{self.path} already has role {self.role.value}")
        return replace(self, role=role)

    def to_dict(self) -> Dict:
        return {
            "path": self.path,
            "connection_mode": self.connection_mode.value,
            "role": self.role.value,
            "index": self.index,
        }


@dataclass(frozen=True)
class ProbeAttempt:
    """One liveness command sent to one endpoint"""

    endpoint: Endpoint
    command: str
    raw_response: bytes
    outcome: ProbeOutcome
    attempt: int = 1

    def to_dict(self) -> Dict:
        return {
            "path": self.endpoint.path,
            "command": self.command,
            "response": self.raw_response.decode("ascii", errors="replace"),
            "outcome": self.outcome.value,
            "attempt": self.attempt,
        }


@dataclass(frozen=True)
class SignalReading:
    """
    Signal quality from AT+CSQ (or converted from QMI RSSI dBm).

    RSSI index:
        0: -113 dBm or less
        1: -111 dBm
        2...30: -109 to -53 dBm
        31: -51 dBm or greater
        99: Not known or not detectable
    """

    tier: SignalTier
    rssi_index: Optional[int] = None
    bit_error_rate: Optional[int] = None
    raw: str = ""

    @property
    def rssi_dbm(self) -> Optional[int]:
        if self.rssi_index is None or not 0 <= self.rssi_index <= 31:
            return None
        return -113 + (self.rssi_index * 2)

    @property
    def is_warning(self) -> bool:
        return self.tier not in (SignalTier.ADEQUATE, SignalTier.GOOD, SignalTier.EXCELLENT)

    def to_dict(self) -> Dict:
        return {
            "tier": self.tier.value,
            "rssi_index": self.rssi_index,
            "bit_error_rate": self.bit_error_rate,
            "rssi_dbm": self.rssi_dbm,
        }


@dataclass(frozen=True)
class NetworkOperator:
    """One entry of an AT+COPS=? operator scan"""

    status: str
    long_name: str
    short_name: str = ""
    numeric: str = ""
    access_technology: str = ""

    def to_dict(self) -> Dict:
        return {
            "status": self.status,
            "long_name": self.long_name,
            "short_name": self.short_name,
            "numeric": self.numeric,
            "access_technology": self.access_technology,
        }


@dataclass
class ModemIdentity:
    """Modem hardware / SIM identification"""

    manufacturer: str = ""
    model: str = ""
    revision: str = ""
    imei: str = ""
    iccid: str = ""

    def merge(self, other: "ModemIdentity") -> "ModemIdentity":
        """Fill empty fields from another identity"""
        return ModemIdentity(
            manufacturer=self.manufacturer or other.manufacturer,
            model=self.model or other.model,
            revision=self.revision or other.revision,
            imei=self.imei or other.imei,
            iccid=self.iccid or other.iccid,
        )

    def to_dict(self) -> Dict:
        return {
            "manufacturer": self.manufacturer,
            "model": self.model,
            "revision": self.revision,
            "imei": self.imei,
            "iccid": self.iccid,
        }


class ModemQueryTransport(ABC):
    """
    Abstract query transport.
    Each implementation reaches the modem a different way but returns the
    same typed results, so callers never see raw tool output.
    """

    def __init__(self):
        self.name: str = ""

    @abstractmethod
    def is_available(self) -> bool:
        """True if this transport can currently talk to the modem"""
        pass

    @abstractmethod
    def get_identity(self) -> ModemIdentity:
        """
        Manufacturer / model / revision / IMEI / ICCID.
        Raises AuxiliaryQueryFailed if nothing could be read.
        """
        pass

    @abstractmethod
    def get_sim_state(self) -> SimState:
        pass

    @abstractmethod
    def get_signal(self) -> SignalReading:
        pass

    @abstractmethod
    def get_registration(self) -> RegistrationState:
        pass

    def scan_operators(self, timeout: float) -> List[NetworkOperator]:
        """Visible network operators; optional, not every transport can scan"""
        raise NotImplementedError(f"{self.name} transport cannot scan operators")
