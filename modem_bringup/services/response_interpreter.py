"""
Response Interpreter - Turn free-text AT replies into typed results
Signal quality (+CSQ), registration (+CREG/+CGREG/+CEREG), SIM state (+CPIN),
identification (ATI, AT+GSN, AT+CCID), operator scans (+COPS=?).

Tier scheme: 4 tiers plus the (99,99) sentinel.
    rssi 0-4   -> WEAK
    rssi 5-9   -> ADEQUATE
    rssi 10-14 -> GOOD
    rssi 15-31 -> EXCELLENT
"""

import logging
import re
from typing import Dict, List, Optional, Union

from ..providers.base import (
    ModemIdentity,
    NetworkOperator,
    RegistrationState,
    Remediation,
    SignalReading,
    SignalTier,
    SimState,
)
from ..providers.modem.constants import (
    ACCESS_TECHNOLOGIES,
    BER_UNKNOWN,
    FINAL_RESULT_CODES,
    OPERATOR_STATUS_CODES,
    REGISTRATION_STATUS_CODES,
    RSSI_UNKNOWN,
    SIGNAL_TIER_THRESHOLDS,
)

logger = logging.getLogger(__name__)

CSQ_PATTERN = re.compile(r"\+CSQ:\s*(\d+)\s*,\s*(\d+)")
REG_PATTERN = re.compile(r"\+C(?:E|G)?REG:\s*(\d+)(?:\s*,\s*(\d+))?")
CPIN_PATTERN = re.compile(r"\+CPIN:\s*(.+)")
CCID_PATTERN = re.compile(r"\+(?:Q)?CCID:\s*([0-9A-Fa-f]+)")
IMEI_PATTERN = re.compile(r"^\s*(\d{14,17})\s*$", re.MULTILINE)
OPERATOR_PATTERN = re.compile(r'\((\d+),"([^"]*)","([^"]*)","([^"]*)"(?:,(\d+))?\)')

_TIERS_BY_NAME = {tier.value: tier for tier in SignalTier}
_REGISTRATION_BY_NAME = {state.value: state for state in RegistrationState}

SEVERITY_OK = "ok"
SEVERITY_WARNING = "warning"

_TIER_SEVERITY = {
    SignalTier.EXCELLENT: SEVERITY_OK,
    SignalTier.GOOD: SEVERITY_OK,
    SignalTier.ADEQUATE: SEVERITY_OK,
    SignalTier.WEAK: SEVERITY_WARNING,
    SignalTier.NO_SIGNAL: SEVERITY_WARNING,
    SignalTier.UNKNOWN: SEVERITY_WARNING,
    SignalTier.UNPARSEABLE: SEVERITY_WARNING,
}

_TIER_REMEDIATION = {
    SignalTier.NO_SIGNAL: [Remediation.CHECK_ANTENNA, Remediation.REPOSITION_ANTENNA],
    SignalTier.WEAK: [Remediation.REPOSITION_ANTENNA, Remediation.CHECK_ANTENNA],
    SignalTier.UNKNOWN: [Remediation.CHECK_CHANNEL],
    SignalTier.UNPARSEABLE: [Remediation.CHECK_CHANNEL],
}


def _to_text(reply: Union[bytes, str, None]) -> str:
    if reply is None:
        return ""
    if isinstance(reply, bytes):
        return reply.decode("ascii", errors="ignore")
    return reply


def reply_lines(reply: Union[bytes, str, None]) -> List[str]:
    """Split a reply into stripped non-empty lines"""
    return [line.strip() for line in _to_text(reply).splitlines() if line.strip()]


def is_ok_reply(reply: Union[bytes, str, None]) -> bool:
    """Liveness predicate: the reply carries a bare OK result line."""
    return "OK" in reply_lines(reply)


def is_error_reply(reply: Union[bytes, str, None]) -> bool:
    return any(line.startswith(FINAL_RESULT_CODES[1:]) for line in reply_lines(reply))


def classify_rssi(rssi_index: int) -> SignalTier:
    """Map an rssi index to its tier. Never guesses outside 0-31 (99 included)."""
    if not 0 <= rssi_index <= 31:
        return SignalTier.UNKNOWN
    for lower_bound, name in SIGNAL_TIER_THRESHOLDS:
        if rssi_index >= lower_bound:
            return _TIERS_BY_NAME[name]
    return SignalTier.UNKNOWN


def parse_signal_quality(reply: Union[bytes, str, None]) -> SignalReading:
    """
    Parse an AT+CSQ reply.

    The first "+CSQ: <rssi>,<ber>" token wins. (99,99) is the protocol's
    "no signal" sentinel and short-circuits every other check. A reply
    without any token is UNPARSEABLE, never NO_SIGNAL.
    """
    text = _to_text(reply)
    match = CSQ_PATTERN.search(text)
    if not match:
        logger.debug(f"No +CSQ token in reply: {text!r}")
        return SignalReading(tier=SignalTier.UNPARSEABLE, raw=text)

    rssi = int(match.group(1))
    ber = int(match.group(2))

    if rssi == RSSI_UNKNOWN and ber == BER_UNKNOWN:
        return SignalReading(tier=SignalTier.NO_SIGNAL, rssi_index=rssi, bit_error_rate=ber, raw=text)

    return SignalReading(tier=classify_rssi(rssi), rssi_index=rssi, bit_error_rate=ber, raw=text)


def rssi_index_from_dbm(dbm: float) -> int:
    """Convert RSSI in dBm to the 0-31 index used by +CSQ"""
    index = int((dbm + 113) // 2)
    return max(0, min(31, index))


def parse_registration(reply: Union[bytes, str, None]) -> RegistrationState:
    """
    Parse +CREG / +CGREG / +CEREG.

    Query replies carry "<n>,<stat>[,...]"; unsolicited codes carry only
    "<stat>". Unrecognized status codes map to UNKNOWN.
    """
    match = REG_PATTERN.search(_to_text(reply))
    if not match:
        return RegistrationState.UNKNOWN

    stat = match.group(2) if match.group(2) is not None else match.group(1)
    name = REGISTRATION_STATUS_CODES.get(int(stat))
    if name is None:
        logger.debug(f"Unrecognized registration status code: {stat}")
        return RegistrationState.UNKNOWN
    return _REGISTRATION_BY_NAME[name]


def registration_from_name(name: str) -> RegistrationState:
    return _REGISTRATION_BY_NAME.get(name, RegistrationState.UNKNOWN)


def parse_sim_state(reply: Union[bytes, str, None]) -> SimState:
    """READY vs. SIM PIN markers; absence of both is UNKNOWN."""
    text = _to_text(reply)
    match = CPIN_PATTERN.search(text)
    value = match.group(1).strip().upper() if match else text.upper()

    if "READY" in value:
        return SimState.READY
    if "SIM PIN" in value:
        return SimState.PIN_REQUIRED
    return SimState.UNKNOWN


def parse_identification(reply: Union[bytes, str, None]) -> ModemIdentity:
    """
    Parse an ATI reply:

        Quectel
        EC25
        Revision: EC25AFAR05A07M4G

        OK
    """
    manufacturer = ""
    model = ""
    revision = ""

    for line in reply_lines(reply):
        if line.upper().startswith("AT") or line in FINAL_RESULT_CODES:
            continue
        if line.lower().startswith("revision:"):
            revision = line.split(":", 1)[1].strip()
        elif not manufacturer:
            manufacturer = line
        elif not model:
            model = line

    return ModemIdentity(manufacturer=manufacturer, model=model, revision=revision)


def parse_imei(reply: Union[bytes, str, None]) -> str:
    match = IMEI_PATTERN.search(_to_text(reply))
    return match.group(1) if match else ""


def parse_iccid(reply: Union[bytes, str, None]) -> str:
    match = CCID_PATTERN.search(_to_text(reply))
    return match.group(1) if match else ""


def parse_operator_list(reply: Union[bytes, str, None]) -> List[NetworkOperator]:
    """
    Parse an AT+COPS=? reply:

        +COPS: (2,"DiGi","DiGi","50216",7),(1,"Maxis","Maxis","50212",2),,(0,1,2,3,4),(0,1,2)

    Operator tuples come first; the trailing mode / format lists carry no
    quoted names and are skipped.
    """
    operators = []
    for match in OPERATOR_PATTERN.finditer(_to_text(reply)):
        status, long_name, short_name, numeric, act = match.groups()
        operators.append(
            NetworkOperator(
                status=OPERATOR_STATUS_CODES.get(int(status), "unknown"),
                long_name=long_name,
                short_name=short_name,
                numeric=numeric,
                access_technology=ACCESS_TECHNOLOGIES.get(int(act), act) if act is not None else "",
            )
        )
    return operators


def severity(tier: SignalTier) -> str:
    return _TIER_SEVERITY.get(tier, SEVERITY_WARNING)


def remediation_for(tier: SignalTier) -> List[Remediation]:
    return list(_TIER_REMEDIATION.get(tier, []))


def describe_signal(reading: Optional[SignalReading]) -> Dict[str, str]:
    """Operator-facing label for a signal reading"""
    if reading is None:
        return {"label": "No reading", "severity": SEVERITY_WARNING}

    labels = {
        SignalTier.EXCELLENT: "Excellent signal",
        SignalTier.GOOD: "Good signal",
        SignalTier.ADEQUATE: "Adequate signal",
        SignalTier.WEAK: "Weak signal",
        SignalTier.NO_SIGNAL: "No signal detected (+CSQ: 99,99)",
        SignalTier.UNKNOWN: "Signal index out of range",
        SignalTier.UNPARSEABLE: "Could not parse signal response",
    }
    label = labels[reading.tier]
    if reading.rssi_dbm is not None:
        label = f"{label} (+CSQ: {reading.rssi_index},{reading.bit_error_rate}, {reading.rssi_dbm} dBm)"
    return {"label": label, "severity": severity(reading.tier)}
