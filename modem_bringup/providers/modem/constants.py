"""
Modem Constants
Centralized configuration for EC25-class modem discovery and diagnostics
"""

# Device namespace
DEVICE_ROOT = "/dev"

# USB character devices exposed by the option/qcserial drivers
USB_AT_PREFIX = "ttyUSB"
USB_QMI_PREFIX = "cdc-wdm"

# PCIe/MHI devices (Quectel mhi driver and upstream wwan subsystem)
PCIE_AT_PREFIXES = ("mhi_DUN", "mhi_AT", "wwan0at")
PCIE_QMI_PREFIXES = ("mhi_QMI", "wwan0qmi")

# Known USB identifiers (lsusb "ID vvvv:pppp")
KNOWN_USB_MODEMS = {
    "2c7c:0125": "Quectel EC25",
    "2c7c:0121": "Quectel EC21",
    "2c7c:0296": "Quectel BG96",
    "2c7c:0306": "Quectel EP06",
    "2c7c:0512": "Quectel EG12/EM12",
    "2c7c:0800": "Quectel RM500Q",
}
QUECTEL_VENDOR_ID = "2c7c"

# Serial / probe defaults
DEFAULT_BAUDRATE = 115200
PROBE_COMMAND = "AT"
PROBE_MAX_ATTEMPTS = 1
PROBE_SETTLE_DELAY = 1.0  # seconds after reclaim, before the first write
PROBE_READ_TIMEOUT = 3.0  # seconds
QUERY_READ_TIMEOUT = 5.0

# Session defaults
STABILIZATION_DELAY = 5.0  # seconds after ModemManager is stopped
DEVICE_WAIT_TIMEOUT = 30.0  # seconds to wait for the modem to enumerate
DEVICE_POLL_INTERVAL = 1.0

# Conflicting manager
MANAGER_SERVICE = "ModemManager"
MANAGER_PROCESS_NAMES = ("ModemManager", "qmi-proxy")
SYSTEMCTL_TIMEOUT = 10

# AT command set
class ATCommands:
    IDENTIFY = "ATI"
    IMEI = "AT+GSN"
    ICCID = "AT+CCID"
    SIM_STATUS = "AT+CPIN?"
    SIGNAL_QUALITY = "AT+CSQ"
    REGISTRATION = "AT+CREG?"
    OPERATOR_SCAN = "AT+COPS=?"


# Final result codes that terminate a reply
FINAL_RESULT_CODES = ("OK", "ERROR", "+CME ERROR", "+CMS ERROR", "NO CARRIER")

# rssi index sentinel meaning "not known or not detectable"
RSSI_UNKNOWN = 99
BER_UNKNOWN = 99

# Signal tiers on rssi index (lower bound inclusive), highest first
SIGNAL_TIER_THRESHOLDS = (
    (15, "excellent"),
    (10, "good"),
    (5, "adequate"),
    (0, "weak"),
)

# +CREG/+CGREG/+CEREG <stat> values
REGISTRATION_STATUS_CODES = {
    0: "not_registered",
    1: "registered_home",
    2: "searching",
    5: "registered_roaming",
}

# AT+COPS=? operator scan: full band sweep, minutes on a weak antenna
OPERATOR_SCAN_TIMEOUT = 180.0

# +COPS: (<stat>,"long","short","numeric"[,<AcT>]) values
OPERATOR_STATUS_CODES = {
    0: "unknown",
    1: "available",
    2: "current",
    3: "forbidden",
}

ACCESS_TECHNOLOGIES = {
    0: "GSM",
    2: "UTRAN",
    3: "GSM/EGPRS",
    4: "UTRAN HSDPA",
    5: "UTRAN HSUPA",
    6: "UTRAN HSDPA+HSUPA",
    7: "E-UTRAN",
}

# qmicli
QMICLI_BINARY = "qmicli"
QMICLI_TIMEOUT = 15


class QmiCommands:
    MANUFACTURER = "--dms-get-manufacturer"
    MODEL = "--dms-get-model"
    REVISION = "--dms-get-revision"
    IDS = "--dms-get-ids"
    CARD_STATUS = "--uim-get-card-status"
    SIGNAL_STRENGTH = "--nas-get-signal-strength"
    SERVING_SYSTEM = "--nas-get-serving-system"


# qmicli "Registration state" values
QMI_REGISTRATION_STATES = {
    "registered": "registered_home",
    "not-registered": "not_registered",
    "not-registered-searching": "searching",
}

# Generated helper artifacts
QUICK_TEST_SCRIPT = "modem_quick_test.sh"
STATUS_SCRIPT = "modem_status.sh"
REPORT_FILE = "modem_report.txt"
