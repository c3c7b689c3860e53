"""
Tests for the response interpreter

Covers: +CSQ tiering and the (99,99) sentinel, unparseable replies,
registration lookup, SIM markers, identification parsing and helpers.
"""

import pytest

from modem_bringup.providers.base import (
    RegistrationState,
    Remediation,
    SignalTier,
    SimState,
)
from modem_bringup.services import response_interpreter as interp


# ─────────────────────────────────────────────────────────────────────────────
# Signal quality
# ─────────────────────────────────────────────────────────────────────────────


class TestNoSignalSentinel:
    @pytest.mark.parametrize(
        "reply",
        [
            "+CSQ: 99,99",
            b"AT+CSQ\r\r\n+CSQ: 99,99\r\n\r\nOK\r\n",
            "garbage +CSQ: 99,99 more garbage OK ERROR",
            "+CSQ:99,99",
            "\r\n+CSQ: 99, 99\r\n+CREG: 0,1\r\n",
        ],
    )
    def test_99_99_is_no_signal_regardless_of_noise(self, reply):
        reading = interp.parse_signal_quality(reply)
        assert reading.tier is SignalTier.NO_SIGNAL
        assert reading.rssi_index == 99
        assert reading.bit_error_rate == 99

    def test_no_signal_has_no_dbm(self):
        assert interp.parse_signal_quality("+CSQ: 99,99").rssi_dbm is None


class TestTiers:
    @pytest.mark.parametrize("rssi", range(0, 5))
    def test_weak(self, rssi):
        assert interp.parse_signal_quality(f"+CSQ: {rssi},0").tier is SignalTier.WEAK

    @pytest.mark.parametrize("rssi", range(5, 10))
    def test_adequate(self, rssi):
        assert interp.parse_signal_quality(f"+CSQ: {rssi},0").tier is SignalTier.ADEQUATE

    @pytest.mark.parametrize("rssi", range(10, 15))
    def test_good(self, rssi):
        assert interp.parse_signal_quality(f"+CSQ: {rssi},0").tier is SignalTier.GOOD

    @pytest.mark.parametrize("rssi", range(15, 32))
    def test_excellent(self, rssi):
        assert interp.parse_signal_quality(f"+CSQ: {rssi},0").tier is SignalTier.EXCELLENT

    def test_out_of_domain_rssi_is_unknown_not_a_tier(self):
        reading = interp.parse_signal_quality("+CSQ: 45,0")
        assert reading.tier is SignalTier.UNKNOWN
        assert reading.rssi_dbm is None

    def test_rssi_99_with_known_ber_is_unknown(self):
        reading = interp.parse_signal_quality("+CSQ: 99,3")
        assert reading.tier is SignalTier.UNKNOWN
        assert reading.is_warning
        assert interp.remediation_for(reading.tier) == [Remediation.CHECK_CHANNEL]

    def test_first_token_wins(self):
        reading = interp.parse_signal_quality("+CSQ: 20,0\r\n+CSQ: 99,99\r\n")
        assert reading.tier is SignalTier.EXCELLENT
        assert reading.rssi_index == 20

    def test_ber_extracted(self):
        reading = interp.parse_signal_quality("+CSQ: 18,2")
        assert reading.bit_error_rate == 2
        assert reading.rssi_dbm == -77


class TestUnparseable:
    @pytest.mark.parametrize("reply", ["", b"", None, "OK", "ERROR", "+CREG: 0,1", "+CSQ: ,", "CSQ 18 2"])
    def test_no_token_is_unparseable_never_no_signal(self, reply):
        reading = interp.parse_signal_quality(reply)
        assert reading.tier is SignalTier.UNPARSEABLE
        assert reading.tier is not SignalTier.NO_SIGNAL
        assert reading.rssi_index is None


class TestRssiConversion:
    @pytest.mark.parametrize(
        "dbm, index",
        [(-113, 0), (-120, 0), (-111, 1), (-77, 18), (-65, 24), (-51, 31), (-40, 31)],
    )
    def test_dbm_to_index(self, dbm, index):
        assert interp.rssi_index_from_dbm(dbm) == index


# ─────────────────────────────────────────────────────────────────────────────
# Registration
# ─────────────────────────────────────────────────────────────────────────────


class TestRegistration:
    @pytest.mark.parametrize(
        "reply, state",
        [
            ("+CREG: 0,0", RegistrationState.NOT_REGISTERED),
            ("+CREG: 0,1", RegistrationState.REGISTERED_HOME),
            ("+CREG: 0,2", RegistrationState.SEARCHING),
            ("+CREG: 0,5", RegistrationState.REGISTERED_ROAMING),
            ("+CGREG: 2,1", RegistrationState.REGISTERED_HOME),
            ('+CEREG: 2,5,"1A2B","01C3D4E5",7', RegistrationState.REGISTERED_ROAMING),
            (b"AT+CREG?\r\r\n+CREG: 0,1\r\n\r\nOK\r\n", RegistrationState.REGISTERED_HOME),
        ],
    )
    def test_lookup_table(self, reply, state):
        assert interp.parse_registration(reply) is state

    @pytest.mark.parametrize("reply", ["+CREG: 0,3", "+CREG: 0,4", "+CREG: 0,9", "ERROR", "", "nonsense"])
    def test_unrecognized_is_unknown_not_unregistered(self, reply):
        assert interp.parse_registration(reply) is RegistrationState.UNKNOWN

    def test_unsolicited_code_carries_only_stat(self):
        assert interp.parse_registration("+CREG: 5") is RegistrationState.REGISTERED_ROAMING
        assert interp.parse_registration('+CREG: 1,"1A2B","01C3"') is RegistrationState.REGISTERED_HOME


# ─────────────────────────────────────────────────────────────────────────────
# SIM
# ─────────────────────────────────────────────────────────────────────────────


class TestSimState:
    def test_ready(self):
        assert interp.parse_sim_state(b"AT+CPIN?\r\r\n+CPIN: READY\r\n\r\nOK\r\n") is SimState.READY

    def test_pin_required(self):
        assert interp.parse_sim_state("+CPIN: SIM PIN") is SimState.PIN_REQUIRED

    @pytest.mark.parametrize("reply", ["", "+CME ERROR: 10", "+CPIN: SIM PUK", "OK"])
    def test_neither_marker_is_unknown(self, reply):
        assert interp.parse_sim_state(reply) is SimState.UNKNOWN


# ─────────────────────────────────────────────────────────────────────────────
# Identification
# ─────────────────────────────────────────────────────────────────────────────


class TestIdentification:
    def test_ati(self):
        identity = interp.parse_identification(
            b"ATI\r\r\nQuectel\r\nEC25\r\nRevision: EC25AFAR05A07M4G\r\n\r\nOK\r\n"
        )
        assert identity.manufacturer == "Quectel"
        assert identity.model == "EC25"
        assert identity.revision == "EC25AFAR05A07M4G"

    def test_imei(self):
        assert interp.parse_imei(b"AT+GSN\r\r\n861234567890123\r\n\r\nOK\r\n") == "861234567890123"
        assert interp.parse_imei("ERROR") == ""

    def test_iccid(self):
        assert interp.parse_iccid("+CCID: 89860012345678901234") == "89860012345678901234"
        assert interp.parse_iccid("+QCCID: 8986001234567890123F") == "8986001234567890123F"
        assert interp.parse_iccid("OK") == ""


# ─────────────────────────────────────────────────────────────────────────────
# Operator scan
# ─────────────────────────────────────────────────────────────────────────────


class TestOperatorList:
    def test_operators_parsed(self):
        operators = interp.parse_operator_list(
            b'AT+COPS=?\r\r\n+COPS: (2,"DiGi","DiGi","50216",7),(1,"Maxis","MY MAXIS","50212",2),'
            b'(3,"CelcomDigi","CELCOM","50219",0),,(0,1,2,3,4),(0,1,2)\r\n\r\nOK\r\n'
        )

        assert [o.long_name for o in operators] == ["DiGi", "Maxis", "CelcomDigi"]
        assert [o.status for o in operators] == ["current", "available", "forbidden"]
        assert operators[1].short_name == "MY MAXIS"
        assert operators[0].numeric == "50216"
        assert [o.access_technology for o in operators] == ["E-UTRAN", "UTRAN", "GSM"]

    def test_tuple_without_access_technology(self):
        (operator,) = interp.parse_operator_list('+COPS: (1,"Operator","OP","12345"),,(0,1),(0,1,2)')
        assert operator.access_technology == ""

    def test_unlisted_codes_kept(self):
        (operator,) = interp.parse_operator_list('+COPS: (9,"Operator","OP","12345",12)')
        assert operator.status == "unknown"
        assert operator.access_technology == "12"

    @pytest.mark.parametrize("reply", [b"", b"+COPS: ,,(0,1,2,3,4),(0,1,2)\r\n\r\nOK\r\n", b"+CME ERROR: 30"])
    def test_nothing_found(self, reply):
        assert interp.parse_operator_list(reply) == []


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────


class TestHelpers:
    def test_is_ok_reply(self):
        assert interp.is_ok_reply(b"AT\r\r\nOK\r\n") is True
        assert interp.is_ok_reply(b"") is False
        assert interp.is_ok_reply(b"ERROR\r\n") is False
        assert interp.is_ok_reply(b"BOOKING\r\n") is False

    def test_is_error_reply(self):
        assert interp.is_error_reply("+CME ERROR: 10") is True
        assert interp.is_error_reply("ERROR") is True
        assert interp.is_error_reply("OK") is False

    def test_severity(self):
        assert interp.severity(SignalTier.EXCELLENT) == interp.SEVERITY_OK
        assert interp.severity(SignalTier.NO_SIGNAL) == interp.SEVERITY_WARNING
        assert interp.severity(SignalTier.UNPARSEABLE) == interp.SEVERITY_WARNING

    def test_no_signal_remediation_is_antenna(self):
        assert Remediation.CHECK_ANTENNA in interp.remediation_for(SignalTier.NO_SIGNAL)

    def test_unparseable_remediation_is_channel(self):
        assert interp.remediation_for(SignalTier.UNPARSEABLE) == [Remediation.CHECK_CHANNEL]

    def test_good_signal_needs_no_remediation(self):
        assert interp.remediation_for(SignalTier.GOOD) == []

    def test_describe_signal_includes_dbm(self):
        label = interp.describe_signal(interp.parse_signal_quality("+CSQ: 18,2"))["label"]
        assert "Excellent" in label
        assert "-77 dBm" in label
