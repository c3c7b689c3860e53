"""
Tests for operator report and helper script generation
"""

import os
from dataclasses import replace

from modem_bringup.providers.base import (
    ConnectionMode,
    Endpoint,
    EndpointRole,
    ModemIdentity,
    NetworkOperator,
    RegistrationState,
    Remediation,
    SignalReading,
    SignalTier,
    SimState,
)
from modem_bringup.services.report_writer import ReportWriter
from modem_bringup.services.session_orchestrator import SessionOutcome, SessionResult, SessionState


def _succeeded():
    return SessionResult(
        outcome=SessionOutcome.SUCCEEDED_WITH_WARNING,
        state=SessionState.SUCCEEDED_WITH_WARNING,
        connection_mode=ConnectionMode.USB,
        at_endpoint=Endpoint("/dev/ttyUSB2", ConnectionMode.USB, EndpointRole.AT_CAPABLE, 2),
        qmi_endpoint=Endpoint("/dev/cdc-wdm0", ConnectionMode.USB, EndpointRole.QMI, 0),
        signal=SignalReading(tier=SignalTier.NO_SIGNAL, rssi_index=99, bit_error_rate=99),
        registration=RegistrationState.SEARCHING,
        sim=SimState.READY,
        identity=ModemIdentity(manufacturer="Quectel", model="EC25", imei="861234567890123"),
        transport="at",
        warnings=("No signal detected (+CSQ: 99,99)",),
        remediation=(Remediation.CHECK_ANTENNA, Remediation.REPOSITION_ANTENNA),
    )


def _failed():
    return SessionResult(
        outcome=SessionOutcome.FAILED,
        state=SessionState.FAILED,
        error_kind="device_not_found",
        error_message="No modem device detected after 30s",
        remediation=(Remediation.CHECK_CONNECTION, Remediation.CHECK_POWER),
    )


class TestReportWriter:
    def test_writes_report_and_scripts(self, tmp_path):
        written = ReportWriter(str(tmp_path / "out")).write(_succeeded())

        assert set(written) == {"report", "quick_test", "status"}
        assert os.access(written["quick_test"], os.X_OK)
        assert os.access(written["status"], os.X_OK)

        quick_test = open(written["quick_test"]).read()
        assert "AT_PORT=/dev/ttyUSB2" in quick_test
        assert "AT+CSQ" in quick_test

        status = open(written["status"]).read()
        assert "/dev/cdc-wdm0" in status
        assert "systemctl is-active ModemManager" in status

    def test_failed_session_writes_only_report(self, tmp_path):
        written = ReportWriter(str(tmp_path)).write(_failed())

        assert list(written) == ["report"]
        report = open(written["report"]).read()
        assert "Error (device_not_found)" in report
        assert Remediation.CHECK_POWER.value in report

    def test_summary_contents(self, tmp_path):
        summary = ReportWriter(str(tmp_path)).render_summary(_succeeded())

        assert "Outcome: succeeded_with_warning" in summary
        assert "AT port: /dev/ttyUSB2" in summary
        assert "IMEI: 861234567890123" in summary
        assert "No signal detected" in summary
        assert "1. " + Remediation.CHECK_ANTENNA.value in summary

    def test_custom_manager_name(self, tmp_path):
        written = ReportWriter(str(tmp_path), manager_service="mm-custom").write(_succeeded())
        assert "mm-custom" in open(written["status"]).read()

    def test_summary_lists_scanned_networks(self, tmp_path):
        result = replace(
            _succeeded(),
            operators=(NetworkOperator("available", "DiGi", "DiGi", "50216", "E-UTRAN"),),
        )

        summary = ReportWriter(str(tmp_path)).render_summary(result)

        assert "Networks found:" in summary
        assert "DiGi (50216) E-UTRAN available" in summary
        assert "Signal transport: at" in summary
