"""
Tests for the modem-bringup command line
"""

import json
import pytest
from dataclasses import replace
from unittest.mock import MagicMock, patch

from modem_bringup import cli
from modem_bringup.providers.base import (
    ConnectionMode,
    Endpoint,
    EndpointRole,
    NetworkOperator,
    Remediation,
    SignalReading,
    SignalTier,
)
from modem_bringup.services.bringup_service import BringupService
from modem_bringup.services.session_orchestrator import (
    EXIT_NO_DEVICE,
    EXIT_NO_ENDPOINT,
    EXIT_OK,
    EXIT_USAGE,
    SessionOutcome,
    SessionResult,
    SessionState,
)


def _warning_result():
    return SessionResult(
        outcome=SessionOutcome.SUCCEEDED_WITH_WARNING,
        state=SessionState.SUCCEEDED_WITH_WARNING,
        connection_mode=ConnectionMode.USB,
        at_endpoint=Endpoint("/dev/ttyUSB2", ConnectionMode.USB, EndpointRole.AT_CAPABLE, 2),
        signal=SignalReading(tier=SignalTier.NO_SIGNAL, rssi_index=99, bit_error_rate=99),
        warnings=("No signal detected (+CSQ: 99,99)",),
        remediation=(Remediation.CHECK_ANTENNA,),
    )


def _failed_result(kind):
    return SessionResult(
        outcome=SessionOutcome.FAILED,
        state=SessionState.FAILED,
        error_kind=kind,
        error_message="failed",
    )


@pytest.fixture
def config_args(temp_preferences):
    return ["--config", str(temp_preferences)]


class TestDiagnose:
    def test_warning_still_exits_zero(self, config_args, capsys):
        with patch.object(BringupService, "run_session", return_value=_warning_result()):
            code = cli.main(config_args + ["diagnose"])

        assert code == EXIT_OK
        out = capsys.readouterr().out
        assert "NEEDS ATTENTION" in out
        assert Remediation.CHECK_ANTENNA.value in out

    @pytest.mark.parametrize(
        "kind, expected",
        [("device_not_found", EXIT_NO_DEVICE), ("no_endpoint", EXIT_NO_ENDPOINT)],
    )
    def test_failure_exit_codes(self, config_args, kind, expected):
        with patch.object(BringupService, "run_session", return_value=_failed_result(kind)):
            assert cli.main(config_args + ["diagnose"]) == expected

    def test_default_action_is_diagnose(self, config_args):
        with patch.object(BringupService, "run_session", return_value=_warning_result()) as run:
            assert cli.main(config_args) == EXIT_OK
        run.assert_called_once()

    def test_options_become_overrides(self, config_args):
        with patch.object(BringupService, "run_session", return_value=_warning_result()) as run:
            cli.main(config_args + ["diagnose", "--max-attempts", "3", "--keep-manager", "--no-qmi", "--wait", "10"])

        overrides = run.call_args.args[0]
        assert overrides == {
            "max_attempts": 3,
            "disable_manager": False,
            "prefer_qmi": False,
            "device_wait_timeout": 10.0,
        }

    def test_scan_option(self, config_args, capsys):
        result = replace(
            _warning_result(),
            operators=(NetworkOperator("current", "DiGi", "DiGi", "50216", "E-UTRAN"),),
        )
        with patch.object(BringupService, "run_session", return_value=result) as run:
            cli.main(config_args + ["diagnose", "--scan", "--scan-timeout", "150"])

        assert run.call_args.args[0] == {"scan_networks": True, "scan_timeout": 150.0}
        assert "DiGi (50216, E-UTRAN) current" in capsys.readouterr().out

    def test_json_output(self, config_args, capsys):
        with patch.object(BringupService, "run_session", return_value=_warning_result()):
            cli.main(config_args + ["diagnose", "--json"])

        payload = json.loads(capsys.readouterr().out)
        assert payload["outcome"] == "succeeded_with_warning"
        assert payload["exit_code"] == 0

    def test_invalid_attempts_is_usage_error(self, config_args):
        with patch.object(BringupService, "run_session") as run:
            assert cli.main(config_args + ["diagnose", "--max-attempts", "0"]) == EXIT_USAGE
        run.assert_not_called()

    def test_bad_argument_is_usage_error(self, config_args):
        with pytest.raises(SystemExit) as exc:
            cli.main(config_args + ["diagnose", "--max-attempts", "many"])
        assert exc.value.code == EXIT_USAGE


class TestOtherCommands:
    def test_endpoints(self, config_args, capsys):
        listing = {"connection_mode": None, "endpoints": {"usb": [], "pcie": []}, "last_at_port": None}
        with patch.object(BringupService, "list_endpoints", return_value=listing):
            assert cli.main(config_args + ["endpoints"]) == EXIT_OK

        assert json.loads(capsys.readouterr().out) == listing

    def test_manager_status(self, config_args, capsys):
        manager = MagicMock()
        manager.get_status.return_value = {"service": "ModemManager", "active": False, "status": "stopped"}
        with patch.object(BringupService, "manager", return_value=manager):
            assert cli.main(config_args + ["manager", "status"]) == EXIT_OK

        assert json.loads(capsys.readouterr().out)["status"] == "stopped"

    def test_manager_disable_failure(self, config_args):
        manager = MagicMock()
        manager.disable.return_value = {"success": False, "steps": {}, "killed": [], "active": True}
        with patch.object(BringupService, "manager", return_value=manager):
            assert cli.main(config_args + ["manager", "disable"]) == 1
