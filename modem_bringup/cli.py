"""
modem-bringup command line

    modem-bringup diagnose [options]     full bring-up session (default)
    modem-bringup diagnose --scan        ... plus an AT+COPS=? operator scan
    modem-bringup endpoints              list candidate endpoints
    modem-bringup manager status|disable|enable
    modem-bringup serve                  HTTP API

Exit codes: 0 session completed (with or without warning), 1 no working AT
port, 2 no modem device, 3 usage/config error.
"""

import argparse
import json
import sys
from typing import List, Optional

from .services.bringup_service import BringupService, apply_overrides
from .services.preferences import PreferencesService
from .services.response_interpreter import describe_signal
from .services.session_orchestrator import EXIT_OK, EXIT_USAGE, SessionOutcome, SessionResult
from .utils.logger import get_logger, set_verbose


class UsageErrorParser(argparse.ArgumentParser):
    """Usage errors exit with EXIT_USAGE instead of argparse's 2"""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = UsageErrorParser(prog="modem-bringup", description="Cellular modem bring-up and antenna test")
    parser.add_argument("--config", help="preferences.json path")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")

    sub = parser.add_subparsers(dest="action")

    diag = sub.add_parser("diagnose", help="run a full bring-up session")
    diag.add_argument("--device-root", help="device namespace (default /dev)")
    diag.add_argument("--command", help="liveness command (default AT)")
    diag.add_argument("--max-attempts", type=int, help="attempts per endpoint")
    diag.add_argument("--settle-delay", type=float, help="seconds to wait after opening a port")
    diag.add_argument("--read-timeout", type=float, help="seconds to wait for a reply")
    diag.add_argument("--stabilization-delay", type=float, help="seconds to wait after stopping ModemManager")
    diag.add_argument("--wait", dest="device_wait_timeout", type=float, help="seconds to wait for the device")
    diag.add_argument("--keep-manager", action="store_true", help="do not touch ModemManager")
    diag.add_argument("--no-qmi", action="store_true", help="use AT commands only")
    diag.add_argument("--no-hint", action="store_true", help="ignore the remembered AT port")
    diag.add_argument("--scan", action="store_true", help="scan for network operators (takes minutes)")
    diag.add_argument("--scan-timeout", type=float, help="seconds to wait for the operator scan")
    diag.add_argument("--sudo", action="store_true", help="run systemctl/qmicli through sudo -n")
    diag.add_argument("--report-dir", help="write helper scripts and a summary here")
    diag.add_argument("--json", action="store_true", help="print the result as JSON")

    sub.add_parser("endpoints", help="list candidate endpoints")

    manager = sub.add_parser("manager", help="control ModemManager")
    manager.add_argument("operation", choices=["status", "disable", "enable"])

    serve = sub.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)

    return parser


def _overrides(args: argparse.Namespace) -> dict:
    overrides = {
        "device_root": args.device_root,
        "command": args.command,
        "max_attempts": args.max_attempts,
        "settle_delay": args.settle_delay,
        "read_timeout": args.read_timeout,
        "stabilization_delay": args.stabilization_delay,
        "device_wait_timeout": args.device_wait_timeout,
        "scan_timeout": args.scan_timeout,
    }
    if args.keep_manager:
        overrides["disable_manager"] = False
    if args.no_qmi:
        overrides["prefer_qmi"] = False
    if args.no_hint:
        overrides["use_last_port_hint"] = False
    if args.scan:
        overrides["scan_networks"] = True
    if args.sudo:
        overrides["use_sudo"] = True
    if args.report_dir:
        overrides["report_enabled"] = True
        overrides["report_directory"] = args.report_dir
    return {k: v for k, v in overrides.items() if v is not None}


def print_result(result: SessionResult):
    """Operator summary"""
    print("")
    print("=" * 46)
    if result.outcome is SessionOutcome.SUCCEEDED:
        print("  ✅ MODEM READY")
    elif result.outcome is SessionOutcome.SUCCEEDED_WITH_WARNING:
        print("  ⚠️  MODEM READY - NEEDS ATTENTION")
    else:
        print("  ❌ BRING-UP FAILED")
    print("=" * 46)

    if result.at_endpoint:
        print(f"AT port:      {result.at_endpoint.path}")
    if result.qmi_endpoint:
        print(f"QMI device:   {result.qmi_endpoint.path}")
    if result.identity.model:
        print(f"Module:       {result.identity.manufacturer} {result.identity.model}")
    if result.signal:
        print(f"Signal:       {describe_signal(result.signal)['label']}")
    if result.succeeded:
        print(f"Registration: {result.registration.value}")
        print(f"SIM:          {result.sim.value}")
    if result.error_message:
        print(f"Error:        {result.error_message}")

    if result.operators:
        print("Networks:")
        for operator in result.operators:
            print(f"   {operator.long_name} ({operator.numeric}, {operator.access_technology or '?'}) {operator.status}")

    for warning in result.warnings:
        print(f"⚠️  {warning}")
    for note in result.notes:
        print(f"   - {note}")

    if result.remediation:
        print("")
        print("📋 Next steps:")
        for i, item in enumerate(result.remediation, 1):
            print(f"{i}. {item.value}")


def _diagnose(service: BringupService, args: argparse.Namespace) -> int:
    overrides = _overrides(args)
    try:
        apply_overrides(service.preferences.get_session_config(), overrides)
    except (TypeError, ValueError) as e:
        print(f"❌ Invalid options: {e}", file=sys.stderr)
        return EXIT_USAGE

    result = service.run_session(overrides)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print_result(result)
    return result.exit_code


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # stdout carries the report (and --json output)
    get_logger(stream=sys.stderr)
    set_verbose(args.verbose)

    if args.action is None:
        args = parser.parse_args((argv if argv is not None else sys.argv[1:]) + ["diagnose"])

    service = BringupService(PreferencesService(args.config) if args.config else None)

    if args.action == "diagnose":
        return _diagnose(service, args)

    if args.action == "endpoints":
        print(json.dumps(service.list_endpoints(), indent=2))
        return EXIT_OK

    if args.action == "manager":
        manager = service.manager()
        if args.operation == "status":
            result = manager.get_status()
        elif args.operation == "disable":
            result = manager.disable()
        else:
            result = manager.enable()
        print(json.dumps(result, indent=2))
        return EXIT_OK if result.get("success", True) else 1

    if args.action == "serve":
        from .main import serve

        serve(args.host, args.port)
        return EXIT_OK

    parser.print_help()
    return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
