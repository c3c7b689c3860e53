"""
Report Writer - Operator-facing helper scripts and a plain-text summary
Nothing here is consumed programmatically.
"""

import logging
import os
import stat
from datetime import datetime
from typing import Dict, List

from ..providers.modem.constants import (
    MANAGER_SERVICE,
    QUICK_TEST_SCRIPT,
    REPORT_FILE,
    STATUS_SCRIPT,
    ATCommands,
)
from .response_interpreter import describe_signal

logger = logging.getLogger(__name__)


QUICK_TEST_TEMPLATE = """#!/bin/bash
# Quick modem test commands
# Generated by modem-bringup on {generated}
# Using {at_port} for AT commands

AT_PORT={at_port}

at() {{
    echo -e "$1\\r" | sudo tee "$AT_PORT" >/dev/null
    sleep 2
    sudo timeout 3 cat "$AT_PORT"
}}

echo "=== Quick Modem Tests ==="
echo "Using AT command port: $AT_PORT"
echo ""

echo "📶 Signal Strength:"
at "{csq}" | grep "+CSQ:"

echo ""
echo "📱 SIM Status:"
at "{cpin}" | grep -E "(READY|PIN)"

echo ""
echo "ℹ️  Module Info:"
at "{ati}"
"""

STATUS_TEMPLATE = """#!/bin/bash
# Modem status check
# Generated by modem-bringup on {generated}

echo "=== Modem Status ==="

echo "📟 AT port:"
if [ -e {at_port} ]; then
    echo "✅ {at_port} exists"
else
    echo "❌ {at_port} missing"
fi

echo ""
echo "📡 QMI Device:"
if [ -e {qmi_device} ]; then
    echo "✅ {qmi_device} exists"
else
    echo "❌ No QMI device"
fi

echo ""
echo "🛑 {manager} Status:"
if systemctl is-active {manager} >/dev/null 2>&1; then
    echo "❌ {manager} is running (causes disconnections!)"
    echo "   Run: sudo systemctl stop {manager} && sudo systemctl mask {manager}"
else
    echo "✅ {manager} stopped/disabled"
fi
"""


class ReportWriter:
    """Writes helper scripts and a summary for the operator"""

    def __init__(self, directory: str, manager_service: str = MANAGER_SERVICE):
        self.directory = directory
        self.manager_service = manager_service

    def _write(self, name: str, content: str, executable: bool = False) -> str:
        path = os.path.join(self.directory, name)
        with open(path, "w") as f:
            f.write(content)
        if executable:
            mode = os.stat(path).st_mode
            os.chmod(path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    def render_summary(self, result) -> str:
        lines: List[str] = [
            "Modem bring-up report",
            f"Generated: {datetime.now().isoformat(timespec='seconds')}",
            f"Outcome: {result.outcome.value}",
            "",
        ]

        if result.connection_mode:
            lines.append(f"Connection mode: {result.connection_mode.value}")
        if result.usb_device:
            lines.append(f"USB device: {result.usb_device.get('name')} ({result.usb_device.get('usb_id')})")
        if result.at_endpoint:
            lines.append(f"AT port: {result.at_endpoint.path}")
        if result.qmi_endpoint:
            lines.append(f"QMI device: {result.qmi_endpoint.path}")
        if result.transport:
            lines.append(f"Signal transport: {result.transport}")

        identity = result.identity
        if identity.manufacturer or identity.model:
            lines.append(f"Module: {identity.manufacturer} {identity.model} {identity.revision}".rstrip())
        if identity.imei:
            lines.append(f"IMEI: {identity.imei}")
        if identity.iccid:
            lines.append(f"ICCID: {identity.iccid}")

        if result.signal is not None:
            lines.append(f"Signal: {describe_signal(result.signal)['label']}")
        lines.append(f"Registration: {result.registration.value}")
        lines.append(f"SIM: {result.sim.value}")
        if result.operators:
            lines.append("Networks found:")
            for operator in result.operators:
                lines.append(f"  {operator.long_name} ({operator.numeric}) {operator.access_technology} {operator.status}")

        if result.error_kind:
            lines += ["", f"Error ({result.error_kind}): {result.error_message}"]
        if result.warnings:
            lines += ["", "Warnings:"] + [f"  - {w}" for w in result.warnings]
        if result.notes:
            lines += ["", "Notes:"] + [f"  - {n}" for n in result.notes]
        if result.remediation:
            lines += ["", "Next steps:"] + [f"  {i}. {r.value}" for i, r in enumerate(result.remediation, 1)]

        if result.attempts:
            lines += ["", "Probe attempts:"]
            for attempt in result.attempts:
                lines.append(f"  {attempt.endpoint.path} #{attempt.attempt}: {attempt.outcome.value}")

        return "\n".join(lines) + "\n"

    def write(self, result) -> Dict[str, str]:
        """Write the summary, plus helper scripts when an AT port was found"""
        os.makedirs(self.directory, exist_ok=True)
        generated = datetime.now().isoformat(timespec="seconds")
        written = {"report": self._write(REPORT_FILE, self.render_summary(result))}

        if result.at_endpoint is not None:
            written["quick_test"] = self._write(
                QUICK_TEST_SCRIPT,
                QUICK_TEST_TEMPLATE.format(
                    generated=generated,
                    at_port=result.at_endpoint.path,
                    csq=ATCommands.SIGNAL_QUALITY,
                    cpin=ATCommands.SIM_STATUS,
                    ati=ATCommands.IDENTIFY,
                ),
                executable=True,
            )
            written["status"] = self._write(
                STATUS_SCRIPT,
                STATUS_TEMPLATE.format(
                    generated=generated,
                    at_port=result.at_endpoint.path,
                    qmi_device=result.qmi_endpoint.path if result.qmi_endpoint else "/dev/cdc-wdm0",
                    manager=self.manager_service,
                ),
                executable=True,
            )

        for name, path in written.items():
            logger.info(f"📁 {name}: {path}")
        return written
