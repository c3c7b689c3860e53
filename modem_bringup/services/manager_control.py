"""
Manager Control - Stop / restore ModemManager around a bring-up session
ModemManager opens the modem ports on its own and resets the QMI session
roughly every 45 seconds, so it has to be stopped, disabled and masked
before probing.
"""

import logging
import re
import subprocess
import time
from typing import Callable, Dict, List, Optional

from ..providers.modem.constants import MANAGER_PROCESS_NAMES, MANAGER_SERVICE, SYSTEMCTL_TIMEOUT
from .port_reclaimer import kill_processes_by_name

logger = logging.getLogger(__name__)

MMCLI_MODEM_PATTERN = re.compile(r"/org/freedesktop/ModemManager1/Modem/(\d+)")


class ManagerControl:
    """
    systemctl wrapper for the conflicting manager service.
    Every operation is best effort: failures are logged and reported,
    never raised.
    """

    def __init__(
        self,
        service: str = MANAGER_SERVICE,
        use_sudo: bool = False,
        process_killer: Callable = kill_processes_by_name,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.service = service
        self.use_sudo = use_sudo
        self.process_killer = process_killer
        self.sleep = sleep

    def _systemctl(self, *args: str) -> subprocess.CompletedProcess:
        cmd = (["sudo", "-n"] if self.use_sudo else []) + ["systemctl", *args]
        return subprocess.run(cmd, capture_output=True, text=True, timeout=SYSTEMCTL_TIMEOUT)

    def _run_step(self, action: str) -> bool:
        try:
            result = self._systemctl(action, self.service)
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            logger.warning(f"systemctl {action} {self.service} failed: {e}")
            return False

        if result.returncode != 0:
            logger.warning(f"systemctl {action} {self.service} returned {result.returncode}: {result.stderr.strip()}")
            return False

        logger.debug(f"systemctl {action} {self.service}: ok")
        return True

    def is_active(self) -> Optional[bool]:
        """True/False from 'systemctl is-active'; None if systemctl is unusable"""
        try:
            result = self._systemctl("is-active", self.service)
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            logger.debug(f"systemctl is-active unavailable: {e}")
            return None
        return result.returncode == 0

    def get_status(self) -> Dict:
        active = self.is_active()
        return {
            "service": self.service,
            "active": active,
            "status": "unknown" if active is None else ("running" if active else "stopped"),
        }

    def disable(self) -> Dict:
        """stop + disable + mask, then kill leftover daemon processes"""
        logger.info(f"Disabling {self.service}...")
        steps = {action: self._run_step(action) for action in ("stop", "disable", "mask")}

        try:
            killed = self.process_killer(MANAGER_PROCESS_NAMES)
        except Exception as e:
            logger.warning(f"Could not kill leftover {self.service} processes: {e}")
            killed = []

        if killed:
            logger.info(f"Killed leftover processes: {killed}")

        active = self.is_active()
        success = active is not True
        if success:
            logger.info(f"✅ {self.service} disabled")
        else:
            logger.warning(f"⚠️ {self.service} is still running")

        return {"success": success, "steps": steps, "killed": killed, "active": active}

    def enable(self, start_wait: float = 5.0) -> Dict:
        """unmask + enable + start, then confirm it is running"""
        logger.info(f"Enabling {self.service}...")
        steps = {action: self._run_step(action) for action in ("unmask", "enable", "start")}

        self.sleep(start_wait)
        active = self.is_active()
        if active:
            logger.info(f"✅ {self.service} is running")
        else:
            logger.error(f"❌ {self.service} failed to start")

        return {"success": bool(active), "steps": steps, "active": active}

    def list_managed_modems(self) -> List[str]:
        """Modem indices known to ModemManager ('mmcli -L')"""
        try:
            result = subprocess.run(["mmcli", "-L"], capture_output=True, text=True, timeout=5)
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            logger.debug(f"mmcli unavailable: {e}")
            return []

        if result.returncode != 0:
            return []
        return MMCLI_MODEM_PATTERN.findall(result.stdout)
