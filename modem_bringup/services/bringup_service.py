"""
Bring-up Service - Shared entry point for the CLI and the HTTP API
Builds sessions from preferences and keeps the last result.
"""

import logging
import threading
from dataclasses import replace
from typing import Any, Dict, Optional

from .endpoint_enumerator import EndpointEnumerator
from .manager_control import ManagerControl
from .preferences import PreferencesService, SessionConfig, get_preferences
from .report_writer import ReportWriter
from .session_orchestrator import SessionOrchestrator, SessionResult

logger = logging.getLogger(__name__)


class SessionBusy(Exception):
    """A session is already running; sessions never overlap"""


PROBE_OVERRIDES = ("command", "max_attempts", "settle_delay", "read_timeout", "use_last_port_hint")


def apply_overrides(config: SessionConfig, overrides: Optional[Dict[str, Any]]) -> SessionConfig:
    """New SessionConfig with per-run overrides (probe keys go to config.probe)"""
    if not overrides:
        return config

    probe_values = {k: v for k, v in overrides.items() if k in PROBE_OVERRIDES and v is not None}
    session_values = {k: v for k, v in overrides.items() if k not in PROBE_OVERRIDES and v is not None}

    unknown = [k for k in session_values if k not in SessionConfig.__dataclass_fields__ or k == "probe"]
    if unknown:
        raise ValueError(f"Unknown session settings: {', '.join(sorted(unknown))}")

    probe = replace(config.probe, **probe_values)
    if probe.max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    return replace(config, probe=probe, **session_values)


class BringupService:
    def __init__(self, preferences: Optional[PreferencesService] = None):
        self.preferences = preferences or get_preferences()
        self._lock = threading.Lock()
        self.last_result: Optional[SessionResult] = None

    def build_orchestrator(self, config: SessionConfig) -> SessionOrchestrator:
        writer = None
        if config.report_enabled and config.report_directory:
            writer = ReportWriter(config.report_directory, config.manager_service)
        return SessionOrchestrator(config=config, preferences=self.preferences, report_writer=writer)

    def run_session(self, overrides: Optional[Dict[str, Any]] = None) -> SessionResult:
        config = apply_overrides(self.preferences.get_session_config(), overrides)

        if not self._lock.acquire(blocking=False):
            raise SessionBusy("A bring-up session is already running")
        try:
            result = self.build_orchestrator(config).run()
        finally:
            self._lock.release()

        self.last_result = result
        return result

    def list_endpoints(self) -> Dict:
        config = self.preferences.get_session_config()
        enumerator = EndpointEnumerator(config.device_root)
        mode = enumerator.detect_connection_mode()
        return {
            "connection_mode": mode.value if mode else None,
            "endpoints": enumerator.list_all(),
            "last_at_port": self.preferences.get_last_at_port(),
        }

    def manager(self) -> ManagerControl:
        config = self.preferences.get_session_config()
        return ManagerControl(config.manager_service, use_sudo=config.use_sudo)


_service: Optional[BringupService] = None


def get_bringup_service() -> BringupService:
    """Get the singleton bring-up service."""
    global _service
    if _service is None:
        _service = BringupService()
    return _service
