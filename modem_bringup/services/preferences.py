"""
Preferences Service - Unified persistence for bring-up configuration
Stores serial/probe/session settings and the last discovered AT port hint
"""

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..providers.modem.constants import (
    DEFAULT_BAUDRATE,
    DEVICE_ROOT,
    DEVICE_WAIT_TIMEOUT,
    MANAGER_SERVICE,
    OPERATOR_SCAN_TIMEOUT,
    PROBE_COMMAND,
    PROBE_MAX_ATTEMPTS,
    PROBE_READ_TIMEOUT,
    PROBE_SETTLE_DELAY,
    STABILIZATION_DELAY,
)

logger = logging.getLogger(__name__)


@dataclass
class ProbeConfig:
    """Probe engine parameters."""

    command: str = PROBE_COMMAND
    max_attempts: int = PROBE_MAX_ATTEMPTS
    settle_delay: float = PROBE_SETTLE_DELAY
    read_timeout: float = PROBE_READ_TIMEOUT
    use_last_port_hint: bool = True


@dataclass
class SessionConfig:
    """Everything a bring-up session needs, flattened."""

    baudrate: int = DEFAULT_BAUDRATE
    device_root: str = DEVICE_ROOT
    device_wait_timeout: float = DEVICE_WAIT_TIMEOUT
    stabilization_delay: float = STABILIZATION_DELAY
    manager_service: str = MANAGER_SERVICE
    disable_manager: bool = True
    prefer_qmi: bool = True
    use_sudo: bool = False
    report_enabled: bool = False
    report_directory: str = ""
    scan_networks: bool = False
    scan_timeout: float = OPERATOR_SCAN_TIMEOUT
    probe: ProbeConfig = field(default_factory=ProbeConfig)


class PreferencesService:
    """
    Preferences persistence.
    Single source of truth for all configuration.
    """

    PREFERENCES_FILE = "preferences.json"

    def __init__(self, config_path: str = None):
        self._lock = threading.RLock()
        self._preferences: Dict[str, Any] = self._default_preferences()
        self._config_path = config_path if config_path else self._get_config_path()
        self._load()

    def _get_config_path(self) -> str:
        """Path from MODEM_BRINGUP_CONFIG, else ~/.config/modem-bringup/preferences.json"""
        env_path = os.environ.get("MODEM_BRINGUP_CONFIG")
        if env_path:
            return env_path
        return os.path.join(os.path.expanduser("~"), ".config", "modem-bringup", self.PREFERENCES_FILE)

    def _default_preferences(self) -> Dict[str, Any]:
        """Return default preferences structure."""
        return {
            "serial": {"baudrate": DEFAULT_BAUDRATE},
            "probe": {
                "command": PROBE_COMMAND,
                "max_attempts": PROBE_MAX_ATTEMPTS,
                "settle_delay": PROBE_SETTLE_DELAY,
                "read_timeout": PROBE_READ_TIMEOUT,
                "use_last_port_hint": True,
            },
            "session": {
                "device_root": DEVICE_ROOT,
                "device_wait_timeout": DEVICE_WAIT_TIMEOUT,
                "stabilization_delay": STABILIZATION_DELAY,
                "manager_service": MANAGER_SERVICE,
                "disable_manager": True,
                "prefer_qmi": True,
                "use_sudo": False,
                "scan_networks": False,
                "scan_timeout": OPERATOR_SCAN_TIMEOUT,
            },
            "report": {"enabled": False, "directory": ""},
            # Advisory only: re-validated on every run
            "scratch": {"last_at_port": None},
        }

    def _load(self):
        """Load preferences from file."""
        try:
            if os.path.exists(self._config_path):
                with open(self._config_path, "r") as f:
                    loaded = json.load(f)

                # Merge with defaults (to add any new fields)
                defaults = self._default_preferences()
                self._deep_merge(defaults, loaded)
                self._preferences = defaults
                logger.debug(f"Loaded preferences from {self._config_path}")
            else:
                self._preferences = self._default_preferences()
                logger.debug(f"No preferences at {self._config_path}, using defaults")
        except (OSError, ValueError) as e:
            logger.warning(f"⚠️ Failed to load preferences: {e}")
            self._preferences = self._default_preferences()

    def _deep_merge(self, base: dict, override: dict):
        """Deep merge override into base (modifies base in place)."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _save(self) -> bool:
        """Save preferences to file."""
        try:
            with self._lock:
                directory = os.path.dirname(self._config_path)
                if directory:
                    os.makedirs(directory, exist_ok=True)
                with open(self._config_path, "w") as f:
                    json.dump(self._preferences, f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
            return True
        except OSError as e:
            logger.warning(f"⚠️ Failed to save preferences: {e}")
            return False

    @property
    def config_path(self) -> str:
        return self._config_path

    def get_all(self) -> Dict[str, Any]:
        with self._lock:
            return json.loads(json.dumps(self._preferences))

    # ==================== Session Configuration ====================

    def get_session_config(self) -> SessionConfig:
        """Flatten the stored sections into a SessionConfig."""
        with self._lock:
            serial_cfg = self._preferences.get("serial", {})
            probe_cfg = self._preferences.get("probe", {})
            session_cfg = self._preferences.get("session", {})
            report_cfg = self._preferences.get("report", {})

            return SessionConfig(
                baudrate=int(serial_cfg.get("baudrate", DEFAULT_BAUDRATE)),
                device_root=session_cfg.get("device_root", DEVICE_ROOT),
                device_wait_timeout=float(session_cfg.get("device_wait_timeout", DEVICE_WAIT_TIMEOUT)),
                stabilization_delay=float(session_cfg.get("stabilization_delay", STABILIZATION_DELAY)),
                manager_service=session_cfg.get("manager_service", MANAGER_SERVICE),
                disable_manager=bool(session_cfg.get("disable_manager", True)),
                prefer_qmi=bool(session_cfg.get("prefer_qmi", True)),
                use_sudo=bool(session_cfg.get("use_sudo", False)),
                report_enabled=bool(report_cfg.get("enabled", False)),
                report_directory=report_cfg.get("directory", ""),
                scan_networks=bool(session_cfg.get("scan_networks", False)),
                scan_timeout=float(session_cfg.get("scan_timeout", OPERATOR_SCAN_TIMEOUT)),
                probe=ProbeConfig(
                    command=probe_cfg.get("command", PROBE_COMMAND),
                    max_attempts=int(probe_cfg.get("max_attempts", PROBE_MAX_ATTEMPTS)),
                    settle_delay=float(probe_cfg.get("settle_delay", PROBE_SETTLE_DELAY)),
                    read_timeout=float(probe_cfg.get("read_timeout", PROBE_READ_TIMEOUT)),
                    use_last_port_hint=bool(probe_cfg.get("use_last_port_hint", True)),
                ),
            )

    def update_section(self, section: str, values: Dict[str, Any]) -> bool:
        """Merge values into one section and persist."""
        with self._lock:
            if section not in self._preferences or not isinstance(self._preferences[section], dict):
                raise KeyError(f"Unknown preferences section: {section}")
            self._preferences[section].update(values)
            return self._save()

    # ==================== Last AT port hint ====================

    def get_last_at_port(self) -> Optional[str]:
        with self._lock:
            return self._preferences.get("scratch", {}).get("last_at_port")

    def set_last_at_port(self, path: Optional[str]) -> bool:
        with self._lock:
            self._preferences.setdefault("scratch", {})["last_at_port"] = path
            return self._save()


# Singleton instance
_preferences: Optional[PreferencesService] = None


def get_preferences() -> PreferencesService:
    """Get the singleton preferences instance."""
    global _preferences
    if _preferences is None:
        _preferences = PreferencesService()
    return _preferences
