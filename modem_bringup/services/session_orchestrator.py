"""
Session Orchestrator - Sequence a modem bring-up session

    INIT -> DETECT_CONNECTION_MODE -> DISABLE_CONFLICTING_MANAGER
         -> AWAIT_STABILIZATION -> PROBE_FOR_CAPABLE_ENDPOINT
         -> [FAILED]
         or QUERY_SIM_AND_IDENTITY -> QUERY_SIGNAL [-> SCAN_NETWORKS]
         -> [SUCCEEDED] / [SUCCEEDED_WITH_WARNING]

All per-run state lives in a SessionContext threaded through the stages.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from ..errors import AuxiliaryQueryFailed, DeviceNotFound, EndpointNotFound, ModemBringupError
from ..providers.base import (
    ConnectionMode,
    Endpoint,
    ModemIdentity,
    ModemQueryTransport,
    NetworkOperator,
    ProbeAttempt,
    RegistrationState,
    Remediation,
    SignalReading,
    SignalTier,
    SimState,
)
from ..providers.modem.at_transport import ATTransport
from ..providers.modem.constants import DEVICE_POLL_INTERVAL
from ..providers.modem.qmi_transport import QMITransport
from .command_channel import open_channel
from .endpoint_enumerator import EndpointEnumerator, identify_usb_modem
from .manager_control import ManagerControl
from .port_reclaimer import PortReclaimer
from .preferences import PreferencesService, SessionConfig
from .probe_engine import ProbeEngine
from .response_interpreter import describe_signal, remediation_for

logger = logging.getLogger(__name__)


class SessionState(Enum):
    INIT = "init"
    DETECT_CONNECTION_MODE = "detect_connection_mode"
    DISABLE_CONFLICTING_MANAGER = "disable_conflicting_manager"
    AWAIT_STABILIZATION = "await_stabilization"
    PROBE_FOR_CAPABLE_ENDPOINT = "probe_for_capable_endpoint"
    QUERY_SIM_AND_IDENTITY = "query_sim_and_identity"
    QUERY_SIGNAL = "query_signal"
    SCAN_NETWORKS = "scan_networks"
    SUCCEEDED = "succeeded"
    SUCCEEDED_WITH_WARNING = "succeeded_with_warning"
    FAILED = "failed"


class SessionOutcome(Enum):
    SUCCEEDED = "succeeded"
    SUCCEEDED_WITH_WARNING = "succeeded_with_warning"
    FAILED = "failed"


EXIT_OK = 0
EXIT_NO_ENDPOINT = 1
EXIT_NO_DEVICE = 2
EXIT_USAGE = 3


@dataclass(frozen=True)
class SessionResult:
    """Final report of one session. Built once, never modified."""

    outcome: SessionOutcome
    state: SessionState
    connection_mode: Optional[ConnectionMode] = None
    at_endpoint: Optional[Endpoint] = None
    qmi_endpoint: Optional[Endpoint] = None
    signal: Optional[SignalReading] = None
    registration: RegistrationState = RegistrationState.UNKNOWN
    sim: SimState = SimState.UNKNOWN
    identity: ModemIdentity = field(default_factory=ModemIdentity)
    transport: str = ""
    usb_device: Optional[Dict[str, str]] = None
    error_kind: str = ""
    error_message: str = ""
    warnings: Tuple[str, ...] = ()
    notes: Tuple[str, ...] = ()
    remediation: Tuple[Remediation, ...] = ()
    operators: Tuple[NetworkOperator, ...] = ()
    attempts: Tuple[ProbeAttempt, ...] = ()
    history: Tuple[SessionState, ...] = ()

    @property
    def exit_code(self) -> int:
        if self.outcome is not SessionOutcome.FAILED:
            return EXIT_OK
        if self.error_kind == DeviceNotFound.kind:
            return EXIT_NO_DEVICE
        return EXIT_NO_ENDPOINT

    @property
    def succeeded(self) -> bool:
        return self.outcome is not SessionOutcome.FAILED

    def to_dict(self) -> Dict:
        return {
            "outcome": self.outcome.value,
            "state": self.state.value,
            "exit_code": self.exit_code,
            "connection_mode": self.connection_mode.value if self.connection_mode else None,
            "at_endpoint": self.at_endpoint.to_dict() if self.at_endpoint else None,
            "qmi_endpoint": self.qmi_endpoint.to_dict() if self.qmi_endpoint else None,
            "signal": self.signal.to_dict() if self.signal else None,
            "signal_label": describe_signal(self.signal)["label"] if self.signal else None,
            "registration": self.registration.value,
            "sim": self.sim.value,
            "identity": self.identity.to_dict(),
            "transport": self.transport,
            "usb_device": self.usb_device,
            "error": {"kind": self.error_kind, "message": self.error_message} if self.error_kind else None,
            "warnings": list(self.warnings),
            "notes": list(self.notes),
            "remediation": [r.value for r in self.remediation],
            "operators": [o.to_dict() for o in self.operators],
            "attempts": [a.to_dict() for a in self.attempts],
            "history": [s.value for s in self.history],
        }


@dataclass
class SessionContext:
    """Mutable per-run state handed from stage to stage"""

    config: SessionConfig
    state: SessionState = SessionState.INIT
    history: List[SessionState] = field(default_factory=lambda: [SessionState.INIT])
    connection_mode: Optional[ConnectionMode] = None
    qmi_endpoint: Optional[Endpoint] = None
    at_endpoint: Optional[Endpoint] = None
    usb_device: Optional[Dict[str, str]] = None
    transports: List[ModemQueryTransport] = field(default_factory=list)
    at_transport: Optional[ModemQueryTransport] = None
    signal_transport: str = ""
    identity: ModemIdentity = field(default_factory=ModemIdentity)
    sim: SimState = SimState.UNKNOWN
    signal: Optional[SignalReading] = None
    registration: RegistrationState = RegistrationState.UNKNOWN
    attempts: List[ProbeAttempt] = field(default_factory=list)
    operators: List[NetworkOperator] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    remediation: List[Remediation] = field(default_factory=list)
    error: Optional[ModemBringupError] = None

    def advance(self, state: SessionState):
        logger.debug(f"Session state: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def add_remediation(self, items: List[Remediation]):
        for item in items:
            if item not in self.remediation:
                self.remediation.append(item)

    def fail(self, error: ModemBringupError):
        self.error = error
        self.add_remediation(error.remediation)
        self.advance(SessionState.FAILED)

    def to_result(self) -> SessionResult:
        if self.state is SessionState.FAILED:
            outcome = SessionOutcome.FAILED
        elif self.warnings:
            outcome = SessionOutcome.SUCCEEDED_WITH_WARNING
        else:
            outcome = SessionOutcome.SUCCEEDED

        return SessionResult(
            outcome=outcome,
            state=self.state,
            connection_mode=self.connection_mode,
            at_endpoint=self.at_endpoint,
            qmi_endpoint=self.qmi_endpoint,
            signal=self.signal,
            registration=self.registration,
            sim=self.sim,
            identity=self.identity,
            transport=self.signal_transport,
            usb_device=self.usb_device,
            error_kind=self.error.kind if self.error else "",
            error_message=str(self.error) if self.error else "",
            warnings=tuple(self.warnings),
            notes=tuple(self.notes),
            remediation=tuple(self.remediation),
            operators=tuple(self.operators),
            attempts=tuple(self.attempts),
            history=tuple(self.history),
        )


class SessionOrchestrator:
    """
    Runs one bring-up session.

    Collaborators are injectable so the whole state machine can run against
    fakes: enumerator, manager control, probe engine, transport factories,
    sleep and clock.
    """

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        preferences: Optional[PreferencesService] = None,
        enumerator: Optional[EndpointEnumerator] = None,
        manager: Optional[ManagerControl] = None,
        probe_engine: Optional[ProbeEngine] = None,
        at_transport_factory: Optional[Callable[[Endpoint], ModemQueryTransport]] = None,
        qmi_transport_factory: Optional[Callable[[Endpoint], ModemQueryTransport]] = None,
        channel_factory: Optional[Callable] = None,
        reclaimer: Optional[PortReclaimer] = None,
        usb_identifier: Callable[[], Optional[Dict[str, str]]] = identify_usb_modem,
        report_writer=None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if config is None:
            config = preferences.get_session_config() if preferences else SessionConfig()
        self.config = config
        self.preferences = preferences
        self.enumerator = enumerator or EndpointEnumerator(config.device_root)
        self.manager = manager or ManagerControl(config.manager_service, use_sudo=config.use_sudo, sleep=sleep)
        self.sleep = sleep
        self.clock = clock

        self.reclaimer = reclaimer if reclaimer is not None else PortReclaimer()
        self.channel_factory = channel_factory or (lambda endpoint: open_channel(endpoint, baudrate=config.baudrate))
        self.probe_engine = probe_engine or ProbeEngine(self.channel_factory, self.reclaimer, sleep=sleep)
        self.at_transport_factory = at_transport_factory or self._default_at_transport
        self.qmi_transport_factory = qmi_transport_factory or (
            lambda device: QMITransport(device, use_sudo=config.use_sudo)
        )
        self.usb_identifier = usb_identifier
        self.report_writer = report_writer
        self.last_result: Optional[SessionResult] = None

    def _default_at_transport(self, endpoint: Endpoint) -> ModemQueryTransport:
        return ATTransport(
            endpoint,
            channel_factory=self.channel_factory,
            reclaimer=self.reclaimer,
            settle_delay=self.config.probe.settle_delay,
            sleep=self.sleep,
        )

    # ==================== Stages ====================

    def _detect_connection_mode(self, ctx: SessionContext):
        ctx.advance(SessionState.DETECT_CONNECTION_MODE)
        logger.info("Waiting for modem device detection...")

        deadline = self.clock() + ctx.config.device_wait_timeout
        mode = self.enumerator.detect_connection_mode()
        while mode is None and self.clock() < deadline:
            self.sleep(DEVICE_POLL_INTERVAL)
            mode = self.enumerator.detect_connection_mode()

        if mode is None:
            raise DeviceNotFound(
                f"No modem device detected after {ctx.config.device_wait_timeout:.0f}s "
                f"(no ttyUSB or MHI/wwan endpoints under {self.enumerator.device_root})"
            )

        ctx.connection_mode = mode
        logger.info(f"✅ Modem detected over {mode.value.upper()}")

        qmi_devices = self.enumerator.enumerate_qmi(mode)
        if qmi_devices:
            ctx.qmi_endpoint = qmi_devices[0]
            logger.info(f"QMI device found: {ctx.qmi_endpoint.path}")
        else:
            ctx.notes.append("QMI device not found")
            logger.warning("QMI device not found")

        if mode is ConnectionMode.USB and self.usb_identifier:
            ctx.usb_device = self.usb_identifier()
            if ctx.usb_device:
                logger.info(f"USB device: {ctx.usb_device['name']} ({ctx.usb_device['usb_id']})")

    def _disable_conflicting_manager(self, ctx: SessionContext):
        ctx.advance(SessionState.DISABLE_CONFLICTING_MANAGER)
        if not ctx.config.disable_manager:
            logger.info("Leaving conflicting manager untouched")
            return

        try:
            result = self.manager.disable()
        except Exception as e:
            logger.warning(f"Conflicting manager control failed: {e}")
            ctx.notes.append(f"Could not disable {ctx.config.manager_service}: {e}")
            return

        if not result.get("success"):
            ctx.notes.append(f"{ctx.config.manager_service} may still be running")

    def _await_stabilization(self, ctx: SessionContext):
        ctx.advance(SessionState.AWAIT_STABILIZATION)
        logger.info(f"Waiting {ctx.config.stabilization_delay:g}s for device stabilization...")
        self.sleep(ctx.config.stabilization_delay)

    def _order_candidates(self, candidates: List[Endpoint]) -> List[Endpoint]:
        """Move the remembered AT port to the front; it is still re-validated"""
        if not (self.preferences and self.config.probe.use_last_port_hint):
            return candidates

        hint = self.preferences.get_last_at_port()
        hinted = [ep for ep in candidates if ep.path == hint]
        if not hinted:
            return candidates

        logger.debug(f"Trying last known AT port {hint} first")
        return hinted + [ep for ep in candidates if ep.path != hint]

    def _probe_for_capable_endpoint(self, ctx: SessionContext):
        ctx.advance(SessionState.PROBE_FOR_CAPABLE_ENDPOINT)

        candidates = self.enumerator.enumerate(ctx.connection_mode)
        if not candidates:
            raise DeviceNotFound(f"Modem endpoints disappeared after stabilization ({ctx.connection_mode.value})")

        logger.info(f"Testing AT commands on {len(candidates)} endpoint(s)...")
        probe = ctx.config.probe
        first_attempt = len(self.probe_engine.attempts)
        endpoint = self.probe_engine.find_capable_endpoint(
            self._order_candidates(candidates),
            command=probe.command,
            max_attempts_per_endpoint=probe.max_attempts,
            settle_delay=probe.settle_delay,
            read_timeout=probe.read_timeout,
        )
        ctx.attempts.extend(self.probe_engine.attempts[first_attempt:])

        if endpoint is None:
            if self.preferences:
                self.preferences.set_last_at_port(None)
            raise EndpointNotFound(f"No working AT command port among {len(candidates)} endpoint(s)")

        ctx.at_endpoint = endpoint
        if self.preferences:
            self.preferences.set_last_at_port(endpoint.path)

    def _build_transports(self, ctx: SessionContext):
        at_transport = self.at_transport_factory(ctx.at_endpoint)
        ctx.at_transport = at_transport
        transports = [at_transport]

        if ctx.config.prefer_qmi and ctx.qmi_endpoint is not None:
            qmi_transport = self.qmi_transport_factory(ctx.qmi_endpoint)
            if qmi_transport.is_available():
                transports.insert(0, qmi_transport)
            else:
                ctx.notes.append("qmicli not available, using AT commands only")

        ctx.transports = transports
        logger.info(f"Query transports: {', '.join(t.name for t in transports)}")

    def _query_sim_and_identity(self, ctx: SessionContext):
        ctx.advance(SessionState.QUERY_SIM_AND_IDENTITY)
        self._build_transports(ctx)

        for transport in ctx.transports:
            try:
                ctx.identity = ctx.identity.merge(transport.get_identity())
            except AuxiliaryQueryFailed as e:
                logger.warning(f"Identity query over {transport.name} failed: {e}")
                ctx.notes.append(f"Identity unavailable over {transport.name}")

        for transport in ctx.transports:
            try:
                ctx.sim = transport.get_sim_state()
            except AuxiliaryQueryFailed as e:
                logger.warning(f"SIM query over {transport.name} failed: {e}")
                continue
            if ctx.sim is not SimState.UNKNOWN:
                break

        if ctx.sim is SimState.READY:
            logger.info("✅ SIM card ready")
        elif ctx.sim is SimState.PIN_REQUIRED:
            logger.warning("SIM card requires PIN")
            ctx.notes.append("SIM card requires PIN")
            ctx.add_remediation([Remediation.CHECK_SIM])
        else:
            logger.warning("SIM card status unclear")
            ctx.notes.append("SIM card status unclear")

    def _query_signal(self, ctx: SessionContext):
        ctx.advance(SessionState.QUERY_SIGNAL)
        primary = ctx.transports[0]
        reading = primary.get_signal()
        ctx.signal_transport = primary.name

        if len(ctx.transports) > 1:
            fallback = ctx.transports[1].get_signal()
            if reading.tier is SignalTier.UNPARSEABLE:
                reading = fallback
                ctx.signal_transport = ctx.transports[1].name
            elif fallback.tier is not reading.tier and fallback.tier is not SignalTier.UNPARSEABLE:
                ctx.notes.append(
                    f"Signal cross-check: {primary.name}={reading.tier.value}, "
                    f"{ctx.transports[1].name}={fallback.tier.value}"
                )

        ctx.signal = reading
        description = describe_signal(reading)
        if reading.is_warning:
            ctx.warnings.append(description["label"])
            ctx.add_remediation(remediation_for(reading.tier))
            logger.warning(f"⚠️ {description['label']}")
        else:
            logger.info(f"✅ {description['label']}")

        for transport in ctx.transports:
            ctx.registration = transport.get_registration()
            if ctx.registration is not RegistrationState.UNKNOWN:
                break

        if ctx.registration not in (RegistrationState.REGISTERED_HOME, RegistrationState.REGISTERED_ROAMING):
            ctx.notes.append(f"Network registration: {ctx.registration.value}")

    def _scan_networks(self, ctx: SessionContext):
        if not ctx.config.scan_networks:
            return

        ctx.advance(SessionState.SCAN_NETWORKS)
        try:
            ctx.operators = ctx.at_transport.scan_operators(ctx.config.scan_timeout)
        except (AuxiliaryQueryFailed, NotImplementedError) as e:
            logger.warning(f"Network scan failed: {e}")
            ctx.notes.append("Network scan failed")
            return

        if not ctx.operators:
            logger.warning("No networks found in scan")
            ctx.notes.append("No networks found in scan")
            return

        logger.info(f"✅ Networks found: {', '.join(o.long_name for o in ctx.operators)}")

    # ==================== Run ====================

    def run(self) -> SessionResult:
        ctx = SessionContext(self.config)

        try:
            self._detect_connection_mode(ctx)
            self._disable_conflicting_manager(ctx)
            self._await_stabilization(ctx)
            self._probe_for_capable_endpoint(ctx)
            self._query_sim_and_identity(ctx)
            self._query_signal(ctx)
            self._scan_networks(ctx)
            ctx.advance(SessionState.SUCCEEDED_WITH_WARNING if ctx.warnings else SessionState.SUCCEEDED)
        except (DeviceNotFound, EndpointNotFound) as e:
            logger.error(f"❌ {e}")
            ctx.fail(e)

        result = ctx.to_result()
        self.last_result = result

        if self.report_writer is not None:
            try:
                self.report_writer.write(result)
            except OSError as e:
                logger.warning(f"Could not write report files: {e}")

        return result
