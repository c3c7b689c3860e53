"""
AT Transport
Queries the modem over the AT-capable serial endpoint found by the probe
engine and parses the free-text replies.
"""

import logging
import time
from typing import Callable, List, Optional

from ...errors import AuxiliaryQueryFailed, ChannelUnavailable, ProbeTimeout
from ...services.command_channel import CommandChannel, open_channel
from ...services.port_reclaimer import PortReclaimer
from ...services import response_interpreter as interpreter
from ..base import (
    Endpoint,
    ModemIdentity,
    ModemQueryTransport,
    NetworkOperator,
    RegistrationState,
    SignalReading,
    SignalTier,
    SimState,
)
from .constants import OPERATOR_SCAN_TIMEOUT, QUERY_READ_TIMEOUT, ATCommands

logger = logging.getLogger(__name__)


class ATTransport(ModemQueryTransport):
    """
    One channel per query: reclaim, open, settle, send, read, close.
    Keeps the port free between queries so nothing else gets starved.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        channel_factory: Callable[[Endpoint], CommandChannel] = open_channel,
        reclaimer: Optional[PortReclaimer] = None,
        settle_delay: float = 1.0,
        read_timeout: float = QUERY_READ_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__()
        self.name = "at"
        self.endpoint = endpoint
        self.channel_factory = channel_factory
        self.reclaimer = reclaimer if reclaimer is not None else PortReclaimer()
        self.settle_delay = settle_delay
        self.read_timeout = read_timeout
        self.sleep = sleep

    def is_available(self) -> bool:
        return self.endpoint is not None

    def query(self, command: str, timeout: Optional[float] = None) -> bytes:
        """Send one command; raises ProbeTimeout on an empty reply"""
        try:
            self.reclaimer.reclaim(self.endpoint.path)
        except Exception as e:
            logger.warning(f"Exclusive-access reclaim failed for {self.endpoint.path}: {e}")

        with self.channel_factory(self.endpoint) as channel:
            self.sleep(self.settle_delay)
            response = channel.query(command, timeout if timeout is not None else self.read_timeout)

        if not response:
            raise ProbeTimeout(f"No reply to {command} on {self.endpoint.path}")
        return response

    def _aux_query(self, command: str, timeout: Optional[float] = None) -> bytes:
        try:
            response = self.query(command, timeout)
        except (ChannelUnavailable, ProbeTimeout) as e:
            raise AuxiliaryQueryFailed(f"{command} failed: {e}")

        if interpreter.is_error_reply(response):
            raise AuxiliaryQueryFailed(f"{command} returned an error: {response!r}")
        return response

    def get_identity(self) -> ModemIdentity:
        identity = interpreter.parse_identification(self._aux_query(ATCommands.IDENTIFY))

        for command, attr, parser in (
            (ATCommands.IMEI, "imei", interpreter.parse_imei),
            (ATCommands.ICCID, "iccid", interpreter.parse_iccid),
        ):
            try:
                setattr(identity, attr, parser(self._aux_query(command)))
            except AuxiliaryQueryFailed as e:
                logger.debug(f"Optional identity field {attr} unavailable: {e}")

        return identity

    def get_sim_state(self) -> SimState:
        return interpreter.parse_sim_state(self._aux_query(ATCommands.SIM_STATUS))

    def get_signal(self) -> SignalReading:
        try:
            response = self.query(ATCommands.SIGNAL_QUALITY)
        except (ChannelUnavailable, ProbeTimeout) as e:
            logger.warning(f"Signal query failed: {e}")
            return SignalReading(tier=SignalTier.UNPARSEABLE, raw="")
        return interpreter.parse_signal_quality(response)

    def get_registration(self) -> RegistrationState:
        try:
            response = self.query(ATCommands.REGISTRATION)
        except (ChannelUnavailable, ProbeTimeout) as e:
            logger.warning(f"Registration query failed: {e}")
            return RegistrationState.UNKNOWN
        return interpreter.parse_registration(response)

    def scan_operators(self, timeout: float = OPERATOR_SCAN_TIMEOUT) -> List[NetworkOperator]:
        """
        AT+COPS=? sweep of visible operators.
        Raises AuxiliaryQueryFailed on no reply or an error reply.
        """
        logger.info(f"Scanning for networks (up to {timeout:.0f}s)...")
        return interpreter.parse_operator_list(self._aux_query(ATCommands.OPERATOR_SCAN, timeout))
