"""
Probe Engine - Find the endpoint that answers AT commands
Linear, first-match-wins scan. Endpoints are never probed in parallel:
concurrent writes to several serial lines on one USB controller cross-talk
and make failures impossible to attribute.
"""

import logging
import time
from typing import Callable, List, Optional, Sequence

from ..errors import ChannelUnavailable
from ..providers.base import Endpoint, EndpointRole, ProbeAttempt, ProbeOutcome
from ..providers.modem.constants import (
    PROBE_COMMAND,
    PROBE_MAX_ATTEMPTS,
    PROBE_READ_TIMEOUT,
    PROBE_SETTLE_DELAY,
)
from .command_channel import CommandChannel, open_channel
from .port_reclaimer import PortReclaimer
from .response_interpreter import is_ok_reply

logger = logging.getLogger(__name__)


class ProbeEngine:
    """
    Sends a liveness command to each candidate in turn.

    For each candidate: reclaim exclusive access, open, wait settle_delay,
    then up to max_attempts rounds of send / read / predicate. The first
    success stops the scan.
    """

    def __init__(
        self,
        channel_factory: Callable[[Endpoint], CommandChannel] = open_channel,
        reclaimer: Optional[PortReclaimer] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.channel_factory = channel_factory
        self.reclaimer = reclaimer if reclaimer is not None else PortReclaimer()
        self.sleep = sleep
        self.attempts: List[ProbeAttempt] = []
        self.probed: List[Endpoint] = []

    def _reclaim(self, endpoint: Endpoint):
        try:
            released = self.reclaimer.reclaim(endpoint.path)
            if released:
                logger.info(f"Released {released} holder(s) of {endpoint.path}")
        except Exception as e:
            logger.warning(f"Exclusive-access reclaim failed for {endpoint.path}: {e}")

    def _record(self, endpoint: Endpoint, command: str, response: bytes, outcome: ProbeOutcome, attempt: int):
        self.attempts.append(ProbeAttempt(endpoint, command, response, outcome, attempt))

    def probe_endpoint(
        self,
        endpoint: Endpoint,
        command: str = PROBE_COMMAND,
        success_predicate: Callable[[bytes], bool] = is_ok_reply,
        max_attempts: int = PROBE_MAX_ATTEMPTS,
        settle_delay: float = PROBE_SETTLE_DELAY,
        read_timeout: float = PROBE_READ_TIMEOUT,
    ) -> bool:
        """Probe a single endpoint with bounded retries"""
        self.probed.append(endpoint)
        self._reclaim(endpoint)

        try:
            channel = self.channel_factory(endpoint)
        except ChannelUnavailable as e:
            logger.warning(f"{endpoint.path} unavailable: {e}")
            self._record(endpoint, command, b"", ProbeOutcome.UNAVAILABLE, 1)
            return False

        try:
            self.sleep(settle_delay)

            for attempt in range(1, max_attempts + 1):
                try:
                    response = channel.query(command, read_timeout)
                except ChannelUnavailable as e:
                    logger.warning(f"{endpoint.path} failed mid-probe: {e}")
                    self._record(endpoint, command, b"", ProbeOutcome.UNAVAILABLE, attempt)
                    return False

                if not response:
                    outcome = ProbeOutcome.TIMEOUT
                elif success_predicate(response):
                    outcome = ProbeOutcome.OK
                else:
                    outcome = ProbeOutcome.NO_MATCH

                self._record(endpoint, command, response, outcome, attempt)

                if outcome is ProbeOutcome.OK:
                    return True

                logger.debug(f"{endpoint.path} attempt {attempt}/{max_attempts}: {outcome.value}")
        finally:
            channel.close()

        return False

    def find_capable_endpoint(
        self,
        candidates: Sequence[Endpoint],
        command: str = PROBE_COMMAND,
        success_predicate: Callable[[bytes], bool] = is_ok_reply,
        max_attempts_per_endpoint: int = PROBE_MAX_ATTEMPTS,
        settle_delay: float = PROBE_SETTLE_DELAY,
        read_timeout: float = PROBE_READ_TIMEOUT,
    ) -> Optional[Endpoint]:
        """
        Returns the first endpoint that answers, re-roled AT_CAPABLE.
        Returns None only after every candidate has been tried.
        """
        if max_attempts_per_endpoint < 1:
            raise ValueError("max_attempts_per_endpoint must be at least 1")

        for endpoint in candidates:
            logger.info(f"Testing {endpoint.path}...")
            if self.probe_endpoint(
                endpoint,
                command=command,
                success_predicate=success_predicate,
                max_attempts=max_attempts_per_endpoint,
                settle_delay=settle_delay,
                read_timeout=read_timeout,
            ):
                logger.info(f"✅ AT commands work on {endpoint.path}")
                return endpoint.with_role(EndpointRole.AT_CAPABLE)

            logger.warning(f"{endpoint.path} - No AT response")

        logger.error(f"No working AT command port among {len(candidates)} candidate(s)")
        return None
