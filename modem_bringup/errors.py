"""
Error taxonomy for modem bring-up.

Fatal kinds (DeviceNotFound, EndpointNotFound) abort a session. Recoverable
kinds (ChannelUnavailable, ProbeTimeout) move the probe on to the next
attempt or endpoint. AuxiliaryQueryFailed is logged and ignored. "No signal"
and "unparseable" are diagnostic tiers, not exceptions.
"""

from typing import List, Optional

from .providers.base.modem_provider import Remediation


class ModemBringupError(Exception):
    """Base class; carries the remediation classes shown to the operator."""

    kind = "error"
    fatal = False
    default_remediation: List[Remediation] = []

    def __init__(self, message: str, remediation: Optional[List[Remediation]] = None):
        super().__init__(message)
        self.remediation = list(remediation) if remediation is not None else list(self.default_remediation)


class DeviceNotFound(ModemBringupError):
    kind = "device_not_found"
    fatal = True
    default_remediation = [Remediation.CHECK_CONNECTION, Remediation.CHECK_POWER]


class EndpointNotFound(ModemBringupError):
    kind = "no_endpoint"
    fatal = True
    default_remediation = [Remediation.CHECK_MANAGER, Remediation.CHECK_CONNECTION, Remediation.CHECK_POWER]


class ChannelUnavailable(ModemBringupError):
    kind = "channel_unavailable"
    default_remediation = [Remediation.CHECK_CONNECTION]


class ProbeTimeout(ModemBringupError):
    kind = "probe_timeout"
    default_remediation = [Remediation.CHECK_CHANNEL]


class AuxiliaryQueryFailed(ModemBringupError):
    kind = "auxiliary_query_failed"
    default_remediation = [Remediation.CHECK_SIM]


class TransportError(ModemBringupError):
    """A query transport (qmicli, serial) failed as a whole"""

    kind = "transport_error"
    default_remediation = [Remediation.CHECK_CHANNEL]
