"""
Base abstractions for modem providers
"""

from .modem_provider import (
    ConnectionMode,
    Endpoint,
    EndpointRole,
    ModemIdentity,
    ModemQueryTransport,
    NetworkOperator,
    ProbeAttempt,
    ProbeOutcome,
    RegistrationState,
    Remediation,
    SignalReading,
    SignalTier,
    SimState,
)

__all__ = [
    "ConnectionMode",
    "Endpoint",
    "EndpointRole",
    "ModemIdentity",
    "ModemQueryTransport",
    "NetworkOperator",
    "ProbeAttempt",
    "ProbeOutcome",
    "RegistrationState",
    "Remediation",
    "SignalReading",
    "SignalTier",
    "SimState",
]
