"""
Providers module - Modem data model and query transports
"""

from .base import (
    ConnectionMode,
    Endpoint,
    EndpointRole,
    ModemIdentity,
    ModemQueryTransport,
    NetworkOperator,
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
    "RegistrationState",
    "Remediation",
    "SignalReading",
    "SignalTier",
    "SimState",
]
