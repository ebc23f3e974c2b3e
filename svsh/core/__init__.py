"""Core modules for the svsh supervision shell."""

from svsh.core.errors import (
    AdapterInvocationFailure,
    ConfigurationError,
    LogUnavailable,
    NoMatch,
    SvshError,
    UnknownSignal,
    UnknownSuite,
    UnsupportedOperation,
)
from svsh.core.models import Capability, Outcome, Service, Session, SuiteKind

__all__ = [
    "AdapterInvocationFailure",
    "Capability",
    "ConfigurationError",
    "LogUnavailable",
    "NoMatch",
    "Outcome",
    "Service",
    "Session",
    "SuiteKind",
    "SvshError",
    "UnknownSignal",
    "UnknownSuite",
    "UnsupportedOperation",
]
