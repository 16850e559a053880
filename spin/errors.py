"""Exception hierarchy for the wheel spin app."""

from __future__ import annotations


class SpinError(Exception):
    """Base exception the views map to JSON error responses."""


class ConfigurationError(SpinError):
    """Raised when the prize catalog is missing, empty or malformed."""


class UpstreamUnavailable(SpinError):
    """Raised when a call to the backing platform fails or times out."""


class StaleCounterError(UpstreamUnavailable):
    """Raised when a prize record changed between the snapshot read and the counter write."""


class ValidationError(SpinError):
    """Raised when request input is missing or malformed."""


class Unauthorized(SpinError):
    """Raised when the admin key does not match the configured secret."""


class ParticipantBusyError(SpinError):
    """Raised when another request currently holds the lock for the same participant."""


__all__ = [
    "ConfigurationError",
    "ParticipantBusyError",
    "SpinError",
    "StaleCounterError",
    "Unauthorized",
    "UpstreamUnavailable",
    "ValidationError",
]
