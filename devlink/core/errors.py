"""Error kinds raised and absorbed across the connection lifecycle."""

from __future__ import annotations


class DeviceLinkError(Exception):
    """Base class for all devlink errors."""


class DeviceUnavailable(DeviceLinkError):
    """No matching device was found or the selection was declined."""


class HandshakeFailed(DeviceLinkError):
    """Opening the backend or authenticating against it failed."""


class ProbeFailed(DeviceLinkError):
    """A single liveness probe raised instead of returning a metric."""


class TeardownFailed(DeviceLinkError):
    """Closing the transport failed during cleanup."""


class InvalidTransition(DeviceLinkError):
    """A state change was requested that the state machine does not allow."""


__all__ = [
    "DeviceLinkError",
    "DeviceUnavailable",
    "HandshakeFailed",
    "ProbeFailed",
    "TeardownFailed",
    "InvalidTransition",
]
