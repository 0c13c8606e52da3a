"""
Error types shared by the host server and the controller client.
"""


class RemoteMouseError(Exception):
    """Base class for all Remote Mouse errors."""


class InvalidInput(RemoteMouseError):
    """A request payload was malformed (non-numeric delta, unknown click type)."""


class CapabilityUnavailable(RemoteMouseError):
    """The host cursor-control primitive could not be reached or initialized."""


class TransportFailure(RemoteMouseError):
    """A client-side network call failed, timed out or got an error status."""
