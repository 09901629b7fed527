"""
Exception types raised at internal component seams.

None of these escape into host code: the pipeline layer catches them and
degrades to absent or partial telemetry.
"""


class RumError(Exception):
    """Base class for watchlog-rum errors."""


class StorageError(RumError):
    """Persistent key-value storage could not be read, parsed or written."""


class TransportError(RumError):
    """A payload could not be handed to the network layer."""
