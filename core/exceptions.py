"""Exception types raised across the sync engine."""


class TalestolenError(Exception):
    """Base class for errors raised by this package."""


class HandshakeError(TalestolenError):
    """Peer connection setup failed or was driven out of order."""


class SnapshotStorageError(TalestolenError):
    """The persisted snapshot slot could not be read or written."""
