# hybridfs/file_access/errors.py
"""
Error taxonomy for the file access layer.

Init-time errors (ConfigurationError, ProviderConnectionError, ProtocolError)
are absorbed by the manager's fallback chain. Everything else is raised to
the caller of the failing operation.
"""


class HybridFSError(Exception):
    """Base class for all hybridfs errors."""


class ConfigurationError(HybridFSError):
    """A required provider setting (usually a credential) is missing."""


class ProviderConnectionError(HybridFSError, ConnectionError):
    """A provider could not be reached, or did not answer in time."""


class ProtocolError(HybridFSError):
    """A provider answered with a malformed or out-of-bounds response."""


class NotFoundError(HybridFSError, FileNotFoundError):
    """Operation against a path that does not exist."""


class NotEmptyError(HybridFSError, OSError):
    """Non-recursive delete of a directory that still has children."""


class SearchPatternError(HybridFSError, ValueError):
    """A search pattern is not a valid regular expression."""


class NotReadyError(HybridFSError, RuntimeError):
    """The file manager was used before initialize() completed."""


class RemoteOperationError(HybridFSError):
    """A remote provider rejected an individual operation."""

    def __init__(self, message: str, status: int = None):
        super().__init__(message)
        self.status = status
