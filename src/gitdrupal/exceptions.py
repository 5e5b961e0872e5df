from __future__ import annotations


class GitDrupalError(Exception):
    """Base class for all gitdrupal domain errors."""


class ValidationError(ValueError, GitDrupalError):
    """Raised when a name, version or option combination is malformed."""


class StateConflictError(RuntimeError, GitDrupalError):
    """Raised when a request contradicts the recorded extension state."""


class ExtensionNotFoundError(LookupError, GitDrupalError):
    """Raised when the remote index has no such extension or version."""


class RemoteInaccessibleError(ConnectionError, GitDrupalError):
    """Raised when the remote index cannot be reached or answers unexpectedly."""


class ArchiveInstallError(RuntimeError, GitDrupalError):
    """Raised when downloading or unpacking an extension archive fails."""


class MetadataStoreError(RuntimeError, GitDrupalError):
    """Raised when the metadata file cannot be read or written."""


class LocalOperationError(OSError, GitDrupalError):
    """Raised when moving or deleting extension files fails."""


class VersionControlError(RuntimeError, GitDrupalError):
    """Raised when git refuses an operation or the tree is not usable."""
