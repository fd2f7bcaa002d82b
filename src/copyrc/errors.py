"""Exception taxonomy for copyrc.

Pass-scoped errors abort a sync pass before any writes happen.
File-scoped errors are caught by the engine and attached to the
``FileResult`` of the file that failed.
"""


class CopyrcError(Exception):
    """Base class for all copyrc errors."""


class StateCorruptionError(CopyrcError):
    """The lock file exists but could not be parsed or validated."""

    def __init__(self, path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Corrupt lock file {path}: {reason}")


class LockContentionError(CopyrcError):
    """Another process holds the save marker for this destination."""

    def __init__(self, marker_path) -> None:
        self.marker_path = marker_path
        super().__init__(
            f"Lock marker already held: {marker_path}. "
            "Another copyrc run may be in progress; remove the marker "
            "manually if it is stale."
        )


class ConfigurationChangedError(CopyrcError):
    """A status check found the source arguments changed since last sync."""


class StaleStateError(CopyrcError):
    """A remote status check found the remote moved past the lock file."""


class ProviderError(CopyrcError):
    """A remote provider operation failed."""


class MissingContentError(CopyrcError):
    """No content was supplied for a file that has no prior record."""


class NamingConventionError(CopyrcError):
    """A tracked path does not carry a managed-file marker."""


class ConsistencyError(CopyrcError):
    """The filesystem does not match the persisted lock file."""


class SyncCancelledError(CopyrcError):
    """The pass was cancelled before it could finish."""
