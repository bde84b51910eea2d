"""
Custom exception hierarchy for the takeout organizer.

Per-file errors are caught at the worker boundary and turned into
ErrorRecords. SetupError and its subclasses abort the whole run.
"""


class TakeoutOrganizerError(Exception):
    """Base exception for all takeout organizer errors."""
    pass


class MetadataReadError(TakeoutOrganizerError):
    """Raised when the metadata tool fails or returns unusable output."""
    pass


class NoTimestampError(TakeoutOrganizerError):
    """Raised when no metadata source yields a usable capture time."""
    pass


class TimestampWriteError(TakeoutOrganizerError):
    """Raised when writing corrected timestamps back to a file fails."""
    pass


class ExtensionRenameError(TakeoutOrganizerError):
    """Raised when a file cannot be renamed to its canonical extension."""
    pass


class RelocationError(TakeoutOrganizerError):
    """Raised when a file cannot be moved into the output layout."""
    pass


class ManifestMergeError(TakeoutOrganizerError):
    """Raised when album items cannot be merged into a manifest."""
    pass


class LockTimeoutError(ManifestMergeError):
    """Raised when a manifest lock is still held after all retries."""
    pass


class SetupError(TakeoutOrganizerError):
    """Structural failure that aborts the run."""
    pass


class SourceEnumerationError(SetupError):
    """Raised when the source directory cannot be walked."""
    pass


class OutputSetupError(SetupError):
    """Raised when a required output folder cannot be created."""
    pass


class AlbumListError(SetupError):
    """Raised when the album name list is missing or unreadable."""
    pass
