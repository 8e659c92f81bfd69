"""
Custom exception hierarchy for card ingest.

Metadata problems never leave the date resolver; transfer problems are
attributed to a single group and the import carries on. Only configuration
errors stop a run, and they do so before any file is touched.
"""


class CardIngestError(Exception):
    """Base exception for all card ingest errors."""
    pass


class ConfigurationError(CardIngestError):
    """Raised when a profile or filename template is invalid."""
    pass


class MetadataExtractionError(CardIngestError):
    """Raised when a metadata source cannot produce a usable value."""
    pass


class FileOperationError(CardIngestError):
    """Raised when file copy/move operations fail."""
    pass


class GroupTransferError(FileOperationError):
    """
    Raised when one file of a group fails to transfer.

    Files of the group that were already transferred stay where they are;
    their results are available in `completed`.
    """

    def __init__(self, source_path, cause, completed=None):
        super().__init__(f"Failed to transfer {source_path}: {cause}")
        self.source_path = source_path
        self.cause = cause
        self.completed = list(completed or [])
