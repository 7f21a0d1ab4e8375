"""
Error taxonomy for photovault.

Query errors (ValidationError, NotFoundError) propagate to callers.
Pipeline errors are caught per file by the ingest pipeline and reported
as outcomes; they never cross into sibling uploads.
"""

from typing import Optional


class PhotoVaultError(Exception):
    """Base class for all photovault errors."""
    pass


class ValidationError(PhotoVaultError):
    """Raised for malformed ids, missing parameters or bad numeric values."""
    pass


class NotFoundError(PhotoVaultError):
    """Raised when a lookup or delete targets an id with no record."""
    pass


class PipelineError(PhotoVaultError):
    """
    A failure inside one file's ingest pipeline.

    Attributes:
        stage: Name of the stage that failed (e.g. 'thumbnailed')
    """

    stage: Optional[str] = None

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class StagingError(PipelineError):
    stage = 'staged'


class PlacementError(PipelineError):
    stage = 'placed'


class ThumbnailError(PipelineError):
    stage = 'thumbnailed'


class PersistenceError(PipelineError):
    """Raised when the metadata store rejects or cannot complete a write or read."""
    stage = 'persisted'


class CancellationError(PipelineError):
    """Raised when the batch cancel signal is observed at a stage boundary."""
    stage = 'cancelled'
