"""
IngestPipeline - Takes one upload from stream to committed PhotoRecord.

Stages run strictly in order:

    received -> staged -> extracted -> placed -> thumbnailed -> persisted

Each successful stage that leaves something behind pushes a compensating
action. If any later stage fails, or the cancel signal is seen at a stage
boundary, the actions run in reverse so no artifact outlives a failed
upload. The result is always either a committed record with both
artifacts present, or nothing.
"""

import logging
import mimetypes
import os
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from .blob_placer import BlobPlacer, StagedFile
from .errors import (
    CancellationError,
    PersistenceError,
    PipelineError,
    PlacementError,
    StagingError,
    ThumbnailError,
)
from .metadata_extractor import ExtractedMetadata, MetadataExtractor
from .metadata_store import MetadataStore
from .photo_id import new_photo_id
from .photo_record import PhotoRecord, UploadFile
from .thumbnail_generator import ThumbnailGenerator

RECEIVED = 'received'
STAGED = 'staged'
EXTRACTED = 'extracted'
PLACED = 'placed'
THUMBNAILED = 'thumbnailed'
PERSISTED = 'persisted'
ROLLING_BACK = 'rolling_back'
FAILED = 'failed'

DEFAULT_EXTENSION = '.jpg'
DEFAULT_CONTENT_TYPE = 'application/octet-stream'

StageCallback = Callable[[str, str], None]


@dataclass
class IngestOutcome:
    """
    Result of ingesting one file.

    Attributes:
        filename: Filename as uploaded
        success: True if a record was committed
        record_id: Id of the committed record
        error: Error message when the upload failed
        stage: Last stage reached (or the failing stage)
        record: The committed record
    """
    filename: str
    success: bool
    record_id: Optional[str] = None
    error: Optional[str] = None
    stage: Optional[str] = None
    record: Optional[PhotoRecord] = None

    def to_dict(self) -> dict:
        data = {'filename': self.filename, 'success': self.success}
        if self.record_id is not None:
            data['recordId'] = self.record_id
        if self.error is not None:
            data['error'] = self.error
        return data


class CompensationLog:
    """
    Ordered list of undo actions for one pipeline run.

    Actions are pushed as stages succeed and run last-in first-out.
    A failing action is logged and the rest still run.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self._actions: List[Tuple[str, Callable[[], None]]] = []

    def push(self, description: str, action: Callable[[], None]) -> None:
        self._actions.append((description, action))

    def __len__(self) -> int:
        return len(self._actions)

    def compensate(self) -> List[str]:
        """Run every action in reverse order; return descriptions of those that failed."""
        failures = []
        while self._actions:
            description, action = self._actions.pop()
            try:
                self.logger.debug(f"Compensating: {description}")
                action()
            except Exception as e:
                self.logger.error(f"Compensation failed ({description}): {e}")
                failures.append(description)
        return failures

    def clear(self) -> None:
        self._actions.clear()


class IngestPipeline:
    """
    Runs the ingest stages for a single upload.

    One instance can be shared by many threads; all per-upload state lives
    in run().
    """

    def __init__(
        self,
        store: MetadataStore,
        placer: BlobPlacer,
        thumbnail_generator: Optional[ThumbnailGenerator] = None,
        extractor: Optional[MetadataExtractor] = None,
        on_stage: Optional[StageCallback] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize pipeline.

        Args:
            store: Metadata store records are committed to
            placer: Blob placer for staging and artifacts
            thumbnail_generator: Thumbnail generator (default: 100px square)
            extractor: EXIF metadata extractor
            on_stage: Optional callback receiving (filename, stage) as stages complete
            logger: Optional logger instance
        """
        self.store = store
        self.placer = placer
        self.logger = logger or logging.getLogger(__name__)
        self.thumb_gen = thumbnail_generator or ThumbnailGenerator(logger=self.logger)
        self.extractor = extractor or MetadataExtractor(logger=self.logger)
        self.on_stage = on_stage

    def run(self, upload: UploadFile, cancel_event: Optional[threading.Event] = None) -> IngestOutcome:
        """
        Ingest one file.

        Never raises for stage failures; they are reported in the outcome.

        Args:
            upload: The incoming file
            cancel_event: Shared batch cancel signal

        Returns:
            IngestOutcome
        """
        start = time.time()
        compensation = CompensationLog(self.logger)
        stage = RECEIVED
        staged = None

        try:
            self._check_cancelled(cancel_event, upload.filename)
            extension = self.extension_for(upload)
            content_type = self.content_type_for(upload)

            staged = self._stage(upload, extension)
            stage = self._advance(upload, STAGED)

            self._check_cancelled(cancel_event, upload.filename)
            image_data = self._read_staged(staged)
            metadata = self._extract(upload, image_data)
            ingested_at = datetime.now(timezone.utc)
            taken_at = metadata.taken_at or ingested_at
            photo_id = new_photo_id(taken_at)
            stage = self._advance(upload, EXTRACTED)

            self._check_cancelled(cancel_event, upload.filename)
            file_path = self._place(staged, photo_id, extension, content_type)
            compensation.push(f"remove original {file_path}", lambda: self.placer.remove(file_path))
            stage = self._advance(upload, PLACED)

            self._check_cancelled(cancel_event, upload.filename)
            thumbnail_path = self._thumbnail(photo_id, extension, image_data)
            compensation.push(f"remove thumbnail {thumbnail_path}", lambda: self.placer.remove(thumbnail_path))
            stage = self._advance(upload, THUMBNAILED)

            self._check_cancelled(cancel_event, upload.filename)
            record = PhotoRecord(
                id=photo_id,
                size=staged.size,
                content_type=content_type,
                file_path=file_path,
                thumbnail_path=thumbnail_path,
                taken_at=taken_at,
                lon_lat=metadata.geo_point,
                metadata=self._record_metadata(upload, metadata, ingested_at),
            )
            self._persist(record)
            compensation.clear()
            stage = self._advance(upload, PERSISTED)

        except PipelineError as e:
            return self._fail(upload, stage, e, compensation)
        except Exception as e:
            return self._fail(upload, stage, PipelineError(f"Unexpected error: {e}", stage=stage), compensation)
        finally:
            if staged is not None:
                self.placer.discard(staged)

        self.logger.info(
            f"Photo ingested: {upload.filename} -> {record.id} "
            f"({staged.size} bytes, {time.time() - start:.2f}s)"
        )
        return IngestOutcome(
            filename=upload.filename,
            success=True,
            record_id=record.id,
            stage=PERSISTED,
            record=record,
        )

    @staticmethod
    def extension_for(upload: UploadFile) -> str:
        """File extension from the filename, else the content type, else .jpg."""
        extension = os.path.splitext(upload.filename or '')[1].lower()
        if extension:
            return extension
        if upload.content_type:
            guessed = mimetypes.guess_extension(upload.content_type.split(';')[0].strip())
            if guessed:
                return guessed
        return DEFAULT_EXTENSION

    @staticmethod
    def content_type_for(upload: UploadFile) -> str:
        if upload.content_type:
            return upload.content_type
        guessed, _ = mimetypes.guess_type(upload.filename or '')
        return guessed or DEFAULT_CONTENT_TYPE

    def _advance(self, upload: UploadFile, stage: str) -> str:
        self.logger.debug(f"{upload.filename}: {stage}")
        if self.on_stage:
            try:
                self.on_stage(upload.filename, stage)
            except Exception as e:
                self.logger.warning(f"Stage callback failed for {upload.filename} at {stage}: {e}")
        return stage

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event], filename: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise CancellationError(f"Upload cancelled: {filename}")

    def _stage(self, upload: UploadFile, extension: str) -> StagedFile:
        try:
            return self.placer.stage(upload.stream, suffix=extension)
        except StagingError:
            raise
        except Exception as e:
            raise StagingError(f"Failed to stage upload: {e}") from e

    @staticmethod
    def _read_staged(staged: StagedFile) -> bytes:
        try:
            with open(staged.path, 'rb') as f:
                return f.read()
        except OSError as e:
            raise StagingError(f"Failed to read staged file: {e}") from e

    def _extract(self, upload: UploadFile, image_data: bytes) -> ExtractedMetadata:
        try:
            return self.extractor.extract(image_data)
        except Exception as e:
            self.logger.warning(f"Metadata extraction failed for {upload.filename}, using defaults: {e}")
            return ExtractedMetadata()

    def _place(self, staged: StagedFile, photo_id: str, extension: str, content_type: str) -> str:
        try:
            return self.placer.place(staged, photo_id, extension, content_type)
        except PlacementError:
            raise
        except Exception as e:
            raise PlacementError(f"Failed to place upload: {e}") from e

    def _thumbnail(self, photo_id: str, extension: str, image_data: bytes) -> str:
        try:
            thumb_data, thumb_type = self.thumb_gen.generate(image_data, extension)
            thumb_ext = self.thumb_gen.thumbnail_extension(extension)
            return self.placer.write_thumbnail(photo_id, thumb_ext, thumb_data, thumb_type)
        except Exception as e:
            raise ThumbnailError(f"Failed to generate thumbnail: {e}") from e

    def _persist(self, record: PhotoRecord) -> None:
        try:
            self.store.save(record)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save photo metadata: {e}") from e

    @staticmethod
    def _record_metadata(upload: UploadFile, metadata: ExtractedMetadata, ingested_at: datetime) -> dict:
        data = dict(metadata.attributes)
        if upload.filename:
            data['originalFilename'] = upload.filename
        data['ingestedAt'] = ingested_at.isoformat()
        data['takenAtSource'] = 'exif' if metadata.taken_at else 'ingestion'
        return data

    def _fail(
        self,
        upload: UploadFile,
        stage: str,
        error: PipelineError,
        compensation: CompensationLog
    ) -> IngestOutcome:
        failed_stage = error.stage or stage
        if len(compensation):
            self.logger.debug(f"{upload.filename}: {ROLLING_BACK}")
        leftovers = compensation.compensate()

        message = str(error)
        if leftovers:
            message = f"{message} (rollback incomplete: {', '.join(leftovers)})"

        if isinstance(error, CancellationError):
            self.logger.warning(f"Upload cancelled after {stage}: {upload.filename}")
        else:
            self.logger.error(f"Failed to save photo {upload.filename} at {failed_stage}: {message}")

        return IngestOutcome(
            filename=upload.filename,
            success=False,
            error=message,
            stage=failed_stage,
        )
