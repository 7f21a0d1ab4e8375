"""
PhotoCatalog - Read and delete operations over the store and blob placer.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .blob_placer import BlobPlacer
from .errors import PhotoVaultError, ValidationError
from .metadata_store import MetadataStore, validate_photo_id
from .photo_record import PhotoRecord


@dataclass
class DeleteResult:
    """
    Outcome of a bulk delete.

    Attributes:
        deleted: Ids whose record was removed
        failed: Id -> error message for the rest
    """
    deleted: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {'deleted': self.deleted, 'failed': self.failed}


class PhotoCatalog:
    """
    Thin layer the HTTP and CLI front ends talk to for reads and deletes.
    """

    def __init__(
        self,
        store: MetadataStore,
        placer: BlobPlacer,
        logger: Optional[logging.Logger] = None
    ):
        self.store = store
        self.placer = placer
        self.logger = logger or logging.getLogger(__name__)

    def get(self, photo_id: str) -> PhotoRecord:
        return self.store.get(photo_id)

    def list(self, last_id: Optional[str] = None, limit=50) -> List[PhotoRecord]:
        return self.store.list(last_id=last_id, limit=limit)

    def search_by_box(self, lat_min, lat_max, lon_min, lon_max, last_id=None, limit=50) -> List[PhotoRecord]:
        return self.store.search_by_box(lat_min, lat_max, lon_min, lon_max, last_id=last_id, limit=limit)

    def search_near(self, lon, lat, distance, last_id=None, limit=50) -> List[PhotoRecord]:
        return self.store.search_near(lon, lat, distance, last_id=last_id, limit=limit)

    def artifact_urls(self, record: PhotoRecord) -> Dict[str, str]:
        """Readable locations of the original and thumbnail."""
        return {
            'file': self.placer.resolve(record.file_path),
            'thumbnail': self.placer.resolve(record.thumbnail_path),
        }

    def delete(self, photo_id: str) -> None:
        """
        Delete a record and both of its artifacts.

        The record goes first so it is never visible without its files.
        Artifact removal problems are logged; the record stays deleted.

        Raises:
            ValidationError: malformed id
            NotFoundError: no such record
            PersistenceError: the store failed
        """
        validate_photo_id(photo_id)
        record = self.store.get(photo_id)
        self.store.delete(photo_id)

        for location in (record.file_path, record.thumbnail_path):
            try:
                self.placer.remove(location)
            except Exception as e:
                self.logger.error(f"Failed to remove artifact {location} of {photo_id}: {e}")

        self.logger.info(f"Photo deleted: {photo_id}")

    def delete_many(self, photo_ids: Sequence[str]) -> DeleteResult:
        """
        Delete several photos; one failure never stops the others.

        Raises:
            ValidationError: no ids given
        """
        if not photo_ids:
            raise ValidationError("No photo ids provided")

        result = DeleteResult()
        for photo_id in photo_ids:
            try:
                self.delete(photo_id)
                result.deleted.append(photo_id)
            except PhotoVaultError as e:
                self.logger.error(f"Failed to delete photo in bulk: {photo_id}: {e}")
                result.failed[str(photo_id)] = str(e)

        self.logger.info(f"Bulk delete: {len(result.deleted)} deleted, {len(result.failed)} failed")
        return result
