"""
BlobPlacer - Lifecycle of the durable artifacts behind a photo record.

Incoming streams are first copied into a private staging file, then moved
into their final <id><ext> location. Thumbnails are written next to the
original as <id>_thumb<ext>. remove() is the compensating action for both.
"""

import logging
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import BinaryIO, List, Optional, Tuple

from .errors import PlacementError, StagingError

STAGING_DIR = '.staging'
THUMB_SUFFIX = '_thumb'


@dataclass
class StagedFile:
    """
    A private, fully written copy of one upload.

    Attributes:
        path: Local path of the staging file
        size: Number of bytes copied
    """
    path: str
    size: int


def artifact_names(photo_id: str, extension: str, thumbnail_extension: Optional[str] = None) -> Tuple[str, str]:
    """Names of the original and thumbnail for an id."""
    thumb_ext = thumbnail_extension or extension
    return f"{photo_id}{extension}", f"{photo_id}{THUMB_SUFFIX}{thumb_ext}"


class BlobPlacer(ABC):
    """
    Staging, placement and removal of photo artifacts.
    """

    chunk_size = 64 * 1024

    def __init__(self, staging_dir: str, logger: Optional[logging.Logger] = None):
        self.staging_dir = staging_dir
        self.logger = logger or logging.getLogger(__name__)
        os.makedirs(self.staging_dir, exist_ok=True)

    def stage(self, stream: BinaryIO, suffix: str = '') -> StagedFile:
        """
        Copy a stream into a uniquely named staging file.

        Raises:
            StagingError: the stream could not be read or written
        """
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.staging_dir, prefix="upload_", suffix=suffix)
        except OSError as e:
            raise StagingError(f"Failed to create staging file: {e}") from e

        size = 0
        try:
            with os.fdopen(fd, 'wb') as out:
                for chunk in iter(lambda: stream.read(self.chunk_size), b''):
                    out.write(chunk)
                    size += len(chunk)
        except Exception as e:
            self._unlink(tmp_path)
            raise StagingError(f"Failed to copy upload to staging: {e}") from e
        except BaseException:
            self._unlink(tmp_path)
            raise

        self.logger.debug(f"Staged {size} bytes at {tmp_path}")
        return StagedFile(path=tmp_path, size=size)

    def discard(self, staged: StagedFile) -> None:
        """Remove a staging file if it is still present."""
        self._unlink(staged.path)

    def _unlink(self, path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning(f"Could not delete {path}: {e}")

    @abstractmethod
    def place(self, staged: StagedFile, photo_id: str, extension: str, content_type: str) -> str:
        """Move a staged file to its final location and return that location."""

    @abstractmethod
    def write_thumbnail(self, photo_id: str, extension: str, data: bytes, content_type: str) -> str:
        """Write thumbnail bytes next to the original and return the location."""

    @abstractmethod
    def remove(self, location: str) -> None:
        """Delete an artifact; a missing artifact is not an error."""

    @abstractmethod
    def exists(self, location: str) -> bool:
        """True if the artifact at location is present."""

    @abstractmethod
    def resolve(self, location: str) -> str:
        """A path or URL a client can read the artifact from."""


class LocalBlobPlacer(BlobPlacer):
    """
    Places artifacts in a directory on the local filesystem.

    Staging lives inside the root so placement is an atomic rename.
    """

    def __init__(self, root_path: str, logger: Optional[logging.Logger] = None):
        self.root_path = os.path.abspath(root_path)
        os.makedirs(self.root_path, exist_ok=True)
        super().__init__(os.path.join(self.root_path, STAGING_DIR), logger)

    def _final_path(self, name: str) -> str:
        return os.path.join(self.root_path, name)

    def _check_inside_root(self, location: str) -> str:
        path = os.path.abspath(location)
        if os.path.commonpath([path, self.root_path]) != self.root_path or path == self.root_path:
            raise PlacementError(f"Refusing to touch path outside storage root: {location}")
        return path

    def place(self, staged: StagedFile, photo_id: str, extension: str, content_type: str = '') -> str:
        name, _ = artifact_names(photo_id, extension)
        final_path = self._final_path(name)
        if os.path.exists(final_path):
            raise PlacementError(f"Artifact already exists: {final_path}")
        self.logger.debug(f"Moving {staged.path} to {final_path}")
        try:
            os.replace(staged.path, final_path)
        except OSError as e:
            raise PlacementError(f"Failed to move staged file to {final_path}: {e}") from e
        return final_path

    def write_thumbnail(self, photo_id: str, extension: str, data: bytes, content_type: str = '') -> str:
        _, name = artifact_names(photo_id, extension)
        final_path = self._final_path(name)
        fd, tmp_path = tempfile.mkstemp(dir=self.staging_dir, prefix="thumb_", suffix=extension)
        try:
            with os.fdopen(fd, 'wb') as out:
                out.write(data)
            os.replace(tmp_path, final_path)
        except OSError as e:
            self._unlink(tmp_path)
            raise PlacementError(f"Failed to write thumbnail {final_path}: {e}") from e
        return final_path

    def remove(self, location: str) -> None:
        path = self._check_inside_root(location)
        try:
            os.remove(path)
            self.logger.debug(f"Deleted {path}")
        except FileNotFoundError:
            self.logger.debug(f"Already gone: {path}")

    def exists(self, location: str) -> bool:
        path = self._check_inside_root(location)
        return os.path.isfile(path) and os.access(path, os.R_OK)

    def resolve(self, location: str) -> str:
        return self._check_inside_root(location)

    def artifacts_for(self, photo_id: str) -> List[str]:
        """Every file in the root whose name starts with photo_id."""
        return sorted(
            os.path.join(self.root_path, name)
            for name in os.listdir(self.root_path)
            if name.startswith(photo_id)
        )

    def staging_files(self) -> List[str]:
        return sorted(os.listdir(self.staging_dir))

    def clean_staging(self) -> int:
        """Remove leftovers from interrupted runs; returns the number removed."""
        removed = 0
        for name in os.listdir(self.staging_dir):
            path = os.path.join(self.staging_dir, name)
            if os.path.isdir(path):
                shutil.rmtree(path)
            else:
                self._unlink(path)
            removed += 1
        return removed
