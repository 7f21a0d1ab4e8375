"""
photovault - Photo ingestion and metadata search service

Each upload runs through a staged pipeline:
    staging -> EXIF extraction -> placement -> thumbnail -> metadata commit

A failing stage rolls back everything earlier stages left behind.
Committed photos can be listed, searched by bounding box or distance,
and deleted with their files.
"""

__version__ = "1.0.0"

from .errors import (
    PhotoVaultError,
    ValidationError,
    NotFoundError,
    PipelineError,
    StagingError,
    PlacementError,
    ThumbnailError,
    PersistenceError,
    CancellationError,
)
from .photo_record import GeoPoint, PhotoRecord, UploadFile
from .config import StorageConfig, S3Config, StoreConfig, AppConfig
from .thumbnail_generator import ThumbnailGenerator
from .metadata_extractor import ExtractedMetadata, MetadataExtractor
from .metadata_store import MetadataStore, InMemoryMetadataStore
from .blob_placer import BlobPlacer, LocalBlobPlacer, StagedFile
from .ingest_pipeline import CompensationLog, IngestOutcome, IngestPipeline
from .upload_coordinator import BatchResult, UploadCoordinator
from .catalog import DeleteResult, PhotoCatalog

__all__ = [
    "PhotoVaultError",
    "ValidationError",
    "NotFoundError",
    "PipelineError",
    "StagingError",
    "PlacementError",
    "ThumbnailError",
    "PersistenceError",
    "CancellationError",
    "GeoPoint",
    "PhotoRecord",
    "UploadFile",
    "StorageConfig",
    "S3Config",
    "StoreConfig",
    "AppConfig",
    "ThumbnailGenerator",
    "ExtractedMetadata",
    "MetadataExtractor",
    "MetadataStore",
    "InMemoryMetadataStore",
    "BlobPlacer",
    "LocalBlobPlacer",
    "StagedFile",
    "CompensationLog",
    "IngestOutcome",
    "IngestPipeline",
    "BatchResult",
    "UploadCoordinator",
    "DeleteResult",
    "PhotoCatalog",
]
