"""
Pytest fixtures for photovault tests.
"""

import io
import logging

import pytest


def _jpeg_bytes(img, **save_kwargs):
    buffer = io.BytesIO()
    img.save(buffer, format='JPEG', **save_kwargs)
    return buffer.getvalue()


@pytest.fixture
def logger():
    """Fixture providing a logger."""
    return logging.getLogger('test')


@pytest.fixture
def sample_image_bytes():
    """Fixture providing sample JPEG image bytes without EXIF."""
    from PIL import Image

    img = Image.new('RGB', (120, 80), color='red')
    return _jpeg_bytes(img)


@pytest.fixture
def sample_png_bytes():
    """Fixture providing sample PNG image bytes."""
    from PIL import Image

    # Create a simple test image with transparency
    img = Image.new('RGBA', (100, 60), color=(255, 0, 0, 128))
    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()


@pytest.fixture
def exif_image_bytes():
    """
    Fixture providing a JPEG taken 2024-05-01 10:20:30 UTC near Tokyo.

    GPS: 35 deg 30' 36" N, 139 deg 45' 30" E
    """
    from PIL import Image

    img = Image.new('RGB', (120, 80), color='blue')
    exif = Image.Exif()
    exif[0x010F] = 'TestCam'
    exif[0x0110] = 'Model X'
    exif[0x0132] = '2024:05:01 10:20:30'
    exif[0x8825] = {
        1: 'N',
        2: (35.0, 30.0, 36.0),
        3: 'E',
        4: (139.0, 45.0, 30.0),
    }
    return _jpeg_bytes(img, exif=exif)


@pytest.fixture
def southwest_image_bytes():
    """Fixture providing a JPEG with a southern/western GPS position."""
    from PIL import Image

    img = Image.new('RGB', (64, 64), color='green')
    exif = Image.Exif()
    exif[0x0132] = '2023:12:24 18:00:00'
    exif[0x8825] = {
        1: 'S',
        2: (33.0, 52.0, 12.0),
        3: 'W',
        4: (70.0, 40.0, 48.0),
    }
    return _jpeg_bytes(img, exif=exif)


@pytest.fixture
def make_upload():
    """Fixture providing a factory for in-memory UploadFiles."""
    from photovault.photo_record import UploadFile

    def _make(data, filename='photo.jpg', content_type='image/jpeg'):
        return UploadFile(
            filename=filename,
            content_type=content_type,
            size=len(data),
            stream=io.BytesIO(data),
        )

    return _make


@pytest.fixture
def make_record():
    """Fixture providing a factory for PhotoRecords with predictable ids."""
    from datetime import datetime, timezone
    from photovault.photo_record import GeoPoint, PhotoRecord

    def _make(index, lon=None, lat=None, **kwargs):
        photo_id = f"{index:024x}"
        lon_lat = GeoPoint(longitude=lon, latitude=lat) if lon is not None else None
        defaults = dict(
            id=photo_id,
            size=1000 + index,
            content_type='image/jpeg',
            file_path=f"/tmp/uploads/{photo_id}.jpg",
            thumbnail_path=f"/tmp/uploads/{photo_id}_thumb.jpg",
            taken_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            lon_lat=lon_lat,
        )
        defaults.update(kwargs)
        return PhotoRecord(**defaults)

    return _make


@pytest.fixture
def storage_root(tmp_path):
    """Fixture providing the storage root directory path."""
    return str(tmp_path / 'uploads')


@pytest.fixture
def placer(storage_root, logger):
    """Fixture providing a LocalBlobPlacer under a temporary root."""
    from photovault.blob_placer import LocalBlobPlacer

    return LocalBlobPlacer(storage_root, logger=logger)


@pytest.fixture
def store(logger):
    """Fixture providing an empty in-memory metadata store."""
    from photovault.metadata_store import InMemoryMetadataStore

    return InMemoryMetadataStore(logger)


@pytest.fixture
def pipeline(store, placer, logger):
    """Fixture providing an IngestPipeline over the memory store and local placer."""
    from photovault.ingest_pipeline import IngestPipeline
    from photovault.thumbnail_generator import ThumbnailGenerator

    return IngestPipeline(
        store=store,
        placer=placer,
        thumbnail_generator=ThumbnailGenerator(size=32, logger=logger),
        logger=logger,
    )


@pytest.fixture
def coordinator(pipeline, logger):
    """Fixture providing an UploadCoordinator with a concurrency of 4."""
    from photovault.upload_coordinator import UploadCoordinator

    return UploadCoordinator(pipeline, concurrency=4, logger=logger)


@pytest.fixture
def catalog(store, placer, logger):
    """Fixture providing a PhotoCatalog over the memory store and local placer."""
    from photovault.catalog import PhotoCatalog

    return PhotoCatalog(store, placer, logger)


def leftover_files(root):
    """Every file under root except the staging directory itself."""
    import os

    found = []
    for dirpath, _, filenames in os.walk(root):
        for name in filenames:
            found.append(os.path.relpath(os.path.join(dirpath, name), root))
    return sorted(found)


@pytest.fixture
def list_leftovers():
    """Fixture providing a function listing files left under a directory."""
    return leftover_files
