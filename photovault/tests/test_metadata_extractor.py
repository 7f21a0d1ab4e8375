"""Tests for MetadataExtractor."""

import io
from datetime import datetime, timedelta, timezone

import pytest
from PIL import Image

from photovault.metadata_extractor import ExtractedMetadata, MetadataExtractor


class TestMetadataExtractor:
    """Tests for MetadataExtractor.extract."""

    def test_extract_datetime_and_gps(self, exif_image_bytes):
        """Test capture time and position are read from EXIF."""
        result = MetadataExtractor().extract(exif_image_bytes)

        assert result.taken_at == datetime(2024, 5, 1, 10, 20, 30, tzinfo=timezone.utc)
        assert result.geo_point is not None
        assert result.geo_point.latitude == pytest.approx(35.51, abs=1e-6)
        assert result.geo_point.longitude == pytest.approx(139.758333, abs=1e-5)

    def test_extract_camera_attributes(self, exif_image_bytes):
        """Test make and model land in the attribute map."""
        result = MetadataExtractor().extract(exif_image_bytes)

        assert result.attributes == {'make': 'TestCam', 'model': 'Model X'}

    def test_southern_western_hemispheres_are_negative(self, southwest_image_bytes):
        """Test S and W references negate the coordinates."""
        result = MetadataExtractor().extract(southwest_image_bytes)

        assert result.geo_point.latitude == pytest.approx(-33.87, abs=1e-6)
        assert result.geo_point.longitude == pytest.approx(-70.68, abs=1e-6)

    def test_prefers_datetime_original(self):
        """Test DateTimeOriginal wins over the base DateTime tag."""
        img = Image.new('RGB', (16, 16))
        exif = Image.Exif()
        exif[0x0132] = '2020:01:01 00:00:00'
        exif[0x8769] = {
            0x9003: '2019:06:15 12:30:00',
            0x9011: '+09:00',
        }
        buffer = io.BytesIO()
        img.save(buffer, format='JPEG', exif=exif)

        result = MetadataExtractor().extract(buffer.getvalue())

        assert result.taken_at == datetime(2019, 6, 15, 12, 30, 0, tzinfo=timezone(timedelta(hours=9)))

    def test_no_exif(self, sample_image_bytes):
        """Test an image without EXIF yields an empty result."""
        result = MetadataExtractor().extract(sample_image_bytes)

        assert result.taken_at is None
        assert result.geo_point is None
        assert result.attributes == {}

    def test_png_without_metadata(self, sample_png_bytes):
        """Test other formats are handled."""
        result = MetadataExtractor().extract(sample_png_bytes)

        assert result == ExtractedMetadata()

    def test_garbage_degrades_without_raising(self, caplog):
        """Test unreadable data is logged and defaulted, never raised."""
        with caplog.at_level('WARNING'):
            result = MetadataExtractor().extract(b'definitely not an image')

        assert result == ExtractedMetadata()
        assert 'Metadata extraction degraded' in caplog.text

    def test_malformed_datetime_ignored(self):
        """Test an unparseable date is treated as missing."""
        img = Image.new('RGB', (16, 16))
        exif = Image.Exif()
        exif[0x0132] = 'yesterday'
        buffer = io.BytesIO()
        img.save(buffer, format='JPEG', exif=exif)

        result = MetadataExtractor().extract(buffer.getvalue())

        assert result.taken_at is None


class TestParseHelpers:
    """Tests for the EXIF parsing helpers."""

    def test_parse_gps_coord(self):
        """Test DMS conversion."""
        value = MetadataExtractor._parse_gps_coord((10.0, 30.0, 36.0), 'N')
        assert value == pytest.approx(10.51)

    def test_parse_gps_coord_tuple_rationals(self):
        """Test (numerator, denominator) pairs are accepted."""
        value = MetadataExtractor._parse_gps_coord(((10, 1), (30, 1), (360, 10)), b'S')
        assert value == pytest.approx(-10.51)

    def test_parse_gps_coord_zero_denominator(self):
        """Test a zero denominator invalidates the coordinate."""
        assert MetadataExtractor._parse_gps_coord(((10, 0), (30, 1), (0, 1)), 'N') is None

    def test_parse_gps_coord_wrong_shape(self):
        """Test non-triples are rejected."""
        assert MetadataExtractor._parse_gps_coord((10.0,), 'N') is None
        assert MetadataExtractor._parse_gps_coord(None, 'N') is None

    def test_parse_offset(self):
        """Test OffsetTime strings."""
        assert MetadataExtractor._parse_offset('-05:30') == timezone(-timedelta(hours=5, minutes=30))
        assert MetadataExtractor._parse_offset('bogus') is None
        assert MetadataExtractor._parse_offset(None) is None
