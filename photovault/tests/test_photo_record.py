"""
Tests for PhotoRecord and GeoPoint.
"""

from photovault.photo_record import GeoPoint, PhotoRecord


class TestGeoPoint:
    """Tests for GeoPoint dataclass."""

    def test_to_dict(self):
        """Test GeoJSON point order is longitude, latitude."""
        point = GeoPoint(longitude=139.75, latitude=35.68)

        assert point.to_dict() == {'type': 'Point', 'coordinates': [139.75, 35.68]}

    def test_from_dict(self):
        point = GeoPoint.from_dict({'type': 'Point', 'coordinates': [-70.5, -33.4]})

        assert point == GeoPoint(longitude=-70.5, latitude=-33.4)


class TestPhotoRecord:
    """Tests for PhotoRecord dataclass."""

    def test_to_dict(self, make_record):
        """Test converting to dict."""
        record = make_record(1, lon=139.75, lat=35.68, metadata={'make': 'TestCam'})

        d = record.to_dict()

        assert d['id'] == '000000000000000000000001'
        assert d['contentType'] == 'image/jpeg'
        assert d['filePath'].endswith('.jpg')
        assert d['thumbnailPath'].endswith('_thumb.jpg')
        assert d['takenAt'] == '2024-01-01T00:00:00+00:00'
        assert d['lonLat'] == {'type': 'Point', 'coordinates': [139.75, 35.68]}
        assert d['metadata'] == {'make': 'TestCam'}

    def test_to_dict_without_location(self, make_record):
        """Test optional keys are omitted when empty."""
        d = make_record(2).to_dict()

        assert 'lonLat' not in d
        assert 'metadata' not in d

    def test_from_dict_round_trip(self, make_record):
        """Test creating from dict."""
        record = make_record(3, lon=1.5, lat=2.5, metadata={'a': 1})

        assert PhotoRecord.from_dict(record.to_dict()) == record

    def test_has_location(self, make_record):
        assert make_record(4, lon=0.5, lat=0.5).has_location
        assert not make_record(5).has_location

    def test_format_status(self, make_record):
        """Test CLI status line."""
        record = make_record(6, lon=139.75, lat=35.51, size=2048)

        line = record.format_status()

        assert line.startswith('000000000000000000000006')
        assert '(2.0 KB)' in line
        assert '@ 139.7500,35.5100' in line

    def test_format_bytes(self):
        """Test human readable sizes."""
        assert PhotoRecord._format_bytes(None) == 'unknown'
        assert PhotoRecord._format_bytes(500) == '500.0 B'
        assert PhotoRecord._format_bytes(1024 * 1024 * 3) == '3.0 MB'
