"""
PhotoRecord - Canonical entry for a committed photo and its artifacts.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, BinaryIO, Dict, Optional


@dataclass(frozen=True)
class GeoPoint:
    """
    A WGS84 coordinate pair.

    Attributes:
        longitude: Decimal degrees, -180..180
        latitude: Decimal degrees, -90..90
    """
    longitude: float
    latitude: float

    def to_dict(self) -> dict:
        return {'type': 'Point', 'coordinates': [self.longitude, self.latitude]}

    @classmethod
    def from_dict(cls, data: dict) -> 'GeoPoint':
        lon, lat = data['coordinates']
        return cls(longitude=float(lon), latitude=float(lat))


@dataclass
class PhotoRecord:
    """
    Record for a single committed photo.

    A record only exists once both artifacts at file_path and
    thumbnail_path have been written.

    Attributes:
        id: 24 character hex id, ordered by capture time
        size: Size of the original in bytes
        content_type: Content type declared at upload
        file_path: Location of the original
        thumbnail_path: Location of the thumbnail
        taken_at: Capture time, or ingestion time when unknown
        lon_lat: Where the photo was taken, if known
        metadata: Open attribute map (camera make/model, original filename...)
    """
    id: str
    size: int
    content_type: str
    file_path: str
    thumbnail_path: str
    taken_at: datetime
    lon_lat: Optional[GeoPoint] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_location(self) -> bool:
        return self.lon_lat is not None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = {
            'id': self.id,
            'size': self.size,
            'contentType': self.content_type,
            'filePath': self.file_path,
            'thumbnailPath': self.thumbnail_path,
            'takenAt': self.taken_at.isoformat(),
        }
        if self.lon_lat is not None:
            data['lonLat'] = self.lon_lat.to_dict()
        if self.metadata:
            data['metadata'] = dict(self.metadata)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'PhotoRecord':
        """Create from dictionary."""
        taken_at = data['takenAt']
        if isinstance(taken_at, str):
            taken_at = datetime.fromisoformat(taken_at)
        lon_lat = data.get('lonLat')
        return cls(
            id=data['id'],
            size=data['size'],
            content_type=data['contentType'],
            file_path=data['filePath'],
            thumbnail_path=data['thumbnailPath'],
            taken_at=taken_at,
            lon_lat=GeoPoint.from_dict(lon_lat) if lon_lat else None,
            metadata=dict(data.get('metadata') or {}),
        )

    def format_status(self) -> str:
        """
        Format a one-line summary for CLI output.

        Returns:
            String like "65f0c1...  2024-05-01T10:20:30+00:00  (45.2 KB) @ 139.7500,35.5100"
        """
        location = ''
        if self.lon_lat is not None:
            location = f" @ {self.lon_lat.longitude:.4f},{self.lon_lat.latitude:.4f}"
        return (
            f"{self.id}  {self.taken_at.isoformat()}  "
            f"({self._format_bytes(self.size)}){location}"
        )

    @staticmethod
    def _format_bytes(bytes_val: Optional[int]) -> str:
        """Format bytes as human-readable string."""
        if bytes_val is None:
            return "unknown"
        for unit in ['B', 'KB', 'MB', 'GB']:
            if bytes_val < 1024:
                return f"{bytes_val:.1f} {unit}"
            bytes_val /= 1024
        return f"{bytes_val:.1f} TB"


@dataclass
class UploadFile:
    """
    One incoming file as handed over by the HTTP or CLI layer.

    Attributes:
        filename: Client supplied filename
        content_type: Declared content type (may be empty)
        size: Declared size in bytes, or -1 when unknown
        stream: Readable binary stream with the file content
    """
    filename: str
    content_type: str
    size: int
    stream: BinaryIO
