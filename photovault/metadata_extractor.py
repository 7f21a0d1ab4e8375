"""
MetadataExtractor - Best-effort capture time and GPS extraction from EXIF.
"""

import io
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from PIL import Image

from .photo_record import GeoPoint

EXIF_IFD = 0x8769
GPS_IFD = 0x8825

# Base IFD
TAG_MAKE = 0x010F
TAG_MODEL = 0x0110
TAG_SOFTWARE = 0x0131
TAG_DATETIME = 0x0132

# Exif IFD
TAG_DATETIME_ORIGINAL = 0x9003
TAG_DATETIME_DIGITIZED = 0x9004
TAG_OFFSET_TIME_ORIGINAL = 0x9011

# GPS IFD
GPS_LATITUDE_REF = 1
GPS_LATITUDE = 2
GPS_LONGITUDE_REF = 3
GPS_LONGITUDE = 4

EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"
_OFFSET_PATTERN = re.compile(r'^([+-])(\d{2}):(\d{2})$')


@dataclass
class ExtractedMetadata:
    """
    Result of a metadata extraction.

    Attributes:
        taken_at: Capture time (timezone-aware), None if not found
        geo_point: GPS position, None if not found or invalid
        attributes: Camera make/model/software when present
    """
    taken_at: Optional[datetime] = None
    geo_point: Optional[GeoPoint] = None
    attributes: Dict[str, Any] = field(default_factory=dict)


class MetadataExtractor:
    """
    Reads capture time and coordinates from EXIF data.

    Extraction never fails the caller: problems are logged and an empty
    (or partial) result is returned.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def extract(self, image_data: bytes) -> ExtractedMetadata:
        """
        Extract metadata from image bytes.

        Args:
            image_data: Original image as bytes

        Returns:
            ExtractedMetadata, possibly empty
        """
        try:
            with Image.open(io.BytesIO(image_data)) as img:
                exif = img.getexif()
                exif_ifd = exif.get_ifd(EXIF_IFD)
                gps_ifd = exif.get_ifd(GPS_IFD)
                return ExtractedMetadata(
                    taken_at=self._read_taken_at(exif, exif_ifd),
                    geo_point=self._read_geo_point(gps_ifd),
                    attributes=self._read_attributes(exif),
                )
        except Exception as e:
            self.logger.warning(f"Metadata extraction degraded, proceeding without it: {e}")
            return ExtractedMetadata()

    def _read_taken_at(self, exif, exif_ifd) -> Optional[datetime]:
        candidates = [
            exif_ifd.get(TAG_DATETIME_ORIGINAL),
            exif_ifd.get(TAG_DATETIME_DIGITIZED),
            exif.get(TAG_DATETIME),
        ]
        tz = self._parse_offset(exif_ifd.get(TAG_OFFSET_TIME_ORIGINAL)) or timezone.utc
        for value in candidates:
            parsed = self._parse_datetime(value)
            if parsed is not None:
                return parsed.replace(tzinfo=tz)
        return None

    @staticmethod
    def _parse_datetime(value) -> Optional[datetime]:
        """Parse an EXIF datetime string ("YYYY:MM:DD HH:MM:SS")."""
        if isinstance(value, bytes):
            value = value.decode('ascii', errors='ignore')
        if not isinstance(value, str):
            return None
        value = value.strip().rstrip('\x00')
        try:
            return datetime.strptime(value, EXIF_DATETIME_FORMAT)
        except ValueError:
            return None

    @staticmethod
    def _parse_offset(value) -> Optional[timezone]:
        if not isinstance(value, str):
            return None
        match = _OFFSET_PATTERN.match(value.strip().rstrip('\x00'))
        if not match:
            return None
        sign, hours, minutes = match.groups()
        delta = timedelta(hours=int(hours), minutes=int(minutes))
        if delta >= timedelta(hours=24):
            return None
        return timezone(-delta if sign == '-' else delta)

    def _read_geo_point(self, gps_ifd) -> Optional[GeoPoint]:
        if not gps_ifd:
            return None
        lat = self._parse_gps_coord(gps_ifd.get(GPS_LATITUDE), gps_ifd.get(GPS_LATITUDE_REF, 'N'))
        lon = self._parse_gps_coord(gps_ifd.get(GPS_LONGITUDE), gps_ifd.get(GPS_LONGITUDE_REF, 'E'))
        if lat is None or lon is None:
            return None
        if abs(lat) > 90 or abs(lon) > 180:
            self.logger.warning(f"Ignoring out of range GPS position: {lat}, {lon}")
            return None
        return GeoPoint(longitude=lon, latitude=lat)

    @staticmethod
    def _parse_gps_coord(coord, ref) -> Optional[float]:
        """Convert an EXIF (degrees, minutes, seconds) triple into decimal degrees."""
        if not isinstance(coord, (tuple, list)) or len(coord) < 3:
            return None
        try:
            degrees, minutes, seconds = (_rational_to_float(v) for v in coord[:3])
        except (TypeError, ValueError, ZeroDivisionError):
            return None
        decimal = degrees + minutes / 60 + seconds / 3600
        if not math.isfinite(decimal):
            return None
        if isinstance(ref, bytes):
            ref = ref.decode('ascii', errors='ignore')
        if isinstance(ref, str) and ref.strip().upper() in ('S', 'W'):
            decimal = -decimal
        return decimal

    @staticmethod
    def _read_attributes(exif) -> Dict[str, Any]:
        attributes = {}
        for name, tag in (('make', TAG_MAKE), ('model', TAG_MODEL), ('software', TAG_SOFTWARE)):
            value = exif.get(tag)
            if isinstance(value, str) and value.strip('\x00 '):
                attributes[name] = value.strip('\x00 ')
        return attributes


def _rational_to_float(value) -> float:
    # Pillow gives IFDRational; older files can carry (numerator, denominator) pairs
    if isinstance(value, tuple) and len(value) == 2:
        numerator, denominator = value
        return numerator / denominator
    result = float(value)
    if math.isnan(result):
        raise ValueError("rational with zero denominator")
    return result
