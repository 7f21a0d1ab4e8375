"""
MetadataStore - Capability interface for the photo record store.

Every query orders by id descending (newest capture first). A cursor
(last_id) restricts results to ids strictly less than the cursor, so
repeatedly passing the last id of a page walks the whole store without
duplicates and ends with an empty page.
"""

import logging
import math
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from .errors import NotFoundError, PersistenceError, ValidationError
from .photo_id import is_valid_photo_id
from .photo_record import GeoPoint, PhotoRecord

MAX_LIMIT = 1000
EARTH_RADIUS_METERS = 6371008.8

Box = Tuple[float, float, float, float]


def parse_limit(value) -> int:
    """
    Validate a page size.

    Accepts ints and numeric strings; values above MAX_LIMIT are capped.

    Raises:
        ValidationError: missing, non-numeric or not positive
    """
    if value is None or value == '':
        raise ValidationError("Missing limit parameter")
    if isinstance(value, bool):
        raise ValidationError(f"Invalid limit value: {value!r}")
    try:
        limit = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid limit value: {value!r}")
    if isinstance(value, float) and value != limit:
        raise ValidationError(f"Invalid limit value: {value!r}")
    if limit < 1:
        raise ValidationError(f"Limit must be positive: {limit}")
    return min(limit, MAX_LIMIT)


def validate_photo_id(photo_id) -> str:
    """Raise ValidationError unless photo_id is a well-formed id."""
    if photo_id is None or photo_id == '':
        raise ValidationError("Missing photo id")
    if not is_valid_photo_id(photo_id):
        raise ValidationError(f"Malformed photo id: {photo_id!r}")
    return photo_id


def validate_cursor(last_id) -> Optional[str]:
    """None or an empty string mean 'first page'; anything else must be an id."""
    if last_id is None or last_id == '':
        return None
    if not is_valid_photo_id(last_id):
        raise ValidationError(f"Malformed cursor: {last_id!r}")
    return last_id


def _parse_coordinate(name: str, value) -> float:
    if value is None or value == '':
        raise ValidationError(f"Missing {name} parameter")
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {name} value: {value!r}")
    if not math.isfinite(result):
        raise ValidationError(f"Invalid {name} value: {value!r}")
    return result


def normalize_box(lat_a, lat_b, lon_a, lon_b) -> Box:
    """
    Build a search box from two corners given in any order.

    Returns:
        (lat_min, lat_max, lon_min, lon_max)
    """
    lat_a = _parse_coordinate('latMin', lat_a)
    lat_b = _parse_coordinate('latMax', lat_b)
    lon_a = _parse_coordinate('lonMin', lon_a)
    lon_b = _parse_coordinate('lonMax', lon_b)
    for lat in (lat_a, lat_b):
        if abs(lat) > 90:
            raise ValidationError(f"Latitude out of range: {lat}")
    for lon in (lon_a, lon_b):
        if abs(lon) > 180:
            raise ValidationError(f"Longitude out of range: {lon}")
    return min(lat_a, lat_b), max(lat_a, lat_b), min(lon_a, lon_b), max(lon_a, lon_b)


def validate_point(lon, lat, distance) -> Tuple[float, float, float]:
    """Validate a point+radius query; distance is in metres."""
    lon = _parse_coordinate('lon', lon)
    lat = _parse_coordinate('lat', lat)
    distance = _parse_coordinate('distance', distance)
    if abs(lat) > 90:
        raise ValidationError(f"Latitude out of range: {lat}")
    if abs(lon) > 180:
        raise ValidationError(f"Longitude out of range: {lon}")
    if distance < 0:
        raise ValidationError(f"Distance must not be negative: {distance}")
    return lon, lat, distance


def in_box(point: Optional[GeoPoint], box: Box) -> bool:
    if point is None:
        return False
    lat_min, lat_max, lon_min, lon_max = box
    return lat_min <= point.latitude <= lat_max and lon_min <= point.longitude <= lon_max


def haversine_meters(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Great-circle distance between two points in metres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(a)))


class MetadataStore(ABC):
    """
    Durable, queryable store of PhotoRecords.

    Implementations validate their inputs with the module helpers so every
    variant reports the same ValidationErrors.
    """

    @abstractmethod
    def save(self, record: PhotoRecord) -> None:
        """Insert a record in one operation; raise PersistenceError on failure."""

    @abstractmethod
    def get(self, photo_id: str) -> PhotoRecord:
        """Return the record for photo_id or raise NotFoundError."""

    @abstractmethod
    def list(self, last_id: Optional[str] = None, limit: int = 50) -> List[PhotoRecord]:
        """Return up to limit records with id < last_id, newest first."""

    @abstractmethod
    def search_by_box(
        self,
        lat_min,
        lat_max,
        lon_min,
        lon_max,
        last_id: Optional[str] = None,
        limit: int = 50
    ) -> List[PhotoRecord]:
        """Return located records inside the box (corners in any order)."""

    @abstractmethod
    def search_near(
        self,
        lon,
        lat,
        distance,
        last_id: Optional[str] = None,
        limit: int = 50
    ) -> List[PhotoRecord]:
        """Return located records within distance metres of (lon, lat)."""

    @abstractmethod
    def delete(self, photo_id: str) -> None:
        """Remove the record for photo_id or raise NotFoundError."""

    def close(self) -> None:
        """Release any held resources."""


def _copy_record(record: PhotoRecord) -> PhotoRecord:
    return replace(record, metadata=dict(record.metadata))


class InMemoryMetadataStore(MetadataStore):
    """
    MetadataStore kept in a dict; safe for concurrent use from threads.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._records: Dict[str, PhotoRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def save(self, record: PhotoRecord) -> None:
        validate_photo_id(record.id)
        with self._lock:
            if record.id in self._records:
                raise PersistenceError(f"Duplicate photo id: {record.id}")
            self._records[record.id] = _copy_record(record)
        self.logger.debug(f"Photo saved: {record.id} -> {record.file_path}")

    def get(self, photo_id: str) -> PhotoRecord:
        validate_photo_id(photo_id)
        with self._lock:
            record = self._records.get(photo_id)
        if record is None:
            raise NotFoundError(f"Photo not found: {photo_id}")
        return _copy_record(record)

    def list(self, last_id: Optional[str] = None, limit: int = 50) -> List[PhotoRecord]:
        return self._page(lambda record: True, last_id, limit)

    def search_by_box(self, lat_min, lat_max, lon_min, lon_max, last_id=None, limit=50):
        box = normalize_box(lat_min, lat_max, lon_min, lon_max)
        return self._page(lambda record: in_box(record.lon_lat, box), last_id, limit)

    def search_near(self, lon, lat, distance, last_id=None, limit=50):
        lon, lat, distance = validate_point(lon, lat, distance)

        def is_near(record: PhotoRecord) -> bool:
            point = record.lon_lat
            if point is None:
                return False
            return haversine_meters(lon, lat, point.longitude, point.latitude) <= distance

        return self._page(is_near, last_id, limit)

    def delete(self, photo_id: str) -> None:
        validate_photo_id(photo_id)
        with self._lock:
            if self._records.pop(photo_id, None) is None:
                raise NotFoundError(f"Photo not found: {photo_id}")
        self.logger.debug(f"Photo record deleted: {photo_id}")

    def _page(self, predicate, last_id, limit) -> List[PhotoRecord]:
        cursor = validate_cursor(last_id)
        limit = parse_limit(limit)
        with self._lock:
            snapshot = list(self._records.values())
        matches = [
            record for record in snapshot
            if (cursor is None or record.id < cursor) and predicate(record)
        ]
        matches.sort(key=lambda record: record.id, reverse=True)
        return [_copy_record(record) for record in matches[:limit]]
