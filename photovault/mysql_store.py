"""
MySQLMetadataStore - MetadataStore backed by a MySQL connection pool.
"""

import json
import logging
from datetime import datetime, timezone
from typing import List, Optional

import mysql.connector
from mysql.connector import errorcode, pooling
from retrying import retry

from .config import StoreConfig
from .errors import NotFoundError, PersistenceError
from .metadata_store import (
    MetadataStore,
    normalize_box,
    parse_limit,
    validate_cursor,
    validate_photo_id,
    validate_point,
)
from .photo_record import GeoPoint, PhotoRecord

TIME_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

SELECT_COLUMNS = (
    "id, size, content_type, file_path, thumbnail_path, taken_at, lon, lat, metadata"
)

TABLES = {
    'photos': (
        "CREATE TABLE IF NOT EXISTS `photos` ("
        "  id CHAR(24) NOT NULL PRIMARY KEY,"
        "  size BIGINT NOT NULL,"
        "  content_type VARCHAR(255) NOT NULL,"
        "  file_path VARCHAR(2000) NOT NULL,"
        "  thumbnail_path VARCHAR(2000) NOT NULL,"
        "  taken_at DATETIME(6) NOT NULL,"
        "  lon DOUBLE NULL,"
        "  lat DOUBLE NULL,"
        "  metadata JSON NULL,"
        "  INDEX idx_photos_lat_lon (lat, lon)"
        ") ENGINE=InnoDB"
    )
}


def _is_connection_error(e: Exception) -> bool:
    return isinstance(e, mysql.connector.Error)


class MySQLMetadataStore(MetadataStore):
    """
    Stores PhotoRecords in the `photos` table.

    The pool is created lazily. Connecting and creating tables at startup
    retry with exponential backoff; per-record reads and writes do not,
    and surface failures as PersistenceError.
    """

    def __init__(self, config: StoreConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.connection_pool = None

    def initialize_pool(self):
        """
        Initialize the connection pool lazily if it hasn't been created yet.
        """
        if not self.connection_pool:
            self.logger.debug("Initializing connection pool...")
            try:
                self.connection_pool = pooling.MySQLConnectionPool(
                    pool_name="photovault_pool",
                    pool_size=self.config.pool_size,
                    user=self.config.user,
                    password=self.config.password,
                    host=self.config.host,
                    port=self.config.port,
                    database=self.config.database,
                )
                self.logger.info(f"Connected to MySQL at {self.config.host}:{self.config.port}")
            except mysql.connector.Error as err:
                self.logger.error(f"Failed to initialize connection pool: {err}")
                raise

    @retry(retry_on_exception=_is_connection_error, stop_max_attempt_number=5, wait_exponential_multiplier=1000)
    def connect(self) -> bool:
        """Create the pool and check a connection can be taken from it."""
        cursor, connection = self.get_cursor()
        self._release(cursor, connection)
        return True

    def get_cursor(self):
        """
        Get a connection from the pool and create a cursor.
        """
        self.initialize_pool()
        connection = self.connection_pool.get_connection()
        return connection.cursor(buffered=True), connection

    def close_connection(self, connection):
        """
        Return a connection to the pool.
        """
        if connection:
            try:
                connection.close()
            except mysql.connector.Error as e:
                self.logger.warning(f"Error closing connection: {e}")

    def _release(self, cursor, connection):
        if cursor:
            cursor.close()
        if connection:
            self.close_connection(connection)

    @retry(retry_on_exception=_is_connection_error, stop_max_attempt_number=5, wait_exponential_multiplier=1000)
    def create_tables(self):
        """
        Create the required database tables if they do not exist.
        """
        cursor, connection = None, None
        try:
            cursor, connection = self.get_cursor()
            for table_name, table_description in TABLES.items():
                try:
                    self.logger.debug(f"Creating table {table_name}...")
                    cursor.execute(table_description)
                except mysql.connector.Error as err:
                    if err.errno == errorcode.ER_TABLE_EXISTS_ERROR:
                        self.logger.debug(f"Table {table_name} already exists.")
                    else:
                        raise
            connection.commit()
        finally:
            self._release(cursor, connection)

    def save(self, record: PhotoRecord) -> None:
        validate_photo_id(record.id)
        sql = (
            "INSERT INTO photos "
            "(id, size, content_type, file_path, thumbnail_path, taken_at, lon, lat, metadata) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)"
        )
        lon = record.lon_lat.longitude if record.lon_lat else None
        lat = record.lon_lat.latitude if record.lon_lat else None
        params = (
            record.id,
            record.size,
            record.content_type,
            record.file_path,
            record.thumbnail_path,
            _to_db_time(record.taken_at),
            lon,
            lat,
            json.dumps(record.metadata) if record.metadata else None,
        )
        self._execute_write(sql, params, f"inserting photo {record.id}")
        self.logger.info(f"Photo saved to MySQL: {record.file_path}")

    def get(self, photo_id: str) -> PhotoRecord:
        validate_photo_id(photo_id)
        rows = self._query(
            f"SELECT {SELECT_COLUMNS} FROM photos WHERE id = %s",
            (photo_id,),
            f"fetching photo {photo_id}",
        )
        if not rows:
            raise NotFoundError(f"Photo not found: {photo_id}")
        return rows[0]

    def list(self, last_id: Optional[str] = None, limit: int = 50) -> List[PhotoRecord]:
        return self._page([], [], last_id, limit, "listing photos")

    def search_by_box(self, lat_min, lat_max, lon_min, lon_max, last_id=None, limit=50):
        lat_min, lat_max, lon_min, lon_max = normalize_box(lat_min, lat_max, lon_min, lon_max)
        clauses = [
            "lat IS NOT NULL",
            "lon IS NOT NULL",
            "lat BETWEEN %s AND %s",
            "lon BETWEEN %s AND %s",
        ]
        params = [lat_min, lat_max, lon_min, lon_max]
        return self._page(clauses, params, last_id, limit, "searching photos by box")

    def search_near(self, lon, lat, distance, last_id=None, limit=50):
        lon, lat, distance = validate_point(lon, lat, distance)
        clauses = [
            "lat IS NOT NULL",
            "lon IS NOT NULL",
            "ST_Distance_Sphere(POINT(lon, lat), POINT(%s, %s)) <= %s",
        ]
        params = [lon, lat, distance]
        return self._page(clauses, params, last_id, limit, "searching photos near point")

    def delete(self, photo_id: str) -> None:
        validate_photo_id(photo_id)
        deleted = self._execute_write(
            "DELETE FROM photos WHERE id = %s",
            (photo_id,),
            f"deleting photo {photo_id}",
        )
        if deleted == 0:
            raise NotFoundError(f"Photo not found: {photo_id}")
        self.logger.info(f"Photo record deleted: {photo_id}")

    def close(self) -> None:
        # mysql-connector pools have no close; dropping the reference lets
        # idle connections be collected
        self.connection_pool = None

    def _page(self, clauses, params, last_id, limit, action) -> List[PhotoRecord]:
        cursor_id = validate_cursor(last_id)
        limit = parse_limit(limit)
        clauses = list(clauses)
        params = list(params)
        if cursor_id is not None:
            clauses.append("id < %s")
            params.append(cursor_id)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        sql = f"SELECT {SELECT_COLUMNS} FROM photos{where} ORDER BY id DESC LIMIT %s"
        params.append(limit)
        return self._query(sql, tuple(params), action)

    def _query(self, sql, params, action) -> List[PhotoRecord]:
        cursor, connection = None, None
        try:
            cursor, connection = self.get_cursor()
            self.logger.debug(f"SQL: {sql} {params}")
            cursor.execute(sql, params)
            return [self._row_to_record(row) for row in cursor.fetchall()]
        except mysql.connector.Error as e:
            self.logger.error(f"Error {action}: {e}")
            raise PersistenceError(f"Error {action}: {e}") from e
        finally:
            self._release(cursor, connection)

    def _execute_write(self, sql, params, action) -> int:
        cursor, connection = None, None
        try:
            cursor, connection = self.get_cursor()
            self.logger.debug(f"SQL: {sql} {params}")
            cursor.execute(sql, params)
            connection.commit()
            return cursor.rowcount
        except mysql.connector.Error as e:
            self.logger.error(f"Error {action}: {e}")
            raise PersistenceError(f"Error {action}: {e}") from e
        finally:
            self._release(cursor, connection)

    @staticmethod
    def _row_to_record(row) -> PhotoRecord:
        (photo_id, size, content_type, file_path, thumbnail_path,
         taken_at, lon, lat, metadata) = row
        if isinstance(taken_at, str):
            taken_at = datetime.strptime(taken_at, TIME_FORMAT)
        if taken_at.tzinfo is None:
            taken_at = taken_at.replace(tzinfo=timezone.utc)
        if isinstance(metadata, (bytes, bytearray)):
            metadata = metadata.decode('utf-8')
        if isinstance(metadata, str):
            metadata = json.loads(metadata)
        return PhotoRecord(
            id=photo_id,
            size=int(size),
            content_type=content_type,
            file_path=file_path,
            thumbnail_path=thumbnail_path,
            taken_at=taken_at,
            lon_lat=GeoPoint(longitude=lon, latitude=lat) if lon is not None and lat is not None else None,
            metadata=metadata or {},
        )


def _to_db_time(value: datetime) -> datetime:
    """DATETIME columns hold naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
