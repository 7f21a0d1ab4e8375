"""Tests for MySQLMetadataStore with a mocked connection pool."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import mysql.connector
import pytest

from photovault.config import StoreConfig
from photovault.errors import NotFoundError, PersistenceError, ValidationError
from photovault.mysql_store import MySQLMetadataStore, TABLES

PHOTO_ID = '65f0c1a2b3c4d5e6f7a8b9c0'


class TestMySQLMetadataStore:
    """Tests for MySQLMetadataStore."""

    @pytest.fixture
    def cursor(self):
        cursor = MagicMock()
        cursor.fetchall.return_value = []
        cursor.rowcount = 1
        return cursor

    @pytest.fixture
    def connection(self, cursor):
        connection = MagicMock()
        connection.cursor.return_value = cursor
        return connection

    @pytest.fixture
    def pool_class(self, mocker, connection):
        pool_class = mocker.patch('photovault.mysql_store.pooling.MySQLConnectionPool')
        pool_class.return_value.get_connection.return_value = connection
        return pool_class

    @pytest.fixture
    def mysql_store(self, pool_class, logger):
        config = StoreConfig(user='vault', password='secret', host='db', database='photovault', pool_size=3)
        return MySQLMetadataStore(config, logger)

    @staticmethod
    def _row(photo_id=PHOTO_ID, lon=139.75, lat=35.68, metadata='{"make": "TestCam"}'):
        return (
            photo_id, 2048, 'image/jpeg',
            f'/data/{photo_id}.jpg', f'/data/{photo_id}_thumb.jpg',
            datetime(2024, 5, 1, 10, 20, 30), lon, lat, metadata,
        )

    def test_pool_created_lazily(self, mysql_store, pool_class):
        assert mysql_store.connection_pool is None
        pool_class.assert_not_called()

        mysql_store.connect()

        pool_class.assert_called_once()
        kwargs = pool_class.call_args.kwargs
        assert kwargs['pool_size'] == 3
        assert kwargs['host'] == 'db'

    def test_create_tables(self, mysql_store, cursor, connection):
        mysql_store.create_tables()

        cursor.execute.assert_called_once_with(TABLES['photos'])
        connection.commit.assert_called_once()
        connection.close.assert_called_once()

    def test_save(self, mysql_store, cursor, connection, make_record):
        record = make_record(7, lon=139.75, lat=35.68, metadata={'make': 'TestCam'})

        mysql_store.save(record)

        sql, params = cursor.execute.call_args.args
        assert sql.startswith('INSERT INTO photos')
        assert params[0] == record.id
        assert params[5] == datetime(2024, 1, 1)
        assert params[6:8] == (139.75, 35.68)
        assert params[8] == '{"make": "TestCam"}'
        connection.commit.assert_called_once()
        cursor.close.assert_called_once()
        connection.close.assert_called_once()

    def test_save_error_is_persistence_error(self, mysql_store, cursor, connection, make_record):
        cursor.execute.side_effect = mysql.connector.Error("Duplicate entry")

        with pytest.raises(PersistenceError):
            mysql_store.save(make_record(1))
        connection.close.assert_called_once()

    def test_get(self, mysql_store, cursor):
        cursor.fetchall.return_value = [self._row()]

        record = mysql_store.get(PHOTO_ID)

        assert record.id == PHOTO_ID
        assert record.taken_at == datetime(2024, 5, 1, 10, 20, 30, tzinfo=timezone.utc)
        assert record.lon_lat.longitude == 139.75
        assert record.metadata == {'make': 'TestCam'}
        assert cursor.execute.call_args.args[1] == (PHOTO_ID,)

    def test_get_without_location(self, mysql_store, cursor):
        cursor.fetchall.return_value = [self._row(lon=None, lat=None, metadata=None)]

        record = mysql_store.get(PHOTO_ID)

        assert record.lon_lat is None
        assert record.metadata == {}

    def test_get_missing(self, mysql_store):
        with pytest.raises(NotFoundError):
            mysql_store.get(PHOTO_ID)

    def test_get_malformed_id_never_queries(self, mysql_store, pool_class):
        with pytest.raises(ValidationError):
            mysql_store.get('nope')
        pool_class.assert_not_called()

    def test_list_with_cursor(self, mysql_store, cursor):
        mysql_store.list(last_id=PHOTO_ID, limit='20')

        sql, params = cursor.execute.call_args.args
        assert 'WHERE id < %s' in sql
        assert sql.endswith('ORDER BY id DESC LIMIT %s')
        assert params == (PHOTO_ID, 20)

    def test_list_first_page(self, mysql_store, cursor):
        mysql_store.list(limit=5)

        sql, params = cursor.execute.call_args.args
        assert 'WHERE' not in sql
        assert params == (5,)

    def test_search_by_box_normalizes(self, mysql_store, cursor):
        mysql_store.search_by_box(36, 35, 140, 139, limit=10)

        sql, params = cursor.execute.call_args.args
        assert 'lat BETWEEN %s AND %s' in sql
        assert 'lat IS NOT NULL' in sql
        assert params == (35.0, 36.0, 139.0, 140.0, 10)

    def test_search_near(self, mysql_store, cursor):
        mysql_store.search_near(139.75, 35.68, 500, last_id=PHOTO_ID, limit=10)

        sql, params = cursor.execute.call_args.args
        assert 'ST_Distance_Sphere' in sql
        assert params == (139.75, 35.68, 500.0, PHOTO_ID, 10)

    def test_delete(self, mysql_store, cursor, connection):
        mysql_store.delete(PHOTO_ID)

        assert cursor.execute.call_args.args == ("DELETE FROM photos WHERE id = %s", (PHOTO_ID,))
        connection.commit.assert_called_once()

    def test_delete_missing(self, mysql_store, cursor):
        cursor.rowcount = 0

        with pytest.raises(NotFoundError):
            mysql_store.delete(PHOTO_ID)
