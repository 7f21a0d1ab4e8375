"""Tests for configuration loading."""

import pytest

from photovault.config import AppConfig, S3Config, StorageConfig, StoreConfig, str2bool


class TestStr2Bool:
    """Tests for str2bool."""

    @pytest.mark.parametrize('value', ['yes', 'True', ' t ', 'Y', '1', True])
    def test_true(self, value):
        assert str2bool(value) is True

    @pytest.mark.parametrize('value', ['no', 'FALSE', 'f', 'n', '0', False])
    def test_false(self, value):
        assert str2bool(value) is False

    def test_default(self):
        assert str2bool('maybe') is None
        assert str2bool(None, default=True) is True


class TestStorageConfig:
    """Tests for StorageConfig."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv('PHOTOVAULT_ROOT', raising=False)
        monkeypatch.delenv('PHOTOVAULT_BACKEND', raising=False)

        config = StorageConfig.from_env()

        assert config.root_path == './.uploads'
        assert config.backend == 'local'
        assert config.validate() == []

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv('PHOTOVAULT_ROOT', str(tmp_path))
        monkeypatch.setenv('PHOTOVAULT_BACKEND', 'S3')

        config = StorageConfig.from_env()

        assert config.root_path == str(tmp_path)
        assert config.backend == 's3'

    def test_validate_unknown_backend(self):
        errors = StorageConfig(backend='ftp').validate()
        assert any('Unknown storage backend' in e for e in errors)

    def test_validate_root_is_file(self, tmp_path):
        path = tmp_path / 'file.txt'
        path.write_text('x')

        errors = StorageConfig(root_path=str(path)).validate()

        assert any('not a directory' in e for e in errors)


class TestS3Config:
    """Tests for S3Config."""

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv('S3_ENDPOINT', 'https://minio.example.com:9000')
        monkeypatch.setenv('S3_BUCKET', 'photos-bucket')
        monkeypatch.setenv('S3_ACCESS_KEY', 'key')
        monkeypatch.setenv('S3_SECRET_KEY', 'secret')
        monkeypatch.setenv('S3_VERIFY_SSL', 'false')
        monkeypatch.setenv('S3_URL_EXPIRY', '60')
        monkeypatch.delenv('S3_PREFIX', raising=False)

        config = S3Config.from_env()

        assert config.bucket == 'photos-bucket'
        assert config.prefix == 'photos'
        assert config.verify_ssl is False
        assert config.url_expiry == 60
        assert config.validate() == []

    def test_validate_missing(self):
        errors = S3Config().validate()

        assert "S3_ENDPOINT is required" in errors
        assert "S3_BUCKET is required" in errors
        assert len(errors) == 4


class TestStoreConfig:
    """Tests for StoreConfig."""

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv('PHOTOVAULT_STORE', 'mysql')
        monkeypatch.setenv('SQL_HOST', 'db')
        monkeypatch.setenv('SQL_PORT', '3307')
        monkeypatch.setenv('SQL_USER', 'vault')
        monkeypatch.setenv('SQL_POOL_SIZE', '4')

        config = StoreConfig.from_env()

        assert config.host == 'db'
        assert config.port == 3307
        assert config.pool_size == 4
        assert config.validate() == []

    def test_mysql_requires_user(self):
        errors = StoreConfig(kind='mysql').validate()
        assert "SQL_USER is required" in errors

    def test_memory_needs_nothing(self):
        assert StoreConfig(kind='memory').validate() == []

    def test_unknown_kind(self):
        errors = StoreConfig(kind='postgres').validate()
        assert any('Unknown metadata store' in e for e in errors)


class TestAppConfig:
    """Tests for AppConfig."""

    def test_defaults(self):
        config = AppConfig()

        assert config.concurrency == 10
        assert config.thumbnail_size == 100
        assert config.max_upload_bytes == 200 * 1024 * 1024
        assert config.validate() == []

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv('PHOTOVAULT_CONCURRENCY', '3')
        monkeypatch.setenv('PHOTOVAULT_UPLOAD_TIMEOUT', '12.5')
        monkeypatch.setenv('DEBUG_APP', 'yes')

        config = AppConfig.from_env()

        assert config.concurrency == 3
        assert config.upload_timeout == 12.5
        assert config.debug is True

    def test_validate(self):
        errors = AppConfig(concurrency=0, upload_timeout=0).validate()

        assert "PHOTOVAULT_CONCURRENCY must be at least 1" in errors
        assert "PHOTOVAULT_UPLOAD_TIMEOUT must be positive" in errors
