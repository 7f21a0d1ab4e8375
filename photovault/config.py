"""
Configuration for photovault, read from environment variables.

Each config object has from_env() and validate(); validate() returns a
list of error strings (empty when the config is usable).
"""

import os
from dataclasses import dataclass
from typing import List, Optional


def str2bool(value, default: Optional[bool] = None) -> Optional[bool]:
    """Convert common string spellings into True or False."""
    true_set = {'yes', 'true', 't', 'y', '1'}
    false_set = {'no', 'false', 'f', 'n', '0'}

    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        value = value.strip().lower()
        if value in true_set:
            return True
        if value in false_set:
            return False
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    return int(raw)


@dataclass
class StorageConfig:
    """
    Where the originals and thumbnails live.

    Attributes:
        root_path: Directory holding <id><ext> and <id>_thumb<ext> (local backend)
        backend: 'local' or 's3'
    """
    root_path: str = './.uploads'
    backend: str = 'local'

    BACKENDS = ('local', 's3')

    @classmethod
    def from_env(cls) -> 'StorageConfig':
        return cls(
            root_path=os.getenv('PHOTOVAULT_ROOT', './.uploads'),
            backend=os.getenv('PHOTOVAULT_BACKEND', 'local').lower(),
        )

    def validate(self) -> List[str]:
        errors = []
        if self.backend not in self.BACKENDS:
            errors.append(f"Unknown storage backend: {self.backend}")
        if not self.root_path:
            errors.append("PHOTOVAULT_ROOT is required")
        elif os.path.exists(self.root_path) and not os.path.isdir(self.root_path):
            errors.append(f"Storage root is not a directory: {self.root_path}")
        return errors


@dataclass
class S3Config:
    """S3/MinIO connection settings for the S3 blob placer."""
    endpoint: Optional[str] = None
    bucket: Optional[str] = None
    prefix: str = 'photos'
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    region: Optional[str] = None
    url_expiry: int = 3600
    verify_ssl: bool = True

    @classmethod
    def from_env(cls) -> 'S3Config':
        return cls(
            endpoint=os.getenv('S3_ENDPOINT'),
            bucket=os.getenv('S3_BUCKET'),
            prefix=os.getenv('S3_PREFIX', 'photos'),
            access_key=os.getenv('S3_ACCESS_KEY'),
            secret_key=os.getenv('S3_SECRET_KEY'),
            region=os.getenv('S3_REGION'),
            url_expiry=_env_int('S3_URL_EXPIRY', 3600),
            verify_ssl=str2bool(os.getenv('S3_VERIFY_SSL'), default=True),
        )

    def validate(self) -> List[str]:
        errors = []
        if not self.endpoint:
            errors.append("S3_ENDPOINT is required")
        if not self.bucket:
            errors.append("S3_BUCKET is required")
        if not self.access_key:
            errors.append("S3_ACCESS_KEY is required")
        if not self.secret_key:
            errors.append("S3_SECRET_KEY is required")
        return errors


@dataclass
class StoreConfig:
    """
    Metadata store settings.

    Attributes:
        kind: 'mysql' or 'memory'
        pool_size: Connections kept in the MySQL pool
    """
    kind: str = 'mysql'
    host: str = 'localhost'
    port: int = 3306
    user: Optional[str] = None
    password: Optional[str] = None
    database: str = 'photovault'
    pool_size: int = 10

    KINDS = ('mysql', 'memory')

    @classmethod
    def from_env(cls) -> 'StoreConfig':
        return cls(
            kind=os.getenv('PHOTOVAULT_STORE', 'mysql').lower(),
            host=os.getenv('SQL_HOST', 'localhost'),
            port=_env_int('SQL_PORT', 3306),
            user=os.getenv('SQL_USER'),
            password=os.getenv('SQL_PASSWORD'),
            database=os.getenv('SQL_DATABASE', 'photovault'),
            pool_size=_env_int('SQL_POOL_SIZE', 10),
        )

    def validate(self) -> List[str]:
        errors = []
        if self.kind not in self.KINDS:
            errors.append(f"Unknown metadata store: {self.kind}")
        if self.kind == 'mysql':
            if not self.user:
                errors.append("SQL_USER is required")
            if not self.database:
                errors.append("SQL_DATABASE is required")
            if self.pool_size < 1:
                errors.append("SQL_POOL_SIZE must be at least 1")
        return errors


@dataclass
class AppConfig:
    """
    Ingestion and server settings.

    Attributes:
        concurrency: Maximum pipelines running at once
        thumbnail_size: Edge length of the square thumbnail in pixels
        max_upload_mb: Largest accepted request body
        upload_timeout: Seconds before a batch upload is cancelled
    """
    concurrency: int = 10
    thumbnail_size: int = 100
    max_upload_mb: int = 200
    upload_timeout: float = 300.0
    port: int = 8080
    server: str = 'wsgiref'
    debug: bool = False

    @classmethod
    def from_env(cls) -> 'AppConfig':
        return cls(
            concurrency=_env_int('PHOTOVAULT_CONCURRENCY', 10),
            thumbnail_size=_env_int('PHOTOVAULT_THUMBNAIL_SIZE', 100),
            max_upload_mb=_env_int('PHOTOVAULT_MAX_UPLOAD_MB', 200),
            upload_timeout=float(os.getenv('PHOTOVAULT_UPLOAD_TIMEOUT', '300')),
            port=_env_int('PORT', 8080),
            server=os.getenv('PHOTOVAULT_SERVER', 'wsgiref'),
            debug=str2bool(os.getenv('DEBUG_APP'), default=False),
        )

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    def validate(self) -> List[str]:
        errors = []
        if self.concurrency < 1:
            errors.append("PHOTOVAULT_CONCURRENCY must be at least 1")
        if self.thumbnail_size < 1:
            errors.append("PHOTOVAULT_THUMBNAIL_SIZE must be at least 1")
        if self.max_upload_mb < 1:
            errors.append("PHOTOVAULT_MAX_UPLOAD_MB must be at least 1")
        if self.upload_timeout <= 0:
            errors.append("PHOTOVAULT_UPLOAD_TIMEOUT must be positive")
        return errors
