"""
S3BlobPlacer - Places photo artifacts in an S3/MinIO bucket.
"""

import logging
import tempfile
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .blob_placer import BlobPlacer, StagedFile, artifact_names
from .config import S3Config
from .errors import PlacementError


class S3BlobPlacer(BlobPlacer):
    """
    Stages uploads on local disk, then uploads them under <prefix>/<id><ext>.

    Locations returned by this placer are object keys.
    """

    def __init__(
        self,
        config: S3Config,
        staging_dir: Optional[str] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize S3 placer.

        Args:
            config: S3 configuration
            staging_dir: Local directory for staging files (default: system temp)
            logger: Optional logger instance
        """
        self.config = config
        super().__init__(staging_dir or tempfile.gettempdir(), logger)

        self._client = boto3.client(
            's3',
            endpoint_url=config.endpoint,
            aws_access_key_id=config.access_key,
            aws_secret_access_key=config.secret_key,
            region_name=config.region,
            config=Config(
                signature_version='s3v4',
                s3={'addressing_style': 'path'}
            ),
            verify=config.verify_ssl
        )

    @property
    def client(self):
        """Return the underlying boto3 client."""
        return self._client

    def key_for(self, name: str) -> str:
        prefix = (self.config.prefix or '').strip('/')
        return f"{prefix}/{name}" if prefix else name

    def _check_key(self, key: str) -> str:
        prefix = (self.config.prefix or '').strip('/')
        if prefix and not key.startswith(f"{prefix}/"):
            raise PlacementError(f"Refusing to touch key outside prefix: {key}")
        return key

    def place(self, staged: StagedFile, photo_id: str, extension: str, content_type: str = '') -> str:
        name, _ = artifact_names(photo_id, extension)
        key = self.key_for(name)
        extra_args = {'ContentType': content_type} if content_type else None
        try:
            self._client.upload_file(staged.path, self.config.bucket, key, ExtraArgs=extra_args)
        except (BotoCoreError, ClientError) as e:
            raise PlacementError(f"Failed to upload {key}: {e}") from e
        self.logger.debug(f"Uploaded {staged.path} to {key}")
        self.discard(staged)
        return key

    def write_thumbnail(self, photo_id: str, extension: str, data: bytes, content_type: str = 'application/octet-stream') -> str:
        _, name = artifact_names(photo_id, extension)
        key = self.key_for(name)
        try:
            self._client.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=data,
                ContentType=content_type
            )
        except (BotoCoreError, ClientError) as e:
            raise PlacementError(f"Failed to upload thumbnail {key}: {e}") from e
        return key

    def remove(self, location: str) -> None:
        key = self._check_key(location)
        self._client.delete_object(Bucket=self.config.bucket, Key=key)
        self.logger.debug(f"Deleted {key}")

    def exists(self, location: str) -> bool:
        key = self._check_key(location)
        try:
            self._client.head_object(Bucket=self.config.bucket, Key=key)
            return True
        except ClientError as e:
            if e.response['Error']['Code'] in ('404', 'NoSuchKey', 'NotFound'):
                return False
            raise

    def resolve(self, location: str) -> str:
        """Pre-signed GET URL for the object."""
        key = self._check_key(location)
        return self._client.generate_presigned_url(
            'get_object',
            Params={'Bucket': self.config.bucket, 'Key': key},
            ExpiresIn=self.config.url_expiry
        )
