"""
Object storage collaborator
Hands out signed download URLs; the pipeline never sees storage credentials
"""

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.exceptions import ConfigurationError, UpstreamServiceError
from app.core.logging import service_logger


class StorageBackend(ABC):
    """Storage backend"""

    @abstractmethod
    async def get_signed_download_url(self, storage_key: str) -> str:
        """Time-limited URL the speech-to-text service can fetch the audio from"""
        pass


class LocalStorageBackend(StorageBackend):
    """Local files, for development only

    Hands out file:// URIs, which a hosted speech-to-text service cannot
    fetch; use the s3 backend whenever transcription runs against a remote
    service.
    """

    def __init__(self, base_path: str):
        self.base_path = Path(base_path).resolve()

    async def get_signed_download_url(self, storage_key: str) -> str:
        full_path = (self.base_path / storage_key).resolve()
        if self.base_path not in full_path.parents:
            raise UpstreamServiceError(f"Storage key escapes storage root: {storage_key}", service="storage")
        return full_path.as_uri()


class S3StorageBackend(StorageBackend):
    """S3 presigned URLs"""

    def __init__(self, bucket_name: str, region_name: str = 'us-east-1',
                 aws_access_key_id: str = None, aws_secret_access_key: str = None,
                 expires_in: int = 3600):
        self.bucket_name = bucket_name
        self.expires_in = expires_in
        self.s3_client = boto3.client(
            's3',
            region_name=region_name,
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key
        )

    async def get_signed_download_url(self, storage_key: str) -> str:
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(
                None,
                lambda: self.s3_client.generate_presigned_url(
                    'get_object',
                    Params={'Bucket': self.bucket_name, 'Key': storage_key},
                    ExpiresIn=self.expires_in
                )
            )
        except (ClientError, BotoCoreError) as e:
            service_logger.error(f"Failed to sign S3 URL for {storage_key}: {e}")
            raise UpstreamServiceError(f"Could not create a download URL: {e}", service="storage") from e


def create_storage_backend(settings) -> StorageBackend:
    """Build the configured backend"""
    if settings.storage_backend == "s3":
        if not settings.aws_s3_bucket_name:
            raise ConfigurationError("aws_s3_bucket_name is required for the s3 storage backend")
        return S3StorageBackend(
            bucket_name=settings.aws_s3_bucket_name,
            region_name=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            expires_in=settings.signed_url_expires
        )
    if settings.storage_backend == "local":
        service_logger.warning("Local storage backend hands out file:// URLs; remote transcription cannot fetch them")
        return LocalStorageBackend(settings.local_storage_dir)
    raise ConfigurationError(f"Unknown storage backend: {settings.storage_backend}")
