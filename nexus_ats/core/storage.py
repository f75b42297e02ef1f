"""
Byte storage abstraction for candidate documents, backed by either the local
filesystem or AWS S3.

Backends are path-addressed: the document service chooses a unique key,
``write`` returns the opaque locator stored as ``file_path`` on the document
record, and ``read``/``delete``/``exists`` take that locator back.
"""

import logging
import os

import boto3
from botocore.exceptions import ClientError

from nexus_ats.core.config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the byte store cannot complete an operation."""


class StorageFileNotFoundError(StorageError):
    """Raised when a locator points at bytes that no longer exist."""


class StorageBackend:
    """Abstract base class for storage backends"""

    def write(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Store bytes under key and return the storage locator"""
        raise NotImplementedError

    def read(self, file_path: str) -> bytes:
        """Return the bytes stored at locator"""
        raise NotImplementedError

    def delete(self, file_path: str) -> bool:
        """Delete bytes at locator, True if something was removed"""
        raise NotImplementedError

    def exists(self, file_path: str) -> bool:
        """Check if bytes exist at locator"""
        raise NotImplementedError

    def health_check(self) -> bool:
        """True if the store is reachable and writable"""
        raise NotImplementedError


class LocalStorage(StorageBackend):
    """Local filesystem storage backend"""

    def __init__(self, base_dir: str = "./storage/documents"):
        self.base_dir = base_dir
        os.makedirs(self.base_dir, exist_ok=True)

    def write(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        # Keys are generated, but never let one escape the storage root
        file_path = os.path.join(self.base_dir, os.path.basename(key))

        try:
            with open(file_path, "wb") as buffer:
                buffer.write(data)
        except OSError as e:
            raise StorageError(f"Failed to write {file_path}: {e}") from e

        return file_path

    def read(self, file_path: str) -> bytes:
        try:
            with open(file_path, "rb") as f:
                return f.read()
        except FileNotFoundError as e:
            raise StorageFileNotFoundError(file_path) from e
        except OSError as e:
            raise StorageError(f"Failed to read {file_path}: {e}") from e

    def delete(self, file_path: str) -> bool:
        try:
            if os.path.exists(file_path):
                os.remove(file_path)
                return True
            return False
        except OSError as e:
            logger.error(f"Error deleting file {file_path}: {e}")
            return False

    def exists(self, file_path: str) -> bool:
        return os.path.exists(file_path)

    def health_check(self) -> bool:
        return os.path.isdir(self.base_dir) and os.access(self.base_dir, os.W_OK)


class S3Storage(StorageBackend):
    """AWS S3 storage backend"""

    def __init__(self, bucket_name: str = None, prefix: str = "documents"):
        self.bucket_name = bucket_name or settings.S3_BUCKET_NAME
        self.prefix = prefix.strip("/")

        # Without explicit keys boto3 falls back to IAM roles (EC2/ECS)
        if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
            self.s3_client = boto3.client(
                's3',
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                region_name=settings.AWS_REGION
            )
        else:
            self.s3_client = boto3.client('s3', region_name=settings.AWS_REGION)

    def write(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        s3_key = f"{self.prefix}/{key}" if self.prefix else key

        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=s3_key,
                Body=data,
                ContentType=content_type,
                ServerSideEncryption='AES256'  # Encryption at rest
            )
        except ClientError as e:
            raise StorageError(f"Failed to upload file to S3: {e}") from e

        # s3://bucket-name/documents/<key>
        return f"s3://{self.bucket_name}/{s3_key}"

    def read(self, file_path: str) -> bytes:
        s3_key = self._parse_s3_uri(file_path)

        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=s3_key)
            return response['Body'].read()
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                raise StorageFileNotFoundError(file_path) from e
            raise StorageError(f"Failed to download file from S3: {e}") from e

    def delete(self, file_path: str) -> bool:
        s3_key = self._parse_s3_uri(file_path)

        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=s3_key)
            return True
        except ClientError as e:
            logger.error(f"Error deleting from S3: {e}")
            return False

    def exists(self, file_path: str) -> bool:
        s3_key = self._parse_s3_uri(file_path)

        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=s3_key)
            return True
        except ClientError:
            return False

    def health_check(self) -> bool:
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
            return True
        except ClientError as e:
            logger.error(f"S3 bucket {self.bucket_name} not reachable: {e}")
            return False

    def _parse_s3_uri(self, s3_uri: str) -> str:
        """Parse S3 URI and extract key

        Supports formats:
        - s3://bucket-name/key/path
        - documents/<key> (assumes default bucket)
        """
        if s3_uri.startswith("s3://"):
            parts = s3_uri.replace("s3://", "").split("/", 1)
            if len(parts) == 2:
                return parts[1]
            raise ValueError(f"Invalid S3 URI format: {s3_uri}")
        return s3_uri


def get_storage() -> StorageBackend:
    """Build the storage backend selected by the USE_S3 setting"""
    if settings.USE_S3:
        if not settings.S3_BUCKET_NAME:
            raise ValueError("S3_BUCKET_NAME must be set when USE_S3=True")
        return S3Storage()
    return LocalStorage(settings.DOCUMENT_STORAGE_DIR)
