"""Media upload gateway backed by MinIO object storage."""
import enum
import json
import logging
import mimetypes
import os
from dataclasses import dataclass
from typing import Optional
from uuid import uuid4
from minio import Minio

from config import Settings

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class UploadStatus(enum.Enum):
    """Outcome of an upload attempt."""
    SKIPPED = "skipped"  # No local file was given
    UPLOADED = "uploaded"
    FAILED = "failed"


@dataclass(frozen=True)
class MediaAsset:
    """Descriptor of an object stored on the media host."""
    url: str
    bucket: str
    object_name: str
    content_type: str
    size: int
    etag: Optional[str] = None


@dataclass(frozen=True)
class UploadResult:
    """Result of ``MediaUploadGateway.upload``.

    Callers distinguish "no file supplied" (``SKIPPED``) from "the host
    failed the upload" (``FAILED``) instead of checking for ``None``.
    """
    status: UploadStatus
    asset: Optional[MediaAsset] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is UploadStatus.UPLOADED

    @property
    def url(self) -> Optional[str]:
        return self.asset.url if self.asset else None

    @classmethod
    def skipped(cls) -> "UploadResult":
        return cls(status=UploadStatus.SKIPPED)

    @classmethod
    def uploaded(cls, asset: MediaAsset) -> "UploadResult":
        return cls(status=UploadStatus.UPLOADED, asset=asset)

    @classmethod
    def failed(cls, error: str) -> "UploadResult":
        return cls(status=UploadStatus.FAILED, error=error)


class MediaUploadGateway:
    """Forwards local files to the media host and returns their public URL."""

    def __init__(self, settings: Settings, client: Optional[Minio] = None):
        """Initialize the gateway; a client may be injected for tests."""
        self.client = client or Minio(
            endpoint=settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_SECURE
        )
        self.bucket = settings.MINIO_BUCKET
        scheme = "https" if settings.MINIO_SECURE else "http"
        self.public_base_url = f"{scheme}://{settings.MINIO_EXTERNAL_ENDPOINT.rstrip('/')}"
        self._bucket_ready = False

    def _ensure_bucket_exists(self) -> None:
        """Ensure the bucket exists, create if it doesn't."""
        if self._bucket_ready:
            return
        if not self.client.bucket_exists(self.bucket):
            self.client.make_bucket(self.bucket)
            logger.info(f"Created bucket: {self.bucket}")
        # Stored URLs are fetched anonymously by browsers
        self.client.set_bucket_policy(self.bucket, json.dumps(self.public_read_policy(self.bucket)))
        self._bucket_ready = True

    @staticmethod
    def public_read_policy(bucket: str) -> dict:
        """Bucket policy granting anonymous read access to objects."""
        return {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Principal": {"AWS": ["*"]},
                    "Action": ["s3:GetObject"],
                    "Resource": [f"arn:aws:s3:::{bucket}/*"]
                }
            ]
        }

    @staticmethod
    def detect_content_type(local_file_path: str) -> str:
        """Guess the resource type from the file name."""
        content_type, _ = mimetypes.guess_type(local_file_path)
        return content_type or DEFAULT_CONTENT_TYPE

    @staticmethod
    def generate_object_name(local_file_path: str) -> str:
        """Generate a unique object name that keeps the file extension."""
        file_extension = os.path.splitext(local_file_path)[1].lower()
        return f"{uuid4().hex}{file_extension}"

    def public_url(self, object_name: str) -> str:
        return f"{self.public_base_url}/{self.bucket}/{object_name}"

    def upload(self, local_file_path: Optional[str]) -> UploadResult:
        """
        Upload a local file to the media host.

        Args:
            local_file_path: Path of the staged file, may be empty

        Returns:
            UploadResult: SKIPPED when no path was given, UPLOADED with the
            asset descriptor on success, FAILED otherwise. A failed upload
            removes the local file.
        """
        if not local_file_path:
            return UploadResult.skipped()

        object_name = self.generate_object_name(local_file_path)
        content_type = self.detect_content_type(local_file_path)

        try:
            self._ensure_bucket_exists()
            size = os.path.getsize(local_file_path)
            result = self.client.fput_object(
                bucket_name=self.bucket,
                object_name=object_name,
                file_path=local_file_path,
                content_type=content_type
            )
        except Exception as e:
            logger.error(f"Error uploading file {local_file_path}: {e}")
            self._remove_local_file(local_file_path)
            return UploadResult.failed(str(e) or e.__class__.__name__)

        asset = MediaAsset(
            url=self.public_url(object_name),
            bucket=self.bucket,
            object_name=object_name,
            content_type=content_type,
            size=size,
            etag=getattr(result, "etag", None)
        )
        logger.info(f"File has been successfully uploaded to media host: {asset.url}")
        return UploadResult.uploaded(asset)

    @staticmethod
    def _remove_local_file(local_file_path: str) -> None:
        try:
            os.remove(local_file_path)
        except OSError as e:
            logger.warning(f"Could not remove temporary file {local_file_path}: {e}")
