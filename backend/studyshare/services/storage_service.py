"""
StudyShare Backend — Document Storage Service
===============================================

What:  Validates uploaded study documents and writes them to durable storage.
Why:   Centralizes every upload rule (type, size, naming) in one place,
       independent of where the bytes finally live.
How:   StorageService validates, generates a key, and delegates the write to
       a StorageBackend (local disk via aiofiles, or S3 via boto3).
Who:   Called by ResourceService when a resource is created or deleted, and by
       the files router to serve locally stored documents.

Validation (cheapest first):
    1. Declared content type must be one of PDF, DOCX, PPTX, DOC, PPT,
       and agree with the filename extension if there is one
    2. Size: not empty, not above settings.max_file_size
    3. Leading bytes must match the container format of the declared type
       (%PDF for PDF, ZIP for DOCX/PPTX, OLE2 for DOC/PPT)

Key format:
    resources/<uuid4>-<epoch milliseconds><ext>
    No user input ends up in the key, which rules out path traversal and
    name collisions.
"""

import asyncio
import logging
import os
import time
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from studyshare.config import settings
from studyshare.exceptions import FileStorageError, UploadRejectedError
from studyshare.services.storage_base import StorageBackend, StoredFile

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
# MIME type → canonical extension
ALLOWED_MIME_TYPES = {
    "application/pdf": ".pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": ".pptx",
    "application/msword": ".doc",
    "application/vnd.ms-powerpoint": ".ppt",
}

# Leading bytes of each container format
_PDF_SIGNATURE = b"%PDF"
_ZIP_SIGNATURE = b"PK\x03\x04"
_OLE2_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

_SIGNATURES = {
    ".pdf": _PDF_SIGNATURE,
    ".docx": _ZIP_SIGNATURE,
    ".pptx": _ZIP_SIGNATURE,
    ".doc": _OLE2_SIGNATURE,
    ".ppt": _OLE2_SIGNATURE,
}

ALLOWED_TYPES_LABEL = "PDF, DOCX, PPTX, DOC, PPT"


# ══════════════════════════════════════════════════════════════════════════
# Backends
# ══════════════════════════════════════════════════════════════════════════


class LocalStorageBackend(StorageBackend):
    """
    Stores documents under settings.storage_root and serves them through
    GET <public_files_path>/<key>.

    Directory Structure:
        storage/
        └── resources/
            ├── 3f2b...-1718000000000.pdf
            └── 9c1d...-1718000004242.pptx
    """

    name = "local"

    def __init__(self, storage_root: Optional[str] = None, public_path: Optional[str] = None):
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.public_path = (public_path or settings.public_files_path).rstrip("/")
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("LocalStorageBackend initialized with storage_root=%s", self.storage_root)

    def resolve(self, key: str) -> Path:
        """
        Map a key to an absolute path inside storage_root.

        Raises:
            FileStorageError: the key resolves outside storage_root
        """
        path = (self.storage_root / key).resolve()
        if path != self.storage_root and self.storage_root not in path.parents:
            raise FileStorageError(
                message="Invalid file path",
                context={"key": key},
            )
        return path

    async def save(self, key: str, content: bytes, content_type: str) -> str:
        path = self.resolve(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", path, str(e))
            raise FileStorageError(
                message="Failed to save the uploaded document. Please try again.",
                context={"path": str(path), "os_error": str(e)},
            )

        logger.info("File stored locally: %s (%d bytes)", key, len(content))
        return f"{self.public_path}/{key}"

    async def delete(self, key: str) -> None:
        try:
            path = self.resolve(key)
            if path.exists():
                os.remove(path)
                logger.info("Deleted stored file: %s", key)
            else:
                logger.debug("Delete: file already gone: %s", key)
        except Exception as e:
            logger.warning("Failed to delete stored file %s: %s", key, str(e))

    async def health_check(self) -> bool:
        return self.storage_root.is_dir() and os.access(self.storage_root, os.W_OK)


class S3StorageBackend(StorageBackend):
    """
    Stores documents in an S3 bucket.

    boto3 is synchronous, so each call runs in a worker thread
    (asyncio.to_thread) to keep the event loop free. Uploads are retried
    with exponential backoff and jitter on transient boto errors.

    Credentials: explicit keys from settings when both are set, otherwise
    boto3's default chain (environment, instance/task role).
    """

    name = "s3"

    def __init__(self, client=None):
        if client is None:
            client_config = {"region_name": settings.aws_region}
            if settings.aws_access_key_id and settings.aws_secret_access_key:
                client_config["aws_access_key_id"] = settings.aws_access_key_id
                client_config["aws_secret_access_key"] = settings.aws_secret_access_key
            client = boto3.client("s3", **client_config)
        self.client = client
        self.bucket_name = settings.s3_bucket_name
        logger.info("S3StorageBackend initialized for bucket=%s", self.bucket_name)

    def public_url(self, key: str) -> str:
        if settings.s3_public_base_url:
            return f"{settings.s3_public_base_url.rstrip('/')}/{key}"
        return f"https://{self.bucket_name}.s3.{settings.aws_region}.amazonaws.com/{key}"

    async def save(self, key: str, content: bytes, content_type: str) -> str:
        try:
            await self._put_object(key, content, content_type)
        except (BotoCoreError, ClientError) as e:
            logger.error("S3 upload failed for %s after retries: %s", key, str(e))
            raise FileStorageError(
                message="Failed to save the uploaded document. Please try again.",
                context={"bucket": self.bucket_name, "key": key, "error": type(e).__name__},
            )

        url = self.public_url(key)
        logger.info("File stored in S3: s3://%s/%s (%d bytes)", self.bucket_name, key, len(content))
        return url

    @retry(
        retry=retry_if_exception_type((BotoCoreError, ClientError)),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _put_object(self, key: str, content: bytes, content_type: str) -> None:
        extra = {"ACL": settings.s3_object_acl} if settings.s3_object_acl else {}
        await asyncio.to_thread(
            self.client.put_object,
            Bucket=self.bucket_name,
            Key=key,
            Body=content,
            ContentType=content_type,
            **extra,
        )

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket_name, Key=key)
            logger.info("Deleted S3 object: s3://%s/%s", self.bucket_name, key)
        except (BotoCoreError, ClientError) as e:
            logger.warning("Failed to delete S3 object %s: %s", key, str(e))

    async def health_check(self) -> bool:
        try:
            await asyncio.to_thread(self.client.head_bucket, Bucket=self.bucket_name)
            return True
        except (BotoCoreError, ClientError) as e:
            logger.warning("S3 health check failed: %s", str(e))
            return False


def create_backend() -> StorageBackend:
    """Instantiate the backend named by settings.storage_backend."""
    if settings.storage_backend == "s3":
        return S3StorageBackend()
    return LocalStorageBackend()


# ══════════════════════════════════════════════════════════════════════════
# Service
# ══════════════════════════════════════════════════════════════════════════


class StorageService:
    """
    Upload validation plus storage delegation.

    Lifecycle of an uploaded document:
        1. Route reads the multipart file → ResourceService.create_resource()
        2. StorageService.store(): validate type, size, signature
        3. Backend writes the bytes under a generated key
        4. The resource row records file_url and file_key
        5. If persisting the row fails, the stored file is deleted again
    """

    def __init__(self, backend: Optional[StorageBackend] = None):
        self._backend = backend

    @property
    def backend(self) -> StorageBackend:
        # Created on first use so importing the module never touches S3 or disk
        if self._backend is None:
            self._backend = create_backend()
        return self._backend

    def validate_content_type(self, content_type: Optional[str]) -> str:
        """
        Check the declared MIME type against the allowed document types.

        Returns:
            The canonical extension for the type (e.g. ".pdf").
        Raises:
            UploadRejectedError for anything else.
        """
        mime = (content_type or "").split(";")[0].strip().lower()
        ext = ALLOWED_MIME_TYPES.get(mime)
        if ext is None:
            raise UploadRejectedError(
                message=f"Unsupported file type. Allowed types: {ALLOWED_TYPES_LABEL}",
                context={"content_type": mime or None},
            )
        return ext

    def validate_extension(self, filename: Optional[str], extension: str) -> None:
        """
        A filename extension, when present, must agree with the declared type.

        "notes.pdf" declared as application/pdf passes; "notes.exe" declared as
        application/pdf does not. Filenames without an extension are accepted.
        """
        suffix = Path(filename or "").suffix.lower()
        if suffix and suffix != extension:
            raise UploadRejectedError(
                message=f"Unsupported file type. Allowed types: {ALLOWED_TYPES_LABEL}",
                context={"extension": suffix, "expected": extension},
            )

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Reject empty files and files above settings.max_file_size.

        Content-Length is checked as well as the real byte count because
        clients can send a wrong header.
        """
        max_mb = settings.max_file_size / (1024 * 1024)

        if actual_size == 0:
            raise UploadRejectedError(
                message="The uploaded file is empty.",
                context={"actual_size": 0},
            )

        if content_length and content_length > settings.max_file_size:
            raise UploadRejectedError(
                message=f"File is too large. Maximum size is {max_mb:.0f}MB.",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if actual_size > settings.max_file_size:
            raise UploadRejectedError(
                message=(
                    f"File is too large ({actual_size / (1024 * 1024):.1f}MB). "
                    f"Maximum size is {max_mb:.0f}MB."
                ),
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    def validate_signature(self, content: bytes, extension: str) -> None:
        """The first bytes must match the container format the declared type implies."""
        signature = _SIGNATURES[extension]
        if not content.startswith(signature):
            raise UploadRejectedError(
                message="The file content does not match its declared type.",
                context={"expected_format": extension.lstrip(".")},
            )

    @staticmethod
    def generate_key(extension: str) -> str:
        return f"resources/{uuid.uuid4()}-{int(time.time() * 1000)}{extension}"

    async def store(
        self,
        filename: str,
        content: bytes,
        content_type: Optional[str],
        content_length: Optional[int] = None,
    ) -> StoredFile:
        """
        Validate an upload and write it to the configured backend.

        Args:
            filename: Original client filename (logging only)
            content: Raw bytes
            content_type: Declared MIME type from the multipart part
            content_length: Size reported by the client, if any

        Returns:
            StoredFile with the public URL and the storage key

        Raises:
            UploadRejectedError: unsupported type, empty, oversize or mismatched content
            FileStorageError: the backend failed to write
        """
        ext = self.validate_content_type(content_type)
        self.validate_extension(filename, ext)
        self.validate_size(content_length, len(content))
        self.validate_signature(content, ext)

        key = self.generate_key(ext)
        mime = (content_type or "").split(";")[0].strip().lower()
        url = await self.backend.save(key, content, mime)

        logger.info(
            "Stored upload %s as %s via %s backend", filename, key, self.backend.name
        )
        return StoredFile(url=url, key=key, content_type=mime, size=len(content))

    async def delete(self, key: str) -> None:
        """Best-effort removal; run as a background task after a resource is deleted."""
        await self.backend.delete(key)

    async def health_check(self) -> bool:
        try:
            return await self.backend.health_check()
        except Exception as e:
            logger.warning("Storage health check failed: %s", str(e))
            return False


# ── Singleton Instance ────────────────────────────────────────────────────
storage_service = StorageService()
