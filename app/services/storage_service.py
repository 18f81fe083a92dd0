# app/services/storage_service.py
import logging
from datetime import timedelta
from typing import Tuple

from starlette.concurrency import run_in_threadpool

from app.core.config import SIGNED_URL_DAYS

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


class DocumentStorage:
    """Path-addressed PDF storage in the Firebase bucket."""

    def __init__(self, bucket):
        self.bucket = bucket

    def _upload(self, path: str, content: bytes, content_type: str) -> str:
        blob = self.bucket.blob(path)
        blob.upload_from_string(content, content_type=content_type)
        return blob.generate_signed_url(
            expiration=timedelta(days=SIGNED_URL_DAYS),
            method="GET",
            version="v4",
        )

    async def upload(self, path: str, content: bytes, content_type: str = PDF_CONTENT_TYPE) -> Tuple[str, str]:
        """Upload and return (storage_path, signed_url)."""
        signed_url = await run_in_threadpool(self._upload, path, content, content_type)
        logger.info("Uploaded %s (%d bytes)", path, len(content))
        return path, signed_url

    async def download(self, path: str) -> bytes:
        return await run_in_threadpool(self.bucket.blob(path).download_as_bytes)
