import re
import time
import logging
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorGridFSBucket

from invoice_intake.errors import DownloadError

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def build_storage_path(file_name: str, timestamp_ms: Optional[int] = None) -> str:
    """Collision-resistant blob name: `<epoch ms>_<sanitized name>`."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{timestamp_ms}_{_UNSAFE_NAME_CHARS.sub('_', file_name)}"


class BlobStorage:
    """Invoice PDFs kept in a GridFS bucket, addressed by file name."""

    def __init__(self, fs: AsyncIOMotorGridFSBucket):
        self.fs = fs

    async def upload(self, file_name: str, content: bytes, content_type: str = "application/pdf") -> str:
        path = build_storage_path(file_name)
        await self.fs.upload_from_stream(
            path,
            content,
            metadata={"source": "manual_upload", "original_name": file_name, "content_type": content_type}
        )
        return path

    async def download(self, path: str) -> bytes:
        try:
            grid_out = await self.fs.open_download_stream_by_name(path)
            return await grid_out.read()
        except Exception as e:
            logger.error(f"GridFS retrieval failed for {path}: {e}")
            raise DownloadError(f"Failed to download file: {e}") from e

    async def delete(self, path: str):
        """Remove every stored revision named `path`."""
        async for grid_out in self.fs.find({"filename": path}):
            await self.fs.delete(grid_out._id)
