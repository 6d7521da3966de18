"""
Staging area for deliverable files uploaded by staff.

Files live here only between the upload and the delivery email; the
fulfillment path discards them after sending and a shutdown sweep removes
anything left behind.
"""

import logging
import os
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StagedUpload:
    """Handle to a staged file."""

    path: Path
    original_name: str
    size: int
    content_type: Optional[str] = None


class LocalFileStore:
    """File store backed by a local staging directory."""

    def __init__(self, staging_dir: str):
        self.staging_dir = Path(staging_dir)

    async def _ensure_dir(self) -> None:
        await aiofiles.os.makedirs(self.staging_dir, exist_ok=True)

    @staticmethod
    def staged_name(original_name: str) -> str:
        """``{timestamp}_{random}_{basename}`` with any directory part stripped."""
        basename = os.path.basename(original_name.replace("\\", "/")) or "upload"
        return f"{int(time.time() * 1000)}_{secrets.token_hex(3)}_{basename}"

    async def stage_pending_upload(
        self, data: bytes, name: str, content_type: Optional[str] = None
    ) -> StagedUpload:
        """
        Write an upload to the staging directory.

        Args:
            data: File content
            name: Original file name as sent by the client
            content_type: MIME type as sent by the client

        Returns:
            StagedUpload: Handle passed to ``discard``
        """
        await self._ensure_dir()
        path = self.staging_dir / self.staged_name(name)

        async with aiofiles.open(path, "wb") as f:
            await f.write(data)

        logger.info(f"Staged upload {path.name} ({len(data)} bytes)")
        return StagedUpload(path=path, original_name=os.path.basename(name), size=len(data), content_type=content_type)

    async def read(self, handle: StagedUpload) -> bytes:
        async with aiofiles.open(handle.path, "rb") as f:
            return await f.read()

    async def discard(self, handle: StagedUpload) -> bool:
        """Remove a staged file. Returns False if it could not be removed."""
        try:
            await aiofiles.os.remove(handle.path)
            logger.debug(f"Discarded staged upload {handle.path.name}")
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Failed to discard staged upload {handle.path}: {e}")
            return False

    async def cleanup_older_than(self, max_age_seconds: float) -> int:
        """
        Remove staged files older than ``max_age_seconds``.

        Returns:
            int: Number of files removed
        """
        if not await aiofiles.os.path.isdir(self.staging_dir):
            return 0

        cutoff = time.time() - max_age_seconds
        removed = 0
        for entry in await aiofiles.os.scandir(self.staging_dir):
            if not entry.is_file():
                continue
            try:
                if entry.stat().st_mtime < cutoff:
                    await aiofiles.os.remove(entry.path)
                    removed += 1
            except OSError as e:
                logger.warning(f"Could not remove stale staged file {entry.path}: {e}")

        if removed:
            logger.info(f"Removed {removed} stale staged uploads from {self.staging_dir}")
        return removed
