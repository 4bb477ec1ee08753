"""
Snapshot Storage Module
=======================

Keeps the raw availability pages fetched by scrape runs so a run can be
inspected or replayed offline with ``scrape --html-file``.
"""

from __future__ import annotations

import gzip
import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class SnapshotMetadata:
    """Where a snapshot lives and whether this call wrote it."""

    source_name: str
    url: str
    content_hash: str
    size_bytes: int
    file_path: str
    is_new: bool


class LocalFileStorage:
    """
    Gzip snapshots on the local filesystem.

    Directory structure:
        {base_path}/{source_name}/{hash[:2]}/{content_hash}.{ext}.gz

    The file name is the content hash, so a page that has not changed
    since an earlier run, by this or any other instance, is not written
    again.
    """

    MIME_EXTENSIONS = {
        "text/html": "html",
        "application/json": "json",
        "text/plain": "txt",
    }

    def __init__(self, base_path: str | Path) -> None:
        self.base_path = Path(base_path).expanduser().resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def snapshot_path(self, source_name: str, content_hash: str, mime_type: str) -> Path:
        extension = self.MIME_EXTENSIONS.get(mime_type, "bin")
        return self.base_path / source_name / content_hash[:2] / f"{content_hash}.{extension}.gz"

    def save_snapshot(
        self,
        content: bytes,
        source_name: str,
        url: str,
        content_hash: str,
        mime_type: str,
    ) -> SnapshotMetadata:
        """
        Save a content snapshot unless the same content is already stored.

        Args:
            content: Raw content bytes
            source_name: Name of the source this content came from
            url: Original URL of the content
            content_hash: Pre-computed hash of the content
            mime_type: MIME type of the content

        Returns:
            SnapshotMetadata with storage details
        """
        file_path = self.snapshot_path(source_name, content_hash, mime_type)
        is_new = not file_path.exists()

        if is_new:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            # Write then rename so a concurrent reader never sees half a file
            tmp_path = file_path.with_name(f".{file_path.name}.{os.getpid()}")
            with open(tmp_path, "wb") as f:
                f.write(gzip.compress(content, compresslevel=6))
            tmp_path.replace(file_path)
        else:
            logger.debug(f"Snapshot {content_hash} already stored for {source_name}")

        return SnapshotMetadata(
            source_name=source_name,
            url=url,
            content_hash=content_hash,
            size_bytes=len(content),
            file_path=str(file_path),
            is_new=is_new,
        )


def get_default_storage(base_path: str | None = None) -> LocalFileStorage:
    """
    Get a storage instance.

    Uses SNAPSHOT_STORAGE_PATH environment variable, then base_path,
    then ~/.barnehage_tracker/snapshots.
    """
    storage_path = os.environ.get(
        "SNAPSHOT_STORAGE_PATH", base_path or "~/.barnehage_tracker/snapshots"
    )
    return LocalFileStorage(storage_path)
