"""Append-only track store backed by a newline-delimited JSON file.

Layout inside the store directory::

    track.jsonl            live file, appended by the capture path
    track.jsonl.sending    snapshot being delivered by the current cycle
    track-<ts>.jsonl       archived snapshots (only with ``keep_files``)

A delivery cycle first moves the live file aside (:meth:`TrackStore.snapshot`),
so points captured while the cycle runs land in a fresh live file and are
delivered by the next cycle.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from pathlib import Path

import aiofiles
import aiofiles.os

from trackrelay._constants import ARCHIVE_PREFIX, SNAPSHOT_SUFFIX, TRACK_FILE_NAME
from trackrelay.exceptions import StorageError, StoreDirectoryError
from trackrelay.models.track import TrackPoint

_logger = logging.getLogger(__name__)


def validate_directory(directory: str | os.PathLike[str]) -> Path:
    """Create *directory* if needed and check it is readable and writable.

    Runs once at startup. Raises :class:`StoreDirectoryError` when the
    directory cannot be used; the caller must not start capturing.
    """
    path = Path(directory).expanduser().resolve()
    if path.exists():
        if not path.is_dir():
            raise StoreDirectoryError(f"{path} is not a directory", path=str(path))
        if not os.access(path, os.R_OK | os.W_OK):
            raise StoreDirectoryError(f"No rights to directory {path}", path=str(path))
        return path
    try:
        path.mkdir(parents=True, exist_ok=True)
    except PermissionError as exc:
        raise StoreDirectoryError(f"Failed to create {path}: permission denied", path=str(path)) from exc
    except TimeoutError as exc:
        raise StoreDirectoryError(f"Failed to create {path}: operation timed out", path=str(path)) from exc
    except OSError as exc:
        raise StoreDirectoryError(f"Failed to create {path}: {exc}", path=str(path)) from exc
    return path


async def _size(path: Path) -> int:
    try:
        stat = await aiofiles.os.stat(path)
    except FileNotFoundError:
        return 0
    return stat.st_size


class TrackStore:
    """Durable, ordered sequence of :class:`TrackPoint` records."""

    def __init__(self, directory: str | os.PathLike[str], *, name: str = TRACK_FILE_NAME) -> None:
        self._dir = Path(directory)
        self._path = self._dir / name
        self._snapshot_path = self._dir / f"{name}{SNAPSHOT_SUFFIX}"
        # Serializes every operation that touches the live file.
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def snapshot_path(self) -> Path:
        return self._snapshot_path

    # ------------------------------------------------------------------
    # Capture side
    # ------------------------------------------------------------------

    async def append(self, point: TrackPoint) -> None:
        """Append one record. Raises :class:`StorageError` on I/O failure."""
        line = f"{point.to_line()}\n"
        async with self._lock:
            try:
                async with aiofiles.open(self._path, "a", encoding="utf-8") as fh:
                    await fh.write(line)
                    await fh.flush()
            except OSError as exc:
                raise StorageError(f"Failed to append to {self._path}: {exc}") from exc
        _logger.debug("Saved point %s", line.rstrip())

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def exists(self) -> bool:
        return bool(await aiofiles.os.path.exists(self._path))

    async def size_bytes(self) -> int:
        return await _size(self._path)

    async def has_data(self) -> bool:
        """True when the live file or an unfinished snapshot holds records."""
        if await self.exists() and await self.size_bytes() > 0:
            return True
        return await _size(self._snapshot_path) > 0

    # ------------------------------------------------------------------
    # Delivery side
    # ------------------------------------------------------------------

    async def snapshot(self) -> bool:
        """Move the live file behind the snapshot for delivery.

        Records left in the snapshot by an interrupted or requeued cycle
        stay in front. Returns whether the snapshot holds any data.
        """
        async with self._lock:
            try:
                if await self.exists():
                    if not await aiofiles.os.path.exists(self._snapshot_path):
                        await aiofiles.os.replace(self._path, self._snapshot_path)
                    else:
                        async with aiofiles.open(self._path, encoding="utf-8") as src:
                            pending = await src.read()
                        async with aiofiles.open(self._snapshot_path, "a", encoding="utf-8") as dst:
                            await dst.write(pending)
                        await aiofiles.os.remove(self._path)
            except OSError as exc:
                raise StorageError(f"Failed to snapshot {self._path}: {exc}") from exc
        return await _size(self._snapshot_path) > 0

    async def drain_lines(self) -> AsyncIterator[str]:
        """Yield raw snapshot records front to back, skipping blank lines."""
        if not await aiofiles.os.path.exists(self._snapshot_path):
            return
        async with aiofiles.open(self._snapshot_path, encoding="utf-8") as fh:
            async for line in fh:
                record = line.strip()
                if record:
                    yield record

    async def discard_head(self, count: int) -> int:
        """Drop the first *count* records of the snapshot, keeping the rest.

        Returns the number of records kept. An empty remainder removes
        the snapshot.
        """
        kept: list[str] = []
        seen = 0
        async for record in self.drain_lines():
            seen += 1
            if seen > count:
                kept.append(record)
        try:
            if not kept:
                await self._remove(self._snapshot_path)
                return 0
            tmp = self._snapshot_path.with_name(f"{self._snapshot_path.name}.tmp")
            async with aiofiles.open(tmp, "w", encoding="utf-8") as fh:
                await fh.write("".join(f"{record}\n" for record in kept))
            await aiofiles.os.replace(tmp, self._snapshot_path)
        except OSError as exc:
            raise StorageError(f"Failed to rewrite {self._snapshot_path}: {exc}") from exc
        return len(kept)

    async def finish_cycle(self, *, keep: bool = False) -> Path | None:
        """Delete the snapshot, or archive it when *keep* is set.

        Returns the archive path, if any.
        """
        if not await aiofiles.os.path.exists(self._snapshot_path):
            return None
        try:
            if keep:
                stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")
                archive = self._dir / f"{ARCHIVE_PREFIX}{stamp}.jsonl"
                await aiofiles.os.replace(self._snapshot_path, archive)
                _logger.debug("Archived %s as %s", self._snapshot_path, archive)
                return archive
            await self._remove(self._snapshot_path)
        except OSError as exc:
            raise StorageError(f"Failed to clear {self._snapshot_path}: {exc}") from exc
        _logger.debug("Deleted %s", self._snapshot_path)
        return None

    async def delete_all(self) -> None:
        """Remove live file and snapshot. No-op when already absent."""
        async with self._lock:
            for path in (self._path, self._snapshot_path):
                try:
                    await self._remove(path)
                except OSError as exc:
                    raise StorageError(f"Failed to delete {path}: {exc}") from exc

    @staticmethod
    async def _remove(path: Path) -> None:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
