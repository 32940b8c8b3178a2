# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Panel Backup Archive Builder - Stream a directory tree into a zip file.

The zip is written on a worker thread. Two things can end the write: the
archive writer failing while adding entries, or the output stream failing
or closing. Both report into a one-shot completion signal and whichever
arrives first decides the outcome.
"""

import asyncio
import os
import zipfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Iterator, Tuple

import structlog

from panelbackup.errors import explain_empty_archive
from panelbackup.exceptions import ArchiveError, EmptyBackupError

logger = structlog.get_logger()

# Thread pool for blocking zip writes
_executor = ThreadPoolExecutor(max_workers=2)

DEFAULT_COMPRESSION_LEVEL = 9  # Maximum deflate compression

# In-progress zips carry this suffix; the store only lists "*.zip"
PARTIAL_SUFFIX = ".part"


class CompletionSignal:
    """
    Single-assignment result cell that can be settled from any thread.

    The first resolve() or reject() wins; later calls are ignored.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self._future: asyncio.Future = loop.create_future()

    def resolve(self, value: Any = None) -> None:
        self._loop.call_soon_threadsafe(self._settle, value, None)

    def reject(self, error: BaseException) -> None:
        self._loop.call_soon_threadsafe(self._settle, None, error)

    def _settle(self, value: Any, error: BaseException | None) -> None:
        if self._future.done():
            if error is not None:
                logger.debug("completion_signal_late_error", error=str(error))
            return
        if error is not None:
            self._future.set_exception(error)
        else:
            self._future.set_result(value)

    @property
    def settled(self) -> bool:
        return self._future.done()

    async def wait(self) -> Any:
        return await self._future


def _iter_entries(source_dir: Path) -> Iterator[Tuple[Path, str, bool]]:
    """
    Yield (path, arcname, is_dir) for everything under source_dir.

    Arcnames are relative to source_dir. Only empty directories get an
    explicit entry; the others are implied by their files.
    """
    for root, dirnames, filenames in os.walk(source_dir):
        dirnames.sort()
        root_path = Path(root)
        rel_root = root_path.relative_to(source_dir)

        if not dirnames and not filenames and rel_root != Path("."):
            yield root_path, f"{rel_root.as_posix()}/", True

        for filename in sorted(filenames):
            path = root_path / filename
            yield path, (rel_root / filename).as_posix(), False


def partial_path_for(archive_path: Path) -> Path:
    """Path the zip is written to before it is moved into place."""
    archive_path = Path(archive_path)
    return archive_path.with_name(archive_path.name + PARTIAL_SUFFIX)


def _discard_partial(partial_path: Path) -> None:
    try:
        partial_path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("zip_partial_cleanup_failed", path=str(partial_path), error=str(e))


def _write_zip(
    source_dir: Path,
    output_path: Path,
    compression_level: int,
    signal: CompletionSignal,
) -> None:
    """Worker-thread body: write the zip and report into the signal."""
    try:
        stream = open(output_path, "wb")
    except OSError as e:
        logger.error("zip_stream_open_failed", path=str(output_path), error=str(e))
        signal.reject(ArchiveError(f"Failed to write zip file: {e}"))
        return

    entries = 0
    try:
        with zipfile.ZipFile(
            stream,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=compression_level,
        ) as archive:
            for path, arcname, is_dir in _iter_entries(source_dir):
                if is_dir:
                    archive.writestr(zipfile.ZipInfo(arcname), b"")
                    entries += 1
                    continue
                try:
                    archive.write(path, arcname=arcname)
                    entries += 1
                except FileNotFoundError as e:
                    logger.warning("zip_entry_vanished", path=str(path), error=str(e))
    except Exception as e:
        logger.error("zip_compress_failed", path=str(output_path), error=str(e))
        signal.reject(ArchiveError(f"Failed to compress files: {e}"))

    try:
        stream.close()
    except OSError as e:
        logger.error("zip_stream_close_failed", path=str(output_path), error=str(e))
        signal.reject(ArchiveError(f"Failed to write zip file: {e}"))
        return

    signal.resolve(entries)


async def build_archive(
    source_dir: Path,
    archive_path: Path,
    compression_level: int = DEFAULT_COMPRESSION_LEVEL,
) -> int:
    """
    Compress the contents of source_dir into archive_path.

    Paths inside the archive are relative to source_dir (no top-level
    folder named after it).

    The zip is written to "<archive_path>.part" and renamed to archive_path
    only once the stream closed cleanly and the file is non-empty, so a
    half-written archive is never visible under its final name.

    Args:
        source_dir: Fully populated directory to compress
        archive_path: Destination .zip file
        compression_level: Deflate level 0-9 (default 9)

    Returns:
        Size of the archive in bytes

    Raises:
        ArchiveError: If the source is missing or writing fails
        EmptyBackupError: If the finished archive has zero bytes
    """
    source_dir = Path(source_dir)
    archive_path = Path(archive_path)
    partial_path = partial_path_for(archive_path)

    if not source_dir.is_dir():
        raise ArchiveError(
            f"Source directory does not exist: {source_dir}",
            details={"source_dir": str(source_dir)},
        )

    loop = asyncio.get_running_loop()
    signal = CompletionSignal(loop)

    logger.info("zip_started", source_dir=str(source_dir), archive_path=str(archive_path))

    published = False
    try:
        worker = loop.run_in_executor(
            _executor,
            _write_zip,
            source_dir,
            partial_path,
            compression_level,
            signal,
        )

        try:
            entries = await signal.wait()
        finally:
            await worker

        size = partial_path.stat().st_size if partial_path.exists() else 0
        if size == 0:
            raise EmptyBackupError(
                explain_empty_archive(),
                details={"archive_path": str(archive_path)},
            )

        try:
            os.replace(partial_path, archive_path)
        except OSError as e:
            raise ArchiveError(
                f"Failed to write zip file: {e}",
                details={"archive_path": str(archive_path)},
            ) from e
        published = True
    finally:
        if not published:
            _discard_partial(partial_path)

    logger.info("zip_created", archive_path=str(archive_path), size=size, entries=entries)
    return size
