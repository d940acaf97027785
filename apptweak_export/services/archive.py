"""
ZIP archive assembly for metadata exports

A single owner task holds the ZipFile; element tasks hand entries over
through a queue, so concurrent appends never touch the archive directly.
"""
import asyncio
import io
import logging
import zipfile
from typing import Optional, Union

from ..core.config import settings
from ..core.errors import AssemblyError


logger = logging.getLogger(__name__)

_CLOSE = object()


class ArchiveWriter:
    """Owns one in-memory ZIP archive for the lifetime of an export"""

    def __init__(self, compression_level: Optional[int] = None):
        self.compression_level = (
            settings.ARCHIVE_COMPRESSION_LEVEL if compression_level is None else compression_level
        )
        self._buffer = io.BytesIO()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._owner: Optional[asyncio.Task] = None
        self._closing = False
        self.paths: list[str] = []

    async def __aenter__(self) -> "ArchiveWriter":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def open(self) -> "ArchiveWriter":
        if self._owner is not None:
            raise AssemblyError("Archive is already open")
        self._owner = asyncio.create_task(self._write_entries())
        return self

    async def append(self, path: str, content: Union[bytes, str]) -> None:
        """Queue an entry; safe to call from any number of tasks"""
        if self._owner is None or self._closing:
            raise AssemblyError(f"Cannot append {path}: archive is not open")
        await self._queue.put((path, content))

    async def finalize(self) -> bytes:
        """
        Close the archive and return its bytes

        Must only be awaited once every task that appends has finished.
        """
        if self._owner is None:
            raise AssemblyError("Archive was never opened")
        if self._closing:
            raise AssemblyError("Archive is already finalized")

        self._closing = True
        await self._queue.put(_CLOSE)
        try:
            await self._owner
        except Exception as e:
            logger.error(f"Archive finalization failed: {e}")
            raise AssemblyError(f"Failed to build archive: {e}") from e

        data = self._buffer.getvalue()
        logger.info(f"Archive finalized with {len(self.paths)} entries ({len(data)} bytes)")
        return data

    async def aclose(self) -> None:
        """Abandon an archive that was not finalized"""
        if self._owner is not None and not self._owner.done():
            # Drain rather than cancel: a write may be running in a worker thread
            if not self._closing:
                self._closing = True
                await self._queue.put(_CLOSE)
            try:
                await self._owner
            except Exception as e:
                logger.warning(f"Archive writer exited with error during close: {e}")

    async def _write_entries(self) -> None:
        with zipfile.ZipFile(
            self._buffer,
            "w",
            zipfile.ZIP_DEFLATED,
            compresslevel=self.compression_level,
        ) as zip_file:
            while True:
                item = await self._queue.get()
                if item is _CLOSE:
                    break
                path, content = item
                # Deflate is CPU-bound; keep the loop free for in-flight downloads
                await asyncio.to_thread(zip_file.writestr, path, content)
                self.paths.append(path)
