"""
Tests for the single-owner archive writer
"""
import asyncio
import io
import threading
import zipfile
import pytest

from apptweak_export.core.errors import AssemblyError
from apptweak_export.services.archive import ArchiveWriter


def test_concurrent_appends_all_land_in_archive():
    async def scenario() -> tuple[bytes, list[str]]:
        writer = await ArchiveWriter().open()

        async def worker(n: int) -> None:
            await asyncio.sleep(0)
            await writer.append(f"app_{n}/title/title.txt", f"title {n}")
            await writer.append(f"app_{n}/icon/icon.png", bytes([n]))

        async with asyncio.TaskGroup() as group:
            for n in range(20):
                group.create_task(worker(n))
        return await writer.finalize(), writer.paths

    content, paths = asyncio.run(scenario())

    with zipfile.ZipFile(io.BytesIO(content)) as archive:
        names = set(archive.namelist())
        assert archive.read("app_7/title/title.txt") == b"title 7"
        assert archive.read("app_3/icon/icon.png") == bytes([3])
    assert len(names) == 40
    assert names == set(paths)


def test_empty_archive_is_valid_zip():
    async def scenario() -> bytes:
        async with ArchiveWriter() as writer:
            return await writer.finalize()

    content = asyncio.run(scenario())

    with zipfile.ZipFile(io.BytesIO(content)) as archive:
        assert archive.namelist() == []


def test_append_after_finalize_fails():
    async def scenario() -> None:
        writer = await ArchiveWriter().open()
        await writer.finalize()
        await writer.append("late.txt", "too late")

    with pytest.raises(AssemblyError):
        asyncio.run(scenario())


def test_finalize_twice_fails():
    async def scenario() -> None:
        writer = await ArchiveWriter().open()
        await writer.finalize()
        await writer.finalize()

    with pytest.raises(AssemblyError, match="already finalized"):
        asyncio.run(scenario())


def test_finalize_without_open_fails():
    with pytest.raises(AssemblyError, match="never opened"):
        asyncio.run(ArchiveWriter().finalize())


def test_write_failure_surfaces_as_assembly_error():
    async def scenario() -> None:
        writer = await ArchiveWriter().open()
        await writer.append("bad.bin", 12345)
        await writer.finalize()

    with pytest.raises(AssemblyError, match="Failed to build archive"):
        asyncio.run(scenario())


def test_entries_are_compressed_off_the_event_loop(monkeypatch):
    threads: list[threading.Thread] = []
    real_writestr = zipfile.ZipFile.writestr

    def recording_writestr(self, *args, **kwargs):
        threads.append(threading.current_thread())
        return real_writestr(self, *args, **kwargs)

    monkeypatch.setattr(zipfile.ZipFile, "writestr", recording_writestr)

    async def scenario() -> bytes:
        async with ArchiveWriter() as writer:
            await writer.append("app/title/title.txt", "title")
            await writer.append("app/icon/icon.png", b"\x89PNG")
            return await writer.finalize()

    content = asyncio.run(scenario())

    assert len(threads) == 2
    assert all(thread is not threading.main_thread() for thread in threads)
    with zipfile.ZipFile(io.BytesIO(content)) as archive:
        assert archive.read("app/title/title.txt") == b"title"
