"""
Per-element extraction and download for metadata exports
"""
import asyncio
import logging
from typing import Optional

from ..core.config import settings
from ..core.errors import ElementFetchError
from ..schemas.exports import ArchiveEntry
from ..schemas.metadata import AppMetadata, ElementKind, ScreenshotItem, ScreenshotLayout
from .upstream import AppTweakClient


logger = logging.getLogger(__name__)

NO_SCREENSHOTS_DOWNLOADED = "No screenshots were successfully downloaded. Check the server logs for details."
NO_SCREENSHOTS_DATA = "No screenshots data available in the metadata."
ICON_DOWNLOAD_FAILED = "The icon could not be downloaded. Check the server logs for details."


def image_extension(url: str) -> str:
    return "png" if ".png" in url else "jpg"


def element_path(kind: ElementKind, folder: str, ext: str, all_in_one: bool) -> str:
    """Path for a single-file element (title, subtitle, description, icon)"""
    if all_in_one:
        return f"{kind.value}/{folder}.{ext}"
    return f"{folder}/{kind.value}/{kind.value}.{ext}"


def screenshot_path(
    item: ScreenshotItem,
    layout: ScreenshotLayout,
    folder: str,
    ext: str,
    all_in_one: bool,
) -> str:
    if all_in_one:
        return f"screenshots/{folder}_{item.index}.{ext}"
    if layout is ScreenshotLayout.BY_DEVICE:
        return f"{folder}/screenshots/{item.device_type}_screenshot_{item.index}.{ext}"
    return f"{folder}/screenshots/screenshot_{item.index}.{ext}"


def note_path(kind: ElementKind, folder: str, note: str, all_in_one: bool) -> str:
    """Path for a diagnostic text note about an element"""
    if all_in_one:
        return f"{kind.value}/{folder}_{note}.txt"
    return f"{folder}/{kind.value}/{note}.txt"


class ElementFetcher:
    """Turns one metadata element of one app into archive entries"""

    def __init__(self, client: AppTweakClient, icon_failure_diagnostic: Optional[bool] = None):
        self.client = client
        self.icon_failure_diagnostic = (
            settings.ICON_FAILURE_DIAGNOSTIC if icon_failure_diagnostic is None else icon_failure_diagnostic
        )

    async def fetch(
        self,
        app_id: str,
        metadata: AppMetadata,
        kind: ElementKind,
        folder: str,
        all_in_one: bool,
    ) -> list[ArchiveEntry]:
        if kind is ElementKind.TITLE:
            return self._text(kind, metadata.title, folder, all_in_one)
        if kind is ElementKind.SUBTITLE:
            return self._text(kind, metadata.subtitle, folder, all_in_one)
        if kind is ElementKind.DESCRIPTION:
            return self._text(kind, metadata.description_text, folder, all_in_one)
        if kind is ElementKind.ICON:
            return await self._icon(app_id, metadata.icon, folder, all_in_one)
        return await self._screenshots(app_id, metadata, folder, all_in_one)

    def _text(
        self,
        kind: ElementKind,
        value: Optional[str],
        folder: str,
        all_in_one: bool,
    ) -> list[ArchiveEntry]:
        # Absent text is a valid state, not a failure
        if not value:
            return []
        return [ArchiveEntry(element_path(kind, folder, "txt", all_in_one), value)]

    async def _icon(
        self,
        app_id: str,
        url: Optional[str],
        folder: str,
        all_in_one: bool,
    ) -> list[ArchiveEntry]:
        if not url:
            return []
        try:
            content = await self.client.download_asset(url)
        except ElementFetchError as e:
            logger.warning(f"Failed to download icon for {app_id}: {e}")
            if self.icon_failure_diagnostic:
                path = note_path(ElementKind.ICON, folder, "download_issues", all_in_one)
                return [ArchiveEntry(path, ICON_DOWNLOAD_FAILED, diagnostic=True)]
            return []
        path = element_path(ElementKind.ICON, folder, image_extension(url), all_in_one)
        return [ArchiveEntry(path, content)]

    async def _screenshots(
        self,
        app_id: str,
        metadata: AppMetadata,
        folder: str,
        all_in_one: bool,
    ) -> list[ArchiveEntry]:
        shots = metadata.screenshot_set
        if shots is None:
            logger.info(f"No screenshots data found for {app_id}")
            path = note_path(ElementKind.SCREENSHOTS, folder, "no_screenshots", all_in_one)
            return [ArchiveEntry(path, NO_SCREENSHOTS_DATA, diagnostic=True)]

        for item in shots.items:
            if not item.url:
                logger.warning(f"No URL found for screenshot {item.index} of {app_id}")

        async def download(item: ScreenshotItem) -> Optional[ArchiveEntry]:
            try:
                content = await self.client.download_asset(item.url)
            except ElementFetchError as e:
                logger.warning(f"Failed to download screenshot {item.index} for {app_id}: {e}")
                return None
            path = screenshot_path(item, shots.layout, folder, image_extension(item.url), all_in_one)
            return ArchiveEntry(path, content)

        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(download(item)) for item in shots.downloadable]

        entries = [task.result() for task in tasks if task.result() is not None]
        logger.info(f"Downloaded {len(entries)} of {len(tasks)} screenshots for {app_id}")

        if not entries:
            path = note_path(ElementKind.SCREENSHOTS, folder, "download_issues", all_in_one)
            return [ArchiveEntry(path, NO_SCREENSHOTS_DOWNLOADED, diagnostic=True)]
        return entries
