"""
Selective metadata export: fan out per app and per element, fold into one ZIP
"""
import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from ..core.config import settings
from ..core.errors import AssemblyError, InvalidRequestError, UpstreamError
from ..schemas.exports import SelectiveDownloadRequest
from ..schemas.metadata import AppMetadata, ElementKind, unwrap_existing
from .archive import ArchiveWriter
from .elements import ElementFetcher
from .upstream import AppTweakClient


logger = logging.getLogger(__name__)

UNSAFE_FOLDER_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_folder_name(name: str) -> str:
    """Replace every character outside [A-Za-z0-9_-] with an underscore"""
    return UNSAFE_FOLDER_CHARS.sub("_", name)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ExportResult:
    filename: str
    content: bytes
    paths: list[str] = field(default_factory=list)


class ExportOrchestrator:
    """Coordinates one selective export request end to end"""

    def __init__(
        self,
        client: AppTweakClient,
        clock: Optional[Callable[[], datetime]] = None,
        max_apps: Optional[int] = None,
        archive_prefix: Optional[str] = None,
        fetcher: Optional[ElementFetcher] = None,
    ):
        self.client = client
        self.clock = clock or utc_now
        self.max_apps = settings.MAX_EXPORT_APPS if max_apps is None else max_apps
        self.archive_prefix = archive_prefix or settings.ARCHIVE_PREFIX
        self.fetcher = fetcher or ElementFetcher(client)

    def validate(self, request: SelectiveDownloadRequest) -> list[ElementKind]:
        """
        Reject unusable requests before any network call

        Returns:
            Known element kinds in request order, without duplicates
        """
        if not request.apps:
            raise InvalidRequestError("Apps array is required")
        if not request.selected_elements:
            raise InvalidRequestError("Selected elements array is required")
        if self.max_apps and len(request.apps) > self.max_apps:
            raise InvalidRequestError(
                f"Too many apps: {len(request.apps)} requested, at most {self.max_apps} allowed"
            )

        kinds: list[ElementKind] = []
        for name in request.selected_elements:
            try:
                kind = ElementKind(name)
            except ValueError:
                logger.warning(f"Unknown element type: {name}")
                continue
            if kind not in kinds:
                kinds.append(kind)
        return kinds

    def archive_filename(self, request: SelectiveDownloadRequest) -> str:
        date = self.clock().date().isoformat()
        # Names go into a Content-Disposition header, so only [A-Za-z0-9_-] survive
        elements = "_".join(sanitize_folder_name(name) for name in request.selected_elements)
        return f"{self.archive_prefix}_{elements}_{date}.zip"

    async def run(self, request: SelectiveDownloadRequest) -> ExportResult:
        kinds = self.validate(request)
        logger.info(
            f"Starting selective export for {len(request.apps)} apps",
            extra={"elements": [kind.value for kind in kinds], "all_in_one": request.all_in_one},
        )

        async with ArchiveWriter() as writer:
            try:
                async with asyncio.TaskGroup() as group:
                    for app_id in request.apps:
                        group.create_task(self._export_app(writer, request, app_id, kinds))
            except ExceptionGroup as eg:
                # App tasks contain their own failures; only archive errors get here
                raise AssemblyError(f"Failed to build archive: {eg.exceptions[0]}") from eg
            # Every app task has settled here
            content = await writer.finalize()

        return ExportResult(
            filename=self.archive_filename(request),
            content=content,
            paths=list(writer.paths),
        )

    async def _export_app(
        self,
        writer: ArchiveWriter,
        request: SelectiveDownloadRequest,
        app_id: str,
        kinds: list[ElementKind],
    ) -> None:
        try:
            metadata = await self._resolve_metadata(writer, request, app_id)
            if metadata is None:
                return

            folder = sanitize_folder_name(metadata.title or app_id)
            async with asyncio.TaskGroup() as group:
                for kind in kinds:
                    group.create_task(
                        self._export_element(writer, app_id, metadata, kind, folder, request.all_in_one)
                    )

            summary_path = (
                f"metadata_summary/{folder}.json"
                if request.all_in_one
                else f"{folder}/metadata_summary.json"
            )
            await writer.append(summary_path, self._dump(self._summary(request, app_id, metadata)))
        except AssemblyError:
            raise
        except ExceptionGroup as eg:
            # Archive errors from the element tasks arrive wrapped in a group
            archive_errors = eg.subgroup(AssemblyError)
            if archive_errors is not None:
                raise archive_errors.exceptions[0] from eg
            await self._record_app_failure(writer, app_id, eg)
        except Exception as e:
            await self._record_app_failure(writer, app_id, e)

    async def _record_app_failure(self, writer: ArchiveWriter, app_id: str, error: Exception) -> None:
        logger.exception(f"Error processing app {app_id}: {error}")
        await writer.append(
            f"{app_id}_ERROR/error_details.json",
            self._dump(self._error_details(app_id, str(error))),
        )

    async def _resolve_metadata(
        self,
        writer: ArchiveWriter,
        request: SelectiveDownloadRequest,
        app_id: str,
    ) -> Optional[AppMetadata]:
        existing = (request.existing_metadata or {}).get(app_id)
        if existing:
            logger.info(f"Using existing metadata for {app_id}")
            return AppMetadata.model_validate(unwrap_existing(existing))

        try:
            data = await self.client.fetch_metadata(
                app_id,
                country=request.country,
                device=request.device,
                language=request.language,
            )
        except UpstreamError as e:
            logger.error(f"Failed to fetch metadata for {app_id}: {e.message}")
            error = e.payload if e.payload is not None else e.message
            await writer.append(
                f"{app_id}_ERROR/error_details.json",
                self._dump(self._error_details(app_id, error)),
            )
            return None

        result = data.get("result") if isinstance(data, dict) else None
        record = result.get(app_id) if isinstance(result, dict) else None
        if not record:
            logger.error(f"No data found for app {app_id}")
            await writer.append(
                f"{app_id}_NO_DATA/no_data_details.json",
                self._dump({
                    "app_id": app_id,
                    "issue": "No app data in API response",
                    "available_keys": list(result.keys()) if isinstance(result, dict) else [],
                    "full_response": data,
                }),
            )
            return None

        return AppMetadata.model_validate(record)

    async def _export_element(
        self,
        writer: ArchiveWriter,
        app_id: str,
        metadata: AppMetadata,
        kind: ElementKind,
        folder: str,
        all_in_one: bool,
    ) -> None:
        try:
            entries = await self.fetcher.fetch(app_id, metadata, kind, folder, all_in_one)
        except Exception as e:
            logger.exception(f"Error processing {kind.value} for {app_id}: {e}")
            return
        for entry in entries:
            await writer.append(entry.path, entry.content)

    def _summary(
        self,
        request: SelectiveDownloadRequest,
        app_id: str,
        metadata: AppMetadata,
    ) -> dict[str, Any]:
        return {
            "app_id": app_id,
            "title": metadata.title,
            "processed_elements": request.selected_elements,
            "export_date": self.clock().isoformat(),
            "metadata_available": metadata.availability(),
        }

    def _error_details(self, app_id: str, error: Any) -> dict[str, Any]:
        return {
            "app_id": app_id,
            "error": error,
            "timestamp": self.clock().isoformat(),
            "message": "Could not fetch metadata - check API credits and app ID",
        }

    @staticmethod
    def _dump(payload: dict[str, Any]) -> str:
        return json.dumps(payload, indent=2, ensure_ascii=False, default=str)
