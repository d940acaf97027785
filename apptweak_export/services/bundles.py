"""
Raw metadata for several apps bundled into one downloadable JSON file
"""
import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Callable, Optional

from ..core.config import settings
from ..core.errors import InvalidRequestError, UpstreamError
from ..schemas.exports import ExportInfo, MetadataDownloadRequest
from .exports import sanitize_folder_name, utc_now
from .upstream import AppTweakClient


logger = logging.getLogger(__name__)

BUNDLE_PREFIX = "apptweak_metadata"


class MetadataBundler:
    """Fetches metadata per app and collects successes and failures side by side"""

    def __init__(
        self,
        client: AppTweakClient,
        clock: Optional[Callable[[], datetime]] = None,
        max_apps: Optional[int] = None,
    ):
        self.client = client
        self.clock = clock or utc_now
        self.max_apps = settings.MAX_EXPORT_APPS if max_apps is None else max_apps

    async def build(self, request: MetadataDownloadRequest) -> tuple[str, dict[str, Any]]:
        """
        Build the JSON bundle

        Returns:
            Tuple of (filename, bundle)
        """
        if not request.apps:
            raise InvalidRequestError("Apps array is required")
        if self.max_apps and len(request.apps) > self.max_apps:
            raise InvalidRequestError(
                f"Too many apps: {len(request.apps)} requested, at most {self.max_apps} allowed"
            )

        results: dict[str, Any] = {}
        errors: dict[str, Any] = {}

        async def fetch_one(app_id: str) -> None:
            try:
                data = await self.client.fetch_metadata(
                    app_id,
                    country=request.country,
                    device=request.device,
                    language=request.language,
                )
            except UpstreamError as e:
                errors[app_id] = e.payload if e.payload is not None else e.message
                return
            result = data.get("result") if isinstance(data, dict) else None
            record = result.get(app_id) if isinstance(result, dict) else None
            results[app_id] = record or data

        async with asyncio.TaskGroup() as group:
            for app_id in request.apps:
                group.create_task(fetch_one(app_id))

        now = self.clock()
        info = ExportInfo(
            exported_at=now.isoformat(),
            country=request.country,
            device=request.device,
            language=request.language,
            total_apps=len(request.apps),
            successful_apps=len(results),
            failed_apps=len(errors),
        )
        bundle: dict[str, Any] = {
            "metadata": {app_id: results[app_id] for app_id in request.apps if app_id in results},
        }
        if errors:
            bundle["errors"] = {app_id: errors[app_id] for app_id in request.apps if app_id in errors}
        bundle["export_info"] = info.model_dump()

        logger.info(
            f"Metadata bundle built: {info.successful_apps} ok, {info.failed_apps} failed",
        )
        country = sanitize_folder_name(request.country)
        device = sanitize_folder_name(request.device)
        filename = f"{BUNDLE_PREFIX}_{country}_{device}_{now.date().isoformat()}.json"
        return filename, bundle

    @staticmethod
    def render(bundle: dict[str, Any]) -> str:
        return json.dumps(bundle, indent=2, ensure_ascii=False)
