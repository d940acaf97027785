"""
Async client for the AppTweak public API
"""
import logging
import httpx
from typing import Any, Optional

from ..core.config import settings
from ..core.errors import CreditsExhaustedError, ElementFetchError, UpstreamError
from .languages import resolve_language


logger = logging.getLogger(__name__)

CREDITS_ERROR_CODE = "NotEnoughCreditsError"


class AppTweakClient:
    """
    Thin wrapper over a shared httpx.AsyncClient

    One instance per request: it carries the caller's API key.
    No retries at any level; failures are raised to the caller.
    """

    def __init__(
        self,
        api_key: str,
        http: httpx.AsyncClient,
        base_url: Optional[str] = None,
    ):
        self.api_key = api_key
        self.http = http
        self.base_url = (base_url or settings.APPTWEAK_API_BASE_URL).rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {
            "accept": "application/json",
            settings.API_KEY_HEADER: self.api_key,
        }

    @staticmethod
    def metadata_params(app_id: str, country: str, device: str, language: str) -> dict[str, str]:
        """
        Build metadata query parameters

        The language parameter is left out for the us/en default because
        the upstream rejects it there.
        """
        params = {"apps": app_id, "country": country, "device": device}
        if language != "en" or country != "us":
            params["language"] = resolve_language(country, language)
        return params

    async def fetch_metadata(
        self,
        app_id: str,
        country: str = "us",
        device: str = "iphone",
        language: str = "en",
    ) -> dict[str, Any]:
        """
        Fetch current store metadata for one app

        Returns:
            Parsed response body, with records under "result"

        Raises:
            CreditsExhaustedError: account has no credits left
            UpstreamError: any other non-2xx or transport failure
        """
        url = f"{self.base_url}/store/apps/metadata.json"
        params = self.metadata_params(app_id, country, device, language)
        logger.info(f"Fetching metadata for {app_id}", extra={"params": params})

        try:
            response = await self.http.get(url, params=params, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"Metadata request for {app_id} failed: {e}")
            raise UpstreamError(f"Request to AppTweak failed: {e}") from e

        if not response.is_success:
            raise self._classify_error(app_id, response)

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                "AppTweak returned a non-JSON response",
                upstream_status=response.status_code,
            ) from e

    def _classify_error(self, app_id: str, response: httpx.Response) -> UpstreamError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        error = body.get("error") if isinstance(body, dict) else None
        logger.error(
            f"AppTweak API error for {app_id}: HTTP {response.status_code}",
            extra={"upstream_error": error},
        )

        if isinstance(error, dict) and error.get("code") == CREDITS_ERROR_CODE:
            return CreditsExhaustedError(
                "Insufficient credits for metadata. Please check your AppTweak account balance.",
                upstream_status=response.status_code,
                payload=error,
            )
        return UpstreamError(
            f"AppTweak API error: {response.status_code}",
            upstream_status=response.status_code,
            payload=error or f"HTTP {response.status_code}",
        )

    async def download_asset(self, url: str) -> bytes:
        """Download an icon or screenshot by URL (no API key is sent)"""
        try:
            response = await self.http.get(url)
        except httpx.HTTPError as e:
            raise ElementFetchError(f"Download of {url} failed: {e}") from e
        if not response.is_success:
            raise ElementFetchError(f"Download of {url} failed: HTTP {response.status_code}")
        return response.content
