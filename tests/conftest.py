"""
Pytest configuration and fixtures for the export test suite
"""
import io
import os
import zipfile
import pytest
import httpx
from datetime import datetime, timezone
from typing import Any, Callable, Generator, Union
from fastapi.testclient import TestClient

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from apptweak_export.api.dependencies import get_clock, get_http_client
from apptweak_export.main import app
from apptweak_export.services.upstream import AppTweakClient


FIXED_NOW = datetime(2024, 5, 17, 12, 30, tzinfo=timezone.utc)
API_KEY = "test-apptweak-key"


# ============================================================================
# FAKE UPSTREAM
# ============================================================================

class FakeAppTweak:
    """
    In-process stand-in for the AppTweak API and its asset CDN

    Metadata responses are keyed by app id; assets by full URL. Every
    request is recorded so tests can assert what went over the wire.
    """

    def __init__(self):
        self.metadata: dict[str, tuple[int, Any]] = {}
        self.assets: dict[str, Union[bytes, int, Exception]] = {}
        self.requests: list[httpx.Request] = []

    def add_app(self, app_id: str, record: dict[str, Any]) -> None:
        self.metadata[app_id] = (200, {"result": {app_id: record}})

    def fail_app(self, app_id: str, status: int = 400, code: str = "ValidationError") -> None:
        self.metadata[app_id] = (status, {"error": {"code": code, "message": f"{code} for {app_id}"}})

    def add_asset(self, url: str, content: Union[bytes, int, Exception] = b"\x89PNG-bytes") -> None:
        self.assets[url] = content

    @property
    def metadata_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/store/apps/metadata.json")]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.path.endswith("/store/apps/metadata.json"):
            app_id = request.url.params["apps"]
            status, body = self.metadata.get(app_id, (200, {"result": {}}))
            return httpx.Response(status, json=body)

        asset = self.assets.get(str(request.url), 404)
        if isinstance(asset, Exception):
            raise asset
        if isinstance(asset, int):
            return httpx.Response(asset)
        return httpx.Response(200, content=asset)


@pytest.fixture
def fake_apptweak() -> FakeAppTweak:
    return FakeAppTweak()


@pytest.fixture
def http_client(fake_apptweak: FakeAppTweak) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_apptweak.handler))


@pytest.fixture
def upstream_client(http_client: httpx.AsyncClient) -> AppTweakClient:
    return AppTweakClient(api_key=API_KEY, http=http_client)


# ============================================================================
# APP FIXTURES
# ============================================================================

@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture(scope="function")
def client(http_client: httpx.AsyncClient, fixed_clock) -> Generator[TestClient, None, None]:
    """
    Create FastAPI test client with dependency overrides

    Overrides:
    - Shared httpx client (routes to FakeAppTweak)
    - Clock (fixed for deterministic filenames)
    """
    app.dependency_overrides[get_http_client] = lambda: http_client
    app.dependency_overrides[get_clock] = lambda: fixed_clock

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def api_headers() -> dict[str, str]:
    return {"x-apptweak-key": API_KEY}


# ============================================================================
# TEST DATA
# ============================================================================

@pytest.fixture
def sample_record() -> dict[str, Any]:
    """Metadata record shaped like a typical iOS app"""
    return {
        "title": "Candy Crush Saga",
        "subtitle": "Match 3 puzzle fun",
        "description": "Start playing today!",
        "icon": "https://cdn.example.com/candy/icon.png",
        "screenshots": {
            "iphone": [
                {"url": "https://cdn.example.com/candy/s1.png"},
                {"url": "https://cdn.example.com/candy/s2.png"},
            ],
            "ipad": [
                "https://cdn.example.com/candy/s3.jpg",
                "https://cdn.example.com/candy/s4.jpg",
                "https://cdn.example.com/candy/s5.jpg",
            ],
        },
    }


@pytest.fixture
def register_record(fake_apptweak: FakeAppTweak):
    """
    Factory fixture registering an app and all of its asset URLs

    Usage:
        register_record("553834731", record)
    """
    def _register(app_id: str, record: dict[str, Any]) -> None:
        fake_apptweak.add_app(app_id, record)
        if record.get("icon"):
            fake_apptweak.add_asset(record["icon"], b"icon-bytes")
        shots = record.get("screenshots") or []
        groups = shots.values() if isinstance(shots, dict) else [shots]
        for group in groups:
            if not isinstance(group, list):
                continue
            for entry in group:
                url = entry if isinstance(entry, str) else entry.get("url")
                if url:
                    fake_apptweak.add_asset(url, f"shot:{url}".encode())

    return _register


@pytest.fixture
def read_zip():
    """Open archive bytes and return {path: bytes}"""
    def _read(content: bytes) -> dict[str, bytes]:
        with zipfile.ZipFile(io.BytesIO(content)) as archive:
            return {name: archive.read(name) for name in archive.namelist()}

    return _read
