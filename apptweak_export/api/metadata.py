"""
Metadata export endpoints: selective ZIP archive and raw JSON bundle
"""
import logging
from datetime import datetime
from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from pydantic import BaseModel, ValidationError
from typing import Callable, TypeVar

from ..core.errors import ExportServiceError, InvalidRequestError, error_response
from ..schemas.exports import MetadataDownloadRequest, SelectiveDownloadRequest
from ..services.bundles import MetadataBundler
from ..services.exports import ExportOrchestrator
from ..services.upstream import AppTweakClient
from .dependencies import get_clock, get_upstream_client


logger = logging.getLogger(__name__)
router = APIRouter()

RequestModel = TypeVar("RequestModel", bound=BaseModel)


async def _parse_body(request: Request, model: type[RequestModel]) -> RequestModel:
    # Parsed here rather than as a body parameter so the API key check runs first
    try:
        return model.model_validate_json(await request.body())
    except ValidationError as e:
        problems = []
        for err in e.errors():
            location = ".".join(str(part) for part in err.get("loc", ()))
            problems.append(f"{location}: {err['msg']}" if location else err["msg"])
        raise InvalidRequestError(f"Invalid request body: {'; '.join(problems)}") from e


def _attachment(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


@router.post(
    "/selective-download",
    response_class=Response,
    responses={200: {"content": {"application/zip": {}}}},
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": SelectiveDownloadRequest.model_json_schema(by_alias=True)}},
        }
    },
)
async def selective_download(
    request: Request,
    client: AppTweakClient = Depends(get_upstream_client),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """
    Export selected metadata elements for several apps as one ZIP archive

    Per-app and per-element failures are recorded inside the archive as
    diagnostic entries; the call itself still succeeds.
    """
    export_request = await _parse_body(request, SelectiveDownloadRequest)
    orchestrator = ExportOrchestrator(client, clock=clock)

    try:
        result = await orchestrator.run(export_request)
        response = Response(
            content=result.content,
            media_type="application/zip",
            headers=_attachment(result.filename),
        )
    except ExportServiceError:
        raise
    except Exception as e:
        logger.exception(f"Error in selective metadata download: {e}")
        return error_response(500, "Failed to process selective metadata download")

    logger.info(f"Selective export ready: {result.filename} ({len(result.content)} bytes)")
    return response


@router.post(
    "/download",
    response_class=Response,
    responses={200: {"content": {"application/json": {}}}},
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": MetadataDownloadRequest.model_json_schema()}},
        }
    },
)
async def metadata_download(
    request: Request,
    client: AppTweakClient = Depends(get_upstream_client),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """Download raw metadata for several apps as one JSON file"""
    download_request = await _parse_body(request, MetadataDownloadRequest)
    bundler = MetadataBundler(client, clock=clock)

    try:
        filename, bundle = await bundler.build(download_request)
        return Response(
            content=MetadataBundler.render(bundle),
            media_type="application/json",
            headers=_attachment(filename),
        )
    except ExportServiceError:
        raise
    except Exception as e:
        logger.exception(f"Error in metadata download: {e}")
        return error_response(500, "Failed to process metadata download")
