"""
Error taxonomy and JSON error responses
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from typing import Any, Optional


class ExportServiceError(Exception):
    """Base class for errors rendered as {"error": message}"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthError(ExportServiceError):
    """Missing API credential"""

    status_code = status.HTTP_401_UNAUTHORIZED


class InvalidRequestError(ExportServiceError):
    """Malformed or empty request, rejected before any upstream call"""

    status_code = status.HTTP_400_BAD_REQUEST


class UpstreamError(ExportServiceError):
    """Non-2xx or transport failure from the AppTweak API"""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        payload: Any = None,
    ):
        super().__init__(message)
        self.upstream_status = upstream_status
        self.payload = payload


class CreditsExhaustedError(UpstreamError):
    """AppTweak account has run out of credits"""

    status_code = status.HTTP_402_PAYMENT_REQUIRED


class ElementFetchError(ExportServiceError):
    """Failure downloading a single asset (icon, screenshot)"""


class AssemblyError(ExportServiceError):
    """Archive could not be finalized"""


def error_response(status_code: int, message: str) -> JSONResponse:
    """Return the {"error": message} envelope used by every endpoint"""
    return JSONResponse(status_code=status_code, content={"error": message})


async def export_error_handler(request: Request, exc: ExportServiceError) -> JSONResponse:
    return error_response(exc.status_code, exc.message)

