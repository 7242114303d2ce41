import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from app.utils.response import error_response

logger = logging.getLogger(__name__)


class AppException(Exception):
    def __init__(self, message: str, status_code: int = 400, data: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.data = data


class InputRejected(AppException):
    def __init__(self, message: str, data: Any = None):
        super().__init__(message, status_code=400, data=data)


class DuplicatePhoto(AppException):
    def __init__(self, message: str = (
        "This photo is already in your profile. "
        "Try selecting a different photo to show more sides of yourself!"
    )):
        super().__init__(message, status_code=409)


class DuplicateLookupFailed(AppException):
    def __init__(self, message: str = "Could not check for duplicate photos. Please try again."):
        super().__init__(message, status_code=503)


class ImageProcessingError(AppException):
    def __init__(self, message: str = "Failed to process image"):
        super().__init__(message, status_code=422)


class PhotoUploadError(AppException):
    """Upload or metadata insert failed for the photo at ``index`` (0-based)."""

    def __init__(self, index: int, message: str, data: Any = None):
        super().__init__(message, status_code=502, data=data)
        self.index = index


class PhotoRejected(AppException):
    """Moderation explicitly rejected the photo at ``index`` (0-based)."""

    def __init__(self, index: int, reason: str | None = None, data: Any = None):
        super().__init__(
            f"Photo {index + 1} contains inappropriate content and was removed. "
            "Please choose a different photo.",
            status_code=422,
            data=data,
        )
        self.index = index
        self.reason = reason


class SubmissionInProgress(AppException):
    def __init__(self):
        super().__init__("Photos are already being uploaded", status_code=409)


class SubmissionCancelled(AppException):
    def __init__(self, data: Any = None):
        super().__init__("Photo upload was cancelled", status_code=409, data=data)


class RemoteFunctionError(Exception):
    """A remote procedure returned a failure or could not be reached."""

    def __init__(self, name: str, message: str, status_code: int | None = None, transport: bool = False):
        super().__init__(f"{name}: {message}")
        self.name = name
        self.message = message
        self.status_code = status_code
        self.transport = transport


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(exc.message, data=exc.data),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_response("Something went wrong. Please try again."),
        )
