"""
Helpers shared by the console views: error panels, concurrent loads and
image upload checks.
"""
from fastapi import HTTPException, UploadFile, status
import asyncio
import logging

from hostel_admin.config import settings
from hostel_admin.schemas import ErrorPanel
from hostel_admin.services.backend_client import (
    GatewayError,
    GatewayTimeoutError,
    ImageAttachment,
    NotFoundError,
)
from hostel_admin.utils.image_converter import is_image_content_type

logger = logging.getLogger(__name__)


def gateway_status_code(error: GatewayError) -> int:
    if isinstance(error, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, GatewayTimeoutError):
        return status.HTTP_504_GATEWAY_TIMEOUT
    return status.HTTP_502_BAD_GATEWAY


def error_panel(error: GatewayError, retry: str) -> HTTPException:
    """
    Build the exception rendered in place of a list or detail view.
    The panel carries one message and the path that re-runs the action.
    """
    return HTTPException(
        status_code=gateway_status_code(error),
        detail=ErrorPanel(error=error.message, retry=retry).model_dump()
    )


async def load_all(*loaders):
    """
    Run several gateway calls concurrently and wait for every one to settle.
    If any failed, the first failure is raised once all are done.
    """
    results = await asyncio.gather(*loaders, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


def has_upload(file: UploadFile) -> bool:
    """Browsers send an empty part when no file was chosen."""
    return file is not None and bool(file.filename)


async def read_image_upload(file: UploadFile) -> ImageAttachment:
    """
    Read an uploaded image into memory after checking its type and size.

    Raises:
        HTTPException: 400 if the file is not an image or is too large
    """
    filename = file.filename or "image"

    if not is_image_content_type(file.content_type):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid file type", "detail": f"File '{filename}' is not a valid image file"}
        )

    limit = settings.MAX_UPLOAD_BYTES
    too_large = HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": "File too large", "detail": f"File '{filename}' exceeds {limit:,} bytes"}
    )

    if file.size is not None and file.size > limit:
        raise too_large

    # Read one byte past the limit so oversized streams are caught without buffering them whole
    content = await file.read(limit + 1)

    if len(content) > limit:
        raise too_large

    logger.debug(f"Read upload {filename} ({len(content):,} bytes, {file.content_type})")
    return ImageAttachment(filename=filename, content=content, content_type=file.content_type)
