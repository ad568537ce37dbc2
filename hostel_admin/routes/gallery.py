"""
Gallery views: browse images per branch, upload, edit metadata and delete.
"""
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from typing import List, Optional
import logging

from hostel_admin.config import settings
from hostel_admin.gateway import get_gateway
from hostel_admin.routes.common import error_panel, load_all, read_image_upload
from hostel_admin.schemas import DeleteResult, Gallery, GalleryListView, GalleryUpdate
from hostel_admin.services.backend_client import BackendGateway, GatewayError
from hostel_admin.utils.image_converter import convert_to_webp, webp_filename

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gallery", tags=["gallery"])


def parse_tags(tags: Optional[str]) -> List[str]:
    """Split a comma separated tag string, dropping empty tags."""
    if not tags:
        return []
    return [tag.strip() for tag in tags.split(",") if tag.strip()]


def _gallery_path(branch_id: Optional[int]) -> str:
    return f"/console/gallery?branch_id={branch_id}" if branch_id is not None else "/console/gallery"


@router.get("", response_model=GalleryListView)
async def list_gallery(
    branch_id: Optional[int] = None,
    gateway: BackendGateway = Depends(get_gateway)
):
    """
    Gallery images (optionally for one branch) plus the branch lookup used by
    the branch filter, fetched concurrently.
    """
    try:
        galleries, branches = await load_all(
            gateway.gallery.list(branch_id),
            gateway.branches.list(),
        )
    except GatewayError as e:
        logger.error(f"Failed to load gallery: {e.message}")
        raise error_panel(e, retry=_gallery_path(branch_id))

    logger.info(f"Retrieved {len(galleries)} gallery images (branch_id: {branch_id})")
    return GalleryListView(galleries=galleries, branches=branches, branch_id=branch_id)


@router.post("", response_model=Gallery, status_code=status.HTTP_201_CREATED)
async def upload_gallery_image(
    file: UploadFile = File(...),
    branch_id: int = Form(...),
    title: Optional[str] = Form(None),
    tags: Optional[str] = Form(None, description="Comma separated tags"),
    display_order: Optional[int] = Form(None),
    gateway: BackendGateway = Depends(get_gateway)
):
    """
    Upload an image for a branch.
    The backend stores the file on the image host and returns the new record.
    """
    image = await read_image_upload(file)

    if settings.CONVERT_UPLOADS_TO_WEBP:
        converted, conversion_success = await convert_to_webp(image.content)
        if conversion_success and len(converted) < len(image.content):
            image.content = converted
            image.content_type = "image/webp"
            image.filename = webp_filename(image.filename)
        elif not conversion_success:
            logger.warning(f"WebP conversion failed for {image.filename}, uploading original format")

    try:
        gallery = await gateway.gallery.upload(
            image,
            branch_id,
            title=title.strip() if title and title.strip() else None,
            tags=parse_tags(tags) or None,
            display_order=display_order,
        )
    except GatewayError as e:
        logger.error(f"Failed to upload image for branch {branch_id}: {e.message}")
        raise error_panel(e, retry=_gallery_path(branch_id))

    logger.info(f"Uploaded gallery image {gallery.id} for branch {branch_id}: {gallery.image_url}")
    return gallery


@router.get("/{gallery_id}", response_model=Gallery)
async def get_gallery_image(gallery_id: int, gateway: BackendGateway = Depends(get_gateway)):
    try:
        return await gateway.gallery.get_by_id(gallery_id)
    except GatewayError as e:
        logger.error(f"Failed to load gallery image {gallery_id}: {e.message}")
        raise error_panel(e, retry=f"/console/gallery/{gallery_id}")


@router.put("/{gallery_id}", response_model=Gallery)
async def update_gallery_image(
    gallery_id: int,
    image_update: GalleryUpdate,
    gateway: BackendGateway = Depends(get_gateway)
):
    """Edit title, tags, display order or branch. Only the fields sent are changed."""
    try:
        gallery = await gateway.gallery.update(gallery_id, image_update)
    except GatewayError as e:
        logger.error(f"Failed to update gallery image {gallery_id}: {e.message}")
        raise error_panel(e, retry="/console/gallery")

    logger.info(f"Updated gallery image {gallery_id}")
    return gallery


@router.delete("/{gallery_id}", response_model=DeleteResult)
async def delete_gallery_image(
    gallery_id: int,
    image_url: Optional[str] = None,
    gateway: BackendGateway = Depends(get_gateway)
):
    """
    Delete a gallery record, then ask the backend to remove the file from the
    image host. The record is the authoritative deletion: a host failure is
    logged and never reported back.

    Args:
        gallery_id: Gallery record to delete
        image_url: URL of the hosted file, when the caller already has it
    """
    try:
        if image_url is None:
            image_url = (await gateway.gallery.get_by_id(gallery_id)).image_url
        await gateway.gallery.delete(gallery_id)
    except GatewayError as e:
        logger.error(f"Failed to delete gallery image {gallery_id}: {e.message}")
        raise error_panel(e, retry="/console/gallery")

    logger.info(f"Deleted gallery image {gallery_id} from backend")

    try:
        await gateway.gallery.delete_from_host(image_url)
        logger.info(f"Removed {image_url} from image host")
    except GatewayError as e:
        logger.warning(f"Image host deletion failed for gallery image {gallery_id} ({image_url}): {e.message}")

    return DeleteResult(message="Image deleted successfully", id=gallery_id)
