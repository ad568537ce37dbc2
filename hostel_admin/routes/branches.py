"""
Branch views: list, detail, delete and the nested branch form.

The form endpoints are stateless: the client posts the current form state
(and, on submit, the pending thumbnail file) and gets the new state back.
"""
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pydantic import ValidationError
from typing import List, Optional
import logging

from hostel_admin.forms.branch_form import BranchForm, FormValidationError
from hostel_admin.gateway import get_gateway
from hostel_admin.routes.common import error_panel, gateway_status_code, has_upload, read_image_upload
from hostel_admin.schemas import Branch, BranchFormAction, BranchFormData, BranchFormView, DeleteResult
from hostel_admin.services.backend_client import BackendGateway, GatewayError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/branches", tags=["branches"])


def _parse_form_state(form: str) -> BranchFormData:
    try:
        return BranchFormData.model_validate_json(form)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid form state", "detail": e.errors(include_url=False, include_context=False)}
        )


def _form_error(form: BranchForm, status_code: int, errors=None, error: Optional[str] = None) -> HTTPException:
    """Keep the submitted form visible and show the problem above the fields."""
    view = BranchFormView(form=form.to_data(), errors=errors or {}, error=error)
    return HTTPException(status_code=status_code, detail=view.model_dump(mode="json"))


async def _submit(
    form: BranchForm,
    thumbnail: Optional[UploadFile],
    gateway: BackendGateway
) -> Branch:
    if has_upload(thumbnail):
        attachment = await read_image_upload(thumbnail)
        try:
            form.thumbnail.select(attachment)
        except ValueError as e:
            raise _form_error(form, status.HTTP_422_UNPROCESSABLE_ENTITY, errors={"thumbnail": str(e)})

    try:
        return await form.submit(gateway)
    except FormValidationError as e:
        raise _form_error(form, status.HTTP_422_UNPROCESSABLE_ENTITY, errors=e.errors)
    except GatewayError as e:
        logger.error(f"Failed to save branch: {e.message}")
        raise _form_error(form, gateway_status_code(e), error=e.message)


@router.get("", response_model=List[Branch])
async def list_branches(gateway: BackendGateway = Depends(get_gateway)):
    """List all branches."""
    try:
        branches = await gateway.branches.list()
    except GatewayError as e:
        logger.error(f"Failed to load branches: {e.message}")
        raise error_panel(e, retry="/console/branches")

    logger.info(f"Retrieved {len(branches)} branches")
    return branches


@router.get("/form", response_model=BranchFormView)
async def new_branch_form():
    """Empty form for creating a branch."""
    return BranchFormView(form=BranchForm.empty().to_data())


@router.post("/form/actions", response_model=BranchFormView)
async def apply_form_action(request: BranchFormAction):
    """
    Append a blank entry to a field group, or remove one entry from it.
    Removing the last remaining entry of a group leaves the group unchanged.
    """
    form = BranchForm.from_data(request.form)
    try:
        form.apply(request.action, request.group, request.index)
    except (ValueError, IndexError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid form action", "detail": str(e)}
        )
    return BranchFormView(form=form.to_data())


@router.post("/form/thumbnail", response_model=BranchFormView)
async def preview_thumbnail(
    form: str = Form(..., description="Current form state as JSON"),
    thumbnail: Optional[UploadFile] = File(None)
):
    """
    Show a preview for a newly selected thumbnail.
    Posting without a file discards the selection and reverts the preview to
    the branch's stored thumbnail, if any.
    """
    branch_form = BranchForm.from_data(_parse_form_state(form))

    if not has_upload(thumbnail):
        branch_form.thumbnail.clear()
        return BranchFormView(form=branch_form.to_data())

    attachment = await read_image_upload(thumbnail)
    try:
        branch_form.thumbnail.select(attachment)
    except ValueError as e:
        raise _form_error(branch_form, status.HTTP_422_UNPROCESSABLE_ENTITY, errors={"thumbnail": str(e)})
    return BranchFormView(form=branch_form.to_data())


@router.post("", response_model=Branch, status_code=status.HTTP_201_CREATED)
async def create_branch(
    form: str = Form(..., description="Branch form state as JSON"),
    thumbnail: Optional[UploadFile] = File(None),
    gateway: BackendGateway = Depends(get_gateway)
):
    """Validate and create a branch, optionally with a thumbnail image."""
    branch_form = BranchForm.from_data(_parse_form_state(form))
    return await _submit(branch_form, thumbnail, gateway)


@router.get("/{branch_id}", response_model=Branch)
async def get_branch(branch_id: int, gateway: BackendGateway = Depends(get_gateway)):
    """Branch detail."""
    try:
        return await gateway.branches.get_by_id(branch_id)
    except GatewayError as e:
        logger.error(f"Failed to load branch {branch_id}: {e.message}")
        raise error_panel(e, retry=f"/console/branches/{branch_id}")


@router.get("/{branch_id}/form", response_model=BranchFormView)
async def edit_branch_form(branch_id: int, gateway: BackendGateway = Depends(get_gateway)):
    """Form seeded from the stored branch."""
    try:
        branch = await gateway.branches.get_by_id(branch_id)
    except GatewayError as e:
        logger.error(f"Failed to load branch {branch_id} for editing: {e.message}")
        raise error_panel(e, retry=f"/console/branches/{branch_id}/form")
    return BranchFormView(form=BranchForm.from_branch(branch).to_data())


@router.put("/{branch_id}", response_model=Branch)
async def update_branch(
    branch_id: int,
    form: str = Form(..., description="Branch form state as JSON"),
    thumbnail: Optional[UploadFile] = File(None),
    gateway: BackendGateway = Depends(get_gateway)
):
    """
    Validate and update a branch.
    Without a new thumbnail the stored one is left as it is.
    """
    branch_form = BranchForm.from_data(_parse_form_state(form), branch_id=branch_id)
    return await _submit(branch_form, thumbnail, gateway)


@router.delete("/{branch_id}", response_model=DeleteResult)
async def delete_branch(branch_id: int, gateway: BackendGateway = Depends(get_gateway)):
    """Delete a branch. Deletions are immediate and permanent."""
    try:
        await gateway.branches.delete(branch_id)
    except GatewayError as e:
        logger.error(f"Failed to delete branch {branch_id}: {e.message}")
        raise error_panel(e, retry="/console/branches")

    logger.info(f"Deleted branch {branch_id}")
    return DeleteResult(message="Branch deleted successfully", id=branch_id)
