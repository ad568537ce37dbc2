"""
Enquiry views: triage inbound customer enquiries.
Status changes are free-form; any status may follow any other.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Optional
import logging

from hostel_admin.gateway import get_gateway
from hostel_admin.routes.common import error_panel, load_all
from hostel_admin.schemas import (
    DeleteResult,
    Enquiry,
    EnquiryInput,
    EnquiryListView,
    EnquiryStatus,
    EnquiryStatusUpdate,
    EnquiryUpdate,
)
from hostel_admin.services.backend_client import BackendGateway, GatewayError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/enquiries", tags=["enquiries"])

ALL_STATUSES = "all"


@router.get("", response_model=EnquiryListView)
async def list_enquiries(
    branch_id: Optional[int] = None,
    status_filter: str = Query(ALL_STATUSES, alias="status"),
    gateway: BackendGateway = Depends(get_gateway)
):
    """
    Enquiries (optionally for one branch) and the branch lookup, fetched
    concurrently. The status filter is applied locally.

    Args:
        branch_id: Only enquiries for this branch (filtered by the backend)
        status_filter: `all` or one enquiry status (query parameter `status`)
    """
    valid_filters = {ALL_STATUSES} | {s.value for s in EnquiryStatus}
    if status_filter not in valid_filters:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid status filter", "detail": f"Expected one of {sorted(valid_filters)}"}
        )

    try:
        enquiries, branches = await load_all(
            gateway.enquiries.list(branch_id),
            gateway.branches.list(),
        )
    except GatewayError as e:
        logger.error(f"Failed to load enquiries: {e.message}")
        retry = f"/console/enquiries?status={status_filter}"
        if branch_id is not None:
            retry += f"&branch_id={branch_id}"
        raise error_panel(e, retry=retry)

    if status_filter != ALL_STATUSES:
        enquiries = [enquiry for enquiry in enquiries if enquiry.status.value == status_filter]

    logger.info(f"Retrieved {len(enquiries)} enquiries (branch_id: {branch_id}, status: {status_filter})")
    return EnquiryListView(enquiries=enquiries, branches=branches, branch_id=branch_id, status=status_filter)


@router.post("", response_model=Enquiry, status_code=status.HTTP_201_CREATED)
async def create_enquiry(enquiry: EnquiryInput, gateway: BackendGateway = Depends(get_gateway)):
    """Record an enquiry. Status defaults to `pending` when not given."""
    try:
        created = await gateway.enquiries.create(enquiry)
    except GatewayError as e:
        logger.error(f"Failed to create enquiry: {e.message}")
        raise error_panel(e, retry="/console/enquiries")

    logger.info(f"Created enquiry {created.id} from {created.name}")
    return created


@router.get("/{enquiry_id}", response_model=Enquiry)
async def get_enquiry(enquiry_id: int, gateway: BackendGateway = Depends(get_gateway)):
    try:
        return await gateway.enquiries.get_by_id(enquiry_id)
    except GatewayError as e:
        logger.error(f"Failed to load enquiry {enquiry_id}: {e.message}")
        raise error_panel(e, retry=f"/console/enquiries/{enquiry_id}")


@router.put("/{enquiry_id}", response_model=Enquiry)
async def update_enquiry(
    enquiry_id: int,
    enquiry_update: EnquiryUpdate,
    gateway: BackendGateway = Depends(get_gateway)
):
    """Partial edit of an enquiry."""
    try:
        return await gateway.enquiries.update(enquiry_id, enquiry_update)
    except GatewayError as e:
        logger.error(f"Failed to update enquiry {enquiry_id}: {e.message}")
        raise error_panel(e, retry="/console/enquiries")


@router.put("/{enquiry_id}/status", response_model=Enquiry)
async def update_enquiry_status(
    enquiry_id: int,
    request: EnquiryStatusUpdate,
    gateway: BackendGateway = Depends(get_gateway)
):
    """Move an enquiry to any status."""
    try:
        updated = await gateway.enquiries.update(enquiry_id, EnquiryUpdate(status=request.status))
    except GatewayError as e:
        logger.error(f"Failed to update status of enquiry {enquiry_id}: {e.message}")
        raise error_panel(e, retry="/console/enquiries")

    logger.info(f"Enquiry {enquiry_id} is now {updated.status.value}")
    return updated


@router.delete("/{enquiry_id}", response_model=DeleteResult)
async def delete_enquiry(enquiry_id: int, gateway: BackendGateway = Depends(get_gateway)):
    try:
        await gateway.enquiries.delete(enquiry_id)
    except GatewayError as e:
        logger.error(f"Failed to delete enquiry {enquiry_id}: {e.message}")
        raise error_panel(e, retry="/console/enquiries")

    logger.info(f"Deleted enquiry {enquiry_id}")
    return DeleteResult(message="Enquiry deleted successfully", id=enquiry_id)
