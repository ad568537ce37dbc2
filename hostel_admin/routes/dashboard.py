"""
Dashboard view: headline counts for the console landing page.
"""
from fastapi import APIRouter, Depends
import logging

from hostel_admin.gateway import get_gateway
from hostel_admin.routes.common import error_panel, load_all
from hostel_admin.schemas import DashboardStats, EnquiryStatus
from hostel_admin.services.backend_client import BackendGateway, GatewayError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["dashboard"])


@router.get("/dashboard", response_model=DashboardStats)
async def get_dashboard(gateway: BackendGateway = Depends(get_gateway)):
    """
    Count branches, gallery images, enquiries and pending enquiries.
    The three collections are fetched concurrently; any failure replaces the
    whole dashboard with a single error panel.
    """
    try:
        branches, galleries, enquiries = await load_all(
            gateway.branches.list(),
            gateway.gallery.list(),
            gateway.enquiries.list(),
        )
    except GatewayError as e:
        logger.error(f"Failed to load dashboard statistics: {e.message}")
        raise error_panel(e, retry="/console/dashboard")

    return DashboardStats(
        branches=len(branches),
        galleries=len(galleries),
        enquiries=len(enquiries),
        pending_enquiries=sum(1 for enquiry in enquiries if enquiry.status == EnquiryStatus.PENDING),
    )
