"""
Pydantic schemas for backend entities, request payloads and console views.
Server responses are parsed here once, so default values are resolved at this
boundary instead of in the views.
"""
import json
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import Any, Dict, List, Optional


def _none_as_empty_list(value: Any) -> Any:
    return [] if value is None else value


class ApiResponse(BaseModel):
    """
    Uniform envelope returned by every backend endpoint.
    Only the presence of `data` is trusted as a success signal.
    """
    success: Any = None
    data: Any = None
    message: Optional[str] = None
    error: Optional[str] = None
    details: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("message", "error", "details", mode="before")
    @classmethod
    def stringify_messages(cls, v):
        # Some endpoints send structured error details
        if v is None or isinstance(v, str):
            return v
        return json.dumps(v)

    @property
    def has_data(self) -> bool:
        return "data" in self.model_fields_set and self.data is not None

    @property
    def error_message(self) -> Optional[str]:
        return self.message or self.error or self.details


# ============= Branches =============

class RoomRate(BaseModel):
    title: str
    rate_per_month: float


class PrimeLocationPerk(BaseModel):
    title: str = ""
    distance: str = ""
    time_to_reach: str = ""

    @field_validator("title", "distance", "time_to_reach", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return _as_text(v)

    def is_blank(self) -> bool:
        """A perk counts as blank only when every field is blank."""
        return not (self.title.strip() or self.distance.strip() or self.time_to_reach.strip())


class BranchInput(BaseModel):
    """
    Fields of a branch the console may send on create.
    Identity, timestamps and the thumbnail URL are owned by the backend.
    """
    name: str
    contact_no: List[str] = []
    email: Optional[str] = None
    address: str
    room_rate: List[RoomRate] = []
    reg_fee: float
    is_mess_available: bool = False
    mess_price: Optional[float] = None
    prime_location_perks: List[PrimeLocationPerk] = []
    amenities: List[str] = []

    @field_validator("contact_no", "room_rate", "prime_location_perks", "amenities", mode="before")
    @classmethod
    def resolve_empty_lists(cls, v):
        return _none_as_empty_list(v)

    @field_validator("is_mess_available", mode="before")
    @classmethod
    def resolve_mess_flag(cls, v):
        return False if v is None else v


class Branch(BranchInput):
    """Branch record as returned by the backend."""
    id: int
    thumbnail: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class BranchUpdate(BaseModel):
    """
    Partial branch update.
    Only fields explicitly set are transmitted (see model_dump(exclude_unset=True)).
    """
    name: Optional[str] = None
    contact_no: Optional[List[str]] = None
    email: Optional[str] = None
    address: Optional[str] = None
    room_rate: Optional[List[RoomRate]] = None
    reg_fee: Optional[float] = None
    is_mess_available: Optional[bool] = None
    mess_price: Optional[float] = None
    prime_location_perks: Optional[List[PrimeLocationPerk]] = None
    amenities: Optional[List[str]] = None


# ============= Gallery =============

class GalleryInput(BaseModel):
    branch_id: int
    image_url: str
    title: Optional[str] = None
    tags: List[str] = []
    display_order: Optional[int] = None

    @field_validator("tags", mode="before")
    @classmethod
    def resolve_tags(cls, v):
        return _none_as_empty_list(v)


class Gallery(GalleryInput):
    """Gallery image record as returned by the backend."""
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class GalleryUpdate(BaseModel):
    """Editable gallery metadata. The image URL is immutable once created."""
    branch_id: Optional[int] = None
    title: Optional[str] = None
    tags: Optional[List[str]] = None
    display_order: Optional[int] = None


# ============= Enquiries =============

class EnquiryStatus(str, Enum):
    PENDING = "pending"
    CONTACTED = "contacted"
    CONVERTED = "converted"
    CLOSED = "closed"


class EnquiryInput(BaseModel):
    name: str
    email: Optional[str] = None
    phone: str
    message: Optional[str] = None
    branch_id: Optional[int] = None
    source: Optional[str] = None
    status: EnquiryStatus = EnquiryStatus.PENDING

    @field_validator("status", mode="before")
    @classmethod
    def resolve_status(cls, v):
        return EnquiryStatus.PENDING if v in (None, "") else v


class Enquiry(EnquiryInput):
    """Customer enquiry as returned by the backend."""
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class EnquiryUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    message: Optional[str] = None
    branch_id: Optional[int] = None
    source: Optional[str] = None
    status: Optional[EnquiryStatus] = None


class EnquiryStatusUpdate(BaseModel):
    """Request schema for PUT /console/enquiries/{id}/status."""
    status: EnquiryStatus


# ============= Console views =============

class ErrorPanel(BaseModel):
    """
    Rendered in place of a list or detail view that failed to load.
    `retry` is the path that re-runs the same action.
    """
    error: str
    retry: Optional[str] = None


class DashboardStats(BaseModel):
    branches: int
    galleries: int
    enquiries: int
    pending_enquiries: int


class GalleryListView(BaseModel):
    galleries: List[Gallery]
    branches: List[Branch]
    branch_id: Optional[int] = None


class EnquiryListView(BaseModel):
    enquiries: List[Enquiry]
    branches: List[Branch]
    branch_id: Optional[int] = None
    status: str = "all"


class DeleteResult(BaseModel):
    message: str
    id: int


# ============= Branch form state =============

def _as_text(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class RoomRateEntry(BaseModel):
    """Room rate as typed into the form; the rate is still raw text."""
    title: str = ""
    rate_per_month: str = ""

    @field_validator("title", "rate_per_month", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return _as_text(v)


class BranchFormData(BaseModel):
    """
    Serialisable state of the branch editing form.
    Values are kept exactly as typed; shaping happens on submit.
    """
    name: str = ""
    email: str = ""
    address: str = ""
    reg_fee: str = "0"
    is_mess_available: bool = False
    mess_price: str = ""
    contact_no: List[str] = Field(default_factory=lambda: [""])
    room_rate: List[RoomRateEntry] = Field(default_factory=lambda: [RoomRateEntry()])
    amenities: List[str] = Field(default_factory=lambda: [""])
    prime_location_perks: List[PrimeLocationPerk] = Field(default_factory=lambda: [PrimeLocationPerk()])
    # Persisted thumbnail URL (edit mode) and whatever preview is currently shown
    thumbnail: Optional[str] = None
    thumbnail_preview: Optional[str] = None

    @field_validator("name", "email", "address", "reg_fee", "mess_price", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return _as_text(v)

    @field_validator("contact_no", "amenities", mode="before")
    @classmethod
    def coerce_text_list(cls, v):
        return [_as_text(item) for item in _none_as_empty_list(v)]

    @field_validator("room_rate", "prime_location_perks", mode="before")
    @classmethod
    def resolve_empty_groups(cls, v):
        return _none_as_empty_list(v)


class BranchFormAction(BaseModel):
    """
    Request schema for POST /console/branches/form/actions.
    Appends to or removes from one field group of the posted form state.
    """
    form: BranchFormData
    action: str
    group: str
    index: Optional[int] = None


class BranchFormView(BaseModel):
    """Form state plus any inline errors to show above the fields."""
    form: BranchFormData
    errors: Dict[str, str] = {}
    error: Optional[str] = None
