"""
Branch editing form.

Holds an editable projection of a branch as plain text fields plus four
growable field groups (contact numbers, room rates, amenities and prime
location perks), an optional pending thumbnail, and reduces all of it back
into a BranchInput on submit.
"""
import logging
import math
import re
from typing import Callable, Dict, Generic, Iterator, List, Optional, TypeVar

from hostel_admin.config import settings
from hostel_admin.schemas import (
    Branch,
    BranchFormData,
    BranchInput,
    PrimeLocationPerk,
    RoomRate,
    RoomRateEntry,
)
from hostel_admin.services.backend_client import BackendGateway, ImageAttachment
from hostel_admin.utils.image_converter import build_preview_data_url

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}$", re.IGNORECASE)

FIELD_GROUPS = ("contact_no", "room_rate", "amenities", "prime_location_perks")

T = TypeVar("T")


class FormValidationError(Exception):
    """Local validation failed; nothing was sent to the backend."""

    def __init__(self, errors: Dict[str, str]):
        super().__init__("Please correct the highlighted fields")
        self.errors = errors


def parse_number(text: str) -> Optional[float]:
    """Parse a typed number. Returns None for blank or non-numeric text."""
    text = (text or "").strip()
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def number_text(value: Optional[float]) -> str:
    if value is None:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


class FieldGroup(Generic[T]):
    """
    Ordered, growable list of form entries.
    A group never becomes empty: it starts with one blank entry and its last
    entry cannot be removed.
    """

    def __init__(self, blank: Callable[[], T], entries: Optional[List[T]] = None):
        self._blank = blank
        self.entries: List[T] = list(entries) if entries else [blank()]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[T]:
        return iter(self.entries)

    def __getitem__(self, index: int) -> T:
        return self.entries[index]

    def append(self, entry: Optional[T] = None) -> None:
        self.entries.append(self._blank() if entry is None else entry)

    def remove(self, index: int) -> bool:
        """Remove the entry at `index`. Returns False (no-op) on a single-entry group."""
        if len(self.entries) <= 1:
            return False
        if index < 0 or index >= len(self.entries):
            raise IndexError(f"No entry at index {index}")
        del self.entries[index]
        return True


class ThumbnailSelection:
    """
    At most one pending thumbnail file plus the preview currently shown.
    Clearing the selection only discards the unsaved file; a thumbnail already
    stored on the backend is never touched from here.
    """

    def __init__(self, current: Optional[str] = None, preview: Optional[str] = None):
        self.current = current
        self.pending: Optional[ImageAttachment] = None
        self.preview = preview if preview is not None else current

    def select(self, attachment: ImageAttachment, max_dimension: Optional[int] = None) -> str:
        preview = build_preview_data_url(
            attachment.content,
            max_dimension or settings.PREVIEW_MAX_DIMENSION
        )
        if preview is None:
            raise ValueError(f"'{attachment.filename}' is not a valid image file")
        self.pending = attachment
        self.preview = preview
        return preview

    def clear(self) -> None:
        self.pending = None
        self.preview = self.current


class BranchForm:
    """Create-mode form when `branch_id` is None, edit-mode otherwise."""

    def __init__(self, data: Optional[BranchFormData] = None, branch_id: Optional[int] = None):
        data = data or BranchFormData()
        self.branch_id = branch_id

        self.name = data.name
        self.email = data.email
        self.address = data.address
        self.reg_fee = data.reg_fee
        self.is_mess_available = data.is_mess_available
        self.mess_price = data.mess_price

        self.contact_no: FieldGroup[str] = FieldGroup(str, data.contact_no)
        self.room_rate: FieldGroup[RoomRateEntry] = FieldGroup(RoomRateEntry, data.room_rate)
        self.amenities: FieldGroup[str] = FieldGroup(str, data.amenities)
        self.prime_location_perks: FieldGroup[PrimeLocationPerk] = FieldGroup(
            PrimeLocationPerk, data.prime_location_perks
        )

        self.thumbnail = ThumbnailSelection(current=data.thumbnail, preview=data.thumbnail_preview)

    @property
    def is_edit_mode(self) -> bool:
        return self.branch_id is not None

    @classmethod
    def empty(cls) -> "BranchForm":
        return cls()

    @classmethod
    def from_branch(cls, branch: Branch) -> "BranchForm":
        """Seed the form from a fetched branch. Empty lists still get one blank entry."""
        data = BranchFormData(
            name=branch.name,
            email=branch.email or "",
            address=branch.address,
            reg_fee=number_text(branch.reg_fee),
            is_mess_available=branch.is_mess_available,
            mess_price=number_text(branch.mess_price),
            contact_no=list(branch.contact_no),
            room_rate=[
                RoomRateEntry(title=rate.title, rate_per_month=number_text(rate.rate_per_month))
                for rate in branch.room_rate
            ],
            amenities=list(branch.amenities),
            prime_location_perks=[perk.model_copy() for perk in branch.prime_location_perks],
            thumbnail=branch.thumbnail,
            thumbnail_preview=branch.thumbnail,
        )
        return cls(data, branch_id=branch.id)

    @classmethod
    def from_data(cls, data: BranchFormData, branch_id: Optional[int] = None) -> "BranchForm":
        return cls(data, branch_id=branch_id)

    def to_data(self) -> BranchFormData:
        return BranchFormData(
            name=self.name,
            email=self.email,
            address=self.address,
            reg_fee=self.reg_fee,
            is_mess_available=self.is_mess_available,
            mess_price=self.mess_price,
            contact_no=list(self.contact_no),
            room_rate=list(self.room_rate),
            amenities=list(self.amenities),
            prime_location_perks=list(self.prime_location_perks),
            thumbnail=self.thumbnail.current,
            thumbnail_preview=self.thumbnail.preview,
        )

    def group(self, name: str) -> FieldGroup:
        if name not in FIELD_GROUPS:
            raise ValueError(f"Unknown field group '{name}'")
        return getattr(self, name)

    def apply(self, action: str, group: str, index: Optional[int] = None) -> None:
        """Run an `append` or `remove` action against one field group."""
        field_group = self.group(group)
        if action == "append":
            field_group.append()
        elif action == "remove":
            if index is None:
                raise ValueError("An index is required to remove an entry")
            field_group.remove(index)
        else:
            raise ValueError(f"Unknown form action '{action}'")

    def validate(self) -> Dict[str, str]:
        """
        UX-only checks; the backend stays the authority.

        Returns:
            dict: field path -> message, empty when the form is valid
        """
        errors = {}

        if not self.name.strip():
            errors["name"] = "Branch name is required"
        if not self.address.strip():
            errors["address"] = "Address is required"

        email = self.email.strip()
        if email and not EMAIL_PATTERN.match(email):
            errors["email"] = "Invalid email address"

        if parse_number(self.reg_fee) is None:
            errors["reg_fee"] = "Registration fee must be a number"
        if self.mess_price.strip() and parse_number(self.mess_price) is None:
            errors["mess_price"] = "Mess price must be a number"

        for index, rate in enumerate(self.room_rate):
            if not rate.title.strip():
                errors[f"room_rate.{index}.title"] = "Room type is required"
            if parse_number(rate.rate_per_month) is None:
                errors[f"room_rate.{index}.rate_per_month"] = "Rate must be a number"

        return errors

    def reduce(self) -> BranchInput:
        """
        Shape the form into a branch payload.

        Contact numbers and amenities drop blank entries. A perk is dropped only
        when title, distance and time to reach are all blank; any other perk is
        kept as typed. A blank email or mess price is left unset, so an update
        keeps the stored value.
        """
        fields = dict(
            name=self.name.strip(),
            contact_no=[number.strip() for number in self.contact_no if number.strip()],
            address=self.address.strip(),
            room_rate=[
                RoomRate(title=rate.title.strip(), rate_per_month=parse_number(rate.rate_per_month))
                for rate in self.room_rate
            ],
            reg_fee=parse_number(self.reg_fee),
            is_mess_available=self.is_mess_available,
            prime_location_perks=[perk.model_copy() for perk in self.prime_location_perks if not perk.is_blank()],
            amenities=[amenity.strip() for amenity in self.amenities if amenity.strip()],
        )
        if self.email.strip():
            fields["email"] = self.email.strip()
        if self.mess_price.strip():
            fields["mess_price"] = parse_number(self.mess_price)
        return BranchInput(**fields)

    async def submit(self, gateway: BackendGateway) -> Branch:
        """
        Validate, reduce and send the form.

        Raises:
            FormValidationError: local validation failed (no request is made)
            GatewayError: the backend call failed
        """
        errors = self.validate()
        if errors:
            logger.info(f"Branch form rejected locally: {sorted(errors)}")
            raise FormValidationError(errors)

        payload = self.reduce()
        thumbnail = self.thumbnail.pending

        if self.is_edit_mode:
            branch = await gateway.branches.update(self.branch_id, payload, thumbnail=thumbnail)
            logger.info(f"Updated branch {branch.id} ({branch.name})")
        else:
            branch = await gateway.branches.create(payload, thumbnail=thumbnail)
            logger.info(f"Created branch {branch.id} ({branch.name})")
        return branch
