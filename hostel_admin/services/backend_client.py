"""
Client for the hostel backend REST API.
This is the only module that performs network I/O; everything else goes
through the typed resource services exposed by BackendGateway.
"""
import httpx
import json
import logging
from dataclasses import dataclass
from pydantic import BaseModel, ValidationError
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from hostel_admin.config import Settings, settings
from hostel_admin.schemas import (
    ApiResponse,
    Branch,
    BranchInput,
    BranchUpdate,
    Enquiry,
    EnquiryInput,
    EnquiryUpdate,
    Gallery,
    GalleryInput,
    GalleryUpdate,
)

logger = logging.getLogger(__name__)

FALLBACK_ERROR_MESSAGE = "Request to backend failed"

# Nested branch fields that travel as JSON strings inside a multipart body
JSON_ENCODED_BRANCH_FIELDS = ("contact_no", "room_rate", "amenities", "prime_location_perks")


class GatewayError(Exception):
    """Raised when a backend call fails. `message` is safe to show to staff."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotFoundError(GatewayError):
    """The backend answered but carried no payload for a single-entity fetch."""


class GatewayTimeoutError(GatewayError):
    """The backend did not answer within the configured timeout."""


@dataclass
class ImageAttachment:
    """Binary image sent alongside an upload or a branch create/update."""
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    def as_file_part(self) -> Tuple[str, bytes, str]:
        return (self.filename, self.content, self.content_type)


@dataclass
class StructuredRequest:
    """JSON body with native nested arrays and objects."""
    body: Dict[str, Any]

    def as_request_kwargs(self) -> Dict[str, Any]:
        return {"json": self.body}


@dataclass
class MultipartRequest:
    """Plain form fields plus binary file parts."""
    fields: Dict[str, str]
    files: Dict[str, Tuple[str, bytes, str]]

    def as_request_kwargs(self) -> Dict[str, Any]:
        return {"data": self.fields, "files": self.files}


BranchRequest = Union[StructuredRequest, MultipartRequest]


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return str(value)


def build_branch_request(
    fields: Dict[str, Any],
    thumbnail: Optional[ImageAttachment] = None
) -> BranchRequest:
    """
    Choose the wire encoding for a branch create/update.

    The choice depends only on whether a thumbnail is attached. Without one the
    fields go out as a JSON body, explicit nulls included; with one they go out
    as multipart, nested lists re-encoded as JSON strings and the image as the
    `thumbnail` part. Multipart has no null, so None fields are left out there.

    Args:
        fields: JSON-compatible branch fields (already dumped from a schema)
        thumbnail: Optional image to attach

    Returns:
        StructuredRequest or MultipartRequest
    """
    if thumbnail is None:
        return StructuredRequest(body=dict(fields))

    form_fields = {}
    for name, value in fields.items():
        if value is None:
            logger.warning(f"Branch field '{name}' is null and cannot be sent as multipart, omitting it")
            continue
        if name in JSON_ENCODED_BRANCH_FIELDS:
            form_fields[name] = json.dumps(value)
        else:
            form_fields[name] = _form_value(value)

    return MultipartRequest(fields=form_fields, files={"thumbnail": thumbnail.as_file_part()})


def _parse_envelope(response: httpx.Response) -> Optional[ApiResponse]:
    if not response.content:
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    # Every envelope field accepts any JSON value, so `data` always survives
    return ApiResponse.model_validate(body)


def _dump(payload: BaseModel, partial: bool = False) -> Dict[str, Any]:
    """
    Serialise a request payload.
    Partial updates carry exactly the fields the caller set, explicit nulls
    included; full payloads drop unset optional fields.
    """
    if partial:
        return payload.model_dump(mode="json", exclude_unset=True)
    return payload.model_dump(mode="json", exclude_none=True)


class ResourceService:
    """
    CRUD operations on one backend collection.
    Subclasses set the collection path, the entity schema and a display label.
    """
    path: str = ""
    entity: Type[BaseModel] = BaseModel
    label: str = "record"

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def _request(self, method: str, url: str, **kwargs) -> ApiResponse:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"Backend timeout on {method} {url}: {str(e)}")
            raise GatewayTimeoutError("Backend request timed out") from e
        except httpx.RequestError as e:
            logger.error(f"Backend unreachable on {method} {url}: {str(e)}")
            raise GatewayError("Unable to reach backend") from e

        envelope = _parse_envelope(response)

        if response.is_error:
            message = envelope.error_message if envelope else None
            logger.warning(
                f"Backend returned {response.status_code} for {method} {url}: "
                f"{message or 'no message'}"
            )
            raise GatewayError(message or FALLBACK_ERROR_MESSAGE, status_code=response.status_code)

        logger.debug(f"Backend {method} {url} -> {response.status_code}")
        return envelope or ApiResponse()

    def _parse(self, data: Any):
        try:
            return self.entity.model_validate(data)
        except ValidationError as e:
            logger.error(f"Unexpected {self.label} payload from backend: {e}")
            raise GatewayError(f"Unexpected {self.label} data from backend") from e

    def _parse_list(self, envelope: ApiResponse) -> list:
        if not envelope.has_data:
            return []
        if not isinstance(envelope.data, list):
            logger.error(f"Expected a list of {self.label} records, got {type(envelope.data).__name__}")
            raise GatewayError(f"Unexpected {self.label} data from backend")
        return [self._parse(item) for item in envelope.data]

    def _require(self, envelope: ApiResponse, failure_message: str):
        if not envelope.has_data:
            raise GatewayError(envelope.error_message or failure_message)
        return self._parse(envelope.data)

    async def _list(self, params: Optional[Dict[str, Any]] = None) -> list:
        envelope = await self._request("GET", self.path, params=params)
        return self._parse_list(envelope)

    async def get_by_id(self, item_id: int):
        """Fetch one record. Raises NotFoundError when the envelope has no data."""
        envelope = await self._request("GET", f"{self.path}/{item_id}")
        if not envelope.has_data:
            raise NotFoundError(f"{self.label.capitalize()} not found", status_code=404)
        return self._parse(envelope.data)

    async def create(self, payload: BaseModel):
        envelope = await self._request("POST", self.path, json=_dump(payload))
        return self._require(envelope, f"Failed to create {self.label}")

    async def update(self, item_id: int, payload: BaseModel):
        """Send only the fields set on `payload`; the backend merges them."""
        envelope = await self._request("PUT", f"{self.path}/{item_id}", json=_dump(payload, partial=True))
        return self._require(envelope, f"Failed to update {self.label}")

    async def delete(self, item_id: int) -> None:
        await self._request("DELETE", f"{self.path}/{item_id}")


class BranchService(ResourceService):
    path = "/api/branches"
    entity = Branch
    label = "branch"

    async def list(self) -> List[Branch]:
        return await self._list()

    async def _send(
        self,
        method: str,
        url: str,
        payload: BaseModel,
        thumbnail: Optional[ImageAttachment],
        failure_message: str,
        partial: bool = False
    ) -> Branch:
        request = build_branch_request(_dump(payload, partial=partial), thumbnail)
        logger.info(f"Sending branch {method} {url} as {type(request).__name__}")
        envelope = await self._request(method, url, **request.as_request_kwargs())
        return self._require(envelope, failure_message)

    async def create(self, payload: BranchInput, thumbnail: Optional[ImageAttachment] = None) -> Branch:
        return await self._send("POST", self.path, payload, thumbnail, "Failed to create branch")

    async def update(
        self,
        item_id: int,
        payload: Union[BranchUpdate, BranchInput],
        thumbnail: Optional[ImageAttachment] = None
    ) -> Branch:
        """
        Update a branch. Without a thumbnail the field is simply omitted, so the
        stored thumbnail is left untouched.
        """
        return await self._send("PUT", f"{self.path}/{item_id}", payload, thumbnail, "Failed to update branch", partial=True)


class GalleryService(ResourceService):
    path = "/api/gallery"
    entity = Gallery
    label = "gallery image"

    async def list(self, branch_id: Optional[int] = None) -> List[Gallery]:
        params = {"branch_id": branch_id} if branch_id is not None else None
        return await self._list(params)

    async def create(self, payload: GalleryInput) -> Gallery:
        return await super().create(payload)

    async def update(self, item_id: int, payload: GalleryUpdate) -> Gallery:
        return await super().update(item_id, payload)

    async def upload(
        self,
        image: ImageAttachment,
        branch_id: int,
        title: Optional[str] = None,
        tags: Optional[List[str]] = None,
        display_order: Optional[int] = None
    ) -> Gallery:
        """
        Upload an image and create its gallery record in one call.
        The backend pushes the file to the image host and returns the new record.
        """
        fields = {"branch_id": str(branch_id)}
        if title:
            fields["title"] = title
        if tags:
            fields["tags"] = json.dumps(tags)
        if display_order is not None:
            fields["display_order"] = str(display_order)

        envelope = await self._request(
            "POST",
            f"{self.path}/upload",
            data=fields,
            files={"image": image.as_file_part()}
        )
        return self._require(envelope, "Failed to upload image")

    async def delete_from_host(self, image_url: str) -> None:
        """Ask the backend to remove the file from the external image host."""
        await self._request("DELETE", f"{self.path}/delete-from-host", json={"image_url": image_url})


class EnquiryService(ResourceService):
    path = "/api/enquiries"
    entity = Enquiry
    label = "enquiry"

    async def list(self, branch_id: Optional[int] = None) -> List[Enquiry]:
        params = {"branch_id": branch_id} if branch_id is not None else None
        return await self._list(params)

    async def create(self, payload: EnquiryInput) -> Enquiry:
        return await super().create(payload)

    async def update(self, item_id: int, payload: EnquiryUpdate) -> Enquiry:
        return await super().update(item_id, payload)


class BackendGateway:
    """Typed façade over the backend, built around one injected HTTP client."""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client
        self.branches = BranchService(client)
        self.gallery = GalleryService(client)
        self.enquiries = EnquiryService(client)

    async def ping(self) -> int:
        """Return the backend's status code for its root path."""
        try:
            response = await self.client.get("/")
        except httpx.TimeoutException as e:
            raise GatewayTimeoutError("Backend request timed out") from e
        except httpx.RequestError as e:
            raise GatewayError("Unable to reach backend") from e
        return response.status_code

    async def aclose(self) -> None:
        await self.client.aclose()


def create_http_client(
    config: Settings = settings,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> httpx.AsyncClient:
    """
    Build the HTTP client the gateway owns.
    `transport` lets tests mount an in-memory backend.
    """
    return httpx.AsyncClient(
        base_url=config.BACKEND_URL,
        headers={"Accept": "application/json"},
        timeout=config.BACKEND_TIMEOUT_SECONDS,
        transport=transport,
    )
