"""
Shared fixtures: an in-memory hostel backend served through httpx.MockTransport,
a gateway bound to it, and a TestClient whose gateway dependency points at it.
"""
import asyncio
import io
import json
from datetime import datetime, timezone
from email.parser import BytesParser
from email.policy import default as default_policy

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from hostel_admin.gateway import get_gateway
from hostel_admin.main import app
from hostel_admin.services.backend_client import BackendGateway, create_http_client

JSON_FIELDS = ("contact_no", "room_rate", "amenities", "prime_location_perks", "tags")
FLOAT_FIELDS = ("reg_fee", "mess_price")
INT_FIELDS = ("branch_id", "display_order")


def parse_multipart(request: httpx.Request):
    """Split a multipart request into plain fields and file parts."""
    header = f"Content-Type: {request.headers['content-type']}\r\n\r\n".encode()
    message = BytesParser(policy=default_policy).parsebytes(header + request.content)
    fields, files = {}, {}
    for part in message.iter_parts():
        name = part.get_param("name", header="content-disposition")
        payload = part.get_payload(decode=True)
        if part.get_filename():
            files[name] = (part.get_filename(), payload, part.get_content_type())
        else:
            fields[name] = payload.decode()
    return fields, files


def decode_form_fields(fields):
    """Decode multipart text fields the way the real backend does."""
    decoded = {}
    for name, value in fields.items():
        if name in JSON_FIELDS:
            decoded[name] = json.loads(value)
        elif name in FLOAT_FIELDS:
            decoded[name] = float(value)
        elif name in INT_FIELDS:
            decoded[name] = int(value)
        elif name == "is_mess_available":
            decoded[name] = value == "true"
        else:
            decoded[name] = value
    return decoded


class FakeBackend:
    """
    Minimal in-memory version of the hostel backend REST surface.
    Every response uses the {success, data, message, error} envelope.
    """

    COLLECTIONS = {"branches": "Branch", "gallery": "Gallery image", "enquiries": "Enquiry"}

    def __init__(self):
        self.store = {name: {} for name in self.COLLECTIONS}
        self.next_id = 1
        self.requests = []
        self.overrides = {}
        self.host_deletions = []

    # ---- test controls ----

    def respond(self, method, path, body=None, status_code=200, exc=None):
        """Force the response (or raise `exc`) for one method + path."""
        self.overrides[(method, path)] = (status_code, body, exc)

    def seed(self, collection, **fields):
        record = dict(fields)
        record["id"] = self.next_id
        self.next_id += 1
        record.setdefault("created_at", self._now())
        record.setdefault("updated_at", record["created_at"])
        self.store[collection][record["id"]] = record
        return record

    def requests_to(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == path]

    # ---- transport ----

    @staticmethod
    def _now():
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _ok(data=None, message=None, status_code=200):
        body = {"success": True}
        if data is not None:
            body["data"] = data
        if message:
            body["message"] = message
        return httpx.Response(status_code, json=body)

    @staticmethod
    def _fail(status_code, error):
        return httpx.Response(status_code, json={"success": False, "error": error})

    def _body(self, request):
        content_type = request.headers.get("content-type", "")
        if content_type.startswith("multipart/form-data"):
            fields, files = parse_multipart(request)
            return decode_form_fields(fields), files
        if request.content:
            return json.loads(request.content), {}
        return {}, {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        method, path = request.method, request.url.path

        if (method, path) in self.overrides:
            status_code, body, exc = self.overrides[(method, path)]
            if exc is not None:
                raise exc
            return httpx.Response(status_code, json=body) if body is not None else httpx.Response(status_code)

        if path == "/":
            return self._ok(message="Hostel backend running")
        if path == "/api/gallery/upload" and method == "POST":
            return self._upload(request)
        if path == "/api/gallery/delete-from-host" and method == "DELETE":
            self.host_deletions.append(json.loads(request.content)["image_url"])
            return self._ok(message="Image removed from host")

        parts = path.strip("/").split("/")
        if len(parts) < 2 or parts[0] != "api" or parts[1] not in self.COLLECTIONS:
            return self._fail(404, "Route not found")
        collection = parts[1]
        records = self.store[collection]
        label = self.COLLECTIONS[collection]

        if len(parts) == 2:
            if method == "GET":
                items = list(records.values())
                branch_id = request.url.params.get("branch_id")
                if branch_id is not None:
                    items = [item for item in items if item.get("branch_id") == int(branch_id)]
                return self._ok(items)
            if method == "POST":
                fields, files = self._body(request)
                if "thumbnail" in files:
                    fields["thumbnail"] = f"https://img.example/{files['thumbnail'][0]}"
                return self._ok(self.seed(collection, **fields), status_code=201)

        if len(parts) == 3:
            item_id = int(parts[2])
            if item_id not in records:
                return self._fail(404, f"{label} not found")
            if method == "GET":
                return self._ok(records[item_id])
            if method == "PUT":
                fields, files = self._body(request)
                if "thumbnail" in files:
                    fields["thumbnail"] = f"https://img.example/{files['thumbnail'][0]}"
                records[item_id].update(fields)
                records[item_id]["updated_at"] = self._now()
                return self._ok(records[item_id])
            if method == "DELETE":
                del records[item_id]
                return self._ok(message=f"{label} deleted")

        return self._fail(405, "Method not allowed")

    def _upload(self, request):
        fields, files = self._body(request)
        if "image" not in files:
            return self._fail(400, "No image provided")
        fields["image_url"] = f"https://img.example/{files['image'][0]}"
        return self._ok(self.seed("gallery", **fields), status_code=201)


def make_image_bytes(fmt="PNG", size=(64, 48), mode="RGB", color=(200, 120, 40)):
    buffer = io.BytesIO()
    Image.new(mode, size, color=color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def gateway(backend):
    gateway = BackendGateway(create_http_client(transport=httpx.MockTransport(backend.handler)))
    yield gateway
    asyncio.run(gateway.aclose())


@pytest.fixture
def client(gateway):
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def png_bytes():
    return make_image_bytes()


@pytest.fixture
def branch_record(backend):
    return backend.seed(
        "branches",
        name="Koramangala",
        address="12 Main Road",
        contact_no=["9876543210"],
        email="kora@example.com",
        room_rate=[{"title": "Single", "rate_per_month": 9000}, {"title": "Double", "rate_per_month": 6500}],
        reg_fee=1000,
        is_mess_available=True,
        mess_price=3000,
        prime_location_perks=[{"title": "Metro", "distance": "500m", "time_to_reach": "5 min"}],
        amenities=["WiFi", "Laundry"],
        thumbnail="https://img.example/kora.jpg",
    )
