from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from artgen.config import Settings
from artgen.main import create_app

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-png-bytes"
VENDOR_IMAGE_URL = "http://x/1.png"


class VendorStub:
    """Stands in for the image API and the host serving its images."""

    def __init__(
        self,
        payload: Any = None,
        status_code: int = 200,
        content: bytes | None = None,
        error: type[httpx.HTTPError] | None = None,
        image_status: int = 200,
        image_type: str = "image/png",
    ) -> None:
        self.payload = {"output": {"url": VENDOR_IMAGE_URL}} if payload is None else payload
        self.status_code = status_code
        self.content = content
        self.error = error
        self.image_status = image_status
        self.image_type = image_type
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            if self.error is not None:
                raise self.error("simulated failure", request=request)
            if self.content is not None:
                return httpx.Response(self.status_code, content=self.content)
            return httpx.Response(self.status_code, json=self.payload)
        return httpx.Response(self.image_status, content=PNG_BYTES, headers={"content-type": self.image_type})

    @property
    def vendor_calls(self) -> list[httpx.Request]:
        return [request for request in self.requests if request.method == "POST"]

    @property
    def downloads(self) -> list[httpx.Request]:
        return [request for request in self.requests if request.method == "GET"]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        api_key="test-key",
        static_dir=tmp_path / "static",
        generated_dir=tmp_path / "generated",
        placeholder_fallback=False,
    )


@pytest.fixture
def make_client():
    def _make(settings: Settings, stub: VendorStub) -> TestClient:
        return TestClient(create_app(settings, transport=stub.transport()))

    return _make
