import json

import httpx

from artgen.adapter import PLACEHOLDER_IMAGE_URL

from .conftest import PNG_BYTES, VENDOR_IMAGE_URL, VendorStub


def test_text_to_image_success(settings, make_client):
    stub = VendorStub(payload={"images": [{"url": VENDOR_IMAGE_URL}]})
    client = make_client(settings, stub)

    response = client.post("/api/text-to-image", json={"prompt": "a red fox", "style": "watercolor", "ratio": "4:3"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["outcome"] == "succeeded"
    assert data["persisted"] is True
    assert data["image"].startswith("/generated/")
    assert json.loads(stub.vendor_calls[0].content) == {
        "input": {"prompt": "a red fox"},
        "parameters": {"width": 1024, "height": 768, "n": 1, "style": "watercolor"},
    }


def test_generate_image_alias_returns_vendor_url(settings, make_client):
    stub = VendorStub(payload={"images": [{"url": VENDOR_IMAGE_URL}]})
    client = make_client(settings.model_copy(update={"persist_images": False}), stub)

    response = client.post("/api/generate-image", json={"prompt": "a red fox"})

    assert response.status_code == 200
    assert response.json()["image"] == VENDOR_IMAGE_URL


def test_empty_prompt_is_rejected_without_calling_vendor(settings, make_client):
    stub = VendorStub()
    client = make_client(settings, stub)

    response = client.post("/api/text-to-image", json={"prompt": "", "style": "photo"})

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert response.json()["outcome"] == "failed"
    assert stub.requests == []


def test_non_string_prompt_is_rejected(settings, make_client):
    stub = VendorStub()
    client = make_client(settings, stub)

    response = client.post("/api/text-to-image", json={"prompt": 42})

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid request")
    assert stub.requests == []


def test_malformed_json_body_is_rejected(settings, make_client):
    client = make_client(settings, VendorStub())
    response = client.post(
        "/api/text-to-image",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400


def test_validation_runs_before_credential_check(settings, make_client):
    client = make_client(settings.model_copy(update={"api_key": None}), VendorStub())
    response = client.post("/api/text-to-image", json={"prompt": "   "})
    assert response.status_code == 400


def test_missing_credential_returns_503(settings, make_client):
    stub = VendorStub()
    client = make_client(settings.model_copy(update={"api_key": None}), stub)

    response = client.post("/api/text-to-image", json={"prompt": "a red fox"})

    assert response.status_code == 503
    assert "DASHSCOPE_API_KEY" in response.json()["error"]
    assert stub.requests == []


def test_unrecognized_response_includes_raw(settings, make_client):
    client = make_client(settings, VendorStub(payload={}))

    response = client.post("/api/text-to-image", json={"prompt": "a red fox"})

    assert response.status_code == 500
    data = response.json()
    assert data["success"] is False
    assert data["raw"] == {}
    assert "no image URL" in data["error"]


def test_vendor_failure_returns_500(settings, make_client):
    stub = VendorStub(status_code=400, payload={"code": "InvalidParameter", "message": "size is invalid"})
    client = make_client(settings, stub)

    response = client.post("/api/text-to-image", json={"prompt": "a red fox"})

    assert response.status_code == 500
    assert response.json()["error"] == "Image API error [InvalidParameter]: size is invalid"


def test_vendor_outage_falls_back_to_placeholder(settings, make_client):
    client = make_client(settings.model_copy(update={"placeholder_fallback": True}), VendorStub(error=httpx.ConnectError))

    response = client.post("/api/text-to-image", json={"prompt": "a red fox", "style": "cartoon"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["outcome"] == "succeeded_with_fallback"
    assert data["image"] == PLACEHOLDER_IMAGE_URL


def test_style_transfer(settings, make_client):
    stub = VendorStub(payload={"output": {"url": VENDOR_IMAGE_URL}})
    client = make_client(settings.model_copy(update={"persist_images": False}), stub)

    response = client.post(
        "/api/style-transfer",
        files={"image": ("cat.png", PNG_BYTES, "image/png")},
        data={"style": "cartoon"},
    )

    assert response.status_code == 200
    assert response.json()["image"] == VENDOR_IMAGE_URL
    body = json.loads(stub.vendor_calls[0].content)
    assert body["parameters"] == {"style_name": "cartoon"}
    assert body["input"]["image"].startswith("data:image/png;base64,")


def test_style_transfer_requires_image(settings, make_client):
    stub = VendorStub()
    client = make_client(settings, stub)

    missing = client.post("/api/style-transfer", data={"style": "cartoon"})
    wrong_type = client.post("/api/style-transfer", files={"image": ("notes.txt", b"hello", "text/plain")})

    assert missing.status_code == 400
    assert wrong_type.status_code == 400
    assert stub.requests == []


def test_style_transfer_size_limit(settings, make_client):
    client = make_client(settings.model_copy(update={"max_upload_bytes": 4}), VendorStub())
    response = client.post("/api/style-transfer", files={"image": ("big.png", PNG_BYTES, "image/png")})
    assert response.status_code == 400
    assert "too large" in response.json()["error"]


def test_status_and_health(settings, make_client):
    client = make_client(settings.model_copy(update={"api_key": None}), VendorStub())

    assert client.get("/api/status").json() == {"status": "done", "message": "Image generated"}
    assert client.get("/health").json() == {"status": "ok", "api_key_configured": False}


def test_non_string_style_and_ratio_use_defaults(settings, make_client):
    stub = VendorStub()
    client = make_client(settings.model_copy(update={"persist_images": False}), stub)

    response = client.post("/api/text-to-image", json={"prompt": "a red fox", "style": 3, "ratio": ["4:3"]})

    assert response.status_code == 200
    assert json.loads(stub.vendor_calls[0].content)["parameters"] == {
        "width": 1024,
        "height": 1024,
        "n": 1,
        "style": "default",
    }


def test_style_transfer_accepts_upload_at_size_limit(settings, make_client):
    stub = VendorStub()
    client = make_client(
        settings.model_copy(update={"max_upload_bytes": len(PNG_BYTES), "persist_images": False}),
        stub,
    )

    response = client.post("/api/style-transfer", files={"image": ("cat.png", PNG_BYTES, "image/png")})

    assert response.status_code == 200
    body = json.loads(stub.vendor_calls[0].content)
    assert body["input"]["image"].startswith("data:image/png;base64,")
