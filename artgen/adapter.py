import copy
import json
import logging
import shutil
import time
from pathlib import Path
from typing import Any

import httpx

from artgen.config import Settings
from artgen.errors import ConfigurationError, PersistenceError, VendorCallError
from artgen.models import GenerationRequest, GenerationResult, Outcome
from artgen.normalizer import build_style_transfer_body, build_text_to_image_body
from artgen.reconciler import reconcile

logger = logging.getLogger(__name__)

GENERATED_URL_PREFIX = "/generated"
PLACEHOLDER_IMAGE_URL = "/static/img/placeholder.png"

FALLBACK_SAMPLES: dict[str, str] = {
    "watercolor": "sample-watercolor.png",
    "cartoon": "sample-cartoon.png",
    "oil": "sample-oil.png",
}
DEFAULT_FALLBACK_SAMPLE = "sample-pixel.png"

IMAGE_EXTENSIONS: dict[str, str] = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


def _log_json(label: str, data: Any) -> None:
    logger.info("%s:\n%s", label, json.dumps(data, ensure_ascii=False, indent=2, default=str))


def _redact_image(body: dict[str, Any]) -> dict[str, Any]:
    redacted = copy.deepcopy(body)
    image = (redacted.get("input") or {}).get("image")
    if isinstance(image, str):
        redacted["input"]["image"] = f"<{len(image)} chars elided>"
    return redacted


def _safe_vendor_error(response: httpx.Response) -> VendorCallError:
    try:
        payload = response.json()
    except ValueError:
        return VendorCallError(
            f"Image API returned an unexpected error ({response.status_code}).",
            upstream_status=response.status_code,
        )

    if isinstance(payload, dict):
        error_obj = payload.get("error")
        message = payload.get("message") or (error_obj.get("message") if isinstance(error_obj, dict) else "")
        code = payload.get("code") or ""
        if message:
            prefix = f"Image API error [{code}]" if code else "Image API error"
            return VendorCallError(f"{prefix}: {message}", upstream_status=response.status_code)

    return VendorCallError(
        f"Image API error ({response.status_code}). Please try again.",
        upstream_status=response.status_code,
    )


def _extension_for(content_type: str | None) -> str:
    mime = (content_type or "").split(";")[0].strip().lower()
    return IMAGE_EXTENSIONS.get(mime, ".png")


def _timestamp_filename(extension: str) -> str:
    return f"{time.time_ns() // 1_000_000}{extension}"


class ImageGenerator:
    """Calls the image API, reconciles its answer and optionally keeps a local copy.

    The settings are injected once; ``transport`` replaces the network in tests.
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def _require_api_key(self) -> str:
        if not self.settings.api_key:
            raise ConfigurationError("API key not configured. Set DASHSCOPE_API_KEY in the environment or .env file.")
        return self.settings.api_key

    @property
    def text_to_image_url(self) -> str:
        return f"{self.settings.api_base_url}/models/{self.settings.text_to_image_model}/generation"

    @property
    def style_transfer_url(self) -> str:
        return f"{self.settings.api_base_url}/services/aigc/style-transfer/style-transfer"

    async def _post(self, url: str, body: dict[str, Any], api_key: str) -> Any:
        try:
            async with self._client(self.settings.request_timeout) as client:
                response = await client.post(
                    url,
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                    },
                    json=body,
                )
        except httpx.TimeoutException as exc:
            raise VendorCallError(f"Image API timed out after {self.settings.request_timeout:g}s.") from exc
        except httpx.HTTPError as exc:
            raise VendorCallError(f"Image API request failed: {exc}") from exc

        if response.status_code >= 400:
            raise _safe_vendor_error(response)

        try:
            return response.json()
        except ValueError as exc:
            raise VendorCallError("Image API returned malformed JSON.", upstream_status=response.status_code) from exc

    def ensure_generated_dir(self) -> Path:
        directory = self.settings.generated_dir
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Cannot create {directory}: {exc}") from exc
        return directory

    async def _download(self, url: str) -> tuple[bytes, str | None]:
        async with self._client(self.settings.download_timeout) as client:
            response = await client.get(url)
            response.raise_for_status()
        return response.content, response.headers.get("content-type")

    def _write_image(self, content: bytes, extension: str) -> str:
        directory = self.ensure_generated_dir()
        filename = _timestamp_filename(extension)
        try:
            (directory / filename).write_bytes(content)
        except OSError as exc:
            raise PersistenceError(f"Cannot write {directory / filename}: {exc}") from exc
        return f"{GENERATED_URL_PREFIX}/{filename}"

    async def _persist(self, image_url: str) -> tuple[str, bool]:
        if not self.settings.persist_images:
            return image_url, False
        try:
            content, content_type = await self._download(image_url)
            local_path = self._write_image(content, _extension_for(content_type))
        except (httpx.HTTPError, PersistenceError) as exc:
            logger.warning("Could not save %s locally, returning the remote URL: %s", image_url, exc)
            return image_url, False
        logger.info("Saved generated image to %s", local_path)
        return local_path, True

    def _fallback(self, style: str, error: VendorCallError) -> GenerationResult:
        sample = self.settings.static_dir / "img" / FALLBACK_SAMPLES.get(style, DEFAULT_FALLBACK_SAMPLE)
        if not sample.is_file():
            logger.warning("Sample image %s missing, using placeholder", sample)
            return GenerationResult(
                outcome=Outcome.SUCCEEDED_WITH_FALLBACK,
                image=PLACEHOLDER_IMAGE_URL,
                message="Image API unavailable, showing a placeholder image",
            )

        try:
            directory = self.ensure_generated_dir()
            filename = _timestamp_filename(sample.suffix or ".png")
            shutil.copyfile(sample, directory / filename)
        except (OSError, PersistenceError) as exc:
            logger.error("Fallback failed as well: %s", exc)
            raise error from exc

        logger.info("Image API failed, using sample image %s", sample)
        return GenerationResult(
            outcome=Outcome.SUCCEEDED_WITH_FALLBACK,
            image=f"{GENERATED_URL_PREFIX}/{filename}",
            message="Image API unavailable, showing a sample image",
            persisted=True,
        )

    async def _generate(self, url: str, body: dict[str, Any], log_body: dict[str, Any], style: str) -> GenerationResult:
        api_key = self._require_api_key()
        _log_json(f"Request to {url}", log_body)
        try:
            payload = await self._post(url, body, api_key)
        except VendorCallError as exc:
            logger.error("Image API call failed: %s", exc.message)
            if not self.settings.placeholder_fallback:
                raise
            return self._fallback(style, exc)

        _log_json(f"Response from {url}", payload)
        image_url = reconcile(payload)
        image, persisted = await self._persist(image_url)
        message = "Image generated successfully"
        if self.settings.persist_images and not persisted:
            message += " (not saved locally)"
        return GenerationResult(outcome=Outcome.SUCCEEDED, image=image, message=message, persisted=persisted)

    async def text_to_image(self, request: GenerationRequest) -> GenerationResult:
        body = build_text_to_image_body(request)
        return await self._generate(self.text_to_image_url, body, body, request.requested_style)

    async def style_transfer(self, content: bytes, mime_type: str, style: str | None) -> GenerationResult:
        body = build_style_transfer_body(content, mime_type, style, self.settings.style_transfer_model)
        style_name = body["parameters"]["style_name"]
        return await self._generate(self.style_transfer_url, body, _redact_image(body), style_name)
