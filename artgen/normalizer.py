import base64
from typing import Any

from artgen.errors import ValidationError
from artgen.models import GenerationRequest

STYLE_MAP: dict[str, str] = {
    "watercolor": "watercolor",
    "photo": "photographic",
    "cartoon": "cartoon",
    "oil": "oil-painting",
    "art": "artistic",
}
DEFAULT_STYLE = "default"

RATIO_SIZES: dict[str, tuple[int, int]] = {
    "1:1": (1024, 1024),
    "4:3": (1024, 768),
    "16:9": (1024, 576),
}
DEFAULT_SIZE = (1024, 1024)

DEFAULT_TRANSFER_STYLE = "watercolor"


def map_style(style: Any) -> str:
    if not isinstance(style, str):
        return DEFAULT_STYLE
    return STYLE_MAP.get(style, DEFAULT_STYLE)


def _parse_dimensions(ratio: str) -> tuple[int, int] | None:
    parts = ratio.split("*")
    if len(parts) != 2:
        return None
    try:
        width, height = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if width <= 0 or height <= 0:
        return None
    return width, height


def resolve_ratio(ratio: Any) -> tuple[int, int]:
    """Turn a named ratio or a literal ``W*H`` token into pixel dimensions."""
    if not isinstance(ratio, str):
        return DEFAULT_SIZE
    if ratio in RATIO_SIZES:
        return RATIO_SIZES[ratio]
    if "*" in ratio:
        return _parse_dimensions(ratio) or DEFAULT_SIZE
    return DEFAULT_SIZE


def validate_prompt(prompt: Any) -> str:
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValidationError("Prompt must be a non-empty string.")
    return prompt.strip()


def normalize_request(prompt: Any, style: Any = None, ratio: Any = None) -> GenerationRequest:
    width, height = resolve_ratio(ratio)
    return GenerationRequest(
        prompt=validate_prompt(prompt),
        style=map_style(style),
        requested_style=style if isinstance(style, str) else "",
        width=width,
        height=height,
    )


def build_text_to_image_body(request: GenerationRequest) -> dict[str, Any]:
    return {
        "input": {"prompt": request.prompt},
        "parameters": {
            "width": request.width,
            "height": request.height,
            "n": 1,
            "style": request.style,
        },
    }


def validate_upload(content: bytes, content_type: str | None, max_bytes: int) -> str:
    if not content:
        raise ValidationError("A valid image file is required.")
    mime = content_type or ""
    if not mime.startswith("image/"):
        raise ValidationError("Only image files are supported.")
    if len(content) > max_bytes:
        raise ValidationError(f"Image file is too large. Keep it under {max_bytes // (1024 * 1024)}MB.")
    return mime


def build_style_transfer_body(content: bytes, mime_type: str, style: Any, model: str) -> dict[str, Any]:
    style_name = style.strip() if isinstance(style, str) and style.strip() else DEFAULT_TRANSFER_STYLE
    image_b64 = base64.b64encode(content).decode("utf-8")
    return {
        "model": model,
        "input": {"image": f"data:{mime_type};base64,{image_b64}"},
        "parameters": {"style_name": style_name},
    }
