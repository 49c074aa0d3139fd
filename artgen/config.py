import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

DASHSCOPE_API_BASE_URL = "https://dashscope.aliyuncs.com/api/v1"
API_KEY_ENV_NAMES = ("DASHSCOPE_API_KEY", "ALIBABA_API_KEY")

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number, using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer, using %s", name, raw, default)
        return default


class Settings(BaseModel):
    """Runtime configuration, built once and handed to the app and the generator."""

    model_config = ConfigDict(frozen=True)

    api_key: str | None = None
    api_base_url: str = DASHSCOPE_API_BASE_URL
    text_to_image_model: str = "wanx-v1"
    style_transfer_model: str = "wanx-style-transfer-v1"
    request_timeout: float = 120.0
    download_timeout: float = 60.0
    persist_images: bool = True
    placeholder_fallback: bool = True
    static_dir: Path = Path("static")
    generated_dir: Path = Path("generated")
    max_upload_bytes: int = 10 * 1024 * 1024

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        api_key = next((os.getenv(name) for name in API_KEY_ENV_NAMES if os.getenv(name)), None)
        return cls(
            api_key=api_key,
            api_base_url=os.getenv("DASHSCOPE_API_BASE_URL", DASHSCOPE_API_BASE_URL).rstrip("/"),
            text_to_image_model=os.getenv("ARTGEN_TEXT_TO_IMAGE_MODEL", "wanx-v1"),
            style_transfer_model=os.getenv("ARTGEN_STYLE_TRANSFER_MODEL", "wanx-style-transfer-v1"),
            request_timeout=_env_float("ARTGEN_REQUEST_TIMEOUT", 120.0),
            download_timeout=_env_float("ARTGEN_DOWNLOAD_TIMEOUT", 60.0),
            persist_images=_env_flag("ARTGEN_PERSIST_IMAGES", True),
            placeholder_fallback=_env_flag("ARTGEN_PLACEHOLDER_FALLBACK", True),
            static_dir=Path(os.getenv("ARTGEN_STATIC_DIR", "static")),
            generated_dir=Path(os.getenv("ARTGEN_GENERATED_DIR", "generated")),
            max_upload_bytes=_env_int("ARTGEN_MAX_UPLOAD_BYTES", 10 * 1024 * 1024),
        )
