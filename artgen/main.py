import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from typing import Any

import httpx
from fastapi import APIRouter, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from artgen.adapter import GENERATED_URL_PREFIX, ImageGenerator
from artgen.config import Settings
from artgen.errors import ArtgenError, PersistenceError, ReconciliationError
from artgen.models import GenerationResult, Outcome
from artgen.normalizer import normalize_request, validate_upload

_handlers: list[logging.Handler] = [logging.StreamHandler()]
LOG_FILE = os.getenv("ARTGEN_LOG_FILE")
if LOG_FILE:
    _handlers.append(RotatingFileHandler(LOG_FILE, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"))

logging.basicConfig(
    level=os.getenv("ARTGEN_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=_handlers,
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


class TextToImageRequest(BaseModel):
    prompt: str = ""
    style: Any = None
    ratio: Any = None


class GenerateResponse(BaseModel):
    success: bool = True
    image: str
    message: str
    outcome: Outcome
    persisted: bool


class StatusResponse(BaseModel):
    status: str
    message: str


def _to_response(result: GenerationResult) -> GenerateResponse:
    return GenerateResponse(
        success=result.success,
        image=result.image,
        message=result.message,
        outcome=result.outcome,
        persisted=result.persisted,
    )


def _failure(status_code: int, error: str, **extra: Any) -> JSONResponse:
    content: dict[str, Any] = {"success": False, "error": error, "outcome": Outcome.FAILED.value, **extra}
    return JSONResponse(status_code=status_code, content=content)


async def _artgen_error_handler(_: Request, exc: ArtgenError) -> JSONResponse:
    if isinstance(exc, ReconciliationError):
        logger.error("%s; raw payload: %s", exc.message, exc.raw)
        return _failure(exc.status_code, exc.message, raw=exc.raw)
    logger.warning("Request failed (%s): %s", exc.status_code, exc.message)
    return _failure(exc.status_code, exc.message)


async def _request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', 'invalid')}"
        for error in exc.errors()
    )
    return _failure(400, f"Invalid request: {details}")


def get_generator(request: Request) -> ImageGenerator:
    return ImageGenerator(request.app.state.settings, transport=request.app.state.transport)


router = APIRouter()


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    settings: Settings = request.app.state.settings
    return {"status": "ok", "api_key_configured": settings.has_api_key}


@router.get("/api/status", response_model=StatusResponse)
async def generation_status() -> StatusResponse:
    # Generation is synchronous, so there is never a pending task to report.
    return StatusResponse(status="done", message="Image generated")


@router.post("/api/text-to-image", response_model=GenerateResponse)
@router.post("/api/generate-image", response_model=GenerateResponse)
async def text_to_image(
    payload: TextToImageRequest,
    generator: ImageGenerator = Depends(get_generator),
) -> GenerateResponse:
    request = normalize_request(payload.prompt, payload.style, payload.ratio)
    logger.info(
        "text-to-image style=%s size=%dx%d promptLength=%d",
        request.style,
        request.width,
        request.height,
        len(request.prompt),
    )
    result = await generator.text_to_image(request)
    return _to_response(result)


@router.post("/api/style-transfer", response_model=GenerateResponse)
async def style_transfer(
    image: UploadFile | None = File(default=None),
    style: str = Form("watercolor"),
    generator: ImageGenerator = Depends(get_generator),
) -> GenerateResponse:
    content = await image.read(generator.settings.max_upload_bytes + 1) if image is not None else b""
    mime_type = validate_upload(
        content,
        image.content_type if image is not None else None,
        generator.settings.max_upload_bytes,
    )
    logger.info("style-transfer style=%s mimeType=%s imageSize=%d", style, mime_type, len(content))
    result = await generator.style_transfer(content, mime_type, style)
    return _to_response(result)


def create_app(settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        logger.info("API key configured: %s", "yes" if settings.has_api_key else "no")
        if not settings.has_api_key:
            logger.warning("Set DASHSCOPE_API_KEY in the environment or .env file to enable image generation")
        try:
            ImageGenerator(settings).ensure_generated_dir()
        except PersistenceError as exc:
            logger.warning("Generated image directory unavailable: %s", exc.message)
        yield

    app = FastAPI(title="artgen", lifespan=lifespan)
    app.state.settings = settings
    app.state.transport = transport

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ArtgenError, _artgen_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.include_router(router)

    @app.get("/")
    async def root() -> FileResponse:
        return FileResponse(settings.static_dir / "index.html")

    app.mount("/static", StaticFiles(directory=settings.static_dir, check_dir=False), name="static")
    app.mount(
        GENERATED_URL_PREFIX,
        StaticFiles(directory=settings.generated_dir, check_dir=False),
        name="generated",
    )
    return app


app = create_app()
