"""Pull an image URL out of whichever response shape the image API chose to return."""
from collections.abc import Callable
from typing import Any

from artgen.errors import ReconciliationError

Extractor = Callable[[Any], str | None]


def _as_url(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _field(obj: Any, key: str) -> Any:
    return obj.get(key) if isinstance(obj, dict) else None


def _first(items: Any) -> Any:
    if isinstance(items, list) and items:
        return items[0]
    return None


def _from_output_url(payload: Any) -> str | None:
    return _as_url(_field(_field(payload, "output"), "url"))


def _from_output_results(payload: Any) -> str | None:
    return _as_url(_field(_first(_field(_field(payload, "output"), "results")), "url"))


def _from_images(payload: Any) -> str | None:
    return _as_url(_field(_first(_field(payload, "images")), "url"))


def _from_result_url(payload: Any) -> str | None:
    return _as_url(_field(_field(payload, "result"), "url"))


# Priority order matters: the first extractor that yields a URL wins.
EXTRACTORS: tuple[Extractor, ...] = (
    _from_output_url,
    _from_output_results,
    _from_images,
    _from_result_url,
)


def extract_image_url(payload: Any, extractors: tuple[Extractor, ...] = EXTRACTORS) -> str | None:
    for extractor in extractors:
        url = extractor(payload)
        if url:
            return url
    return None


def reconcile(payload: Any) -> str:
    url = extract_image_url(payload)
    if url is None:
        raise ReconciliationError(payload)
    return url
