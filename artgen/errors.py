from typing import Any


class ArtgenError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ArtgenError):
    status_code = 400


class ConfigurationError(ArtgenError):
    status_code = 503


class VendorCallError(ArtgenError):
    """The vendor could not be reached or answered with an error."""

    def __init__(self, message: str, upstream_status: int | None = None) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status


class ReconciliationError(ArtgenError):
    """The vendor answered 2xx but no known response shape carried an image URL."""

    def __init__(self, raw: Any) -> None:
        super().__init__("Unrecognized response from image API: no image URL found")
        self.raw = raw


class PersistenceError(ArtgenError):
    pass
