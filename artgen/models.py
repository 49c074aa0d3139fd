from enum import Enum

from pydantic import BaseModel


class Outcome(str, Enum):
    SUCCEEDED = "succeeded"
    SUCCEEDED_WITH_FALLBACK = "succeeded_with_fallback"
    FAILED = "failed"


class GenerationRequest(BaseModel):
    prompt: str
    style: str = "default"
    requested_style: str = ""
    width: int = 1024
    height: int = 1024


class GenerationResult(BaseModel):
    outcome: Outcome
    image: str
    message: str
    persisted: bool = False

    @property
    def success(self) -> bool:
        return self.outcome is not Outcome.FAILED
