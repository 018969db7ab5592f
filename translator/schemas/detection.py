"""Language detection result schema."""

from pydantic import BaseModel, ConfigDict, Field

HEURISTIC_PROVIDER = "heuristic"


class DetectionResult(BaseModel):
    """Detected language with a confidence between 0 and 1."""

    model_config = ConfigDict(frozen=True)

    language: str
    confidence: float = Field(ge=0.0, le=1.0)
    provider: str = HEURISTIC_PROVIDER
    degraded: bool = False
