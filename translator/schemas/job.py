"""Job-related Pydantic schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TranslationCreate(BaseModel):
    """Schema for requesting a translation."""

    text: str = Field(min_length=1)
    source_lang: str = Field(min_length=2, max_length=10)
    target_lang: str = Field(min_length=2, max_length=10)

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Text is required")
        return value

    @field_validator("source_lang", "target_lang")
    @classmethod
    def normalize_language(cls, value: str) -> str:
        value = value.strip().lower()
        if len(value) < 2:
            raise ValueError("Language code is required")
        return value


class DetectionCreate(BaseModel):
    """Schema for requesting language detection."""

    text: str = Field(min_length=1)

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Text is required")
        return value


class JobResponse(BaseModel):
    """Job as reported to API clients."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    kind: str
    status: str
    input_text: str
    source_language: Optional[str] = None
    target_language: Optional[str] = None
    result_text: Optional[str] = None
    detected_language: Optional[str] = None
    confidence: Optional[float] = None
    provider: Optional[str] = None
    error_detail: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class JobPage(BaseModel):
    """Paginated job listing."""

    items: List[JobResponse]
    total: int
    page: int
    total_pages: int


class LanguageResponse(BaseModel):
    """Language supported by the providers."""

    code: str
    name: str
