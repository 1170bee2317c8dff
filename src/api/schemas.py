"""Pydantic request/response schemas for the FastAPI endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class TableResponse(BaseModel):
    """Response schema for a detected table."""

    title: str | None = None
    headers: list[str]
    rows: list[list[str]]
    confidence: float


class PersonNameResponse(BaseModel):
    full_name: str
    first_name: str | None = None
    last_name: str | None = None
    prefix: str | None = None
    suffix: str | None = None


class SocialMediaResponse(BaseModel):
    platform: str
    handle: str
    url: str | None = None


class BusinessCardResponse(BaseModel):
    """Response schema for a parsed business card."""

    name: PersonNameResponse | None = None
    title: str | None = None
    company: str | None = None
    phone_numbers: list[str] = Field(default_factory=list)
    emails: list[str] = Field(default_factory=list)
    addresses: list[str] = Field(default_factory=list)
    social_media: list[SocialMediaResponse] = Field(default_factory=list)
    confidence: float
    is_complete: bool
    crm: dict[str, Any]


class OCRResponse(BaseModel):
    """Response schema for an OCR request."""

    success: bool
    document_id: str
    document_type: str
    raw_text: str
    confidence: float
    tables: list[TableResponse]
    business_card: BusinessCardResponse | None = None
    summary: str | None = None
    tags: list[str] = Field(default_factory=list)
    processing_hints: list[str] = Field(default_factory=list)
    processing_time_ms: float


class BusinessCardRequest(BaseModel):
    """Request schema for business card extraction from text."""

    text: str = Field(..., min_length=1)


class HealthResponse(BaseModel):
    """Response schema for the health check endpoint."""

    status: str
    version: str
    tesseract_available: bool
    gpu_available: bool
