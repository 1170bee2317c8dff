"""FastAPI application for the document capture OCR API.

Provides REST endpoints for document OCR, business card extraction,
and health checks.
"""

import shutil
import time
import uuid
from typing import Annotated

import cv2
import numpy as np
import torch
from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from src.api.schemas import (
    BusinessCardRequest,
    BusinessCardResponse,
    HealthResponse,
    OCRResponse,
    PersonNameResponse,
    SocialMediaResponse,
    TableResponse,
)
from src.extraction.business_card import BusinessCardProcessor
from src.extraction.models import BusinessCardData
from src.ocr.modes import DocumentMode
from src.ocr.pipeline import OCRPipeline, build_business_card_processor
from src.utils.config import load_config
from src.utils.logger import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="Document Capture OCR API",
    description="Recognize documents and extract contacts from business cards",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_ALLOWED_CONTENT_TYPES = {
    "image/png",
    "image/jpeg",
    "image/tiff",
    "image/bmp",
    "application/octet-stream",
}


def _get_components() -> tuple[OCRPipeline, BusinessCardProcessor]:
    """Initialize and return shared processing components.

    Returns:
        Tuple of (ocr_pipeline, business_card_processor).
    """
    config = load_config()
    return OCRPipeline.from_config(config), build_business_card_processor(config)


def _card_response(
    card: BusinessCardData, processor: BusinessCardProcessor
) -> BusinessCardResponse:
    info = card.contact_info
    return BusinessCardResponse(
        name=(
            PersonNameResponse(
                full_name=card.name.full_name,
                first_name=card.name.first_name,
                last_name=card.name.last_name,
                prefix=card.name.prefix,
                suffix=card.name.suffix,
            )
            if card.name
            else None
        ),
        title=card.title,
        company=card.company,
        phone_numbers=[p.formatted for p in info.phone_numbers],
        emails=[e.address for e in info.email_addresses],
        addresses=[a.raw for a in info.addresses],
        social_media=[
            SocialMediaResponse(platform=str(s.platform), handle=s.handle, url=s.url)
            for s in card.social_media
        ],
        confidence=card.confidence,
        is_complete=card.is_complete,
        crm=processor.generate_crm_data(card),
    )


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Return system health status."""
    return HealthResponse(
        status="healthy",
        version="1.0.0",
        tesseract_available=shutil.which("tesseract") is not None,
        gpu_available=torch.cuda.is_available(),
    )


@app.post("/ocr", response_model=OCRResponse)
async def ocr_document(
    file: Annotated[UploadFile, File(...)],
    mode: Annotated[DocumentMode, Query()] = DocumentMode.GENERIC,
) -> OCRResponse:
    """Recognize text, tables and structured data in an uploaded image.

    Args:
        file: Uploaded image file (PNG, JPEG, TIFF or BMP).
        mode: Document mode selecting preprocessing and extraction.

    Returns:
        OCR result with tables and, for business cards, the parsed card.
    """
    start_time = time.time()

    if file.content_type and file.content_type not in _ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type: {file.content_type}",
        )

    content = await file.read()
    image = cv2.imdecode(np.frombuffer(content, dtype=np.uint8), cv2.IMREAD_COLOR)
    if image is None:
        raise HTTPException(status_code=400, detail="Could not decode image")

    pipeline, card_processor = _get_components()
    try:
        result = await pipeline.perform_ocr(image, mode=mode)
    finally:
        pipeline.shutdown()

    structured = result.structured_data
    card = structured.business_card if structured else None

    return OCRResponse(
        success=True,
        document_id=str(uuid.uuid4()),
        document_type=str(result.document_type),
        raw_text=result.raw_text,
        confidence=result.confidence,
        tables=[
            TableResponse(
                title=t.title, headers=t.headers, rows=t.rows, confidence=t.confidence
            )
            for t in result.detected_tables
        ],
        business_card=_card_response(card, card_processor) if card else None,
        summary=structured.summary if structured else None,
        tags=structured.tags if structured else [],
        processing_hints=result.document_type.processing_hints,
        processing_time_ms=(time.time() - start_time) * 1000,
    )


@app.post("/business-card", response_model=BusinessCardResponse)
async def extract_business_card(request: BusinessCardRequest) -> BusinessCardResponse:
    """Parse a business card from already recognized text.

    Args:
        request: Recognized card text.

    Returns:
        Parsed card with its CRM export record.
    """
    _, card_processor = _get_components()
    card = card_processor.detect_business_card(request.text)
    if card is None:
        raise HTTPException(status_code=404, detail="No business card detected")
    return _card_response(card, card_processor)
