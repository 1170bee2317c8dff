"""Tests for the FastAPI REST endpoints."""

import io
from unittest.mock import AsyncMock, MagicMock, patch

import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from src.api.app import app
from src.extraction.business_card import BusinessCardProcessor
from src.extraction.structured import ExtractionOptions, StructuredTextExtractor
from src.ocr.models import BoundingBox, OCRResult, TableData
from src.ocr.modes import DocumentMode


@pytest.fixture
def client() -> TestClient:
    """Create a FastAPI test client."""
    return TestClient(app)


def _make_test_image_bytes() -> bytes:
    """Create a minimal PNG image as bytes."""
    img = Image.fromarray(np.zeros((100, 200, 3), dtype=np.uint8))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def _components(result: OCRResult) -> tuple[MagicMock, BusinessCardProcessor]:
    pipeline = MagicMock()
    pipeline.perform_ocr = AsyncMock(return_value=result)
    return pipeline, BusinessCardProcessor()


class TestHealthEndpoint:
    """Tests for the /health endpoint."""

    def test_health_returns_ok(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"
        assert isinstance(data["tesseract_available"], bool)
        assert isinstance(data["gpu_available"], bool)


class TestOCREndpoint:
    """Tests for the /ocr endpoint."""

    @patch("src.api.app._get_components")
    def test_ocr_document(self, mock_components: MagicMock, client: TestClient) -> None:
        table = TableData(
            headers=["Item", "Price"],
            rows=[["Apple", "1.00"]],
            bbox=BoundingBox(0.1, 0.2, 0.6, 0.2),
            confidence=0.9,
            title="Prices",
        )
        pipeline, processor = _components(
            OCRResult(raw_text="Item Price", detected_tables=[table], confidence=0.85)
        )
        mock_components.return_value = (pipeline, processor)

        response = client.post(
            "/ocr",
            files={"file": ("doc.png", _make_test_image_bytes(), "image/png")},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["raw_text"] == "Item Price"
        assert data["document_type"] == "generic"
        assert data["tables"][0]["title"] == "Prices"
        assert data["tables"][0]["rows"] == [["Apple", "1.00"]]
        assert data["business_card"] is None
        assert data["processing_hints"] == []
        assert data["processing_time_ms"] >= 0
        pipeline.shutdown.assert_called_once()

    @patch("src.api.app._get_components")
    def test_business_card_mode(
        self, mock_components: MagicMock, client: TestClient, techcorp_card: str
    ) -> None:
        structured = StructuredTextExtractor().extract(
            techcorp_card, [], options=ExtractionOptions.business_card()
        )
        pipeline, processor = _components(
            OCRResult(
                raw_text=techcorp_card,
                confidence=0.9,
                document_type=structured.document_type,
                structured_data=structured,
            )
        )
        mock_components.return_value = (pipeline, processor)

        response = client.post(
            "/ocr?mode=business_card",
            files={"file": ("card.png", _make_test_image_bytes(), "image/png")},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["document_type"] == "business_card"
        card = data["business_card"]
        assert card["company"] == "TechCorp Solutions Inc"
        assert card["phone_numbers"] == ["555-0123"]
        assert card["crm"]["email"] == "john@techcorp.com"
        assert data["summary"].startswith("Business Card")
        assert "phone" in data["processing_hints"]
        mode = pipeline.perform_ocr.call_args.kwargs["mode"]
        assert mode == DocumentMode.BUSINESS_CARD

    def test_unsupported_content_type(self, client: TestClient) -> None:
        response = client.post(
            "/ocr",
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )
        assert response.status_code == 400
        assert "Unsupported file type" in response.json()["detail"]

    def test_undecodable_image(self, client: TestClient) -> None:
        response = client.post(
            "/ocr",
            files={"file": ("doc.png", b"not really a png", "image/png")},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Could not decode image"

    def test_invalid_mode(self, client: TestClient) -> None:
        response = client.post(
            "/ocr?mode=passport",
            files={"file": ("doc.png", _make_test_image_bytes(), "image/png")},
        )
        assert response.status_code == 422


class TestBusinessCardEndpoint:
    """Tests for the /business-card endpoint."""

    @patch("src.api.app._get_components")
    def test_extract_from_text(
        self, mock_components: MagicMock, client: TestClient, full_card: str
    ) -> None:
        mock_components.return_value = (MagicMock(), BusinessCardProcessor())

        response = client.post("/business-card", json={"text": full_card})

        assert response.status_code == 200
        data = response.json()
        assert data["name"]["first_name"] == "Jane"
        assert data["title"] == "Senior Engineer"
        assert data["company"] == "Globex Corporation"
        assert data["emails"] == ["jane@globex.com"]
        assert data["social_media"][0]["platform"] == "linkedin"
        assert data["is_complete"] is True
        assert data["crm"]["twitter"] == "jdoe"

    @patch("src.api.app._get_components")
    def test_no_card_detected(self, mock_components: MagicMock, client: TestClient) -> None:
        mock_components.return_value = (MagicMock(), BusinessCardProcessor())

        response = client.post("/business-card", json={"text": "Just a note"})

        assert response.status_code == 404
        assert response.json()["detail"] == "No business card detected"

    def test_empty_text_rejected(self, client: TestClient) -> None:
        response = client.post("/business-card", json={"text": ""})
        assert response.status_code == 422
