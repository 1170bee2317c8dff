"""Data types shared by the OCR engine, table detector and pipeline."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.extraction.structured import StructuredTextData


@dataclass(frozen=True)
class BoundingBox:
    """Rectangle in normalized [0, 1] image coordinates, origin top-left."""

    x: float
    y: float
    width: float
    height: float

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def max_y(self) -> float:
        return self.y + self.height

    def union(self, other: "BoundingBox") -> "BoundingBox":
        """Smallest box enclosing both boxes."""
        x = min(self.x, other.x)
        y = min(self.y, other.y)
        return BoundingBox(
            x, y, max(self.max_x, other.max_x) - x, max(self.max_y, other.max_y) - y
        )


@dataclass(frozen=True)
class TextBlock:
    """One recognized span of text."""

    text: str
    bbox: BoundingBox
    confidence: float


class DocumentType(StrEnum):
    """Document categories reported with OCR results."""

    GENERIC = "generic"
    BUSINESS_CARD = "business_card"
    RECEIPT = "receipt"
    INVOICE = "invoice"
    PRINTED_DOCUMENT = "printed_document"
    WHITEBOARD = "whiteboard"
    HANDWRITTEN = "handwritten"
    SCREENSHOT = "screenshot"
    PHOTO = "photo"
    UNKNOWN = "unknown"

    @property
    def processing_hints(self) -> list[str]:
        """Fields worth looking for in this kind of document."""
        return _PROCESSING_HINTS.get(self, [])


_PROCESSING_HINTS: dict[DocumentType, list[str]] = {
    DocumentType.BUSINESS_CARD: ["name", "title", "company", "contact", "email", "phone"],
    DocumentType.RECEIPT: ["item", "price", "total", "date", "tax", "payment"],
    DocumentType.INVOICE: ["invoice_number", "date", "total", "due_date", "vendor"],
}


@dataclass(frozen=True)
class TableData:
    """A table reconstructed from aligned text blocks."""

    headers: list[str]
    rows: list[list[str]]
    bbox: BoundingBox
    confidence: float
    title: str | None = None

    @property
    def is_valid(self) -> bool:
        return bool(self.headers) and bool(self.rows) and self.confidence > 0.3


@dataclass(frozen=True)
class OCRResult:
    """Complete OCR result for a captured document."""

    raw_text: str
    detected_tables: list[TableData] = field(default_factory=list)
    confidence: float = 0.0
    document_type: DocumentType = DocumentType.GENERIC
    structured_data: "StructuredTextData | None" = None

    @classmethod
    def empty(cls) -> "OCRResult":
        """The degraded result returned when nothing could be recognized."""
        return cls(raw_text="")
