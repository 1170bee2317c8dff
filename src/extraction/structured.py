"""Structured data extraction from recognized document text.

Combines contact extraction, business card detection, keyword document
classification, light layout analysis and entity extraction into one
:class:`StructuredTextData` record per document.
"""

import re
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from typing import Protocol

import numpy as np

from src.extraction.business_card import BusinessCardProcessor, LinguisticTagger
from src.extraction.contact_extractor import ContactExtractorProtocol, ContactInfoExtractor
from src.extraction.models import BusinessCardData, ContactInfo, DateData
from src.ocr.models import DocumentType, TextBlock
from src.utils.logger import get_logger

logger = get_logger(__name__)

_INVOICE_KEYWORDS = (
    "invoice",
    "bill to",
    "due date",
    "amount due",
    "payment terms",
    "remit",
)
_RECEIPT_KEYWORDS = (
    "receipt",
    "subtotal",
    "total",
    "tax",
    "cash",
    "change",
    "visa",
    "mastercard",
    "thank you",
)
_MIN_KEYWORD_HITS = 2

_BULLET_PREFIXES = ("•", "◦", "▪", "-", "*", "·")
_NUMBERED_PATTERN = re.compile(r"^\s*(\d+)[.)]\s+(\S.*)$")

_CURRENCY_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\$(\d+(?:\.\d{2})?)"), "USD"),
    (re.compile(r"(\d+(?:\.\d{2})?)\s*USD"), "USD"),
    (re.compile(r"€(\d+(?:\.\d{2})?)"), "EUR"),
    (re.compile(r"£(\d+(?:\.\d{2})?)"), "GBP"),
]

_DOCUMENT_TAGS: dict[DocumentType, tuple[str, ...]] = {
    DocumentType.BUSINESS_CARD: ("networking", "contact"),
    DocumentType.RECEIPT: ("expense", "purchase"),
    DocumentType.INVOICE: ("expense", "billing"),
}
_MAX_TAGS = 8


@dataclass(frozen=True)
class ExtractionOptions:
    """Flags selecting which structured extraction passes run."""

    extract_contact_info: bool = True
    detect_business_card: bool = False
    analyze_layout: bool = False
    extract_entities: bool = False
    classify_document_type: bool = True

    @classmethod
    def business_card(cls) -> "ExtractionOptions":
        return cls(detect_business_card=True)

    @classmethod
    def comprehensive(cls) -> "ExtractionOptions":
        return cls(detect_business_card=True, analyze_layout=True, extract_entities=True)

    @classmethod
    def minimal(cls) -> "ExtractionOptions":
        return cls()


@dataclass(frozen=True)
class CurrencyAmount:
    raw: str
    amount: Decimal
    currency: str
    confidence: float = 0.9


@dataclass(frozen=True)
class DocumentLayout:
    """Coarse layout features of a page of text blocks."""

    title: str | None
    section_headers: list[str]
    bullet_points: list[str]
    numbered_items: list[str]
    is_structured: bool
    confidence: float


@dataclass(frozen=True)
class ExtractedEntities:
    people: list[str]
    dates: list[DateData]
    currencies: list[CurrencyAmount]
    confidence: float


@dataclass(frozen=True)
class StructuredTextData:
    """Everything extracted from a document beyond its raw text."""

    document_type: DocumentType
    contact_info: ContactInfo | None = None
    business_card: BusinessCardData | None = None
    layout: DocumentLayout | None = None
    entities: ExtractedEntities | None = None
    processing_confidence: float = 0.5
    summary: str | None = None
    tags: list[str] = field(default_factory=list)


class StructuredExtractorProtocol(Protocol):
    def extract(
        self,
        raw_text: str,
        text_blocks: list[TextBlock],
        image: np.ndarray | None = None,
        options: ExtractionOptions | None = None,
    ) -> StructuredTextData: ...


class StructuredTextExtractor:
    """Runs the structured extraction passes selected by the options.

    Args:
        contact_extractor: Extractor for phones, emails, addresses and URLs.
        card_processor: Business card detector. Built around
            ``contact_extractor`` when omitted.
        name_tagger: Optional tagger used for people in entity extraction.
    """

    def __init__(
        self,
        contact_extractor: ContactExtractorProtocol | None = None,
        card_processor: BusinessCardProcessor | None = None,
        name_tagger: LinguisticTagger | None = None,
    ) -> None:
        self.contact_extractor = contact_extractor or ContactInfoExtractor()
        self.card_processor = card_processor or BusinessCardProcessor(
            self.contact_extractor, name_tagger
        )
        self.name_tagger = name_tagger

    def extract(
        self,
        raw_text: str,
        text_blocks: list[TextBlock],
        image: np.ndarray | None = None,
        options: ExtractionOptions | None = None,
    ) -> StructuredTextData:
        """Extract structured data from recognized text.

        Args:
            raw_text: Recognized text, one line per text block.
            text_blocks: Recognized blocks with positions and confidences.
            image: Conditioned source image, passed on to card detection.
            options: Passes to run; comprehensive when omitted.

        Returns:
            Structured record for the document.
        """
        options = options or ExtractionOptions.comprehensive()

        document_type = (
            self.classify_document_type(raw_text)
            if options.classify_document_type
            else DocumentType.GENERIC
        )

        contact_info = (
            self.contact_extractor.extract(raw_text)
            if options.extract_contact_info
            else None
        )

        business_card = None
        if options.detect_business_card or document_type == DocumentType.BUSINESS_CARD:
            business_card = self.card_processor.detect_business_card(raw_text, image)

        layout = analyze_layout(text_blocks) if options.analyze_layout else None
        entities = self.extract_entities(raw_text) if options.extract_entities else None

        data = StructuredTextData(
            document_type=document_type,
            contact_info=contact_info,
            business_card=business_card,
            layout=layout,
            entities=entities,
            processing_confidence=_overall_confidence(
                text_blocks, business_card, layout, entities
            ),
        )
        data = replace(data, summary=generate_summary(data), tags=generate_tags(data))
        logger.info(
            "Structured extraction: type=%s, confidence=%.2f",
            data.document_type,
            data.processing_confidence,
        )
        return data

    def classify_document_type(self, text: str) -> DocumentType:
        """Classify a document from its text by keyword evidence."""
        if self.card_processor.is_likely_business_card(text):
            return DocumentType.BUSINESS_CARD

        lowered = text.lower()
        if sum(k in lowered for k in _INVOICE_KEYWORDS) >= _MIN_KEYWORD_HITS:
            return DocumentType.INVOICE
        if sum(k in lowered for k in _RECEIPT_KEYWORDS) >= _MIN_KEYWORD_HITS:
            return DocumentType.RECEIPT
        return DocumentType.GENERIC

    def extract_entities(self, text: str) -> ExtractedEntities:
        people = self._tag_people(text)
        dates = self.contact_extractor.extract(text).dates
        return ExtractedEntities(
            people=people,
            dates=dates,
            currencies=extract_currencies(text),
            confidence=_entity_confidence(len(people)),
        )

    def _tag_people(self, text: str) -> list[str]:
        """Group runs of tagged name tokens into distinct names."""
        if self.name_tagger is None:
            return []

        people: list[str] = []
        current: list[str] = []
        for token, is_name in [*self.name_tagger.tag_personal_names(text), ("", False)]:
            if is_name:
                current.append(token)
                continue
            if current:
                name = " ".join(current)
                if name not in people:
                    people.append(name)
                current = []
        return people


def extract_currencies(text: str) -> list[CurrencyAmount]:
    amounts: list[CurrencyAmount] = []
    for pattern, currency in _CURRENCY_PATTERNS:
        for match in pattern.finditer(text):
            try:
                amount = Decimal(match.group(1))
            except InvalidOperation:
                continue
            amounts.append(CurrencyAmount(match.group(0), amount, currency))
    return amounts


def analyze_layout(text_blocks: list[TextBlock]) -> DocumentLayout:
    """Find the title, section headers and lists of a page.

    Args:
        text_blocks: Recognized blocks with normalized boxes.

    Returns:
        Layout summary; a page scoring three or more structure points
        counts as structured.
    """
    blocks = sorted(text_blocks, key=lambda b: (round(b.bbox.y / 0.02), b.bbox.x))
    texts = [b.text.strip() for b in blocks]

    headers = [t for t in texts if _is_section_header(t)]
    bullets: list[str] = []
    for text in texts:
        prefix = next((p for p in _BULLET_PREFIXES if text.startswith(p)), None)
        if prefix and text[len(prefix) :].strip():
            bullets.append(text[len(prefix) :].strip())
    numbered = [m.group(2) for t in texts if (m := _NUMBERED_PATTERN.match(t))]
    title = _detect_title(blocks)

    score = (
        (1 if title else 0)
        + (2 if len(headers) >= 2 else 0)
        + (1 if bullets else 0)
        + (1 if numbered else 0)
    )
    is_structured = score >= 3

    mean_ocr = (
        sum(b.confidence for b in text_blocks) / len(text_blocks) if text_blocks else 0.0
    )
    confidence = min(((0.9 if is_structured else 0.6) + mean_ocr) / 2, 1.0)

    return DocumentLayout(
        title=title,
        section_headers=headers,
        bullet_points=bullets,
        numbered_items=numbered,
        is_structured=is_structured,
        confidence=confidence,
    )


def _is_upper_text(text: str) -> bool:
    letters = [ch for ch in text if ch.isalpha()]
    return bool(letters) and all(ch.isupper() for ch in letters)


def _is_section_header(text: str) -> bool:
    words = text.split()
    if not words:
        return False
    if _is_upper_text(text) and len(words) <= 5:
        return True
    return text.endswith(":") and len(words) <= 6


def _detect_title(blocks: list[TextBlock]) -> str | None:
    for block in blocks[:3]:
        text = block.text.strip()
        words = text.split()
        if not words:
            continue
        centered = 0.3 < block.bbox.x + block.bbox.width / 2 < 0.7
        short = len(words) <= 10
        contact = "@" in text or "phone" in text.lower()
        capitalized = sum(1 for w in words if w[0].isupper()) >= len(words) / 2
        if (centered and short and not contact and capitalized) or (
            short and _is_upper_text(text)
        ):
            return text

    if blocks:
        candidate = blocks[0].text.strip()
        if 3 < len(candidate) < 100 and "@" not in candidate:
            return candidate
    return None


def _entity_confidence(count: int) -> float:
    if count == 0:
        return 0.3
    if count >= 5:
        return 0.9
    return 0.5 + count * 0.1


def _overall_confidence(
    text_blocks: list[TextBlock],
    business_card: BusinessCardData | None,
    layout: DocumentLayout | None,
    entities: ExtractedEntities | None,
) -> float:
    """Average the confidences of whichever passes produced a result."""
    scores: list[float] = []
    if text_blocks:
        scores.append(sum(b.confidence for b in text_blocks) / len(text_blocks))
    if business_card is not None:
        scores.append(business_card.confidence)
    if layout is not None:
        scores.append(layout.confidence)
    if entities is not None:
        scores.append(entities.confidence)
    return sum(scores) / len(scores) if scores else 0.5


def generate_summary(data: StructuredTextData) -> str:
    """One-line human readable description of the document."""
    card = data.business_card
    if data.document_type == DocumentType.BUSINESS_CARD and card is not None:
        parts = []
        if card.name:
            parts.append(f"Contact: {card.name.full_name}")
        if card.title:
            parts.append(f"Title: {card.title}")
        if card.company:
            parts.append(f"Company: {card.company}")
        if card.contact_info.phone_numbers:
            parts.append(f"Phone: {card.contact_info.phone_numbers[0].formatted}")
        if card.contact_info.email_addresses:
            parts.append(f"Email: {card.contact_info.email_addresses[0].address}")
        return "Business Card - " + " | ".join(parts)

    if data.document_type == DocumentType.RECEIPT:
        if data.entities and data.entities.currencies:
            top = max(data.entities.currencies, key=lambda c: c.amount)
            return f"Receipt - Total: {top.raw}"
        return "Receipt"

    label = "Invoice" if data.document_type == DocumentType.INVOICE else "Document"
    if data.layout and data.layout.title:
        return f"{label} - {data.layout.title}"
    return label


def generate_tags(data: StructuredTextData) -> list[str]:
    """Search tags for the document, at most eight, sorted."""
    tags = {str(data.document_type)}

    if data.entities:
        tags.update(person.lower() for person in data.entities.people)

    info = data.contact_info
    if info:
        if info.phone_numbers:
            tags.add("phone")
        if info.email_addresses:
            tags.add("email")
        if info.addresses:
            tags.add("address")

    tags.update(_DOCUMENT_TAGS.get(data.document_type, ("document",)))
    if data.business_card and data.business_card.company:
        tags.add(data.business_card.company.lower())

    return sorted(tags)[:_MAX_TAGS]
