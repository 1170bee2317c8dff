"""Tests for structured text extraction."""

from decimal import Decimal

import pytest

from src.extraction.structured import (
    ExtractionOptions,
    StructuredTextExtractor,
    analyze_layout,
    extract_currencies,
)
from src.ocr.models import BoundingBox, DocumentType, TextBlock

_INVOICE = "INVOICE #123\nBill To: Acme\nDue Date: 01/15/2024\nAmount Due: $500.00"
_RECEIPT = "Corner Store\nSubtotal $4.00\nTax $0.40\nTotal $4.40\nThank you"
_LAYOUT_AND_ENTITIES = ExtractionOptions(analyze_layout=True, extract_entities=True)


def _blocks(text: str, confidence: float = 0.9) -> list[TextBlock]:
    return [
        TextBlock(line, BoundingBox(0.1, 0.1 * (i + 1), 0.5, 0.05), confidence)
        for i, line in enumerate(text.splitlines())
    ]


class FakeTagger:
    def __init__(self, tagged: list[tuple[str, bool]]) -> None:
        self.tagged = tagged

    def tag_personal_names(self, text: str) -> list[tuple[str, bool]]:
        return self.tagged


class TestExtractionOptions:
    def test_presets(self) -> None:
        assert ExtractionOptions.minimal() == ExtractionOptions()
        assert ExtractionOptions.business_card().detect_business_card
        assert not ExtractionOptions.business_card().analyze_layout

        full = ExtractionOptions.comprehensive()
        assert full.detect_business_card and full.analyze_layout
        assert full.extract_entities and full.extract_contact_info


class TestStructuredTextExtractor:
    """Tests for StructuredTextExtractor.extract."""

    def setup_method(self) -> None:
        self.extractor = StructuredTextExtractor()

    def test_business_card(self, techcorp_card: str) -> None:
        data = self.extractor.extract(
            techcorp_card, _blocks(techcorp_card), options=ExtractionOptions.business_card()
        )

        assert data.document_type == DocumentType.BUSINESS_CARD
        assert data.business_card is not None
        assert data.business_card.company == "TechCorp Solutions Inc"
        assert data.summary == (
            "Business Card - Contact: Senior Director | "
            "Company: TechCorp Solutions Inc | Phone: 555-0123 | "
            "Email: john@techcorp.com"
        )
        assert data.tags == [
            "business_card",
            "contact",
            "email",
            "networking",
            "phone",
            "techcorp solutions inc",
        ]
        assert data.processing_confidence == pytest.approx(0.9)

    def test_invoice(self) -> None:
        data = self.extractor.extract(_INVOICE, _blocks(_INVOICE))

        assert data.document_type == DocumentType.INVOICE
        assert data.business_card is None
        assert data.layout is not None
        assert data.entities.currencies[0].amount == Decimal("500.00")
        assert data.summary.startswith("Invoice")
        assert "billing" in data.tags

    def test_receipt(self) -> None:
        data = self.extractor.extract(
            _RECEIPT, _blocks(_RECEIPT), options=_LAYOUT_AND_ENTITIES
        )

        assert data.document_type == DocumentType.RECEIPT
        assert data.summary == "Receipt - Total: $4.40"
        assert {"expense", "purchase", "receipt"} <= set(data.tags)

    def test_generic_minimal(self) -> None:
        data = self.extractor.extract("Hello world", [], options=ExtractionOptions.minimal())

        assert data.document_type == DocumentType.GENERIC
        assert data.layout is None
        assert data.entities is None
        assert data.contact_info is not None
        assert data.processing_confidence == 0.5
        assert data.summary == "Document"
        assert data.tags == ["document", "generic"]

    def test_confidence_from_blocks_only(self) -> None:
        data = self.extractor.extract(
            "Hello world", _blocks("Hello world", 0.8), options=ExtractionOptions.minimal()
        )
        assert data.processing_confidence == pytest.approx(0.8)

    def test_classification_disabled(self, techcorp_card: str) -> None:
        data = self.extractor.extract(
            techcorp_card,
            [],
            options=ExtractionOptions(classify_document_type=False),
        )
        assert data.document_type == DocumentType.GENERIC
        assert data.business_card is None

    def test_contact_extraction_disabled(self, techcorp_card: str) -> None:
        data = self.extractor.extract(
            techcorp_card, [], options=ExtractionOptions(extract_contact_info=False)
        )
        assert data.contact_info is None
        assert data.business_card is not None

    def test_entities_group_tagged_people(self) -> None:
        tagger = FakeTagger(
            [
                ("Alice", True),
                ("Walker", True),
                ("met", False),
                ("Bob", True),
                ("and", False),
                ("Alice", True),
                ("Walker", True),
            ]
        )
        extractor = StructuredTextExtractor(name_tagger=tagger)
        entities = extractor.extract_entities("Alice Walker met Bob and Alice Walker")

        assert entities.people == ["Alice Walker", "Bob"]
        assert entities.confidence == pytest.approx(0.7)

    def test_entities_without_tagger(self) -> None:
        entities = self.extractor.extract_entities("Due 2024-03-01, $12.00")
        assert entities.people == []
        assert entities.confidence == pytest.approx(0.3)
        assert [d.raw for d in entities.dates] == ["2024-03-01"]
        assert [c.raw for c in entities.currencies] == ["$12.00"]


class TestClassification:
    def setup_method(self) -> None:
        self.extractor = StructuredTextExtractor()

    def test_document_types(self, techcorp_card: str) -> None:
        assert self.extractor.classify_document_type(techcorp_card) == (
            DocumentType.BUSINESS_CARD
        )
        assert self.extractor.classify_document_type(_INVOICE) == DocumentType.INVOICE
        assert self.extractor.classify_document_type(_RECEIPT) == DocumentType.RECEIPT
        assert self.extractor.classify_document_type("Dear reader") == (
            DocumentType.GENERIC
        )

    def test_single_keyword_is_not_enough(self) -> None:
        assert self.extractor.classify_document_type("Invoice attached") == (
            DocumentType.GENERIC
        )


class TestLayout:
    """Tests for layout analysis."""

    def test_structured_page(self) -> None:
        blocks = [
            TextBlock("QUARTERLY REPORT", BoundingBox(0.3, 0.05, 0.4, 0.05), 0.9),
            TextBlock("Overview:", BoundingBox(0.1, 0.15, 0.3, 0.04), 0.9),
            TextBlock("• First point", BoundingBox(0.1, 0.22, 0.5, 0.04), 0.9),
            TextBlock("Details:", BoundingBox(0.1, 0.3, 0.3, 0.04), 0.9),
            TextBlock("1. Step one", BoundingBox(0.1, 0.38, 0.5, 0.04), 0.9),
        ]
        layout = analyze_layout(blocks)

        assert layout.title == "QUARTERLY REPORT"
        assert layout.section_headers == ["QUARTERLY REPORT", "Overview:", "Details:"]
        assert layout.bullet_points == ["First point"]
        assert layout.numbered_items == ["Step one"]
        assert layout.is_structured
        assert layout.confidence == pytest.approx(0.9)

    def test_plain_text(self) -> None:
        blocks = [TextBlock("just some words here", BoundingBox(0.1, 0.1, 0.3, 0.05), 0.5)]
        layout = analyze_layout(blocks)

        assert layout.title == "just some words here"
        assert not layout.is_structured
        assert layout.confidence == pytest.approx(0.55)

    def test_no_blocks(self) -> None:
        layout = analyze_layout([])
        assert layout.title is None
        assert not layout.is_structured
        assert layout.confidence == pytest.approx(0.3)


class TestCurrencies:
    def test_currency_symbols_and_codes(self) -> None:
        amounts = extract_currencies("Total 12.50 USD and €3 and £4.99")
        assert [(a.currency, a.amount) for a in amounts] == [
            ("USD", Decimal("12.50")),
            ("EUR", Decimal("3")),
            ("GBP", Decimal("4.99")),
        ]
