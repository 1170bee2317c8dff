"""Per-mode processing profiles.

Every choice that depends on the kind of document being scanned lives in
one table, so preprocessing, recognition and extraction never disagree.
"""

from dataclasses import dataclass
from enum import StrEnum

from src.extraction.structured import ExtractionOptions
from src.ocr.models import DocumentType
from src.preprocessing.pipeline import (
    ImagePreprocessingOptions,
    enhance_options_for_business_card,
)


class DocumentMode(StrEnum):
    """Processing modes accepted by the OCR pipeline."""

    GENERIC = "generic"
    BUSINESS_CARD = "business_card"
    RECEIPT = "receipt"


@dataclass(frozen=True)
class ModeProfile:
    """Preprocessing and extraction settings for one mode.

    Attributes:
        force_business_card_preset: Replace caller options with every
            preprocessing step enabled.
        extraction: Structured extraction passes to run.
    """

    force_business_card_preset: bool
    extraction: ExtractionOptions

    def preprocessing_options(
        self, requested: ImagePreprocessingOptions
    ) -> ImagePreprocessingOptions:
        if self.force_business_card_preset:
            return enhance_options_for_business_card(requested)
        return requested


MODE_PROFILES: dict[DocumentMode, ModeProfile] = {
    DocumentMode.GENERIC: ModeProfile(False, ExtractionOptions.comprehensive()),
    DocumentMode.BUSINESS_CARD: ModeProfile(True, ExtractionOptions.business_card()),
    DocumentMode.RECEIPT: ModeProfile(False, ExtractionOptions.minimal()),
}

_DOCUMENT_TYPE_MODES: dict[DocumentType, DocumentMode] = {
    DocumentType.BUSINESS_CARD: DocumentMode.BUSINESS_CARD,
    DocumentType.RECEIPT: DocumentMode.RECEIPT,
}


def resolve_mode(mode: DocumentMode | DocumentType | str) -> DocumentMode:
    """Normalize a mode, document type or mode name to a DocumentMode.

    Document types without a dedicated mode map to ``GENERIC``.

    Raises:
        ValueError: If ``mode`` is a string naming no known mode.
    """
    if isinstance(mode, DocumentMode):
        return mode
    if isinstance(mode, DocumentType):
        return _DOCUMENT_TYPE_MODES.get(mode, DocumentMode.GENERIC)
    try:
        return DocumentMode(mode)
    except ValueError:
        valid = ", ".join(m.value for m in DocumentMode)
        raise ValueError(
            f"Unknown document mode: {mode!r}. Use one of: {valid}"
        ) from None


def profile_for(mode: DocumentMode | DocumentType | str) -> ModeProfile:
    return MODE_PROFILES[resolve_mode(mode)]
