"""OCR orchestration for captured document images.

Preprocesses an image according to its document mode, runs text
recognition, then hands the recognized blocks to table detection and
structured extraction. Every failure along the way degrades the result
instead of raising.
"""

import asyncio
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

import cv2
import numpy as np
from PIL import Image

from src.extraction.business_card import BusinessCardProcessor
from src.extraction.contact_extractor import ContactInfoExtractor
from src.extraction.name_tagger import TransformersNameTagger
from src.extraction.structured import (
    ExtractionOptions,
    StructuredExtractorProtocol,
    StructuredTextData,
    StructuredTextExtractor,
)
from src.ocr.completion import SingleResolutionFuture
from src.ocr.errors import ImageConversionError
from src.ocr.models import DocumentType, OCRResult, TableData, TextBlock
from src.ocr.modes import DocumentMode, profile_for
from src.ocr.table_detector import TableDetector, TableDetectorProtocol
from src.ocr.tesseract_engine import RecognitionConfig, TesseractEngine, TextRecognitionEngine
from src.preprocessing.pipeline import ImagePreprocessingOptions, ImagePreprocessor
from src.utils.config import AppConfig
from src.utils.logger import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[float], None]


def to_raster(image: np.ndarray | Image.Image) -> np.ndarray:
    """Convert an image into a raster the recognition engine accepts.

    Args:
        image: Numpy array (BGR or grayscale) or PIL image.

    Returns:
        Non-empty ``uint8`` array with two or three dimensions.

    Raises:
        ImageConversionError: If the image cannot be converted.
    """
    if isinstance(image, Image.Image):
        image = cv2.cvtColor(np.asarray(image.convert("RGB")), cv2.COLOR_RGB2BGR)
    if not isinstance(image, np.ndarray):
        raise ImageConversionError(f"Unsupported image type: {type(image).__name__}")
    if image.ndim not in (2, 3) or image.size == 0:
        raise ImageConversionError(f"Unsupported image shape: {image.shape}")
    if image.dtype != np.uint8:
        raise ImageConversionError(f"Unsupported image dtype: {image.dtype}")
    return image


def build_business_card_processor(config: AppConfig) -> BusinessCardProcessor:
    """Create a card processor, with the name tagger when it is enabled."""
    card_config = config.business_card
    tagger = None
    if card_config.use_name_tagger:
        tagger = TransformersNameTagger(
            model_name=card_config.name_tagger_model,
            min_score=card_config.name_tagger_min_score,
        )
    return BusinessCardProcessor(
        ContactInfoExtractor(),
        name_tagger=tagger,
        acceptance_threshold=card_config.acceptance_threshold,
    )


class OCRPipeline:
    """Turns document images into OCR results.

    Collaborators are injected so each stage can be replaced; the defaults
    use Tesseract, the alignment table detector and the built-in
    structured extractor.

    Args:
        preprocessor: Image conditioning stage.
        engine: Text recognition engine.
        table_detector: Table reconstruction from text blocks.
        extractor: Structured data extraction.
        recognition_config: Settings passed to the engine.
        executor: Worker pool for the engine call. A private pool is
            created lazily when omitted.
    """

    def __init__(
        self,
        preprocessor: ImagePreprocessor | None = None,
        engine: TextRecognitionEngine | None = None,
        table_detector: TableDetectorProtocol | None = None,
        extractor: StructuredExtractorProtocol | None = None,
        recognition_config: RecognitionConfig | None = None,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self.preprocessor = preprocessor or ImagePreprocessor()
        self.engine = engine or TesseractEngine()
        self.table_detector = table_detector or TableDetector()
        self.extractor = extractor or StructuredTextExtractor()
        self.recognition_config = recognition_config or RecognitionConfig()
        self._executor = executor

    @classmethod
    def from_config(cls, config: AppConfig) -> "OCRPipeline":
        """Build a pipeline with every stage configured from ``config``."""
        ocr = config.ocr
        card_processor = build_business_card_processor(config)
        return cls(
            preprocessor=ImagePreprocessor(config.preprocessing),
            engine=TesseractEngine(
                tesseract_cmd=ocr.tesseract_cmd,
                default_lang=ocr.languages[0] if ocr.languages else "eng",
                psm=ocr.psm,
            ),
            extractor=StructuredTextExtractor(
                card_processor.contact_extractor,
                card_processor,
                card_processor.name_tagger,
            ),
            recognition_config=RecognitionConfig(
                recognition_level=ocr.recognition_level,
                automatic_language_detection=ocr.automatic_language_detection,
                language_correction=ocr.language_correction,
                minimum_text_height=ocr.minimum_text_height,
                languages=tuple(ocr.languages),
            ),
        )

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ocr")
        return self._executor

    async def perform_ocr(
        self,
        image: np.ndarray | Image.Image,
        options: ImagePreprocessingOptions | None = None,
        mode: DocumentMode | DocumentType | str = DocumentMode.GENERIC,
        progress: ProgressCallback | None = None,
    ) -> OCRResult:
        """Recognize text in a document image.

        Args:
            image: Captured document image.
            options: Requested preprocessing steps; none when omitted.
                Business card mode replaces them with every step enabled.
            mode: Document mode selecting preprocessing and extraction.
            progress: Optional callback receiving values in ``[0, 1]``.

        Returns:
            OCR result. Unusable images and engine failures give an empty
            result rather than an exception.

        Raises:
            ValueError: If ``mode`` is an unknown mode name.
        """
        profile = profile_for(mode)
        effective = profile.preprocessing_options(
            options or ImagePreprocessingOptions.default()
        )

        self._report(progress, 0.1)
        try:
            raster = to_raster(image)
            processed = await self.preprocessor.preprocess(raster, effective)
            conditioned = to_raster(processed)
        except ImageConversionError as exc:
            logger.warning("Image conversion failed, returning empty result: %s", exc)
            return OCRResult.empty()

        blocks = await self._recognize(conditioned)
        self._report(progress, 0.5)

        raw_text = "\n".join(block.text for block in blocks).strip()
        confidence = (
            sum(block.confidence for block in blocks) / len(blocks) if blocks else 0.0
        )
        confidence = min(max(confidence, 0.0), 1.0)

        height, width = conditioned.shape[:2]
        tables = self._detect_tables(blocks, (width, height))
        structured = self._extract(raw_text, blocks, conditioned, profile.extraction)

        result = OCRResult(
            raw_text=raw_text,
            detected_tables=tables,
            confidence=confidence,
            document_type=(
                structured.document_type if structured else DocumentType.GENERIC
            ),
            structured_data=structured,
        )
        self._report(progress, 1.0)
        logger.info(
            "OCR complete: %d blocks, %d tables, confidence=%.2f, type=%s",
            len(blocks),
            len(tables),
            result.confidence,
            result.document_type,
        )
        return result

    async def perform_business_card_ocr(
        self, image: np.ndarray | Image.Image, progress: ProgressCallback | None = None
    ) -> OCRResult:
        return await self.perform_ocr(
            image,
            ImagePreprocessingOptions.business_card(),
            DocumentMode.BUSINESS_CARD,
            progress,
        )

    async def perform_receipt_ocr(
        self,
        image: np.ndarray | Image.Image,
        options: ImagePreprocessingOptions | None = None,
        progress: ProgressCallback | None = None,
    ) -> OCRResult:
        return await self.perform_ocr(
            image,
            options or ImagePreprocessingOptions.receipt(),
            DocumentMode.RECEIPT,
            progress,
        )

    async def _recognize(self, image: np.ndarray) -> list[TextBlock]:
        """Run the engine on a worker thread and await its single result."""
        loop = asyncio.get_running_loop()
        completion: SingleResolutionFuture[list[TextBlock]] = SingleResolutionFuture(
            loop, name="text recognition"
        )
        config = self.recognition_config

        def work() -> None:
            try:
                blocks = list(self.engine.recognize(image, config))
            except Exception as exc:
                logger.warning("Text recognition engine failed: %s", exc)
                blocks = []
            completion.resolve_threadsafe(blocks)

        self._get_executor().submit(work)
        return await completion

    def _detect_tables(
        self, blocks: list[TextBlock], image_size: tuple[int, int]
    ) -> list[TableData]:
        try:
            return self.table_detector.detect_tables(blocks, image_size)
        except Exception as exc:
            logger.warning("Table detection failed: %s", exc)
            return []

    def _extract(
        self,
        raw_text: str,
        blocks: list[TextBlock],
        image: np.ndarray,
        options: ExtractionOptions,
    ) -> StructuredTextData | None:
        try:
            return self.extractor.extract(raw_text, blocks, image, options)
        except Exception as exc:
            logger.warning("Structured extraction failed: %s", exc)
            return None

    @staticmethod
    def _report(progress: ProgressCallback | None, value: float) -> None:
        if progress is None:
            return
        try:
            progress(value)
        except Exception as exc:
            logger.debug("Progress callback raised: %s", exc)

    def shutdown(self) -> None:
        """Release worker pools owned by the pipeline."""
        self.preprocessor.shutdown()
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
