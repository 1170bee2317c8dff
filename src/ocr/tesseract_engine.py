"""Tesseract text recognition engine producing line-level text blocks.

Groups Tesseract word detections into lines with normalized bounding
boxes and confidences, honouring the recognition settings requested by
the OCR pipeline.
"""

from dataclasses import dataclass, field
from typing import Protocol

import numpy as np
import pytesseract
from PIL import Image

from src.ocr.errors import RecognitionEngineError
from src.ocr.models import BoundingBox, TextBlock
from src.utils.logger import get_logger

logger = get_logger(__name__)

# Tesseract OSD script names mapped to traineddata language codes.
_SCRIPT_LANGUAGES: dict[str, tuple[str, ...]] = {
    "Latin": ("eng", "fra", "deu", "spa", "ita", "por", "nld"),
    "Cyrillic": ("rus", "ukr", "bul", "srp"),
    "Greek": ("ell",),
    "Arabic": ("ara", "fas"),
    "Han": ("chi_sim", "chi_tra"),
    "Japanese": ("jpn",),
    "Hangul": ("kor",),
}


@dataclass(frozen=True)
class RecognitionConfig:
    """Settings for a single recognition request."""

    recognition_level: str = "accurate"
    automatic_language_detection: bool = True
    language_correction: bool = True
    minimum_text_height: float = 0.01
    languages: tuple[str, ...] = field(default=("eng",))


class TextRecognitionEngine(Protocol):
    """Anything that turns an image into text blocks.

    Implementations report failure only by returning an empty list.
    """

    def recognize(
        self, image: np.ndarray, config: RecognitionConfig
    ) -> list[TextBlock]: ...


class TesseractEngine:
    """Wrapper around Tesseract OCR for document text recognition.

    Args:
        tesseract_cmd: Path to the Tesseract executable.
            If ``None``, uses the system default.
        default_lang: Language used when language detection fails.
        psm: Tesseract page segmentation mode.
    """

    def __init__(
        self,
        tesseract_cmd: str | None = None,
        default_lang: str = "eng",
        psm: int = 3,
    ) -> None:
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self.default_lang = default_lang
        self.psm = psm

    def detect_script(self, image: np.ndarray) -> str | None:
        """Detect the writing script of the text in an image.

        Args:
            image: Input image as a numpy array.

        Returns:
            Detected script name, or ``None`` on failure.
        """
        try:
            osd = pytesseract.image_to_osd(
                Image.fromarray(image), output_type=pytesseract.Output.DICT
            )
        except pytesseract.TesseractError as exc:
            logger.warning("Script detection failed: %s", exc)
            return None
        script = osd.get("script")
        logger.debug("Detected script: %s", script)
        return script

    def resolve_language(self, image: np.ndarray, config: RecognitionConfig) -> str:
        """Choose the Tesseract language string for an image.

        Recognition is restricted to ``config.languages``. With automatic
        detection and more than one allowed language, the detected script
        narrows the set down.

        Args:
            image: Input image as a numpy array.
            config: Recognition settings.

        Returns:
            Language string such as ``"eng"`` or ``"eng+deu"``.
        """
        languages = list(config.languages) or [self.default_lang]
        if config.automatic_language_detection and len(languages) > 1:
            script = self.detect_script(image)
            candidates = _SCRIPT_LANGUAGES.get(script or "", ())
            matching = [lang for lang in languages if lang in candidates]
            if matching:
                languages = matching
        return "+".join(languages)

    def build_tesseract_config(self, config: RecognitionConfig) -> str:
        """Translate recognition settings into Tesseract CLI options."""
        options = [f"--psm {self.psm}"]
        if config.recognition_level == "accurate":
            options.append("--oem 1")
        if not config.language_correction:
            options.append("-c load_system_dawg=0 -c load_freq_dawg=0")
        return " ".join(options)

    def recognize(
        self, image: np.ndarray, config: RecognitionConfig
    ) -> list[TextBlock]:
        """Recognize text lines in an image.

        Args:
            image: Input image as a numpy array.
            config: Recognition settings.

        Returns:
            Text blocks in reading order, or an empty list on failure.
        """
        try:
            data = self._run_tesseract(image, config)
        except RecognitionEngineError as exc:
            logger.warning("Text recognition failed: %s", exc)
            return []

        height, width = image.shape[:2]
        blocks = self._group_lines(data, width, height, config.minimum_text_height)
        logger.info("OCR recognized %d text lines", len(blocks))
        return blocks

    def _run_tesseract(self, image: np.ndarray, config: RecognitionConfig) -> dict:
        """Call Tesseract for word-level data.

        Raises:
            RecognitionEngineError: If Tesseract is missing or fails.
        """
        lang = self.resolve_language(image, config)
        try:
            return pytesseract.image_to_data(
                Image.fromarray(image),
                lang=lang,
                config=self.build_tesseract_config(config),
                output_type=pytesseract.Output.DICT,
            )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as exc:
            raise RecognitionEngineError(str(exc)) from exc

    def _group_lines(
        self,
        data: dict,
        width: int,
        height: int,
        minimum_text_height: float,
    ) -> list[TextBlock]:
        """Merge Tesseract word rows into line-level text blocks.

        Args:
            data: ``image_to_data`` dictionary output.
            width: Image width in pixels.
            height: Image height in pixels.
            minimum_text_height: Smallest line height kept, as a fraction
                of the image height.

        Returns:
            Line blocks in Tesseract's reading order.
        """
        if width <= 0 or height <= 0:
            return []

        lines: dict[tuple[int, int, int], list[int]] = {}
        for i in range(len(data["text"])):
            if float(data["conf"][i]) > 0 and data["text"][i].strip():
                key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
                lines.setdefault(key, []).append(i)

        blocks: list[TextBlock] = []
        for indices in lines.values():
            left = min(data["left"][i] for i in indices)
            top = min(data["top"][i] for i in indices)
            right = max(data["left"][i] + data["width"][i] for i in indices)
            bottom = max(data["top"][i] + data["height"][i] for i in indices)

            if (bottom - top) / height < minimum_text_height:
                continue

            blocks.append(
                TextBlock(
                    text=" ".join(data["text"][i].strip() for i in indices),
                    bbox=BoundingBox(
                        x=left / width,
                        y=top / height,
                        width=(right - left) / width,
                        height=(bottom - top) / height,
                    ),
                    confidence=sum(float(data["conf"][i]) for i in indices)
                    / len(indices)
                    / 100.0,
                )
            )
        return blocks

