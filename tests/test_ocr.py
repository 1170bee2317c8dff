"""Tests for the OCR engine, table detection and result types."""

import asyncio
import contextlib
import logging
from unittest.mock import patch

import numpy as np
import pytesseract

from src.ocr.completion import SingleResolutionFuture
from src.ocr.models import (
    BoundingBox,
    DocumentType,
    OCRResult,
    TableData,
    TextBlock,
)
from src.ocr.table_detector import TableDetector
from src.ocr.tesseract_engine import RecognitionConfig, TesseractEngine


def _tesseract_data() -> dict:
    """Word-level output for a 200x100 image with two lines."""
    return {
        "text": ["Hello", "World", "", "Test"],
        "conf": [95, 88, -1, 72],
        "left": [10, 70, 0, 10],
        "top": [10, 10, 0, 50],
        "width": [50, 50, 0, 40],
        "height": [20, 20, 0, 20],
        "block_num": [1, 1, 1, 2],
        "par_num": [1, 1, 1, 1],
        "line_num": [1, 1, 1, 1],
    }


def _block(text: str, x: float, y: float, confidence: float = 0.9) -> TextBlock:
    return TextBlock(text=text, bbox=BoundingBox(x, y, 0.2, 0.04), confidence=confidence)


class TestTesseractEngine:
    """Tests for the TesseractEngine class."""

    def setup_method(self) -> None:
        self.engine = TesseractEngine()
        self.image = np.zeros((100, 200), dtype=np.uint8)

    @patch("src.ocr.tesseract_engine.pytesseract")
    def test_groups_words_into_lines(self, mock_pytesseract) -> None:
        mock_pytesseract.image_to_data.return_value = _tesseract_data()

        blocks = self.engine.recognize(self.image, RecognitionConfig())

        assert [b.text for b in blocks] == ["Hello World", "Test"]
        first = blocks[0]
        assert first.bbox.x == 10 / 200
        assert first.bbox.y == 10 / 100
        assert first.bbox.width == 110 / 200
        assert first.bbox.height == 20 / 100
        assert abs(first.confidence - 0.915) < 1e-9
        assert abs(blocks[1].confidence - 0.72) < 1e-9

    @patch("src.ocr.tesseract_engine.pytesseract")
    def test_paragraphs_split_lines(self, mock_pytesseract) -> None:
        data = _tesseract_data()
        data["par_num"] = [1, 2, 1, 1]
        mock_pytesseract.image_to_data.return_value = data

        blocks = self.engine.recognize(self.image, RecognitionConfig())

        assert [b.text for b in blocks] == ["Hello", "World", "Test"]

    @patch("src.ocr.tesseract_engine.pytesseract")
    def test_minimum_text_height_filters_lines(self, mock_pytesseract) -> None:
        mock_pytesseract.image_to_data.return_value = _tesseract_data()

        blocks = self.engine.recognize(
            self.image, RecognitionConfig(minimum_text_height=0.5)
        )

        assert blocks == []

    @patch("src.ocr.tesseract_engine.pytesseract")
    def test_engine_failure_returns_empty(self, mock_pytesseract) -> None:
        mock_pytesseract.TesseractError = pytesseract.TesseractError
        mock_pytesseract.TesseractNotFoundError = pytesseract.TesseractNotFoundError
        mock_pytesseract.image_to_data.side_effect = pytesseract.TesseractNotFoundError()

        assert self.engine.recognize(self.image, RecognitionConfig()) == []

    @patch("src.ocr.tesseract_engine.pytesseract")
    def test_passes_language_and_options(self, mock_pytesseract) -> None:
        mock_pytesseract.image_to_data.return_value = _tesseract_data()

        self.engine.recognize(self.image, RecognitionConfig())

        kwargs = mock_pytesseract.image_to_data.call_args.kwargs
        assert kwargs["lang"] == "eng"
        assert kwargs["config"] == "--psm 3 --oem 1"

    def test_fast_recognition_without_correction(self) -> None:
        config = RecognitionConfig(recognition_level="fast", language_correction=False)
        options = self.engine.build_tesseract_config(config)
        assert "--oem" not in options
        assert "load_system_dawg=0" in options

    def test_resolve_language_narrows_by_script(self) -> None:
        config = RecognitionConfig(languages=("eng", "rus"))
        with patch.object(self.engine, "detect_script", return_value="Cyrillic"):
            assert self.engine.resolve_language(self.image, config) == "rus"

    def test_resolve_language_keeps_all_when_script_unknown(self) -> None:
        config = RecognitionConfig(languages=("eng", "rus"))
        with patch.object(self.engine, "detect_script", return_value=None):
            assert self.engine.resolve_language(self.image, config) == "eng+rus"

    def test_resolve_language_without_detection(self) -> None:
        config = RecognitionConfig(
            languages=("eng", "deu"), automatic_language_detection=False
        )
        with patch.object(self.engine, "detect_script") as mock_detect:
            assert self.engine.resolve_language(self.image, config) == "eng+deu"
        mock_detect.assert_not_called()

    @patch("src.ocr.tesseract_engine.pytesseract")
    def test_detect_script_failure(self, mock_pytesseract) -> None:
        mock_pytesseract.TesseractError = pytesseract.TesseractError
        mock_pytesseract.image_to_osd.side_effect = pytesseract.TesseractError(
            1, "Too few characters"
        )
        assert self.engine.detect_script(self.image) is None


class TestTableDetector:
    """Tests for table reconstruction from aligned blocks."""

    def setup_method(self) -> None:
        self.detector = TableDetector()

    def _grid(self, header_confidence: float = 0.9) -> list[TextBlock]:
        return [
            _block("Fruit Prices", 0.1, 0.1),
            _block("Item", 0.1, 0.2, header_confidence),
            _block("Price", 0.5, 0.2, header_confidence),
            _block("Apple", 0.1, 0.3),
            _block("1.00", 0.5, 0.3),
            _block("Pear", 0.1, 0.4),
            _block("2.00", 0.5, 0.4),
        ]

    def test_detects_aligned_table(self) -> None:
        tables = self.detector.detect_tables(self._grid(), (400, 300))

        assert len(tables) == 1
        table = tables[0]
        assert table.headers == ["Item", "Price"]
        assert table.rows == [["Apple", "1.00"], ["Pear", "2.00"]]
        assert table.title == "Fruit Prices"
        assert abs(table.confidence - 0.9) < 1e-9
        assert table.is_valid

    def test_missing_cell_padded(self) -> None:
        blocks = [
            _block("Item", 0.1, 0.2),
            _block("Qty", 0.4, 0.2),
            _block("Price", 0.7, 0.2),
            _block("Apple", 0.1, 0.3),
            _block("2", 0.4, 0.3),
            _block("1.00", 0.7, 0.3),
            _block("Pear", 0.1, 0.4),
            _block("3", 0.4, 0.4),
        ]
        tables = self.detector.detect_tables(blocks, (400, 300))
        assert tables[0].rows == [["Apple", "2", "1.00"], ["Pear", "3", ""]]
        assert tables[0].title is None

    def test_low_confidence_table_dropped(self) -> None:
        assert self.detector.detect_tables(self._grid(0.3), (400, 300)) == []

    def test_degenerate_image_size(self) -> None:
        assert self.detector.detect_tables(self._grid(), (0, 300)) == []
        assert self.detector.detect_tables(self._grid(), (400, -1)) == []

    def test_too_few_blocks(self) -> None:
        assert self.detector.detect_tables(self._grid()[:3], (400, 300)) == []

    def test_single_column_text_is_not_a_table(self) -> None:
        blocks = [_block(f"Line {i}", 0.1, 0.1 * i) for i in range(1, 6)]
        assert self.detector.detect_tables(blocks, (400, 300)) == []


class TestModels:
    """Tests for OCR result types."""

    def test_table_validity_threshold(self) -> None:
        bbox = BoundingBox(0, 0, 1, 1)
        assert not TableData(["A"], [["1"]], bbox, 0.3).is_valid
        assert TableData(["A"], [["1"]], bbox, 0.31).is_valid

    def test_table_without_rows_invalid(self) -> None:
        assert not TableData(["A"], [], BoundingBox(0, 0, 1, 1), 0.9).is_valid
        assert not TableData([], [["1"]], BoundingBox(0, 0, 1, 1), 0.9).is_valid

    def test_bounding_box_union(self) -> None:
        merged = BoundingBox(0.1, 0.2, 0.2, 0.1).union(BoundingBox(0.5, 0.1, 0.1, 0.1))
        assert abs(merged.x - 0.1) < 1e-9
        assert abs(merged.y - 0.1) < 1e-9
        assert abs(merged.max_x - 0.6) < 1e-9
        assert abs(merged.max_y - 0.3) < 1e-9

    def test_empty_result(self) -> None:
        result = OCRResult.empty()
        assert result.raw_text == ""
        assert result.detected_tables == []
        assert result.confidence == 0.0
        assert result.document_type == DocumentType.GENERIC
        assert result.structured_data is None

    def test_processing_hints(self) -> None:
        assert "phone" in DocumentType.BUSINESS_CARD.processing_hints
        assert "total" in DocumentType.RECEIPT.processing_hints
        assert DocumentType.PHOTO.processing_hints == []


class TestSingleResolutionFuture:
    """Tests for the exactly-once completion bridge."""

    def test_first_resolution_wins(self) -> None:
        async def scenario() -> tuple[bool, bool, list[int]]:
            future: SingleResolutionFuture[list[int]] = SingleResolutionFuture(
                asyncio.get_running_loop(), name="recognition"
            )
            first = future.resolve([1])
            second = future.resolve([2])
            return first, second, await future

        first, second, value = asyncio.run(scenario())
        assert first is True
        assert second is False
        assert value == [1]

    def test_resolve_from_worker_thread(self) -> None:
        async def scenario() -> tuple[str, str, bool]:
            loop = asyncio.get_running_loop()
            future: SingleResolutionFuture[str] = SingleResolutionFuture(loop)
            assert not future.done

            def worker() -> None:
                future.resolve_threadsafe("first")
                future.resolve_threadsafe("second")

            await loop.run_in_executor(None, worker)
            value = await future
            await asyncio.sleep(0)
            return value, await future, future.done

        value, again, done = asyncio.run(scenario())
        assert value == "first"
        assert again == "first"
        assert done

    def test_resolution_after_cancellation(self, caplog) -> None:
        async def scenario() -> bool:
            future: SingleResolutionFuture[str] = SingleResolutionFuture(
                asyncio.get_running_loop(), name="recognition"
            )

            async def waiter() -> str:
                return await future

            task = asyncio.create_task(waiter())
            await asyncio.sleep(0)
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            return future.resolve("late")

        with caplog.at_level(logging.INFO, logger="src.ocr.completion"):
            resolved = asyncio.run(scenario())

        assert resolved is False
        assert "cancelled recognition" in caplog.text
        assert "repeated resolution" not in caplog.text
