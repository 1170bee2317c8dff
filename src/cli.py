"""Command-line interface for document OCR and business card extraction.

Provides subcommands for recognizing a single document image and for
turning a business card (image or text) into a CRM record.
"""

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any

import cv2

from src.extraction.models import BusinessCardData
from src.ocr.models import OCRResult
from src.ocr.modes import DocumentMode
from src.ocr.pipeline import OCRPipeline, build_business_card_processor
from src.utils.config import load_config
from src.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def result_to_dict(result: OCRResult) -> dict[str, Any]:
    """Convert an OCR result into JSON-friendly primitives.

    Args:
        result: OCR result to convert.

    Returns:
        Nested dictionary mirroring the result's fields, plus the
        fields worth checking for its document type.
    """
    data = json.loads(json.dumps(asdict(result), default=str))
    data["processing_hints"] = result.document_type.processing_hints
    return data


def _write_output(payload: dict[str, Any], output: Path | None) -> None:
    output_str = json.dumps(payload, indent=2, default=str)
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(output_str)
        print(f"Output written to {output}")
    else:
        print(output_str)


def run_ocr(image_path: Path, mode: DocumentMode = DocumentMode.GENERIC) -> OCRResult:
    """Run the OCR pipeline on an image file.

    Args:
        image_path: Path to the document image.
        mode: Document mode selecting preprocessing and extraction.

    Returns:
        OCR result for the image.

    Raises:
        ValueError: If the file cannot be read as an image.
    """
    image = cv2.imread(str(image_path))
    if image is None:
        raise ValueError(f"Could not read image: {image_path}")

    pipeline = OCRPipeline.from_config(load_config())
    try:
        return asyncio.run(pipeline.perform_ocr(image, mode=mode))
    finally:
        pipeline.shutdown()


def scan_business_card(
    image_path: Path | None = None, text: str | None = None
) -> dict[str, Any] | None:
    """Extract a CRM record from a business card image or its text.

    Args:
        image_path: Card image to recognize first.
        text: Already recognized card text.

    Returns:
        CRM record, or ``None`` when no business card was detected.
    """
    config = load_config()
    processor = build_business_card_processor(config)

    card: BusinessCardData | None
    if text is not None:
        card = processor.detect_business_card(text)
    else:
        if image_path is None:
            raise ValueError("Either image_path or text is required")
        result = run_ocr(image_path, DocumentMode.BUSINESS_CARD)
        structured = result.structured_data
        card = structured.business_card if structured else None
        if card is None and result.raw_text:
            card = processor.detect_business_card(result.raw_text)

    if card is None:
        return None
    return processor.generate_crm_data(card)


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="Document Capture OCR",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    ocr_parser = subparsers.add_parser("ocr", help="Recognize a document image")
    ocr_parser.add_argument("image", type=Path, help="Document image to process")
    ocr_parser.add_argument(
        "-m",
        "--mode",
        choices=[m.value for m in DocumentMode],
        default=DocumentMode.GENERIC.value,
        help="Document mode (default: generic)",
    )
    ocr_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    card_parser = subparsers.add_parser("card", help="Extract a business card")
    source = card_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("image", type=Path, nargs="?", help="Business card image")
    source.add_argument("--text", help="Recognized business card text")
    card_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    args = parser.parse_args(argv)

    setup_logging()

    if args.command == "ocr":
        if not args.image.exists():
            print(f"Error: {args.image} does not exist", file=sys.stderr)
            sys.exit(1)
        try:
            result = run_ocr(args.image, DocumentMode(args.mode))
        except ValueError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)
        _write_output(result_to_dict(result), args.output)
    elif args.command == "card":
        if args.image is not None and not args.image.exists():
            print(f"Error: {args.image} does not exist", file=sys.stderr)
            sys.exit(1)
        try:
            crm = scan_business_card(args.image, args.text)
        except ValueError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)
        if crm is None:
            print("No business card detected", file=sys.stderr)
            sys.exit(1)
        _write_output(crm, args.output)
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
