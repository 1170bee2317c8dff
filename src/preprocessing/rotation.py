"""Orientation correction for captured document images.

Detects text regions, votes on whether the text runs horizontally or
vertically from their aspect ratios, and turns sideways captures upright.
Only 0 and 90 degree orientations are distinguished.
"""

from collections import Counter
from collections.abc import Callable

import cv2
import numpy as np

from src.preprocessing.color import to_gray
from src.utils.logger import get_logger

logger = get_logger(__name__)

Region = tuple[int, int, int, int]
RegionDetector = Callable[[np.ndarray], list[Region]]


def detect_text_regions(image: np.ndarray, min_size: int = 4) -> list[Region]:
    """Locate candidate text regions in a document image.

    Uses a morphological gradient to highlight glyph edges, closes the
    gaps between neighbouring glyphs, and returns the bounding boxes of
    the resulting blobs ordered top to bottom, left to right.

    Args:
        image: Input image (BGR or grayscale).
        min_size: Smallest width and height a region may have.

    Returns:
        List of ``(x, y, width, height)`` boxes in pixels.
    """
    gray = to_gray(image)
    kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (3, 3))
    gradient = cv2.morphologyEx(gray, cv2.MORPH_GRADIENT, kernel)
    _, binary = cv2.threshold(gradient, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    closing_kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (5, 5))
    closed = cv2.morphologyEx(binary, cv2.MORPH_CLOSE, closing_kernel)

    contours, _ = cv2.findContours(closed, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    regions = [cv2.boundingRect(c) for c in contours]
    regions = [r for r in regions if r[2] >= min_size and r[3] >= min_size]
    regions.sort(key=lambda r: (r[1], r[0]))
    logger.debug("Detected %d text regions", len(regions))
    return regions


def estimate_rotation_angle(
    regions: list[Region],
    max_regions: int = 10,
    vertical_ratio: float = 0.5,
    horizontal_ratio: float = 2.0,
) -> int:
    """Estimate the rotation needed to make text horizontal.

    Each of the first ``max_regions`` regions votes 90 when it is much
    taller than wide and 0 when it is much wider than tall; ambiguous
    regions abstain. The most common vote wins, ties going to the vote
    cast first.

    Args:
        regions: Text region boxes as ``(x, y, width, height)``.
        max_regions: Number of leading regions considered.
        vertical_ratio: Width/height ratio below which a region votes 90.
        horizontal_ratio: Width/height ratio above which a region votes 0.

    Returns:
        Rotation angle in degrees, either 0 or 90.
    """
    votes: list[int] = []
    for _, _, width, height in regions[:max_regions]:
        if height <= 0:
            continue
        ratio = width / height
        if ratio < vertical_ratio:
            votes.append(90)
        elif ratio > horizontal_ratio:
            votes.append(0)

    if not votes:
        return 0
    return Counter(votes).most_common(1)[0][0]


def correct_rotation(
    image: np.ndarray,
    detector: RegionDetector = detect_text_regions,
    max_regions: int = 10,
    vertical_ratio: float = 0.5,
    horizontal_ratio: float = 2.0,
) -> np.ndarray:
    """Rotate a sideways document so its text runs horizontally.

    Args:
        image: Input image (BGR or grayscale).
        detector: Callable returning text region boxes for the image.
        max_regions: Number of leading regions considered.
        vertical_ratio: Width/height ratio below which a region votes 90.
        horizontal_ratio: Width/height ratio above which a region votes 0.

    Returns:
        Rotated image, or an unchanged copy when no rotation is needed.
    """
    regions = detector(image)
    angle = estimate_rotation_angle(
        regions,
        max_regions=max_regions,
        vertical_ratio=vertical_ratio,
        horizontal_ratio=horizontal_ratio,
    )

    if angle == 0:
        logger.debug("Text orientation horizontal, skipping rotation")
        return image.copy()

    logger.info("Rotating image by %d degrees", angle)
    return cv2.rotate(image, cv2.ROTATE_90_CLOCKWISE)
