"""Colour normalization and exposure correction for captured documents.

Provides grayscale colour controls and brightness-driven exposure
adjustment to even out lighting before text recognition.
"""

import cv2
import numpy as np

from src.utils.logger import get_logger

logger = get_logger(__name__)


def to_gray(image: np.ndarray) -> np.ndarray:
    """Convert an image to grayscale if it has color channels.

    Args:
        image: Input image (BGR or grayscale).

    Returns:
        Grayscale image.
    """
    if len(image.shape) == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    return image


def to_float(image: np.ndarray) -> np.ndarray:
    """Scale a ``uint8`` image to float32 values in [0, 1]."""
    return image.astype(np.float32) / 255.0


def to_uint8(image: np.ndarray) -> np.ndarray:
    """Clip a [0, 1] float image and scale it back to ``uint8``."""
    return (np.clip(image, 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)


def normalize_colors(
    image: np.ndarray,
    brightness: float = 0.1,
    contrast: float = 1.2,
) -> np.ndarray:
    """Desaturate an image and lift its brightness and contrast.

    Colour input keeps its three channels, each holding the same
    luminance value.

    Args:
        image: Input image (BGR or grayscale).
        brightness: Offset added to normalized intensities.
        contrast: Factor applied around mid-gray.

    Returns:
        Colour-normalized image with the same shape as the input.
    """
    gray = to_float(to_gray(image))
    adjusted = (gray + brightness - 0.5) * contrast + 0.5
    result = to_uint8(adjusted)
    if len(image.shape) == 3:
        result = cv2.cvtColor(result, cv2.COLOR_GRAY2BGR)
    logger.debug(
        "Normalized colors (brightness=%.2f, contrast=%.2f)", brightness, contrast
    )
    return result


def measure_brightness(image: np.ndarray) -> int:
    """Sample the average brightness of an image.

    The image is area-reduced to a single pixel and its channels are
    averaged with integer division.

    Args:
        image: Input image (BGR or grayscale).

    Returns:
        Average brightness in [0, 255].
    """
    pixel = cv2.resize(image, (1, 1), interpolation=cv2.INTER_AREA)
    values = np.asarray(pixel, dtype=np.int64).reshape(-1)
    return int(values.sum()) // len(values)


def adjust_exposure(image: np.ndarray, ev: float) -> np.ndarray:
    """Scale intensities by ``2 ** ev`` exposure stops.

    Args:
        image: Input image (BGR or grayscale).
        ev: Exposure change in stops; positive values brighten.

    Returns:
        Exposure-adjusted image.
    """
    return to_uint8(to_float(image) * (2.0**ev))


def enhance_contrast(
    image: np.ndarray,
    dark_threshold: int = 128,
    bright_threshold: int = 200,
    dark_ev: float = 0.5,
    bright_ev: float = -0.3,
) -> np.ndarray:
    """Correct exposure based on average brightness.

    Dark images are brightened, very bright images are darkened and
    everything in between is returned unchanged.

    Args:
        image: Input image (BGR or grayscale).
        dark_threshold: Brightness below which the image is brightened.
        bright_threshold: Brightness above which the image is darkened.
        dark_ev: Exposure change applied to dark images.
        bright_ev: Exposure change applied to bright images.

    Returns:
        Exposure-corrected image.
    """
    brightness = measure_brightness(image)

    if brightness < dark_threshold:
        ev = dark_ev
    elif brightness > bright_threshold:
        ev = bright_ev
    else:
        logger.debug("Brightness %d within range, exposure unchanged", brightness)
        return image.copy()

    logger.debug("Brightness %d, adjusting exposure by %+.1f EV", brightness, ev)
    return adjust_exposure(image, ev)
