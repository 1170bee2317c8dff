"""Unsharp masking tuned for printed text."""

import cv2
import numpy as np

from src.preprocessing.color import to_float, to_uint8
from src.utils.logger import get_logger

logger = get_logger(__name__)


def unsharp_mask(
    image: np.ndarray,
    radius: float = 2.5,
    intensity: float = 0.5,
) -> np.ndarray:
    """Sharpen an image by adding back its high-frequency detail.

    Args:
        image: Input image as a numpy array.
        radius: Gaussian sigma of the blur used to isolate detail.
        intensity: Weight of the detail added back to the image.

    Returns:
        Sharpened image with the same shape and dtype as the input.
    """
    source = to_float(image)
    blurred = cv2.GaussianBlur(source, (0, 0), sigmaX=radius)
    result = source + intensity * (source - blurred)
    logger.debug("Applied unsharp mask (radius=%.1f, intensity=%.2f)", radius, intensity)
    return to_uint8(result)
