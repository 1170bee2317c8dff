"""Configurable image preprocessing pipeline for document OCR.

Runs rotation correction, colour normalization, exposure correction,
noise reduction and sharpening in a fixed order, skipping disabled steps.
A failing step leaves the image as it was and the pipeline carries on.
"""

import asyncio
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace

import numpy as np

from src.ocr.errors import PreprocessingStepError
from src.preprocessing.color import enhance_contrast, normalize_colors
from src.preprocessing.denoise import reduce_noise
from src.preprocessing.rotation import RegionDetector, correct_rotation, detect_text_regions
from src.preprocessing.sharpen import unsharp_mask
from src.utils.config import PreprocessingConfig
from src.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ImagePreprocessingOptions:
    """Flags selecting which preprocessing steps run."""

    enhance_contrast: bool = False
    correct_rotation: bool = False
    denoise_image: bool = False
    sharpen_text: bool = False
    normalize_colors: bool = False

    @classmethod
    def default(cls) -> "ImagePreprocessingOptions":
        """No preprocessing at all."""
        return cls()

    @classmethod
    def minimal(cls) -> "ImagePreprocessingOptions":
        """Exposure correction only."""
        return cls(enhance_contrast=True)

    @classmethod
    def receipt(cls) -> "ImagePreprocessingOptions":
        """Exposure and rotation correction for receipts."""
        return cls(enhance_contrast=True, correct_rotation=True)

    @classmethod
    def business_card(cls) -> "ImagePreprocessingOptions":
        """Every step enabled."""
        return cls(
            enhance_contrast=True,
            correct_rotation=True,
            denoise_image=True,
            sharpen_text=True,
            normalize_colors=True,
        )

    @property
    def enabled_steps(self) -> list[str]:
        """Names of enabled steps in pipeline order."""
        flags = [
            ("correct_rotation", self.correct_rotation),
            ("normalize_colors", self.normalize_colors),
            ("enhance_contrast", self.enhance_contrast),
            ("denoise_image", self.denoise_image),
            ("sharpen_text", self.sharpen_text),
        ]
        return [name for name, enabled in flags if enabled]


def enhance_options_for_business_card(
    options: ImagePreprocessingOptions,
) -> ImagePreprocessingOptions:
    """Force every preprocessing step on, whatever the caller asked for.

    Args:
        options: Caller-supplied options; ignored.

    Returns:
        Options with all five steps enabled.
    """
    return replace(
        options,
        enhance_contrast=True,
        correct_rotation=True,
        denoise_image=True,
        sharpen_text=True,
        normalize_colors=True,
    )


class ImagePreprocessor:
    """Applies the enabled preprocessing steps to document images.

    Filtering runs on a dedicated worker pool when awaited through
    :meth:`preprocess`, so the calling event loop is never blocked.

    Args:
        config: Filter constants. Defaults are used when omitted.
        region_detector: Text region detector used for rotation correction.
        executor: Worker pool for asynchronous processing. A private pool
            is created lazily when omitted.
    """

    def __init__(
        self,
        config: PreprocessingConfig | None = None,
        region_detector: RegionDetector = detect_text_regions,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self.config = config or PreprocessingConfig()
        self.region_detector = region_detector
        self._executor = executor

    def _get_executor(self) -> ThreadPoolExecutor:
        """Lazily create the worker pool on first use."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.config.max_workers,
                thread_name_prefix="preprocess",
            )
        return self._executor

    async def preprocess(
        self, image: np.ndarray, options: ImagePreprocessingOptions
    ) -> np.ndarray:
        """Run the pipeline on a worker thread and await the result.

        Args:
            image: Input document image (BGR or grayscale).
            options: Steps to apply.

        Returns:
            New preprocessed image; the input is never modified.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._get_executor(), self.process, image, options
        )

    def process(
        self, image: np.ndarray, options: ImagePreprocessingOptions
    ) -> np.ndarray:
        """Run the pipeline synchronously on the current thread.

        Args:
            image: Input document image (BGR or grayscale).
            options: Steps to apply.

        Returns:
            New preprocessed image; the input is never modified.

        Raises:
            TypeError: If ``options`` is not an ImagePreprocessingOptions.
        """
        if not isinstance(options, ImagePreprocessingOptions):
            raise TypeError(
                f"Expected ImagePreprocessingOptions, got {type(options).__name__}"
            )

        cfg = self.config
        steps: dict[str, Callable[[np.ndarray], np.ndarray]] = {
            "correct_rotation": lambda img: correct_rotation(
                img,
                detector=self.region_detector,
                max_regions=cfg.max_rotation_regions,
                vertical_ratio=cfg.vertical_ratio_threshold,
                horizontal_ratio=cfg.horizontal_ratio_threshold,
            ),
            "normalize_colors": lambda img: normalize_colors(
                img, brightness=cfg.color_brightness, contrast=cfg.color_contrast
            ),
            "enhance_contrast": lambda img: enhance_contrast(
                img,
                dark_threshold=cfg.dark_threshold,
                bright_threshold=cfg.bright_threshold,
                dark_ev=cfg.dark_exposure_ev,
                bright_ev=cfg.bright_exposure_ev,
            ),
            "denoise_image": lambda img: reduce_noise(
                img, noise_level=cfg.noise_level, sharpness=cfg.noise_sharpness
            ),
            "sharpen_text": lambda img: unsharp_mask(
                img, radius=cfg.sharpen_radius, intensity=cfg.sharpen_intensity
            ),
        }

        result = image.copy()
        applied: list[str] = []
        for name in options.enabled_steps:
            result, ok = self._apply_step(name, steps[name], result)
            if ok:
                applied.append(name)

        logger.info(
            "Preprocessing complete: %d/%d steps applied (%s)",
            len(applied),
            len(options.enabled_steps),
            ", ".join(applied) or "none",
        )
        return result

    def _apply_step(
        self,
        name: str,
        step: Callable[[np.ndarray], np.ndarray],
        image: np.ndarray,
    ) -> tuple[np.ndarray, bool]:
        """Run one step, keeping the input image if the step fails.

        Args:
            name: Step name for logging.
            step: Filter to apply.
            image: Current pipeline image.

        Returns:
            Tuple of (resulting_image, succeeded).
        """
        try:
            output = step(image)
            if not isinstance(output, np.ndarray) or output.size == 0:
                raise PreprocessingStepError(f"{name} produced no image")
        except Exception as exc:
            logger.warning("Preprocessing step %s failed, skipping: %s", name, exc)
            return image, False
        return output, True

    def shutdown(self) -> None:
        """Release the worker pool if one was created."""
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
