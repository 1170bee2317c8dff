"""Configuration management for the document capture OCR system.

Loads and validates YAML configuration with defaults for image
preprocessing, text recognition, and business card extraction.
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class PreprocessingConfig(BaseModel):
    """Filter constants for the image preprocessing pipeline."""

    max_workers: int = 2
    max_rotation_regions: int = 10
    vertical_ratio_threshold: float = 0.5
    horizontal_ratio_threshold: float = 2.0
    color_brightness: float = 0.1
    color_contrast: float = 1.2
    dark_threshold: int = 128
    bright_threshold: int = 200
    dark_exposure_ev: float = 0.5
    bright_exposure_ev: float = -0.3
    noise_level: float = 0.02
    noise_sharpness: float = 0.4
    sharpen_radius: float = 2.5
    sharpen_intensity: float = 0.5


class OCRConfig(BaseModel):
    """Configuration for the Tesseract recognition engine."""

    tesseract_cmd: str | None = None
    languages: list[str] = Field(default_factory=lambda: ["eng"])
    psm: int = 3
    recognition_level: str = "accurate"
    language_correction: bool = True
    automatic_language_detection: bool = True
    minimum_text_height: float = 0.01


class BusinessCardConfig(BaseModel):
    """Configuration for business card detection."""

    use_name_tagger: bool = False
    name_tagger_model: str = "dslim/bert-base-NER"
    name_tagger_min_score: float = 0.8
    acceptance_threshold: int = Field(default=5, ge=1)


class AppConfig(BaseModel):
    """Top-level application configuration."""

    preprocessing: PreprocessingConfig = Field(default_factory=PreprocessingConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    business_card: BusinessCardConfig = Field(default_factory=BusinessCardConfig)
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated application configuration.
    """
    if path is None:
        path = Path("configs/config.yaml")

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        return AppConfig(**raw)

    logger.info("No config file found at %s, using defaults", path)
    return AppConfig()
