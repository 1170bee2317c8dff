"""Shared test fixtures for the document capture OCR test suite."""

from pathlib import Path

import numpy as np
import pytest

TECHCORP_CARD = (
    "TechCorp Solutions Inc\n"
    "John Smith\n"
    "Senior Director\n"
    "Phone: 555-0123\n"
    "Email: john@techcorp.com"
)


@pytest.fixture
def sample_image() -> np.ndarray:
    """Create a simple synthetic grayscale test image."""
    image = np.zeros((200, 300), dtype=np.uint8)
    image[50:150, 50:250] = 255
    return image


@pytest.fixture
def sample_color_image() -> np.ndarray:
    """Create a simple synthetic BGR test image."""
    image = np.zeros((200, 300, 3), dtype=np.uint8)
    image[50:150, 50:250] = (255, 255, 255)
    return image


@pytest.fixture
def techcorp_card() -> str:
    """Business card text with a company, name, title, phone and email."""
    return TECHCORP_CARD


@pytest.fixture
def full_card() -> str:
    """Business card text with every field the processor extracts."""
    return (
        "Jane Doe\n"
        "Senior Engineer\n"
        "Globex Corporation\n"
        "Phone: (555) 123-4567\n"
        "Email: jane@globex.com\n"
        "linkedin.com/in/janedoe\n"
        "twitter.com/@jdoe"
    )


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root: Path) -> Path:
    """Return the configs directory path."""
    return project_root / "configs"
