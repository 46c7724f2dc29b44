"""
pytest configuration and shared fixtures for spatial analysis tests.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.spatial.grid import build_cells  # noqa: E402
from src.spatial.models import SpatialGridAnalysis  # noqa: E402
from src.spatial.summarizer import summarize_regions  # noqa: E402


def grid_from(contents: dict[str, str]) -> SpatialGridAnalysis:
    """Build a full grid from a partial ID -> description map."""
    cells = build_cells(contents)
    return SpatialGridAnalysis(squares=cells, dominant_regions=summarize_regions(cells))


@pytest.fixture
def make_grid():
    return grid_from


@pytest.fixture
def shirt_grid() -> SpatialGridAnalysis:
    """Typical front view of a t-shirt on a white backdrop."""
    return grid_from(
        {
            "A1": "Empty white background",
            "A2": "Shirt collar, navy fabric",
            "A3": "Shirt collar, navy fabric",
            "A4": "Empty white background",
            "B1": "Shirt sleeve, navy",
            "B2": "Shirt chest with small brand logo",
            "B3": "Shirt chest, plain navy",
            "B4": "Shirt sleeve, navy",
            "C1": "Empty white background",
            "C2": "Shirt body, navy cotton",
            "C3": "Shirt body, navy cotton",
            "C4": "Empty white background",
            "D1": "Empty white background",
            "D2": "Shirt hem, navy",
            "D3": "Shirt hem with care label text",
            "D4": "Empty white background",
        }
    )
