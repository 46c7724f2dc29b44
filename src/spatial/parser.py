"""
Analysis Text Parser

Turns the free-text answer of a vision model into an ImageAnalysis.

Parsing is best-effort and never raises:
- each field is searched independently, so section order does not matter
- the first matching line wins
- a missing section leaves its field at the default
- the raw text is always kept in full_analysis

Usage:
    from src.spatial.parser import parse_analysis_text

    analysis = parse_analysis_text(model_text, include_spatial_grid=True)
    analysis.current_colors              # ["navy", "white"]
    analysis.spatial_grid.square("B2")   # GridCell
"""

import re
from typing import Optional

from .grid import ALL_CELL_IDS, GRID_SIZE, build_cells
from .models import ImageAnalysis, SpatialGridAnalysis
from .summarizer import summarize_regions

# Tolerates "- ", "1. ", "## ", "**" etc. in front of a label
LINE_PREFIX = r"^[ \t>#*\-•]*(?:\d+[.)])?[ \t>#*\-•]*"

LIST_SEPARATOR = re.compile(r"[,;]")


def _field_pattern(label: str) -> re.Pattern:
    return re.compile(
        LINE_PREFIX + rf"(?:{label})\b[ \t*]*:?[ \t*]*\s*([^\n]+)",
        re.IGNORECASE | re.MULTILINE,
    )


# The separator is consumed before the capture so "A1:" alone yields no description
def _cell_pattern(cell_id: str) -> re.Pattern:
    return re.compile(
        LINE_PREFIX + rf"\[?{cell_id}\b\]?[ \t*]*(?:[:\-–][ \t*]*)*([^\s:\-–][^\n]*)",
        re.IGNORECASE | re.MULTILINE,
    )


COLORS_PATTERN = _field_pattern(r"(?:current\s+)?colou?rs?")
MATERIALS_PATTERN = _field_pattern(r"materials?(?:\s+and\s+textures?)?")
TEXTURES_PATTERN = _field_pattern(r"textures?")
STYLE_PATTERN = _field_pattern(r"(?:overall\s+)?style(?:\s+and\s+aesthetic)?")
QUALITY_PATTERN = _field_pattern(r"quality(?:\s+and\s+finish)?")
TYPE_PATTERN = _field_pattern(r"product\s+type(?:\s+and\s+category)?|type|category")
FEATURES_PATTERN = _field_pattern(
    r"(?:key\s+(?:design\s+)?)?(?:features?|elements?)(?:\s+and\s+elements?)?"
)
SUGGESTIONS_PATTERN = _field_pattern(r"suggestions?|improvements?")

CELL_PATTERNS = {cell_id: _cell_pattern(cell_id) for cell_id in ALL_CELL_IDS}


def _clean(value: str) -> str:
    """Trim whitespace and stray markdown emphasis."""
    return value.strip().strip("*_").strip()


def _extract_value(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    if not match:
        return None
    value = _clean(match.group(1))
    return value or None


def _extract_list(pattern: re.Pattern, text: str) -> list[str]:
    value = _extract_value(pattern, text)
    if not value:
        return []
    return [item for item in (_clean(part) for part in LIST_SEPARATOR.split(value)) if item]


def extract_cell_descriptions(text: str) -> dict[str, str]:
    """Find "<ID>: <description>" lines. Cells without a line are left out."""
    descriptions = {}
    for cell_id, pattern in CELL_PATTERNS.items():
        description = _extract_value(pattern, text)
        if description:
            descriptions[cell_id] = description
    return descriptions


def parse_spatial_grid(text: str) -> SpatialGridAnalysis:
    """Build the full 16-cell grid and its region summaries from model text."""
    cells = build_cells(extract_cell_descriptions(text or ""))
    return SpatialGridAnalysis(
        grid_size=GRID_SIZE,
        squares=cells,
        dominant_regions=summarize_regions(cells),
    )


def parse_analysis_text(
    text: Optional[str], include_spatial_grid: bool = False
) -> ImageAnalysis:
    """
    Parse a vision-model response into an ImageAnalysis.

    Args:
        text: Raw model response
        include_spatial_grid: Also parse the per-cell grid section

    Returns:
        ImageAnalysis with every field defaulted when its section is missing
    """
    text = text or ""

    suggestion = _extract_value(SUGGESTIONS_PATTERN, text)

    return ImageAnalysis(
        product_type=_extract_value(TYPE_PATTERN, text),
        current_colors=_extract_list(COLORS_PATTERN, text),
        materials=_extract_list(MATERIALS_PATTERN, text),
        textures=_extract_list(TEXTURES_PATTERN, text),
        key_features=_extract_list(FEATURES_PATTERN, text),
        style=_extract_value(STYLE_PATTERN, text),
        quality=_extract_value(QUALITY_PATTERN, text),
        suggestions=[suggestion] if suggestion else [],
        spatial_grid=parse_spatial_grid(text) if include_spatial_grid else None,
        full_analysis=text,
    )
