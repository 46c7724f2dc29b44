"""
Edit Instruction Mapper

Translates free-text edit requests ("add a logo to the top-left") into
grid terms:
- expand_prompt() annotates the instruction with the cells each position
  keyword refers to and what those cells currently contain
- identify_affected_squares() decides which cells the edit should touch

The annotated prompt is what gets sent to the image-edit model; the cell
set is what the precision scorer later compares against.
"""

from typing import Iterable, Optional

from .grid import (
    CELL_ID_PATTERN,
    EDITABLE_REGIONS,
    LOGO_CELLS,
    PROMPT_POSITION_KEYWORDS,
    REGION_CELLS,
)
from .models import SpatialGridAnalysis
from .summarizer import MIXED_SUMMARY

COLOR_KEYWORDS = ("color", "colour")
LOGO_KEYWORDS = ("logo", "brand")
BACKGROUND_KEYWORDS = ("background",)


def _mentions(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def _describe_cells(cell_ids: Iterable[str], grid: SpatialGridAnalysis) -> list[str]:
    described = []
    for cell_id in cell_ids:
        square = grid.square(cell_id)
        if square:
            described.append(f"{cell_id}: {square.content}")
    return described


def expand_prompt(instruction: str, grid: Optional[SpatialGridAnalysis]) -> str:
    """
    Annotate an edit instruction with spatial context.

    Every position keyword found in the instruction (case-insensitive
    substring) adds one bracketed clause, so "top-left" contributes
    clauses for "top-left", "top" and "left".

    Args:
        instruction: The user's edit request
        grid: Current spatial grid of the image (None leaves the text as is)

    Returns:
        The instruction followed by zero or more spatial context clauses
    """
    if not grid:
        return instruction

    lowered = instruction.lower()
    expanded = instruction

    for keyword in PROMPT_POSITION_KEYWORDS:
        if keyword not in lowered:
            continue
        cells = REGION_CELLS[keyword]
        current_content = ", ".join(_describe_cells(cells, grid))
        expanded += (
            f" [Spatial context: Target area {keyword} includes grid squares "
            f"{', '.join(cells)}. Current content: {current_content}]"
        )

    return expanded


def identify_affected_squares(
    instruction: str, grid: SpatialGridAnalysis
) -> set[str]:
    """
    Cells an edit instruction is expected to change.

    Union of:
        - cell IDs written verbatim in the instruction (A1..D4)
        - "color"/"colour": every cell showing the product
        - "logo"/"brand": the usual logo spots
        - "background": every background or empty cell
    """
    lowered = instruction.lower()
    affected = set(CELL_ID_PATTERN.findall(instruction))

    if _mentions(lowered, COLOR_KEYWORDS):
        affected.update(square.id for square in grid.cells_where(lambda s: s.has_product))

    if _mentions(lowered, LOGO_KEYWORDS):
        affected.update(LOGO_CELLS)

    if _mentions(lowered, BACKGROUND_KEYWORDS):
        affected.update(square.id for square in grid.cells_where(lambda s: s.is_open_space))

    return affected


def spatial_edit_instructions(
    cell_ids: Iterable[str], grid: Optional[SpatialGridAnalysis]
) -> str:
    """Per-cell cautions for the image-edit model about the targeted cells."""
    if not grid:
        return ""

    notes = []
    for cell_id in cell_ids:
        square = grid.square(cell_id)
        if not square:
            continue
        if square.has_product:
            notes.append(f"Square {cell_id} contains product - modify carefully")
        if square.is_empty:
            notes.append(f"Square {cell_id} is empty - good for adding new elements")
        if square.has_logo:
            notes.append(f"Square {cell_id} already has a logo - consider placement")

    return ". ".join(notes)


def region_prompt(region: str, action: str, grid: SpatialGridAnalysis) -> str:
    """Prompt applying an action to one named region of the grid."""
    if region not in EDITABLE_REGIONS:
        raise ValueError(
            f"Unknown region '{region}'. Expected one of: {', '.join(EDITABLE_REGIONS)}"
        )

    cells = REGION_CELLS[region]
    region_content = grid.dominant_regions.get(region) or MIXED_SUMMARY
    detailed_state = "; ".join(_describe_cells(cells, grid))

    return (
        f'Apply "{action}" to the {region} region (squares: {", ".join(cells)}). '
        f"Current {region} contains: {region_content}. "
        f"Detailed state: {detailed_state}"
    )
