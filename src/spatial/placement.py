"""
Placement Advisor

Suggests where a new visual element should go on a product image.

Logos, text and decorations use fixed positions. Patterns go into the
largest contiguous run of empty/background cells, found by breadth-first
flood fill over the grid graph (4-directional adjacency).

Usage:
    from src.spatial.placement import suggest_placement

    suggestion = suggest_placement("logo", analysis.spatial_grid)
    suggestion.primary        # ["B2"]
    suggestion.alternatives   # [["A1"], ["C2"], ["B3"]]
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Iterable

from .grid import (
    DECORATION_PLACEMENT,
    GRID_COLS,
    GRID_ROWS,
    LOGO_CHEST_PLACEMENT,
    LOGO_CORNER_PLACEMENT,
    REGION_CELLS,
    TEXT_PLACEMENT,
    GridCell,
    neighbours,
)
from .models import SpatialGridAnalysis

ELEMENT_TYPES = ("logo", "text", "pattern", "decoration")


@dataclass
class PlacementSuggestion:
    """Suggested cells for a new element."""

    primary: list[str] = field(default_factory=list)
    alternatives: list[list[str]] = field(default_factory=list)
    reasoning: str = ""

    def to_dict(self) -> dict:
        return {
            "primary": list(self.primary),
            "alternatives": [list(option) for option in self.alternatives],
            "reasoning": self.reasoning,
        }


# =============================================================================
# FLOOD FILL
# =============================================================================


def find_contiguous_groups(
    cells: Iterable[GridCell], rows: int = GRID_ROWS, cols: int = GRID_COLS
) -> list[list[str]]:
    """
    Group cells into maximal 4-connected regions.

    Args:
        cells: The candidate cells (only these are joined together)
        rows: Grid height
        cols: Grid width

    Returns:
        Groups of cell IDs, largest first. Ties keep discovery order.
    """
    by_position = {(cell.row, cell.col): cell for cell in cells}
    visited: set[tuple[int, int]] = set()
    groups: list[list[str]] = []

    for start in by_position:
        if start in visited:
            continue

        group = []
        queue = deque([start])
        visited.add(start)

        while queue:
            current = queue.popleft()
            group.append(by_position[current].id)
            for adjacent in neighbours(*current, rows=rows, cols=cols):
                if adjacent in by_position and adjacent not in visited:
                    visited.add(adjacent)
                    queue.append(adjacent)

        groups.append(group)

    # sorted() is stable, so equal-sized groups stay in discovery order
    return sorted(groups, key=len, reverse=True)


# =============================================================================
# SUGGESTIONS
# =============================================================================


def _fixed(placement, reasoning: str) -> PlacementSuggestion:
    primary, alternatives = placement
    return PlacementSuggestion(
        primary=list(primary),
        alternatives=[list(option) for option in alternatives],
        reasoning=reasoning,
    )


def _suggest_logo(grid: SpatialGridAnalysis) -> PlacementSuggestion:
    chest = REGION_CELLS["chest"]
    chest_has_product = any(
        square.has_product for square in grid.squares if square.id in chest
    )
    if chest_has_product:
        return _fixed(
            LOGO_CHEST_PLACEMENT, "Chest area is ideal for logo placement on clothing"
        )
    return _fixed(
        LOGO_CORNER_PLACEMENT,
        "Corner placement provides good visibility without obscuring product",
    )


def _suggest_text(grid: SpatialGridAnalysis) -> PlacementSuggestion:
    return _fixed(TEXT_PLACEMENT, "Bottom area is conventional for text and labels")


def _suggest_pattern(grid: SpatialGridAnalysis) -> PlacementSuggestion:
    open_cells = grid.cells_where(lambda s: s.is_open_space)
    groups = find_contiguous_groups(open_cells)
    if not groups:
        return PlacementSuggestion(
            reasoning="No empty or background areas available for a pattern"
        )
    return PlacementSuggestion(
        primary=groups[0],
        alternatives=groups[1:3],
        reasoning="Pattern applied to contiguous empty areas for visual coherence",
    )


def _suggest_decoration(grid: SpatialGridAnalysis) -> PlacementSuggestion:
    return _fixed(
        DECORATION_PLACEMENT, "Decorative elements work best in corners or edges"
    )


SUGGESTERS = {
    "logo": _suggest_logo,
    "text": _suggest_text,
    "pattern": _suggest_pattern,
    "decoration": _suggest_decoration,
}


def suggest_placement(element_type: str, grid: SpatialGridAnalysis) -> PlacementSuggestion:
    """
    Suggest cells for a new logo, text, pattern or decoration.

    Deterministic: the same grid always gives the same suggestion.

    Raises:
        ValueError: for an unknown element type
    """
    suggester = SUGGESTERS.get(element_type)
    if suggester is None:
        raise ValueError(
            f"Unknown element type '{element_type}'. "
            f"Expected one of: {', '.join(ELEMENT_TYPES)}"
        )
    return suggester(grid)
