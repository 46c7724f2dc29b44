"""
Spatial Grid Model

Fixed 4x4 addressable grid laid over a product image. Cells are named
A1..D4 (row letter, column number) and carry semantic flags derived from
the vision model's description of that part of the image.

This module is the single source of truth for what a position name means
in grid-cell terms. The parser, the edit mapper and the placement advisor
all read REGION_CELLS from here.

Usage:
    from src.spatial.grid import GridCell, REGION_CELLS

    cell = GridCell.from_content("B2", "Product collar with blue fabric")
    cell.position        # "upper-center-left"
    cell.has_product     # True
    cell.dominant_color  # "blue"
"""

import re
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from pydantic import BaseModel, ConfigDict, model_validator


# =============================================================================
# GRID GEOMETRY
# =============================================================================

GRID_ROWS = 4
GRID_COLS = 4
GRID_SIZE = f"{GRID_ROWS}x{GRID_COLS}"

ROW_LABELS = "ABCD"

# Position label parts, indexed by row / col
ROW_POSITION_NAMES = ("top", "upper", "lower", "bottom")
COL_POSITION_NAMES = ("left", "center-left", "center-right", "right")

NOT_SPECIFIED = "Not specified"

CELL_ID_PATTERN = re.compile(r"[A-D][1-4]")


def cell_id_for(row: int, col: int) -> str:
    """Build a cell ID ("A1".."D4") from zero-based row/col."""
    if not (0 <= row < GRID_ROWS and 0 <= col < GRID_COLS):
        raise ValueError(f"Cell ({row}, {col}) is outside the {GRID_SIZE} grid")
    return f"{ROW_LABELS[row]}{col + 1}"


def parse_cell_id(cell_id: str) -> tuple[int, int]:
    """Split a cell ID into zero-based (row, col)."""
    if not CELL_ID_PATTERN.fullmatch(cell_id or ""):
        raise ValueError(f"Invalid grid cell ID: {cell_id!r}")
    return ROW_LABELS.index(cell_id[0]), int(cell_id[1]) - 1


def position_label(row: int, col: int) -> str:
    """Human label for a cell, e.g. (1, 2) -> "upper-center-right"."""
    cell_id_for(row, col)  # bounds check
    return f"{ROW_POSITION_NAMES[row]}-{COL_POSITION_NAMES[col]}"


def neighbours(
    row: int, col: int, rows: int = GRID_ROWS, cols: int = GRID_COLS
) -> Iterator[tuple[int, int]]:
    """Yield the 4-directional neighbours of (row, col) inside a rows x cols grid."""
    for d_row, d_col in ((-1, 0), (1, 0), (0, -1), (0, 1)):
        r, c = row + d_row, col + d_col
        if 0 <= r < rows and 0 <= c < cols:
            yield r, c


# Row-major order A1, A2, ... D4
ALL_CELL_IDS: tuple[str, ...] = tuple(
    cell_id_for(row, col) for row in range(GRID_ROWS) for col in range(GRID_COLS)
)


# =============================================================================
# REGION -> CELL SET TABLE
# =============================================================================
# Order matters: edit prompts are annotated in this order.

REGION_CELLS: dict[str, tuple[str, ...]] = {
    "top-left": ("A1",),
    "top-right": ("A4",),
    "bottom-left": ("D1",),
    "bottom-right": ("D4",),
    "center": ("B2", "B3", "C2", "C3"),
    "top": ("A1", "A2", "A3", "A4"),
    "bottom": ("D1", "D2", "D3", "D4"),
    "left": ("A1", "B1", "C1", "D1"),
    "right": ("A4", "B4", "C4", "D4"),
    "upper-half": ("A1", "A2", "A3", "A4", "B1", "B2", "B3", "B4"),
    "lower-half": ("C1", "C2", "C3", "C4", "D1", "D2", "D3", "D4"),
    # Garment-specific
    "chest": ("B2", "B3"),
    "collar": ("A2", "A3"),
    "sleeve": ("B1", "B4"),
    "pocket": ("B2", "C2"),
    # Summary-only (not matched against edit instructions)
    "middle": ("B1", "B2", "B3", "B4", "C1", "C2", "C3", "C4"),
}

# Regions reported in SpatialGridAnalysis.dominant_regions
SUMMARY_REGIONS = ("top", "bottom", "left", "right", "center", "middle")

# Position keywords recognised in free-text edit instructions
PROMPT_POSITION_KEYWORDS = tuple(name for name in REGION_CELLS if name != "middle")

# Regions usable with region_prompt()
EDITABLE_REGIONS = ("top", "bottom", "left", "right", "center")

# Where logos usually go: both top corners, chest, and the pocket area
LOGO_CELLS = ("A1", "A4", "B2", "B3", "C2")

# Fixed placement heuristics: (primary, alternatives)
LOGO_CHEST_PLACEMENT = (
    REGION_CELLS["chest"][:1],
    (REGION_CELLS["top-left"], REGION_CELLS["pocket"][1:], REGION_CELLS["chest"][1:]),
)
LOGO_CORNER_PLACEMENT = (
    REGION_CELLS["top-left"],
    (REGION_CELLS["top-right"], REGION_CELLS["bottom-left"], REGION_CELLS["bottom-right"]),
)
TEXT_PLACEMENT = (
    REGION_CELLS["bottom"][1:3],
    (REGION_CELLS["bottom-left"] + REGION_CELLS["bottom-right"], REGION_CELLS["lower-half"][1:3]),
)
DECORATION_PLACEMENT = (
    REGION_CELLS["top-left"] + REGION_CELLS["top-right"],
    (REGION_CELLS["bottom-left"] + REGION_CELLS["bottom-right"], REGION_CELLS["collar"]),
)


# =============================================================================
# CONTENT CLASSIFICATION
# =============================================================================

PRODUCT_PATTERN = re.compile(
    r"product|item|garment|clothing|shirt|pants|dress|shoe", re.IGNORECASE
)
BACKGROUND_PATTERN = re.compile(r"background|empty|blank|white|plain", re.IGNORECASE)
TEXT_PATTERN = re.compile(r"text|label|tag|writing", re.IGNORECASE)
LOGO_PATTERN = re.compile(r"logo|brand|emblem|symbol", re.IGNORECASE)
EMPTY_PATTERN = re.compile(r"empty|blank|nothing", re.IGNORECASE)

# Iteration order decides which color wins when several are mentioned
COLOR_PALETTE = (
    "white",
    "black",
    "red",
    "blue",
    "green",
    "yellow",
    "purple",
    "orange",
    "pink",
    "gray",
    "brown",
    "beige",
    "navy",
    "teal",
)


@dataclass(frozen=True)
class CellFlags:
    """Semantic flags derived from a cell description."""

    has_product: bool = False
    has_background: bool = False
    has_text: bool = False
    has_logo: bool = False
    is_empty: bool = False


def derive_flags(content: Optional[str]) -> CellFlags:
    """Classify a cell description by keyword matching. Never raises."""
    if not content:
        return CellFlags()
    return CellFlags(
        has_product=bool(PRODUCT_PATTERN.search(content)),
        has_background=bool(BACKGROUND_PATTERN.search(content)),
        has_text=bool(TEXT_PATTERN.search(content)),
        has_logo=bool(LOGO_PATTERN.search(content)),
        is_empty=bool(EMPTY_PATTERN.search(content)),
    )


def find_dominant_color(content: Optional[str]) -> Optional[str]:
    """First palette color mentioned in the content, if any."""
    if not content:
        return None
    lowered = content.lower()
    for color in COLOR_PALETTE:
        if color in lowered:
            return color
    return None


# =============================================================================
# GRID CELL
# =============================================================================


class GridCell(BaseModel):
    """One of the 16 fixed grid cells.

    Build cells with GridCell.from_content() so that row, col, position and
    the flags are always consistent with the ID and the content.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    row: int
    col: int
    position: str
    content: str = NOT_SPECIFIED
    dominant_color: Optional[str] = None
    has_product: bool = False
    has_background: bool = False
    has_text: bool = False
    has_logo: bool = False
    is_empty: bool = False

    @model_validator(mode="after")
    def check_geometry(self) -> "GridCell":
        """Reject cells whose row/col/position disagree with the ID."""
        row, col = parse_cell_id(self.id)
        if (row, col) != (self.row, self.col):
            raise ValueError(f"Cell {self.id} must be at ({row}, {col})")
        if self.position != position_label(row, col):
            raise ValueError(f"Cell {self.id} has wrong position {self.position!r}")
        return self

    @classmethod
    def from_content(cls, cell_id: str, content: Optional[str] = None) -> "GridCell":
        """Create a cell, deriving geometry and flags.

        A missing description gives "Not specified" with every flag off.
        """
        row, col = parse_cell_id(cell_id)
        if not content:
            return cls(
                id=cell_id, row=row, col=col, position=position_label(row, col)
            )

        flags = derive_flags(content)
        return cls(
            id=cell_id,
            row=row,
            col=col,
            position=position_label(row, col),
            content=content,
            dominant_color=find_dominant_color(content),
            has_product=flags.has_product,
            has_background=flags.has_background,
            has_text=flags.has_text,
            has_logo=flags.has_logo,
            is_empty=flags.is_empty,
        )

    @property
    def flags(self) -> CellFlags:
        return CellFlags(
            has_product=self.has_product,
            has_background=self.has_background,
            has_text=self.has_text,
            has_logo=self.has_logo,
            is_empty=self.is_empty,
        )

    @property
    def is_open_space(self) -> bool:
        """Empty or background: somewhere new elements can go."""
        return self.is_empty or self.has_background


def build_cells(contents: Optional[dict[str, str]] = None) -> list[GridCell]:
    """Build all 16 cells in row-major order from an ID -> description map."""
    contents = contents or {}
    return [GridCell.from_content(cell_id, contents.get(cell_id)) for cell_id in ALL_CELL_IDS]


def select_cells(cells: Iterable[GridCell], cell_ids: Iterable[str]) -> list[GridCell]:
    """Pick cells by ID, in the order the IDs are given. Unknown IDs are skipped."""
    by_id = {cell.id: cell for cell in cells}
    return [by_id[cell_id] for cell_id in cell_ids if cell_id in by_id]
