"""
Spatial grid analysis and edit targeting.

Pure, I/O-free building blocks:
- Grid model and the shared region -> cell table
- Analysis text parser
- Region summarizer
- Edit instruction mapper
- Placement advisor (flood fill)
- Precision scorer
"""

from .edit_mapper import (
    expand_prompt,
    identify_affected_squares,
    region_prompt,
    spatial_edit_instructions,
)
from .grid import (
    ALL_CELL_IDS,
    LOGO_CELLS,
    REGION_CELLS,
    CellFlags,
    GridCell,
    derive_flags,
    find_dominant_color,
    position_label,
)
from .models import ImageAnalysis, SpatialGridAnalysis
from .parser import parse_analysis_text, parse_spatial_grid
from .placement import (
    ELEMENT_TYPES,
    PlacementSuggestion,
    find_contiguous_groups,
    suggest_placement,
)
from .precision import EditPrecision, score_edit_precision
from .summarizer import summarize_cells, summarize_regions
from .visualize import visualize_grid

__all__ = [
    # Grid model
    "ALL_CELL_IDS",
    "LOGO_CELLS",
    "REGION_CELLS",
    "CellFlags",
    "GridCell",
    "derive_flags",
    "find_dominant_color",
    "position_label",
    # Records
    "ImageAnalysis",
    "SpatialGridAnalysis",
    # Parsing and summaries
    "parse_analysis_text",
    "parse_spatial_grid",
    "summarize_cells",
    "summarize_regions",
    # Editing
    "expand_prompt",
    "identify_affected_squares",
    "region_prompt",
    "spatial_edit_instructions",
    # Placement and scoring
    "ELEMENT_TYPES",
    "PlacementSuggestion",
    "find_contiguous_groups",
    "suggest_placement",
    "EditPrecision",
    "score_edit_precision",
    # Debugging
    "visualize_grid",
]
