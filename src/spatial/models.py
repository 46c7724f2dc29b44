"""
Analysis record types.

ImageAnalysis is created once per (image, vision-model call) and never
mutated afterwards; a new edit produces a new record. Both models are
frozen pydantic models so they serialize straight into the analysis cache.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .grid import ALL_CELL_IDS, GRID_SIZE, GridCell, build_cells


class SpatialGridAnalysis(BaseModel):
    """Per-cell breakdown of one image plus region summaries."""

    model_config = ConfigDict(frozen=True)

    grid_size: str = GRID_SIZE
    squares: list[GridCell] = Field(default_factory=build_cells)
    dominant_regions: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_complete(self) -> "SpatialGridAnalysis":
        """The grid is never partial: all 16 cells, row-major."""
        ids = tuple(square.id for square in self.squares)
        if ids != ALL_CELL_IDS:
            raise ValueError(
                f"Spatial grid must contain cells {', '.join(ALL_CELL_IDS)} in order"
            )
        return self

    def square(self, cell_id: str) -> Optional[GridCell]:
        """Look up a cell by ID."""
        for square in self.squares:
            if square.id == cell_id:
                return square
        return None

    def cells_where(self, predicate) -> list[GridCell]:
        """Cells matching a predicate, row-major."""
        return [square for square in self.squares if predicate(square)]


class ImageAnalysis(BaseModel):
    """Structured analysis of a single product image."""

    model_config = ConfigDict(frozen=True)

    product_type: Optional[str] = None
    current_colors: list[str] = Field(default_factory=list)
    materials: list[str] = Field(default_factory=list)
    textures: list[str] = Field(default_factory=list)
    key_features: list[str] = Field(default_factory=list)
    style: Optional[str] = None
    quality: Optional[str] = None
    view_specific_details: dict[str, str] = Field(default_factory=dict)
    spatial_grid: Optional[SpatialGridAnalysis] = None
    full_analysis: str = ""  # Raw model text, kept for audit and manual recovery
    suggestions: list[str] = Field(default_factory=list)
    timestamp: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        """True when nothing at all was extracted and no raw text exists."""
        return not (
            self.full_analysis.strip()
            or self.product_type
            or self.current_colors
            or self.materials
            or self.key_features
            or self.style
        )

    def to_dict(self) -> dict:
        """Convert to a JSON-compatible dictionary for storage."""
        return self.model_dump(mode="json")
