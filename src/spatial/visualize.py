"""
Text rendering of a spatial grid, for debugging edit targeting.
"""

from .grid import GRID_COLS, GRID_ROWS, ROW_LABELS, GridCell
from .models import SpatialGridAnalysis

LEGEND = "Legend: ■=Product □=Mixed ◆=Logo T=Text ·=Empty"


def cell_indicator(cell: GridCell) -> str:
    """Single-character marker; later checks take precedence."""
    indicator = "□"
    if cell.has_product:
        indicator = "■"
    if cell.has_logo:
        indicator = "◆"
    if cell.has_text:
        indicator = "T"
    if cell.is_empty:
        indicator = "·"
    return indicator


def visualize_grid(grid: SpatialGridAnalysis) -> str:
    """Render the grid as a labelled text table followed by region summaries."""
    rows = [["" for _ in range(GRID_COLS)] for _ in range(GRID_ROWS)]
    for square in grid.squares:
        rows[square.row][square.col] = f"{square.id}:{cell_indicator(square)}"

    lines = ["", "=== Spatial Grid Visualization ==="]
    lines.append("   " + "     ".join(str(col + 1) for col in range(GRID_COLS)))
    for label, row in zip(ROW_LABELS, rows):
        lines.append(f"{label} " + "".join(cell.ljust(6) for cell in row))

    lines.append("")
    lines.append(LEGEND)
    lines.append("")
    lines.append("Region Summary:")
    for region, summary in grid.dominant_regions.items():
        lines.append(f"  {region}: {summary}")

    return "\n".join(lines) + "\n"
