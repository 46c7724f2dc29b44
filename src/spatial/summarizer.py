"""
Region summarizer: reduces a group of grid cells to a one-line label.
"""

from typing import Sequence

from .grid import REGION_CELLS, SUMMARY_REGIONS, GridCell, select_cells

EMPTY_SUMMARY = "Empty/Background"
PRODUCT_WITH_LOGO_SUMMARY = "Product with logo"
PRODUCT_SUMMARY = "Product"
LOGO_SUMMARY = "Logo area"
MIXED_SUMMARY = "Mixed content"


def summarize_cells(cells: Sequence[GridCell]) -> str:
    """
    Describe a group of cells in one line.

    Priority order:
        1. every cell empty        -> "Empty/Background"
        2. product and logo        -> "Product with logo"
        3. product                 -> "Product"
        4. logo                    -> "Logo area"
        5. any dominant colors     -> "<colors> area"
        6. otherwise               -> "Mixed content"
    """
    if not cells:
        return MIXED_SUMMARY

    has_product = any(cell.has_product for cell in cells)
    has_logo = any(cell.has_logo for cell in cells)

    if all(cell.is_empty for cell in cells):
        return EMPTY_SUMMARY
    if has_product and has_logo:
        return PRODUCT_WITH_LOGO_SUMMARY
    if has_product:
        return PRODUCT_SUMMARY
    if has_logo:
        return LOGO_SUMMARY

    # Distinct colors, first-seen order
    colors = list(
        dict.fromkeys(cell.dominant_color for cell in cells if cell.dominant_color)
    )
    if colors:
        return f"{', '.join(colors)} area"
    return MIXED_SUMMARY


def summarize_regions(cells: Sequence[GridCell]) -> dict[str, str]:
    """Summaries for top, bottom, left, right, center and middle."""
    return {
        region: summarize_cells(select_cells(cells, REGION_CELLS[region]))
        for region in SUMMARY_REGIONS
    }
