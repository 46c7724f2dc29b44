"""
Tests for mapping edit instructions onto grid cells.

Run with: pytest tests/test_edit_mapper.py -v
"""

import pytest

from src.spatial.edit_mapper import (
    expand_prompt,
    identify_affected_squares,
    region_prompt,
    spatial_edit_instructions,
)
from src.spatial.grid import LOGO_CELLS


class TestExpandPrompt:
    """Spatial context annotations."""

    def test_no_grid_returns_instruction(self):
        assert expand_prompt("Add a logo to the top-left", None) == (
            "Add a logo to the top-left"
        )

    def test_no_position_keyword(self, shirt_grid):
        assert expand_prompt("Make it more vivid", shirt_grid) == "Make it more vivid"

    def test_single_keyword_clause(self, shirt_grid):
        result = expand_prompt("Embroider the chest", shirt_grid)
        assert result == (
            "Embroider the chest [Spatial context: Target area chest includes grid "
            "squares B2, B3. Current content: B2: Shirt chest with small brand logo, "
            "B3: Shirt chest, plain navy]"
        )

    def test_compound_keyword_accumulates(self, shirt_grid):
        """'top-left' also matches 'top' and 'left'."""
        result = expand_prompt("Add a logo to the top-left", shirt_grid)
        assert result.count("[Spatial context:") == 3
        assert result.index("Target area top-left") < result.index("Target area top ")
        assert result.index("Target area top ") < result.index("Target area left")
        assert (
            "[Spatial context: Target area top-left includes grid squares A1. "
            "Current content: A1: Empty white background]"
        ) in result

    def test_case_insensitive(self, shirt_grid):
        result = expand_prompt("Recolor the COLLAR", shirt_grid)
        assert "Target area collar includes grid squares A2, A3" in result

    def test_garment_keywords(self, shirt_grid):
        result = expand_prompt("Add a pocket and roll the sleeve", shirt_grid)
        assert "Target area sleeve includes grid squares B1, B4" in result
        assert "Target area pocket includes grid squares B2, C2" in result

    def test_middle_is_not_a_prompt_keyword(self, shirt_grid):
        assert expand_prompt("Shrink the middle", shirt_grid) == "Shrink the middle"

    def test_unspecified_cells_reported(self, make_grid):
        result = expand_prompt("Add a badge bottom-right", make_grid({}))
        assert "D4: Not specified" in result


class TestIdentifyAffectedSquares:
    """Which cells an instruction targets."""

    def test_color_change_hits_product_cells(self, make_grid):
        grid = make_grid({"A1": "Shirt collar", "B2": "Shirt chest"})
        assert identify_affected_squares("change the color", grid) == {"A1", "B2"}

    def test_colour_spelling(self, make_grid):
        grid = make_grid({"C3": "Garment body"})
        assert identify_affected_squares("New colour please", grid) == {"C3"}

    def test_literal_cell_ids(self, make_grid):
        grid = make_grid({})
        assert identify_affected_squares("Remove the stain in A1 and D4", grid) == {
            "A1",
            "D4",
        }

    def test_literal_ids_case_sensitive(self, make_grid):
        assert identify_affected_squares("fix a1", make_grid({})) == set()

    def test_logo_heuristic(self, make_grid):
        assert identify_affected_squares("Add our brand mark", make_grid({})) == set(
            LOGO_CELLS
        )

    def test_background(self, shirt_grid):
        result = identify_affected_squares("Swap the background for grey", shirt_grid)
        assert result == {"A1", "A4", "C1", "C4", "D1", "D4", "B3"}

    def test_rules_are_additive(self, shirt_grid):
        result = identify_affected_squares(
            "Change the background and add a logo near D2", shirt_grid
        )
        expected = {"A1", "A4", "C1", "C4", "D1", "D4", "B3"} | set(LOGO_CELLS) | {"D2"}
        assert result == expected

    def test_nothing_matched(self, shirt_grid):
        assert identify_affected_squares("Make it pop", shirt_grid) == set()


class TestSpatialEditInstructions:
    """Per-cell cautions."""

    def test_notes(self, shirt_grid):
        result = spatial_edit_instructions(["B2", "A1"], shirt_grid)
        assert result == (
            "Square B2 contains product - modify carefully. "
            "Square B2 already has a logo - consider placement. "
            "Square A1 is empty - good for adding new elements"
        )

    def test_no_grid(self):
        assert spatial_edit_instructions(["A1"], None) == ""

    def test_unknown_cell_skipped(self, shirt_grid):
        assert spatial_edit_instructions(["Z9"], shirt_grid) == ""


class TestRegionPrompt:
    """Region-level edit prompts."""

    def test_center(self, shirt_grid):
        result = region_prompt("center", "add embroidery", shirt_grid)
        assert result.startswith(
            'Apply "add embroidery" to the center region (squares: B2, B3, C2, C3). '
            "Current center contains: Product with logo. "
            "Detailed state: B2: Shirt chest with small brand logo; "
        )

    def test_unknown_region(self, shirt_grid):
        with pytest.raises(ValueError):
            region_prompt("chest", "add embroidery", shirt_grid)
