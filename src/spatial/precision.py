"""
Precision scorer for spatially targeted edits.

Compares the cells an edit was meant to change with the cells that
actually changed after the edit was applied.
"""

import math
from dataclasses import dataclass, field
from typing import Iterable


@dataclass
class EditPrecision:
    """Edit quality metrics. Percentages are integers in 0-100."""

    precision: int = 0
    accuracy: int = 0
    unintended_changes: list[str] = field(default_factory=list)
    missed_targets: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "precision": self.precision,
            "accuracy": self.accuracy,
            "unintended_changes": list(self.unintended_changes),
            "missed_targets": list(self.missed_targets),
        }


def _percent(numerator: int, denominator: int) -> int:
    """Ratio as a whole percent, rounding halves up. Zero denominator gives 0."""
    if denominator == 0:
        return 0
    return int(math.floor(numerator * 100 / denominator + 0.5))


def score_edit_precision(
    intended: Iterable[str], actual: Iterable[str]
) -> EditPrecision:
    """
    Score an edit.

    precision = |intended ∩ actual| / |actual|
    accuracy  = |intended ∩ actual| / |intended|

    Args:
        intended: Cells the edit targeted
        actual: Cells that changed

    Returns:
        EditPrecision; list fields keep input order without duplicates
    """
    intended_cells = list(dict.fromkeys(intended))
    actual_cells = list(dict.fromkeys(actual))
    intended_set = set(intended_cells)
    actual_set = set(actual_cells)

    correctly_modified = intended_set & actual_set

    return EditPrecision(
        precision=_percent(len(correctly_modified), len(actual_cells)),
        accuracy=_percent(len(correctly_modified), len(intended_cells)),
        unintended_changes=[cell for cell in actual_cells if cell not in intended_set],
        missed_targets=[cell for cell in intended_cells if cell not in actual_set],
    )
