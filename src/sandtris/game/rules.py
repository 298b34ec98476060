from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ScoringRules:
    """Combo scoring: every clear raises the combo and pays cells x combo.

    Locking a block breaks the combo.
    """

    initial_combo: int = 1
    points_per_cell: int = 1

    def __post_init__(self) -> None:
        self.combo = self.initial_combo

    def reset(self) -> None:
        self.combo = self.initial_combo

    def break_combo(self) -> None:
        self.combo = 0

    def score_for_clear(self, cells_cleared: int) -> int:
        if cells_cleared <= 0:
            return 0
        self.combo += 1
        return cells_cleared * self.points_per_cell * self.combo
