from __future__ import annotations

from typing import Iterable, Tuple

import numpy as np

from .pieces import EMPTY


Coordinate = Tuple[int, int]


class SandGrid:
    """Discrete 2D sand store.

    The grid uses 0 for empty cells and a ``Color`` value for cells holding a
    grain. Origin is top-left, ``y`` grows downwards and row ``height - 1`` is
    the floor. Cells are addressed as ``grid[y, x]``.
    """

    def __init__(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"grid dimensions must be positive, got {width}x{height}")
        self.width = int(width)
        self.height = int(height)
        self.grid = np.zeros((self.height, self.width), dtype=np.int8)

    @classmethod
    def from_array(cls, cells: np.ndarray) -> "SandGrid":
        cells = np.asarray(cells)
        if cells.ndim != 2:
            raise ValueError(f"expected a 2-D array, got shape {cells.shape}")
        h, w = cells.shape
        sand = cls(w, h)
        sand.grid[:, :] = cells
        return sand

    def reset(self) -> None:
        self.grid.fill(EMPTY)

    def is_inside(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def _check_inside(self, x: int, y: int) -> None:
        if not self.is_inside(x, y):
            raise IndexError(f"cell ({x}, {y}) is outside the {self.width}x{self.height} grid")

    def color_at(self, x: int, y: int) -> int:
        self._check_inside(x, y)
        return int(self.grid[y, x])

    def is_empty(self, x: int, y: int) -> bool:
        return self.color_at(x, y) == EMPTY

    def region_is_empty(self, x: int, y: int, w: int, h: int) -> bool:
        """True if the ``w`` x ``h`` box at (x, y) is on the board and empty."""
        if x < 0 or y < 0 or x + w > self.width or y + h > self.height:
            return False
        return not self.grid[y : y + h, x : x + w].any()

    def stamp(self, cells: Iterable[Coordinate], color: int, overwrite: bool = False) -> int:
        """Write ``color`` into every cell. Returns the number of cells written.

        Off-board cells raise IndexError. Occupied cells raise ValueError
        unless ``overwrite`` is set, in which case the grain there is replaced.
        """
        cells = list(cells)
        for x, y in cells:
            self._check_inside(x, y)
            if not overwrite and self.grid[y, x] != EMPTY:
                raise ValueError(f"cell ({x}, {y}) is already occupied")
        for x, y in cells:
            self.grid[y, x] = color
        return len(cells)

    def clear_cells(self, cells: Iterable[Coordinate]) -> int:
        cleared = 0
        for x, y in cells:
            self._check_inside(x, y)
            if self.grid[y, x] != EMPTY:
                cleared += 1
            self.grid[y, x] = EMPTY
        return cleared

    def count_grains(self) -> int:
        return int(np.count_nonzero(self.grid))

    def clone_state(self) -> np.ndarray:
        return self.grid.copy()
