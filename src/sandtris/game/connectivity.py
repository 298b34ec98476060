"""Read-only queries over settled sand.

A "line" in sandtris is any single-colored, 4-connected region that touches
both the left and the right wall. ``find_spanning_group`` tells whether one
exists and where it enters column 0; ``find_connected_sand`` then collects
the whole region so it can be flashed and cleared.
"""

from __future__ import annotations

import heapq
import itertools
from collections import deque
from typing import Dict, Iterator, List, Optional, Set, Tuple, Union

import numpy as np

from .grid import SandGrid
from .pieces import EMPTY

Coordinate = Tuple[int, int]


def _cells(grid: Union[SandGrid, np.ndarray]) -> np.ndarray:
    cells = grid.grid if isinstance(grid, SandGrid) else np.asarray(grid)
    if cells.ndim != 2:
        raise ValueError(f"expected a 2-D grid, got shape {cells.shape}")
    return cells


def neighbors(cells: np.ndarray, x: int, y: int, color: int) -> Iterator[Coordinate]:
    """Same-colored 4-neighbors of (x, y), in the order left, up, right, down."""
    h, w = cells.shape
    for nx, ny in ((x - 1, y), (x, y - 1), (x + 1, y), (x, y + 1)):
        if 0 <= nx < w and 0 <= ny < h and cells[ny, nx] == color:
            yield nx, ny


def find_spanning_group(grid: Union[SandGrid, np.ndarray]) -> Optional[Coordinate]:
    """Return the column-0 cell through which a wall-to-wall region is entered.

    A* search from a virtual entry node linked to every occupied cell of
    column 0. Steps cost 1 and only follow same-colored neighbors; the
    heuristic is the horizontal distance left to the last column. Returns
    None when no region spans the board.
    """
    cells = _cells(grid)
    h, w = cells.shape
    goal_x = w - 1

    counter = itertools.count()
    best: Dict[Coordinate, int] = {}
    entry_of: Dict[Coordinate, Coordinate] = {}
    closed: Set[Coordinate] = set()
    frontier: List[Tuple[int, int, Coordinate]] = []

    # Expanding the virtual entry node: one step into each occupied wall cell
    for y in range(h):
        if cells[y, 0] != EMPTY:
            node = (0, y)
            best[node] = 1
            entry_of[node] = node
            heapq.heappush(frontier, (1 + goal_x, next(counter), node))

    while frontier:
        _, _, node = heapq.heappop(frontier)
        if node in closed:
            continue
        closed.add(node)
        x, y = node
        if x == goal_x:
            return entry_of[node]
        cost = best[node] + 1
        for nb in neighbors(cells, x, y, cells[y, x]):
            if nb in closed or cost >= best.get(nb, cost + 1):
                continue
            best[nb] = cost
            entry_of[nb] = entry_of[node]
            heapq.heappush(frontier, (cost + goal_x - nb[0], next(counter), nb))
    return None


def find_connected_sand(grid: Union[SandGrid, np.ndarray], x: int, y: int) -> List[Coordinate]:
    """Breadth-first flood fill of the region sharing the color of (x, y).

    The seed comes first; the rest follow in BFS order with neighbors taken
    left, up, right, down. An empty seed yields only itself.
    """
    cells = _cells(grid)
    h, w = cells.shape
    if not (0 <= x < w and 0 <= y < h):
        raise IndexError(f"cell ({x}, {y}) is outside the {w}x{h} grid")
    color = cells[y, x]
    seed = (x, y)
    if color == EMPTY:
        return [seed]

    seen = {seed}
    order = [seed]
    queue = deque([seed])
    while queue:
        cx, cy = queue.popleft()
        for nb in neighbors(cells, cx, cy, color):
            if nb not in seen:
                seen.add(nb)
                order.append(nb)
                queue.append(nb)
    return order
