"""Per-tick sand physics.

Each tick sweeps adjacent row pairs from the floor upwards. For one pair the
grains of the upper row decide where they want to go, colliding requests are
resolved, and the surviving moves are applied in place. A grain therefore
falls at most one cell per tick.

All randomness comes from the injected ``random.Random`` and is drawn in a
fixed order (rows bottom to top, columns left to right, then conflict passes
left to right), so a seeded stream replays the same sand.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from .grid import SandGrid
from .pieces import EMPTY

logger = logging.getLogger(__name__)

# Out of this many draws, one lets a grain slip down-left and one down-right
# instead of falling straight. Purely a look-and-feel knob.
DIAGONAL_SLOTS = 32


class Direction(IntEnum):
    LEFT = 0
    RIGHT = 1
    DOWN = 2

    @property
    def dx(self) -> int:
        return _DX[self]


_DX = (-1, 1, 0)


@dataclass(frozen=True)
class MoveRequest:
    primary: Direction
    secondary: Optional[Direction] = None

    def fallback(self) -> Optional["MoveRequest"]:
        """Request left over once ``primary`` loses a conflict."""
        if self.secondary is None:
            return None
        return MoveRequest(self.secondary)


Requests = List[Optional[MoveRequest]]


def decide_direction(
    rng: random.Random,
    left: bool,
    down: bool,
    right: bool,
    slots: int = DIAGONAL_SLOTS,
) -> Optional[MoveRequest]:
    """Pick a move for one grain from the occupancy of the three cells under it.

    ``left``, ``down`` and ``right`` are True when the below-left, below and
    below-right cells are occupied (off-board counts as occupied).
    """
    if slots < 2:
        raise ValueError(f"slots must be at least 2, got {slots}")
    if left and down and right:
        return None
    if down:
        if not left and not right:
            if rng.randrange(2) == 0:
                return MoveRequest(Direction.LEFT, Direction.RIGHT)
            return MoveRequest(Direction.RIGHT, Direction.LEFT)
        if not left:
            return MoveRequest(Direction.LEFT)
        return MoveRequest(Direction.RIGHT)
    if left and right:
        return MoveRequest(Direction.DOWN)
    if not left and not right:
        # Free fall: nothing to slide off
        return MoveRequest(Direction.DOWN)
    slot = rng.randrange(slots)
    if slot == 0 and not left:
        return MoveRequest(Direction.LEFT, Direction.DOWN)
    if slot == slots - 1 and not right:
        return MoveRequest(Direction.RIGHT, Direction.DOWN)
    return MoveRequest(Direction.DOWN)


def decide_line(
    rng: random.Random,
    upper: np.ndarray,
    lower: np.ndarray,
    slots: int = DIAGONAL_SLOTS,
) -> Requests:
    width = int(upper.shape[0])
    if lower.shape[0] != width:
        raise ValueError(f"row widths differ: {width} vs {lower.shape[0]}")
    requests: Requests = [None] * width
    for x in np.flatnonzero(upper):
        x = int(x)
        left = x == 0 or lower[x - 1] != EMPTY
        down = lower[x] != EMPTY
        right = x == width - 1 or lower[x + 1] != EMPTY
        requests[x] = decide_direction(rng, bool(left), bool(down), bool(right), slots)
    return requests


def _contested(requests: Requests) -> List[Tuple[int, List[int]]]:
    claims: Dict[int, List[int]] = {}
    for x, req in enumerate(requests):
        if req is not None:
            claims.setdefault(x + req.primary.dx, []).append(x)
    return [(dest, sources) for dest, sources in sorted(claims.items()) if len(sources) > 1]


def resolve_conflicts(rng: random.Random, requests: Requests) -> int:
    """Veto requests until no two grains target the same cell.

    Mutates ``requests`` in place and returns the number of passes that had
    something to resolve. A straight-down claim always beats a diagonal claim
    on the same cell; two diagonals converging on one cell are settled by a
    coin flip. A vetoed grain falls back to its secondary direction, or stays.

    Every veto drops one of a grain's at most two options, so a row of width
    ``w`` sees at most ``2 * w`` vetoes, and each pass makes at least one.
    """
    limit = 2 * len(requests)
    passes = 0
    while True:
        contested = _contested(requests)
        if not contested:
            return passes
        if passes >= limit:
            raise RuntimeError(f"conflict resolution did not settle after {passes} passes")
        passes += 1
        for dest, sources in contested:
            if dest in sources:
                for x in sources:
                    if x != dest:
                        requests[x] = requests[x].fallback()
            else:
                left_x, right_x = sources
                loser = left_x if rng.randrange(2) == 0 else right_x
                requests[loser] = requests[loser].fallback()


def apply_moves(upper: np.ndarray, lower: np.ndarray, requests: Sequence[Optional[MoveRequest]]) -> int:
    moved = 0
    for x, req in enumerate(requests):
        if req is None:
            continue
        dest = x + req.primary.dx
        if lower[dest] != EMPTY:
            raise RuntimeError(f"grain at column {x} moving {req.primary.name} onto occupied column {dest}")
        lower[dest] = upper[x]
        upper[x] = EMPTY
        moved += 1
    return moved


def run_physics_line(
    rng: random.Random,
    upper: np.ndarray,
    lower: np.ndarray,
    slots: int = DIAGONAL_SLOTS,
) -> int:
    """Move grains from ``upper`` into ``lower`` (both mutable 1-D row views)."""
    if not upper.any():
        return 0
    requests = decide_line(rng, upper, lower, slots)
    passes = resolve_conflicts(rng, requests)
    if passes > 1:
        logger.debug("row conflicts settled in %d passes", passes)
    return apply_moves(upper, lower, requests)


def physics_tick(
    grid: Union[SandGrid, np.ndarray],
    rng: random.Random,
    slots: int = DIAGONAL_SLOTS,
) -> int:
    """Advance every grain by at most one cell. Returns the number of grains moved."""
    cells = grid.grid if isinstance(grid, SandGrid) else grid
    if cells.ndim != 2:
        raise ValueError(f"expected a 2-D grid, got shape {cells.shape}")
    moved = 0
    for y in range(cells.shape[0] - 2, -1, -1):
        moved += run_physics_line(rng, cells[y], cells[y + 1], slots)
    return moved
