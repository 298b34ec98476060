from __future__ import annotations

import random
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import List, Sequence, Tuple

import numpy as np


EMPTY = 0


class Color(IntEnum):
    RED = 1
    YELLOW = 2
    BLUE = 3
    GREEN = 4


class Shape(IntEnum):
    T = 0
    S = 1
    Z = 2
    I = 3
    O = 4


Mask = np.ndarray


def _rot90(mask: Mask, k: int) -> Mask:
    k = k % 4
    if k == 0:
        return mask
    return np.rot90(mask, k, axes=(1, 0))  # rotate clockwise when k>0


def _frozen(rows: List[List[int]]) -> Mask:
    arr = np.array(rows, dtype=np.int8)
    arr.setflags(write=False)
    return arr


# Indexed by Shape
BASE_SHAPES: Tuple[Mask, ...] = (
    _frozen([[0, 1, 0], [1, 1, 1]]),
    _frozen([[0, 1, 1], [1, 1, 0]]),
    _frozen([[1, 1, 0], [0, 1, 1]]),
    _frozen([[1, 1, 1, 1]]),
    _frozen([[1, 1], [1, 1]]),
)

# Indexed by cell value; row 0 is the background
PALETTE: np.ndarray = np.array(
    [
        (20, 20, 26),
        (204, 0, 0),
        (241, 194, 50),
        (61, 133, 198),
        (106, 168, 79),
    ],
    dtype=np.uint8,
)
PALETTE.setflags(write=False)

Coordinate = Tuple[int, int]


@dataclass(frozen=True)
class Block:
    """A falling piece, positioned in sand coordinates.

    ``x``/``y`` is the top-left sand cell of the piece's bounding box. Each
    filled mask cell covers ``block_size`` x ``block_size`` sand cells.
    """

    shape: Shape
    color: Color
    x: int = 0
    y: int = 0
    rotation: int = 0  # 0..3

    def mask(self, shapes: Sequence[Mask] = BASE_SHAPES) -> Mask:
        return _rot90(shapes[self.shape], self.rotation)

    def width(self, shapes: Sequence[Mask] = BASE_SHAPES) -> int:
        return int(self.mask(shapes).shape[1])

    def height(self, shapes: Sequence[Mask] = BASE_SHAPES) -> int:
        return int(self.mask(shapes).shape[0])

    def with_pos(self, x: int, y: int) -> "Block":
        return replace(self, x=x, y=y)

    def moved(self, dx: int, dy: int) -> "Block":
        return replace(self, x=self.x + dx, y=self.y + dy)

    def rotated(self, delta: int) -> "Block":
        return replace(self, rotation=(self.rotation + delta) % 4)

    def cells(self, shapes: Sequence[Mask], block_size: int) -> List[Coordinate]:
        """Top-left sand coordinate of every filled placement cell."""
        m = self.mask(shapes)
        h, w = m.shape
        cells: List[Coordinate] = []
        for dy in range(h):
            for dx in range(w):
                if m[dy, dx]:
                    cells.append((self.x + dx * block_size, self.y + dy * block_size))
        return cells

    def sand_cells(self, shapes: Sequence[Mask], block_size: int) -> List[Coordinate]:
        """Every sand cell covered by the piece."""
        return [
            (cx + sx, cy + sy)
            for cx, cy in self.cells(shapes, block_size)
            for sy in range(block_size)
            for sx in range(block_size)
        ]


def random_block(rng: random.Random, shapes: Sequence[Mask] = BASE_SHAPES) -> Block:
    shape = Shape(rng.randrange(len(shapes)))
    color = Color(rng.randrange(1, len(Color) + 1))
    return Block(shape=shape, color=color)
