from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Dict, List, Optional, Tuple

import numpy as np

from .connectivity import find_connected_sand, find_spanning_group
from .grid import SandGrid
from .physics import DIAGONAL_SLOTS, Direction, physics_tick
from .pieces import BASE_SHAPES, PALETTE, Block, Color, Mask, Shape, random_block
from .rules import ScoringRules

logger = logging.getLogger(__name__)

Coordinate = Tuple[int, int]

_OFFSETS = {
    Direction.LEFT: (-1, 0),
    Direction.RIGHT: (1, 0),
    Direction.DOWN: (0, 1),
}


class Action(IntEnum):
    NONE = 0
    LEFT = 1
    RIGHT = 2
    SOFT_DROP = 3
    HARD_DROP = 4
    ROTATE = 5
    PAUSE = 6
    RESET = 7


class PlayMode(Enum):
    PLAYING = "playing"
    PAUSED = "paused"
    GAME_OVER = "game_over"

    def toggle_pause(self) -> "PlayMode":
        if self is PlayMode.PLAYING:
            return PlayMode.PAUSED
        if self is PlayMode.PAUSED:
            return PlayMode.PLAYING
        return self


@dataclass
class GameConfig:
    board_blocks: Tuple[int, int] = (10, 18)  # (columns, rows) of placement cells
    block_size: int = 8  # sand cells per placement cell edge
    random_seed: Optional[int] = None
    move_delay: float = 1.0 / 6.0
    first_input_delay: float = 0.1
    input_delay: float = 1.0 / 60.0
    move_repeat: int = 2
    physics_delay: float = 1.0 / 30.0
    flash_delay: float = 1.0 / 4.0
    diagonal_slots: int = DIAGONAL_SLOTS
    shapes: Tuple[Mask, ...] = BASE_SHAPES
    palette: np.ndarray = field(default_factory=lambda: PALETTE)

    def __post_init__(self) -> None:
        cols, rows = self.board_blocks
        if cols <= 0 or rows <= 0 or self.block_size <= 0:
            raise ValueError(f"board must be non-empty, got {self.board_blocks} x {self.block_size}")
        if self.move_repeat <= 0:
            raise ValueError("move_repeat must be positive")
        if min(self.move_delay, self.input_delay, self.physics_delay, self.flash_delay) <= 0:
            raise ValueError("delays must be positive")
        if self.diagonal_slots < 2:
            raise ValueError("diagonal_slots must be at least 2")
        if len(self.shapes) != len(Shape):
            raise ValueError(f"expected {len(Shape)} shapes, got {len(self.shapes)}")
        if self.palette.shape != (len(Color) + 1, 3):
            raise ValueError(f"palette must have shape {(len(Color) + 1, 3)}, got {self.palette.shape}")

    @property
    def width(self) -> int:
        return self.board_blocks[0] * self.block_size

    @property
    def height(self) -> int:
        return self.board_blocks[1] * self.block_size


@dataclass
class LineClear:
    """A spanning region flashing before it is removed."""

    cells: List[Coordinate]
    elapsed: float = 0.0
    visible: bool = False

    def advance(self, dt: float, flash_delay: float) -> bool:
        """Step the flash. Returns False once the animation has finished."""
        self.elapsed += dt
        t = self.elapsed
        if t < flash_delay or flash_delay * 2 <= t < flash_delay * 3:
            self.visible = False
        elif t <= flash_delay * 4:
            self.visible = True
        else:
            return False
        return True


class SandtrisGame:
    def __init__(self, config: Optional[GameConfig] = None, rules: Optional[ScoringRules] = None) -> None:
        self.config = config or GameConfig()
        self.rules = rules or ScoringRules()
        self.rng = random.Random(self.config.random_seed)
        self.grid = SandGrid(self.config.width, self.config.height)
        self.elapsed_time = 0.0
        self.mode = PlayMode.PLAYING
        self.score = 0
        self.lines_cleared_total = 0
        self.line_clear: Optional[LineClear] = None
        self.falling_block: Optional[Block] = None
        self.next_block: Block = random_block(self.rng, self.config.shapes)
        self.held: Dict[Direction, float] = {}
        self.drop_queued = False
        self.next_move = 0.0
        self.next_physics_update = 0.0
        self.reset()

    @property
    def game_over(self) -> bool:
        return self.mode is PlayMode.GAME_OVER

    def reset(self, seed: Optional[int] = None) -> None:
        if seed is not None:
            self.rng.seed(seed)
        self.grid.reset()
        self.mode = PlayMode.PLAYING
        self.score = 0
        self.lines_cleared_total = 0
        self.rules.reset()
        self.line_clear = None
        self.falling_block = None
        self.next_block = random_block(self.rng, self.config.shapes)
        self.held = {}
        self.drop_queued = False
        self.elapsed_time = 0.0
        self.next_move = self.config.move_delay
        self.next_physics_update = 0.0

    # Input

    def press(self, direction: Direction) -> None:
        if self.mode is PlayMode.PLAYING:
            self.move_block(direction)
        self.held[direction] = self.elapsed_time + self.config.first_input_delay

    def release(self, direction: Direction) -> None:
        self.held.pop(direction, None)

    def queue_drop(self) -> None:
        self.drop_queued = True

    def toggle_pause(self) -> None:
        self.mode = self.mode.toggle_pause()

    def rotate(self) -> None:
        if self.mode is not PlayMode.PLAYING or self.falling_block is None:
            return
        rotated = self.falling_block.rotated(1)
        if self._fits(rotated):
            self.falling_block = rotated

    # Falling block

    def _fits(self, block: Block) -> bool:
        size = self.config.block_size
        return all(
            self.grid.region_is_empty(cx, cy, size, size)
            for cx, cy in block.cells(self.config.shapes, size)
        )

    def can_move(self, direction: Direction) -> bool:
        if self.falling_block is None:
            return False
        dx, dy = _OFFSETS[direction]
        return self._fits(self.falling_block.moved(dx, dy))

    def move_block(self, direction: Direction) -> None:
        for _ in range(self.config.move_repeat):
            if self.falling_block is None:
                return
            if direction is Direction.DOWN:
                if self.can_move(Direction.DOWN):
                    self.falling_block = self.falling_block.moved(0, 1)
                else:
                    self._lock_block()
                    return
            elif self.can_move(direction):
                dx, dy = _OFFSETS[direction]
                self.falling_block = self.falling_block.moved(dx, dy)

    def _lock_block(self) -> None:
        assert self.falling_block is not None
        block = self.falling_block
        # Grains that slid under the block are buried by it
        self.grid.stamp(block.sand_cells(self.config.shapes, self.config.block_size), int(block.color), overwrite=True)
        self.falling_block = None
        self.rules.break_combo()
        logger.debug("locked %s %s at (%d, %d)", block.color.name, block.shape.name, block.x, block.y)

    def _spawn_block(self) -> None:
        block = self.next_block
        x = self.grid.width // 2 - block.width(self.config.shapes) * self.config.block_size // 2
        self.falling_block = block.with_pos(max(0, x), 0)
        self.next_block = random_block(self.rng, self.config.shapes)
        if not self.can_move(Direction.DOWN):
            self.mode = PlayMode.GAME_OVER
            logger.info("game over with score %d after %d clears", self.score, self.lines_cleared_total)

    # Line clears

    def _finish_line_clear(self) -> None:
        assert self.line_clear is not None
        cells = self.line_clear.cells
        self.grid.clear_cells(cells)
        gained = self.rules.score_for_clear(len(cells))
        self.score += gained
        self.lines_cleared_total += 1
        self.line_clear = None
        logger.debug("cleared %d grains for %d points (combo %d)", len(cells), gained, self.rules.combo)

    def _check_lines(self) -> None:
        entry = find_spanning_group(self.grid)
        if entry is None:
            return
        cells = find_connected_sand(self.grid, *entry)
        self.line_clear = LineClear(cells=cells)
        logger.debug("spanning group entering at %s with %d grains", entry, len(cells))

    # Main loop

    def update(self, dt: float) -> None:
        if self.mode is not PlayMode.PLAYING:
            return

        if self.line_clear is not None:
            # The board is frozen while the line flashes
            if self.line_clear.advance(dt, self.config.flash_delay):
                return
            self._finish_line_clear()

        self.elapsed_time += dt

        for direction, due in list(self.held.items()):
            if self.elapsed_time >= due:
                self.move_block(direction)
                self.held[direction] = due + self.config.input_delay

        if self.drop_queued:
            while self.falling_block is not None:
                self.move_block(Direction.DOWN)
            self.drop_queued = False

        if self.elapsed_time >= self.next_physics_update:
            physics_tick(self.grid, self.rng, self.config.diagonal_slots)
            self.next_physics_update += self.config.physics_delay

        self._check_lines()

        if self.elapsed_time >= self.next_move:
            if self.falling_block is not None:
                if Direction.DOWN not in self.held:
                    self.move_block(Direction.DOWN)
            else:
                self._spawn_block()
            self.next_move += self.config.move_delay

    def step(self, action: Action, dt: float) -> Tuple[np.ndarray, int, bool, dict]:
        """Apply one action, then advance the clock by ``dt`` seconds."""
        if action == Action.RESET:
            self.reset()
        elif action == Action.PAUSE:
            self.toggle_pause()
        elif self.mode is PlayMode.PLAYING:
            if action == Action.LEFT:
                self.move_block(Direction.LEFT)
            elif action == Action.RIGHT:
                self.move_block(Direction.RIGHT)
            elif action == Action.SOFT_DROP:
                self.move_block(Direction.DOWN)
            elif action == Action.HARD_DROP:
                self.queue_drop()
            elif action == Action.ROTATE:
                self.rotate()

        before = self.score
        self.update(dt)
        info = {
            "score": self.score,
            "lines_cleared_total": self.lines_cleared_total,
            "combo": self.rules.combo,
            "clearing": self.line_clear is not None,
        }
        return self.get_state(), self.score - before, self.game_over, info

    def get_state(self) -> np.ndarray:
        # Overlay the falling block on a copy of the grid for observation
        state = self.grid.clone_state()
        block = self.falling_block
        if block is not None and not self.game_over:
            for x, y in block.sand_cells(self.config.shapes, self.config.block_size):
                if self.grid.is_inside(x, y):
                    # Use negative to indicate falling block overlay
                    state[y, x] = -int(block.color)
        return state

    def visible_state(self) -> np.ndarray:
        """Like ``get_state`` but with flashing cells blanked while hidden."""
        state = self.get_state()
        if self.line_clear is not None and not self.line_clear.visible:
            for x, y in self.line_clear.cells:
                state[y, x] = 0
        return state
