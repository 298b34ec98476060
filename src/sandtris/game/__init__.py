"""Game module for Sandtris.

Exports the sand simulation and the game engine built on top of it:
- SandGrid: Grain store shared by physics and connectivity
- physics_tick: One gravity step for every settled grain
- find_spanning_group / find_connected_sand: Wall-to-wall line detection
- Block, Shape, Color: Falling pieces and their lookup tables
- ScoringRules: Combo scoring
- SandtrisGame: Main game loop and state management
"""

from .grid import SandGrid
from .pieces import BASE_SHAPES, EMPTY, PALETTE, Block, Color, Shape, random_block
from .physics import DIAGONAL_SLOTS, Direction, MoveRequest, decide_direction, physics_tick
from .connectivity import find_connected_sand, find_spanning_group
from .rules import ScoringRules
from .core import Action, GameConfig, LineClear, PlayMode, SandtrisGame

__all__ = [
    "SandGrid",
    "BASE_SHAPES",
    "EMPTY",
    "PALETTE",
    "Block",
    "Color",
    "Shape",
    "random_block",
    "DIAGONAL_SLOTS",
    "Direction",
    "MoveRequest",
    "decide_direction",
    "physics_tick",
    "find_connected_sand",
    "find_spanning_group",
    "ScoringRules",
    "Action",
    "GameConfig",
    "LineClear",
    "PlayMode",
    "SandtrisGame",
]
