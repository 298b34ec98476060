"""Sandtris: falling blocks that crumble into sand.

Blocks land, turn into colored grains, and any single-colored region that
reaches from the left wall to the right wall is cleared.
"""

__version__ = "0.1.0"
