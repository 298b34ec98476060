from __future__ import annotations

from typing import Optional

import numpy as np
import pygame

from sandtris.game import Block, PlayMode, SandtrisGame
from sandtris.game.pieces import PALETTE


class Renderer:
    """Draws sand states with pygame, one ``sand_pixels`` square per grain."""

    def __init__(self, sand_pixels: int = 4, margin: int = 20, panel_width: int = 160,
                 palette: np.ndarray = PALETTE) -> None:
        self.sand_pixels = sand_pixels
        self.margin = margin
        self.panel_width = panel_width
        self.palette = palette
        self._font: Optional[pygame.font.Font] = None

    def window_size(self, game: SandtrisGame) -> tuple[int, int]:
        width = game.grid.width * self.sand_pixels + self.margin * 3 + self.panel_width
        height = game.grid.height * self.sand_pixels + self.margin * 2
        return width, height

    def _grid_surface(self, state: np.ndarray) -> pygame.Surface:
        rgb = self.palette[np.abs(state)]
        # surfarray wants (width, height, 3)
        surf = pygame.surfarray.make_surface(np.ascontiguousarray(rgb.transpose(1, 0, 2)))
        h, w = state.shape
        return pygame.transform.scale(surf, (w * self.sand_pixels, h * self.sand_pixels))

    def _draw_block(self, screen: pygame.Surface, game: SandtrisGame, block: Block, x0: int, y0: int) -> None:
        mask = block.mask(game.config.shapes)
        size = game.config.block_size * self.sand_pixels // 2
        color = tuple(int(c) for c in self.palette[int(block.color)])
        for py in range(mask.shape[0]):
            for px in range(mask.shape[1]):
                if mask[py, px]:
                    rect = pygame.Rect(x0 + px * size, y0 + py * size, size - 1, size - 1)
                    pygame.draw.rect(screen, color, rect)

    def _draw_panel(self, screen: pygame.Surface, game: SandtrisGame) -> None:
        if self._font is None:
            self._font = pygame.font.SysFont(None, 28)
        x0 = self.margin * 2 + game.grid.width * self.sand_pixels
        y0 = self.margin
        lines = [
            f"Score: {game.score}",
            f"Lines: {game.lines_cleared_total}",
            f"Combo: {game.rules.combo}",
            "Next:",
        ]
        for i, txt in enumerate(lines):
            img = self._font.render(txt, True, (230, 230, 230))
            screen.blit(img, (x0, y0 + i * 24))
        self._draw_block(screen, game, game.next_block, x0, y0 + len(lines) * 24 + 8)

    def _draw_banner(self, screen: pygame.Surface, text: str) -> None:
        if self._font is None:
            self._font = pygame.font.SysFont(None, 28)
        img = self._font.render(text, True, (255, 255, 255))
        rect = img.get_rect(center=(screen.get_width() // 2, screen.get_height() // 2))
        screen.blit(img, rect)

    def draw(self, screen: pygame.Surface, game: SandtrisGame) -> None:
        screen.fill((10, 10, 14))
        screen.blit(self._grid_surface(game.visible_state()), (self.margin, self.margin))
        self._draw_panel(screen, game)
        if game.game_over:
            self._draw_banner(screen, "Game Over - Press R to restart, ESC to quit")
        elif game.mode is PlayMode.PAUSED:
            self._draw_banner(screen, "Paused")
        pygame.display.flip()
