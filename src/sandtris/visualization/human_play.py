from __future__ import annotations

import argparse
import logging
from typing import Dict, Optional

import pygame

from sandtris.game import Direction, GameConfig, SandtrisGame
from .renderer import Renderer


KEY_TO_DIRECTION: Dict[int, Direction] = {
    pygame.K_LEFT: Direction.LEFT,
    pygame.K_RIGHT: Direction.RIGHT,
    pygame.K_DOWN: Direction.DOWN,
}


def handle_event(game: SandtrisGame, event: pygame.event.Event) -> bool:
    """Feed one pygame event to the game. Returns False when the player quits."""
    if event.type == pygame.QUIT:
        return False
    if event.type == pygame.KEYDOWN:
        if event.key == pygame.K_ESCAPE:
            return False
        direction = KEY_TO_DIRECTION.get(event.key)
        if direction is not None:
            game.press(direction)
        elif event.key == pygame.K_UP:
            game.rotate()
    elif event.type == pygame.KEYUP:
        direction = KEY_TO_DIRECTION.get(event.key)
        if direction is not None:
            game.release(direction)
        elif event.key == pygame.K_SPACE:
            game.queue_drop()
        elif event.key == pygame.K_p:
            game.toggle_pause()
        elif event.key == pygame.K_r:
            game.reset()
    return True


def run(seed: Optional[int] = None, fps: int = 60) -> None:
    pygame.init()
    try:
        clock = pygame.time.Clock()
        game = SandtrisGame(GameConfig(random_seed=seed))
        renderer = Renderer()
        screen = pygame.display.set_mode(renderer.window_size(game))
        pygame.display.set_caption("Sandtris")

        running = True
        while running:
            for event in pygame.event.get():
                if not handle_event(game, event):
                    running = False
                    break
            dt = clock.tick(fps) / 1000.0
            game.update(dt)
            renderer.draw(screen, game)
        print(f"Final score: {game.score} ({game.lines_cleared_total} lines)")
    finally:
        pygame.quit()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Play Sandtris with the keyboard")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--fps", type=int, default=60)
    p.add_argument("--verbose", action="store_true", help="log game events")
    return p


def main() -> None:
    args = build_parser().parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(asctime)s %(name)s %(levelname)s %(message)s")
    run(seed=args.seed, fps=args.fps)


if __name__ == "__main__":  # pragma: no cover
    main()
