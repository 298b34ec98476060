from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import numpy as np
import gymnasium as gym
from gymnasium import spaces

from sandtris.game import Action, Color, GameConfig, SandtrisGame

# Pausing and resetting belong to the episode loop, not the agent
AGENT_ACTIONS: Tuple[Action, ...] = (
    Action.NONE,
    Action.LEFT,
    Action.RIGHT,
    Action.SOFT_DROP,
    Action.HARD_DROP,
    Action.ROTATE,
)


class SandtrisEnv(gym.Env):
    metadata = {"render_modes": ["rgb_array"], "render_fps": 30}

    def __init__(self, config: Optional[GameConfig] = None, render_mode: Optional[str] = None,
                 max_episode_steps: int = 20_000, cell_pixels: int = 4) -> None:
        super().__init__()
        self.game = SandtrisGame(config)
        self.render_mode = render_mode
        self.max_episode_steps = int(max_episode_steps)
        self.cell_pixels = int(cell_pixels)
        # One env step is one physics frame
        self.frame_dt = self.game.config.physics_delay

        h, w = self.game.grid.height, self.game.grid.width
        n_colors = len(Color)
        # Settled grains are positive colors, the falling block is negative
        self.observation_space = spaces.Box(low=-n_colors, high=n_colors, shape=(h, w), dtype=np.int8)
        self.action_space = spaces.Discrete(len(AGENT_ACTIONS))

        self._last_obs: Optional[np.ndarray] = None
        self._steps = 0

    def _get_info(self) -> Dict[str, Any]:
        return {
            "score": self.game.score,
            "lines_cleared_total": self.game.lines_cleared_total,
            "combo": self.game.rules.combo,
            "clearing": self.game.line_clear is not None,
            "steps": self._steps,
        }

    def reset(self, *, seed: Optional[int] = None, options: Optional[dict] = None) -> Tuple[np.ndarray, Dict[str, Any]]:
        super().reset(seed=seed)
        self.game.reset(seed)
        self._steps = 0
        obs = self.game.get_state()
        self._last_obs = obs
        return obs, self._get_info()

    def step(self, action: int):
        game_action = AGENT_ACTIONS[int(action)]
        obs, gained, done, _ = self.game.step(game_action, self.frame_dt)
        self._steps += 1
        terminated = bool(done)
        truncated = self._steps >= self.max_episode_steps
        self._last_obs = obs
        info = self._get_info()
        info["engine_score_delta"] = int(gained)
        return obs, float(gained), terminated, truncated, info

    def render(self) -> Optional[np.ndarray]:
        if self.render_mode == "rgb_array":
            state = self.game.visible_state()
            img = self.game.config.palette[np.abs(state)]
            scale = self.cell_pixels
            return np.repeat(np.repeat(img, scale, axis=0), scale, axis=1)
        # human rendering delegated to external UI; noop
        return None

    def close(self) -> None:
        pass
