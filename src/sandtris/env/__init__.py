"""Gymnasium environments for Sandtris."""

from __future__ import annotations

from gymnasium.envs.registration import register

register(
    id="Sandtris-v0",
    entry_point="sandtris.env.sandtris_env:SandtrisEnv",
)

__all__ = ["Sandtris-v0"]
