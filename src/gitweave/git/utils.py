"""Environment helpers for git invocations."""

from __future__ import annotations

import os
from typing import Mapping

_SANITIZED_VARS = {
    "GIT_DIR",
    "GIT_WORK_TREE",
    "GIT_INDEX_FILE",
}


def base_environment() -> dict[str, str]:
    """Return the process environment without variables that pin git to one repository."""

    env = dict(os.environ)
    for key in _SANITIZED_VARS:
        env.pop(key, None)
    return env


def config_env_vars(config: Mapping[str, str]) -> dict[str, str]:
    """Encode git configuration overrides as ``GIT_CONFIG_*`` environment variables.

    Keys are sorted so the same logical configuration always produces the same
    environment. See https://git-scm.com/docs/git-config#ENVIRONMENT.
    """

    keys = sorted(config)
    env = {"GIT_CONFIG_COUNT": str(len(keys))}
    for index, key in enumerate(keys):
        env[f"GIT_CONFIG_KEY_{index}"] = key
        env[f"GIT_CONFIG_VALUE_{index}"] = config[key]
    return env


def merge_environment(*layers: Mapping[str, str] | None) -> dict[str, str]:
    """Merge environment layers; later layers win."""

    env: dict[str, str] = {}
    for layer in layers:
        if layer:
            env.update(layer)
    return env


def trim_output(output: str) -> list[str]:
    """Split captured output into lines, dropping surrounding whitespace."""

    text = output.strip()
    if not text:
        return []
    return text.splitlines()


__all__ = ["base_environment", "config_env_vars", "merge_environment", "trim_output"]
