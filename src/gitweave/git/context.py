"""Execution context threaded into every git invocation."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping

from .utils import base_environment


@dataclass(frozen=True, slots=True)
class ExecutionContext:
    """Working directory, base environment and tracer for a runner."""

    cwd: Path
    env: Mapping[str, str] = field(default_factory=base_environment)
    tracer: logging.Logger = field(default_factory=lambda: logging.getLogger("gitweave.git"))

    @classmethod
    def from_environment(
        cls, cwd: Path | str | None = None, *, tracer: logging.Logger | None = None
    ) -> "ExecutionContext":
        """Build a context from the current process environment."""

        return cls(
            cwd=Path(cwd) if cwd is not None else Path(os.getcwd()),
            env=base_environment(),
            tracer=tracer or logging.getLogger("gitweave.git"),
        )

    def with_cwd(self, cwd: Path | str) -> "ExecutionContext":
        return replace(self, cwd=Path(cwd))


__all__ = ["ExecutionContext"]
