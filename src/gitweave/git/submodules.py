"""Submodule status parsing and parallel synchronization."""

from __future__ import annotations

import asyncio
import enum
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Sequence

from ..config import DEFAULT_SUBMODULE_JOBS
from .runner import GitError, GitRunner

logger = logging.getLogger(__name__)

_STATUS_LINE = re.compile(
    r"(?P<marker>[-+U ]?)(?P<object_id>[0-9a-fA-F]{40}) (?P<path>\S(?:.*?\S)?)(?: \((?P<hint>[^()]*)\))?"
)


class StatusParseError(GitError):
    """Raised when `git submodule status` output does not match the expected grammar."""

    def __init__(self, line: str) -> None:
        self.line = line
        super().__init__(f"unrecognized submodule status line: {line!r}")


class SubmoduleSyncError(GitError):
    """Raised when one or more submodule updates failed.

    ``failures`` maps each failing path to its own error; the message lists all
    of them.
    """

    def __init__(self, failures: Mapping[str, Exception], outcome: "SyncOutcome | None" = None) -> None:
        self.failures = dict(failures)
        self.outcome = outcome
        lines = [f"{len(self.failures)} submodule update(s) failed:"]
        for path in sorted(self.failures):
            lines.append(f"--- {path}\n{self.failures[path]}")
        super().__init__("\n".join(lines))


class SubmoduleState(str, enum.Enum):
    UNINITIALIZED = "-"
    INITIALIZED = ""
    MODIFIED = "+"
    CONFLICT = "U"


class SyncState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    FETCHING = "fetching"
    SYNCED = "synced"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class SubmoduleEntry:
    state: SubmoduleState
    object_id: str
    path: str
    branch_hint: str | None = None


def parse_submodule_line(line: str) -> SubmoduleEntry:
    match = _STATUS_LINE.fullmatch(line)
    if match is None:
        raise StatusParseError(line)
    marker = match.group("marker").strip()
    return SubmoduleEntry(
        state=SubmoduleState(marker),
        object_id=match.group("object_id"),
        path=match.group("path"),
        branch_hint=match.group("hint"),
    )


def parse_submodule_status(lines: Iterable[str]) -> list[SubmoduleEntry]:
    """Parse every status line; a single malformed line fails the whole parse."""

    return [parse_submodule_line(line) for line in lines]


def uninitialized_paths(entries: Iterable[SubmoduleEntry]) -> list[str]:
    return [entry.path for entry in entries if entry.state is SubmoduleState.UNINITIALIZED]


@dataclass(slots=True)
class SyncOutcome:
    """Result of a synchronization run."""

    attempted: set[str] = field(default_factory=set)
    succeeded: set[str] = field(default_factory=set)
    failures: dict[str, GitError] = field(default_factory=dict)
    states: dict[str, SyncState] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    def transition(self, path: str, state: SyncState) -> None:
        self.states[path] = state

    def record_success(self, path: str) -> None:
        self.attempted.add(path)
        self.succeeded.add(path)
        self.states[path] = SyncState.SYNCED

    def record_failure(self, path: str, error: GitError) -> None:
        self.attempted.add(path)
        self.failures[path] = error
        self.states[path] = SyncState.FAILED


class SubmoduleSyncEngine:
    """Initialize and fetch uninitialized submodules with bounded parallelism."""

    def __init__(
        self,
        runner: GitRunner,
        *,
        jobs: int = DEFAULT_SUBMODULE_JOBS,
        cwd: Path | None = None,
    ) -> None:
        if jobs < 1:
            raise ValueError("jobs must be >= 1")
        self._runner = runner
        self._jobs = jobs
        self._cwd = cwd

    @property
    def jobs(self) -> int:
        return self._jobs

    async def status(self) -> list[SubmoduleEntry]:
        lines = await self._runner.run_lines("submodule", "status", cwd=self._cwd)
        return parse_submodule_status(lines)

    async def uninitialized_paths(self) -> list[str]:
        return uninitialized_paths(await self.status())

    async def initialize(self, paths: Sequence[str]) -> None:
        await self._runner.run("submodule", "init", "--", *paths, cwd=self._cwd)

    async def update_path(self, path: str) -> None:
        await self._runner.run("submodule", "update", "--", path, cwd=self._cwd)

    async def synchronize_all(self) -> SyncOutcome:
        """Initialize every uninitialized submodule, then fetch each one in parallel.

        Raises :class:`SubmoduleSyncError` after all fetches finished if any of
        them failed. Status and init failures propagate unchanged.
        """

        outcome = SyncOutcome()
        paths = await self.uninitialized_paths()
        if not paths:
            logger.debug("No uninitialized submodules")
            return outcome

        for path in paths:
            outcome.transition(path, SyncState.INITIALIZING)
        await self.initialize(paths)

        semaphore = asyncio.Semaphore(self._jobs)
        lock = asyncio.Lock()

        async def _fetch(path: str) -> None:
            async with semaphore:
                async with lock:
                    outcome.transition(path, SyncState.FETCHING)
                try:
                    await self.update_path(path)
                except GitError as exc:
                    async with lock:
                        outcome.record_failure(path, exc)
                    logger.warning("Submodule update failed", extra={"path": path})
                else:
                    async with lock:
                        outcome.record_success(path)

        await asyncio.gather(*(_fetch(path) for path in paths))

        logger.info(
            "Synchronized submodules",
            extra={
                "attempted": len(outcome.attempted),
                "failed": len(outcome.failures),
                "jobs": self._jobs,
            },
        )
        if outcome.failures:
            raise SubmoduleSyncError(outcome.failures, outcome)
        return outcome


__all__ = [
    "StatusParseError",
    "SubmoduleEntry",
    "SubmoduleState",
    "SubmoduleSyncEngine",
    "SubmoduleSyncError",
    "SyncOutcome",
    "SyncState",
    "parse_submodule_line",
    "parse_submodule_status",
    "uninitialized_paths",
]
