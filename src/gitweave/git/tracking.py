"""Resolution of the remote branch a local branch ultimately tracks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .runner import GitCommandError, GitError, GitRunner, OutputShapeError

logger = logging.getLogger(__name__)

LOCAL_REMOTE = "."
_HEADS_PREFIX = "refs/heads/"


class TrackingCycleError(GitError):
    """Raised when local branches track each other in a loop."""

    def __init__(self, chain: list[str]) -> None:
        self.chain = list(chain)
        super().__init__("tracking cycle among local branches: " + " -> ".join(self.chain))


@dataclass(frozen=True, slots=True)
class TrackingLink:
    branch: str
    remote: str | None
    upstream: str | None

    @property
    def is_local(self) -> bool:
        return self.remote == LOCAL_REMOTE


class TrackingChainResolver:
    """Follow branch-to-branch tracking links until a remote-tracking branch is reached.

    Links are read from git on every call; nothing is cached.
    """

    def __init__(self, runner: GitRunner, *, cwd: Path | None = None) -> None:
        self._runner = runner
        self._cwd = cwd

    async def current_branch(self) -> str:
        """Return the checked-out branch, or ``""`` on a detached HEAD."""

        try:
            result = await self._runner.run_captured("symbolic-ref", "-q", "HEAD", cwd=self._cwd)
        except GitCommandError as exc:
            # symbolic-ref -q exits 1 without output when HEAD is detached.
            if exc.returncode == 1 and not exc.stderr.strip():
                return ""
            raise
        if len(result.lines) != 1:
            raise OutputShapeError.from_result(result, 1)
        ref = result.lines[0]
        return ref[len(_HEADS_PREFIX):] if ref.startswith(_HEADS_PREFIX) else ref

    async def upstream_of(self, branch: str) -> str | None:
        args = ("for-each-ref", "--format=%(upstream:short)", _HEADS_PREFIX + branch)
        result = await self._runner.run_captured(*args, cwd=self._cwd)
        if not result.lines:
            return None
        if len(result.lines) != 1:
            raise OutputShapeError.from_result(result, 1)
        return result.lines[0] or None

    async def remote_of(self, branch: str) -> str | None:
        args = ("config", "--get", f"branch.{branch}.remote")
        try:
            result = await self._runner.run_captured(*args, cwd=self._cwd)
        except GitCommandError as exc:
            # git config --get exits 1 when the key is unset.
            if exc.returncode == 1:
                return None
            raise
        if not result.lines:
            return None
        if len(result.lines) != 1:
            raise OutputShapeError.from_result(result, 1)
        return result.lines[0]

    async def read_link(self, branch: str) -> TrackingLink:
        upstream = await self.upstream_of(branch)
        remote = await self.remote_of(branch) if upstream else None
        return TrackingLink(branch=branch, remote=remote, upstream=upstream)

    async def tracking_branch(self) -> str:
        """Return the short upstream name of the current branch, unresolved."""

        branch = await self.current_branch()
        if not branch:
            return ""
        return await self.upstream_of(branch) or ""

    async def resolve(self) -> str:
        """Return the remote branch name the current branch tracks, without the remote prefix.

        Returns ``""`` when no tracking is configured anywhere along the chain.
        """

        branch = await self.current_branch()
        if not branch:
            return ""

        chain = [branch]
        visited = {branch}
        while True:
            link = await self.read_link(branch)
            if not link.upstream or not link.remote:
                return ""
            if not link.is_local:
                prefix = link.remote + "/"
                upstream = link.upstream
                if upstream.startswith(prefix):
                    upstream = upstream[len(prefix):]
                logger.debug(
                    "Resolved tracking branch",
                    extra={"chain": chain, "remote": link.remote, "branch": upstream},
                )
                return upstream
            chain.append(link.upstream)
            if link.upstream in visited:
                raise TrackingCycleError(chain)
            visited.add(link.upstream)
            branch = link.upstream


__all__ = ["LOCAL_REMOTE", "TrackingChainResolver", "TrackingCycleError", "TrackingLink"]
