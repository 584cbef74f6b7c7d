"""Repository-level git operations built on :class:`GitRunner`."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from ..config import DEFAULT_SUBMODULE_JOBS, GitweaveSettings
from .context import ExecutionContext
from .options import (
    CheckoutOptions,
    CloneOptions,
    DeleteBranchOptions,
    FetchOptions,
    GitIdentity,
    MergeOptions,
    PushOptions,
    RebaseOptions,
    ResetOptions,
    SubmoduleUpdateOptions,
)
from .runner import GitCommandError, GitError, GitRunner, OutputShapeError
from .submodules import SubmoduleEntry, SubmoduleSyncEngine, SubmoduleSyncError, SyncOutcome
from .tracking import TrackingChainResolver

logger = logging.getLogger(__name__)

# Failure key for the bulk update of already-initialized submodules.
INITIALIZED_SUBMODULES = "<initialized>"


class Git:
    """High-level git operations for a single working tree."""

    def __init__(self, runner: GitRunner, *, submodule_jobs: int = DEFAULT_SUBMODULE_JOBS) -> None:
        self._runner = runner
        self._submodules = SubmoduleSyncEngine(runner, jobs=submodule_jobs)
        self._tracking = TrackingChainResolver(runner)

    @classmethod
    def from_settings(
        cls, settings: GitweaveSettings, cwd: Path | str | None = None
    ) -> "Git":
        runner = GitRunner(
            ExecutionContext.from_environment(cwd),
            executable=Path(settings.git_path) if settings.git_path else None,
            identity=GitIdentity(name=settings.user_name, email=settings.user_email),
            offload_packfiles=settings.offload_packfiles,
        )
        return cls(runner, submodule_jobs=settings.submodule_fetch_jobs)

    @property
    def runner(self) -> GitRunner:
        return self._runner

    @property
    def root_dir(self) -> Path:
        return self._runner.context.cwd

    @property
    def submodules(self) -> SubmoduleSyncEngine:
        return self._submodules

    @property
    def tracking(self) -> TrackingChainResolver:
        return self._tracking

    # Branches and refs

    async def checkout(self, ref: str, options: CheckoutOptions | None = None) -> None:
        options = options or CheckoutOptions()
        args = ["checkout"]
        if options.force:
            args.append("-f")
        if options.detach:
            args.append("--detach")
        args.append(ref)
        await self._runner.run(*args)
        if options.recurse_submodules:
            await self.submodule_update_all(rebase=options.rebase_submodules)

    async def create_branch(self, branch: str) -> None:
        await self._runner.run("branch", branch)

    async def create_branch_from_ref(self, branch: str, ref: str) -> None:
        await self._runner.run("branch", branch, ref)

    async def set_upstream(self, branch: str, upstream: str) -> None:
        await self._runner.run("branch", "-u", upstream, branch)

    async def delete_branch(self, branch: str, options: DeleteBranchOptions | None = None) -> None:
        options = options or DeleteBranchOptions()
        await self._runner.run("branch", "-D" if options.force else "-d", branch)

    async def branch_exists(self, branch: str) -> bool:
        """Return whether ``branch`` resolves to an object.

        ``rev-parse --verify --quiet`` exits non-zero without output for a
        missing ref; anything written to stderr means git itself failed.
        """

        try:
            result = await self._runner.run("rev-parse", "--verify", "--quiet", branch)
        except GitCommandError as exc:
            if exc.stderr.strip():
                raise
            return False
        return bool(result.stdout.strip())

    async def current_branch_name(self) -> str:
        return await self._runner.run_single_line("rev-parse", "--abbrev-ref", "HEAD")

    async def current_revision(self, ref: str = "HEAD") -> str:
        return await self._runner.run_single_line("rev-list", "-n", "1", ref)

    async def count_commits(self, branch: str, base: str = "") -> int:
        args = ["rev-list", "--count", branch]
        if base:
            args.append("^" + base)
        args.append("--")
        result = await self._runner.run_captured(*args)
        if len(result.lines) != 1:
            raise OutputShapeError.from_result(result, 1)
        try:
            return int(result.lines[0])
        except ValueError as exc:
            raise OutputShapeError.from_result(result, 1) from exc

    async def remote_branch_name(self) -> str:
        return await self._tracking.resolve()

    async def tracking_branch_name(self) -> str:
        return await self._tracking.tracking_branch()

    # Remotes

    async def clone(self, repo: str, path: str, options: CloneOptions | None = None) -> None:
        options = options or CloneOptions()
        args = ["clone"]
        if options.bare:
            args.append("--bare")
        if options.reference:
            args.extend(["--reference-if-able", options.reference])
        if options.shared:
            args.extend(["--shared", "--local"])
        if options.no_checkout:
            args.append("--no-checkout")
        if options.depth > 0:
            args.extend(["--depth", str(options.depth)])
        if options.omit_blobs:
            args.append("--filter=blob:none")
        if options.dissociate:
            args.append("--dissociate")
        if options.recurse_submodules:
            args.extend(["--recurse-submodules", "--jobs=16"])
        args.extend([repo, path])
        await self._runner.run(*args)

    async def clone_mirror(self, repo: str, path: str, depth: int = 0) -> None:
        args = ["clone", "--mirror"]
        if depth > 0:
            args.extend(["--depth", str(depth)])
        await self._runner.run(*args, repo, path)

    async def fetch(self, remote: str, options: FetchOptions | None = None) -> None:
        await self.fetch_refspec(remote, "", options)

    async def fetch_refspec(
        self, remote: str, refspec: str, options: FetchOptions | None = None
    ) -> None:
        options = options or FetchOptions()
        args = ["fetch"]
        if options.recurse_submodules:
            args.append("--recurse-submodules")
        if options.prune:
            args.append("-p")
        if options.tags:
            args.append("--tags")
        if options.depth > 0:
            args.extend(["--depth", str(options.depth)])
        if options.update_shallow:
            args.append("--update-shallow")
        if options.all:
            args.append("--all")
        if options.update_head_ok:
            args.append("--update-head-ok")
        if options.jobs > 0:
            args.append(f"--jobs={options.jobs}")
        if remote:
            args.append(remote)
        if options.fetch_tag:
            args.extend(["tag", options.fetch_tag])
        if refspec:
            args.append(refspec)
        await self._runner.run(*args)

    async def push(self, remote: str, branch: str, options: PushOptions | None = None) -> None:
        options = options or PushOptions()
        args = ["push"]
        if options.force:
            args.append("--force")
        args.append("--verify" if options.verify else "--no-verify")
        if options.follow_tags:
            args.append("--follow-tags")
        await self._runner.run(*args, remote, branch)

    async def add_or_replace_remote(self, name: str, url: str) -> None:
        await self._runner.run("config", f"remote.{name}.url", url)
        await self._runner.run(
            "config", f"remote.{name}.fetch", f"+refs/heads/*:refs/remotes/{name}/*"
        )

    async def config_get(self, key: str) -> str:
        return await self._runner.run_single_line("config", "--get", key)

    # History

    async def merge(self, branch: str, options: MergeOptions | None = None) -> None:
        options = options or MergeOptions()
        args = ["merge"]
        if options.ff_only:
            args.append("--ff-only")
        args.append("--squash" if options.squash else "--no-squash")
        if options.strategy:
            args.append(f"--strategy={options.strategy}")
        args.append(branch)
        try:
            await self._runner.run(*args)
        except GitCommandError:
            if options.reset_on_failure:
                await self._runner.run("reset", "--merge")
            raise

    async def rebase(
        self, upstream: str, branch: str = "", options: RebaseOptions | None = None
    ) -> None:
        options = options or RebaseOptions()
        args = ["rebase", "--keep-empty"]
        if options.rebase_merges:
            args.append("--rebase-merges")
        args.append(upstream)
        if branch:
            args.append(branch)
        await self._runner.run(*args)

    async def reset(self, target: str, options: ResetOptions | None = None) -> None:
        options = options or ResetOptions()
        await self._runner.run("reset", f"--{options.mode}", target, "--")

    async def commit_with_message(self, message: str) -> None:
        await self._runner.run("commit", "--allow-empty", "--allow-empty-message", "-m", message)

    async def commit_and_edit(self) -> None:
        invocation = self._runner.invocation("commit", "--allow-empty")
        await self._runner.execute_interactive(invocation)

    async def commit_with_message_and_edit(self, message: str) -> None:
        invocation = self._runner.invocation("commit", "--allow-empty", "-e", "-m", message)
        await self._runner.execute_interactive(invocation)

    # Submodules

    async def submodule_status(self) -> list[SubmoduleEntry]:
        return await self._submodules.status()

    async def submodule_init(self, paths: Sequence[str]) -> None:
        await self._submodules.initialize(paths)

    async def submodule_update(self, options: SubmoduleUpdateOptions | None = None) -> None:
        options = options or SubmoduleUpdateOptions(jobs=self._submodules.jobs)
        args = ["submodule", "update"]
        if options.rebase:
            args.append("--rebase")
        if options.init:
            args.append("--init")
        if options.jobs > 0:
            args.append(f"--jobs={options.jobs}")
        await self._runner.run(*args)

    async def submodule_update_all(self, rebase: bool = False) -> SyncOutcome:
        """Update initialized submodules, then initialize and fetch the rest.

        Both steps always run; their failures are combined into one
        :class:`SubmoduleSyncError`.
        """

        failures: dict[str, Exception] = {}
        outcome = SyncOutcome()
        try:
            await self.submodule_update(
                SubmoduleUpdateOptions(rebase=rebase, jobs=self._submodules.jobs)
            )
        except GitError as exc:
            failures[INITIALIZED_SUBMODULES] = exc
        try:
            outcome = await self._submodules.synchronize_all()
        except SubmoduleSyncError as exc:
            failures.update(exc.failures)
            outcome = exc.outcome or outcome
        except GitError as exc:
            failures["."] = exc
        if failures:
            logger.warning(
                "Submodule update incomplete",
                extra={"root_dir": str(self.root_dir), "failed": sorted(failures)},
            )
            raise SubmoduleSyncError(failures, outcome)
        return outcome

    # Misc

    async def version(self) -> tuple[int, int]:
        result = await self._runner.run_captured("version")
        if len(result.lines) != 1:
            raise OutputShapeError.from_result(result, 1)
        words = result.lines[0].split(" ")
        if len(words) < 3:
            raise OutputShapeError.from_result(result, 3, words)
        parts = words[2].split(".")
        if len(parts) < 3:
            raise OutputShapeError.from_result(result, 3, parts)
        try:
            return int(parts[0]), int(parts[1])
        except ValueError as exc:
            raise OutputShapeError.from_result(result, 3, parts) from exc


__all__ = ["Git", "INITIALIZED_SUBMODULES"]
