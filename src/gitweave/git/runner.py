"""Async runner for the git executable."""

from __future__ import annotations

import asyncio
import enum
import shutil
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Sequence

from .context import ExecutionContext
from .options import GitIdentity
from .utils import config_env_vars, merge_environment, trim_output


class GitError(RuntimeError):
    """Base class for gitweave errors."""


class GitNotFoundError(GitError):
    """Raised when the git executable cannot be located."""


class InvocationError(GitError):
    """Raised when an invocation is constructed without a verb."""


class GitCommandError(GitError):
    """Raised when a git process fails to run or exits with a non-zero status."""

    def __init__(
        self,
        *,
        cwd: Path | None,
        args: Sequence[str],
        stdout: str,
        stderr: str,
        returncode: int | None,
        cause: str,
    ) -> None:
        self.cwd = cwd
        self.args_list = tuple(args)
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode
        self.cause = cause
        super().__init__(self._render())

    def _render(self) -> str:
        return (
            f"({self.cwd}) 'git {' '.join(self.args_list)}' failed:\n"
            f"stdout:\n{self.stdout}\n"
            f"stderr:\n{self.stderr}\n"
            f"command fail error: {self.cause}"
        )


class OutputShapeError(GitError):
    """Raised when captured output does not have the shape an operation requires.

    Keeps the working directory, stdout and stderr of the process, which
    exited with status 0.
    """

    def __init__(
        self,
        args: Sequence[str],
        lines: Sequence[str],
        expected: int,
        *,
        cwd: Path | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        self.args_list = tuple(args)
        self.lines = list(lines)
        self.expected = expected
        self.cwd = cwd
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f"({cwd}) 'git {' '.join(self.args_list)}': unexpected length of {self.lines!r}: "
            f"got {len(self.lines)}, want {expected}\n"
            f"stderr:\n{stderr}"
        )

    @classmethod
    def from_result(
        cls,
        result: "GitExecutionResult",
        expected: int,
        lines: Sequence[str] | None = None,
    ) -> "OutputShapeError":
        return cls(
            result.args,
            result.lines if lines is None else lines,
            expected,
            cwd=result.cwd,
            stdout=result.stdout,
            stderr=result.stderr,
        )


class ExecutionMode(str, enum.Enum):
    SILENT = "silent"
    CAPTURED = "captured"
    INTERACTIVE = "interactive"


@dataclass(frozen=True, slots=True)
class Invocation:
    """A single git command: verb, arguments and per-call overrides."""

    verb: str
    args: tuple[str, ...] = ()
    cwd: Path | None = None
    config: Mapping[str, str] = field(default_factory=dict, hash=False)
    env: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        if not self.verb:
            raise InvocationError("git invocation requires a non-empty verb")
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "config", MappingProxyType(dict(self.config)))
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))

    @property
    def argv(self) -> tuple[str, ...]:
        return (self.verb, *self.args)


@dataclass(slots=True)
class GitExecutionResult:
    """Holds the outcome of a git invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    lines: tuple[str, ...] = ()
    cwd: Path | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitRunner:
    """Execute git commands asynchronously within an execution context."""

    def __init__(
        self,
        context: ExecutionContext,
        *,
        executable: Path | None = None,
        identity: GitIdentity | None = None,
        offload_packfiles: bool = False,
    ) -> None:
        self._context = context
        self._executable_path = self._resolve_executable(executable)
        self._identity = identity or GitIdentity()
        self._offload_packfiles = offload_packfiles

    @staticmethod
    def _resolve_executable(explicit: Path | None) -> Path:
        if explicit is not None:
            candidate = Path(explicit)
            if candidate.exists() and candidate.is_file():
                return candidate
            raise GitNotFoundError(f"git executable not found at {candidate}")

        binary = shutil.which("git")
        if binary is None:
            raise GitNotFoundError("git executable not found on PATH")
        return Path(binary)

    @property
    def executable(self) -> Path:
        return self._executable_path

    @property
    def context(self) -> ExecutionContext:
        return self._context

    @property
    def identity(self) -> GitIdentity:
        return self._identity

    def invocation(
        self,
        verb: str,
        *args: str,
        cwd: Path | None = None,
        config: Mapping[str, str] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> Invocation:
        return Invocation(
            verb=verb,
            args=tuple(args),
            cwd=cwd,
            config=dict(config or {}),
            env=dict(env or {}),
        )

    def injected_config(self) -> dict[str, str]:
        """Return the configuration overrides applied to every invocation."""

        config = self._identity.config()
        # Submodules are updated explicitly by the sync engine.
        config["submodule.recurse"] = "false"
        # Local paths are accepted as remotes (mirrors, test fixtures).
        config["protocol.file.allow"] = "always"
        if self._offload_packfiles:
            config["fetch.uriprotocols"] = "https"
        return config

    def build_environment(self, invocation: Invocation) -> dict[str, str]:
        config = merge_environment(self.injected_config(), invocation.config)
        env = merge_environment(
            self._context.env,
            self._identity.environment(),
            invocation.env,
            config_env_vars(config),
        )
        env["GIT_ADVICE"] = "0"
        return env

    async def execute(
        self, invocation: Invocation, mode: ExecutionMode = ExecutionMode.SILENT
    ) -> GitExecutionResult:
        """Run ``invocation`` and raise :class:`GitCommandError` on failure."""

        mode = ExecutionMode(mode)
        cwd = invocation.cwd or self._context.cwd
        tracer = self._context.tracer
        command_line = " ".join(invocation.argv)
        tracer.debug("Run: git %s (%s)", command_line, cwd)

        try:
            result = await self._spawn(
                invocation.argv,
                cwd=cwd,
                env=self.build_environment(invocation),
                capture_stdout=mode is not ExecutionMode.INTERACTIVE,
            )
        except OSError as exc:
            raise GitCommandError(
                cwd=cwd,
                args=invocation.argv,
                stdout="",
                stderr="",
                returncode=None,
                cause=str(exc),
            ) from exc

        result = replace(result, args=tuple(invocation.argv), cwd=cwd)
        tracer.debug(
            "Finished: git %s (%s) exit %s\nstdout: %s\nstderr: %s",
            command_line,
            cwd,
            result.returncode,
            result.stdout,
            result.stderr,
            extra={
                "git_args": list(invocation.argv),
                "returncode": result.returncode,
                "stdout": result.stdout,
                "stderr": result.stderr,
            },
        )

        if not result.ok:
            raise GitCommandError(
                cwd=cwd,
                args=invocation.argv,
                stdout=result.stdout,
                stderr=result.stderr,
                returncode=result.returncode,
                cause=f"exit status {result.returncode}",
            )
        if mode is ExecutionMode.CAPTURED:
            result.lines = tuple(trim_output(result.stdout))
        return result

    async def execute_lines(self, invocation: Invocation) -> list[str]:
        result = await self.execute(invocation, ExecutionMode.CAPTURED)
        return list(result.lines)

    async def execute_interactive(self, invocation: Invocation) -> None:
        await self.execute(invocation, ExecutionMode.INTERACTIVE)

    async def run(self, *args: str, **kwargs) -> GitExecutionResult:
        """Build an invocation from ``args`` and run it silently."""

        verb, *rest = args or ("",)
        return await self.execute(self.invocation(verb, *rest, **kwargs))

    async def run_lines(self, *args: str, **kwargs) -> list[str]:
        verb, *rest = args or ("",)
        return await self.execute_lines(self.invocation(verb, *rest, **kwargs))

    async def run_captured(self, *args: str, **kwargs) -> GitExecutionResult:
        """Like :meth:`run`, but captured: ``lines`` is populated on the result."""

        verb, *rest = args or ("",)
        return await self.execute(self.invocation(verb, *rest, **kwargs), ExecutionMode.CAPTURED)

    async def run_single_line(self, *args: str, **kwargs) -> str:
        """Run a command whose output must be exactly one line."""

        result = await self.run_captured(*args, **kwargs)
        if len(result.lines) != 1:
            raise OutputShapeError.from_result(result, 1)
        return result.lines[0]

    async def _spawn(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str],
        capture_stdout: bool,
    ) -> GitExecutionResult:
        cmd = [str(self._executable_path), *argv]
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=None,
            stdout=asyncio.subprocess.PIPE if capture_stdout else None,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd),
            env=dict(env),
        )
        stdout_bytes, stderr_bytes = await process.communicate()
        stdout = (stdout_bytes or b"").decode("utf-8", errors="replace")
        stderr = (stderr_bytes or b"").decode("utf-8", errors="replace")
        return GitExecutionResult(
            args=tuple(argv), returncode=process.returncode, stdout=stdout, stderr=stderr
        )


Handler = Callable[[tuple[str, ...]], GitExecutionResult]


class FakeGitRunner(GitRunner):
    """Test double that simulates git responses."""

    def __init__(  # type: ignore[override]
        self,
        responses: Iterable[GitExecutionResult] | None = None,
        *,
        handler: Handler | None = None,
        context: ExecutionContext | None = None,
        identity: GitIdentity | None = None,
        offload_packfiles: bool = False,
    ) -> None:
        self._responses = list(responses or [])
        self._handler = handler
        self._invocations: list[tuple[str, ...]] = []
        self._environments: list[dict[str, str]] = []
        self._context = context or ExecutionContext(cwd=Path("/tmp/fake-repo"))
        self._executable_path = Path("/tmp/fake-git")
        self._identity = identity or GitIdentity()
        self._offload_packfiles = offload_packfiles

    async def _spawn(  # type: ignore[override]
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str],
        capture_stdout: bool,
    ) -> GitExecutionResult:
        args = tuple(argv)
        self._invocations.append(args)
        self._environments.append(dict(env))
        if self._handler is not None:
            return self._handler(args)
        if self._responses:
            return self._responses.pop(0)
        return GitExecutionResult(args=args, returncode=0, stdout="", stderr="")

    @property
    def invocations(self) -> list[tuple[str, ...]]:
        return self._invocations

    @property
    def environments(self) -> list[dict[str, str]]:
        return self._environments


def reply(stdout: str = "", *, returncode: int = 0, stderr: str = "") -> GitExecutionResult:
    """Build a canned result for :class:`FakeGitRunner`."""

    return GitExecutionResult(args=(), returncode=returncode, stdout=stdout, stderr=stderr)


__all__ = [
    "ExecutionMode",
    "FakeGitRunner",
    "GitCommandError",
    "GitError",
    "GitExecutionResult",
    "GitNotFoundError",
    "GitRunner",
    "Invocation",
    "InvocationError",
    "OutputShapeError",
    "reply",
]
