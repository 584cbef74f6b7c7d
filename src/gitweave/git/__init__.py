"""Git orchestration utilities."""

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
from .repository import Git
from .runner import (
    ExecutionMode,
    FakeGitRunner,
    GitCommandError,
    GitError,
    GitExecutionResult,
    GitNotFoundError,
    GitRunner,
    Invocation,
    InvocationError,
    OutputShapeError,
)
from .submodules import (
    StatusParseError,
    SubmoduleEntry,
    SubmoduleState,
    SubmoduleSyncEngine,
    SubmoduleSyncError,
    SyncOutcome,
    parse_submodule_status,
)
from .tracking import TrackingChainResolver, TrackingCycleError, TrackingLink
from .utils import config_env_vars

__all__ = [
    "CheckoutOptions",
    "CloneOptions",
    "DeleteBranchOptions",
    "ExecutionContext",
    "ExecutionMode",
    "FakeGitRunner",
    "FetchOptions",
    "Git",
    "GitCommandError",
    "GitError",
    "GitExecutionResult",
    "GitIdentity",
    "GitNotFoundError",
    "GitRunner",
    "Invocation",
    "InvocationError",
    "MergeOptions",
    "OutputShapeError",
    "PushOptions",
    "RebaseOptions",
    "ResetOptions",
    "StatusParseError",
    "SubmoduleEntry",
    "SubmoduleState",
    "SubmoduleSyncEngine",
    "SubmoduleSyncError",
    "SyncOutcome",
    "TrackingChainResolver",
    "TrackingCycleError",
    "TrackingLink",
    "config_env_vars",
    "parse_submodule_status",
]
