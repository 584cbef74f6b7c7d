"""Per-operation option models for git commands.

Each model only needs the fields that differ from git's defaults; the
repository operations translate them into command-line flags.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Options(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class GitIdentity(_Options):
    """Committer identity and dates injected into every invocation."""

    name: str | None = Field(default=None, description="Value for user.name.")
    email: str | None = Field(default=None, description="Value for user.email.")
    author_date: str | None = Field(default=None, description="Exported as GIT_AUTHOR_DATE.")
    committer_date: str | None = Field(
        default=None, description="Exported as GIT_COMMITTER_DATE."
    )

    @field_validator("name", "email", mode="before")
    @classmethod
    def _strip(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    def config(self) -> dict[str, str]:
        config: dict[str, str] = {}
        if self.name:
            config["user.name"] = self.name
        if self.email:
            config["user.email"] = self.email
        return config

    def environment(self) -> dict[str, str]:
        env: dict[str, str] = {}
        if self.author_date:
            env["GIT_AUTHOR_DATE"] = self.author_date
        if self.committer_date:
            env["GIT_COMMITTER_DATE"] = self.committer_date
        return env


class CheckoutOptions(_Options):
    force: bool = Field(default=False, description="Discard local changes (-f).")
    detach: bool = Field(default=False, description="Detach HEAD at the ref.")
    recurse_submodules: bool = Field(
        default=False, description="Update all submodules after checking out."
    )
    rebase_submodules: bool = Field(
        default=False, description="Rebase initialized submodules instead of checking them out."
    )


class CloneOptions(_Options):
    bare: bool = False
    reference: str | None = Field(
        default=None, description="Repository passed to --reference-if-able."
    )
    shared: bool = Field(default=False, description="Clone with --shared --local.")
    no_checkout: bool = False
    depth: int = Field(default=0, ge=0, description="Shallow clone depth; 0 clones full history.")
    omit_blobs: bool = Field(default=False, description="Partial clone with --filter=blob:none.")
    recurse_submodules: bool = False
    dissociate: bool = False


class FetchOptions(_Options):
    tags: bool = False
    all: bool = False
    prune: bool = False
    depth: int = Field(default=0, ge=0)
    update_shallow: bool = False
    fetch_tag: str | None = Field(default=None, description="Fetch a single tag by name.")
    update_head_ok: bool = False
    jobs: int = Field(default=0, ge=0, description="Parallel fetch children; 0 leaves git's default.")
    recurse_submodules: bool = False


class PushOptions(_Options):
    force: bool = False
    verify: bool = Field(default=True, description="Run the pre-push hook.")
    follow_tags: bool = False


class MergeOptions(_Options):
    squash: bool = False
    strategy: str | None = None
    reset_on_failure: bool = Field(
        default=True, description="Run `git reset --merge` when the merge fails."
    )
    ff_only: bool = False


class RebaseOptions(_Options):
    rebase_merges: bool = False


class ResetOptions(_Options):
    mode: Literal["soft", "mixed", "hard", "merge", "keep"] = "hard"


class DeleteBranchOptions(_Options):
    force: bool = False


class SubmoduleUpdateOptions(_Options):
    rebase: bool = False
    init: bool = False
    jobs: int = Field(default=50, ge=0, description="Value for --jobs; 0 omits the flag.")


__all__ = [
    "CheckoutOptions",
    "CloneOptions",
    "DeleteBranchOptions",
    "FetchOptions",
    "GitIdentity",
    "MergeOptions",
    "PushOptions",
    "RebaseOptions",
    "ResetOptions",
    "SubmoduleUpdateOptions",
]
