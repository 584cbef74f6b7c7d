"""gitweave diagnostics CLI."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path

from gitweave.config import GitweaveSettings
from gitweave.git import (
    Git,
    GitError,
    GitNotFoundError,
    SubmoduleSyncError,
    config_env_vars,
)


def configure_logging(level: str) -> None:
    """Configure root logging for the diagnostics CLI."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def load_git(settings: GitweaveSettings, repo: str | None) -> Git:
    try:
        return Git.from_settings(settings, Path(repo) if repo else None)
    except GitNotFoundError as exc:
        print(f"git unavailable: {exc}")
        raise SystemExit(1)


def cmd_submodules(args: argparse.Namespace) -> None:
    settings = GitweaveSettings()
    git = load_git(settings, args.repo)
    try:
        entries = asyncio.run(git.submodule_status())
    except GitError as exc:
        print(f"submodule status failed: {exc}")
        raise SystemExit(1)
    if args.json:
        payload = [
            {
                "path": entry.path,
                "state": entry.state.name.lower(),
                "object_id": entry.object_id,
                "branch_hint": entry.branch_hint,
            }
            for entry in entries
        ]
        print(json.dumps(payload, indent=2))
    else:
        for entry in entries:
            hint = f" ({entry.branch_hint})" if entry.branch_hint else ""
            print(f"{entry.path} [{entry.state.name.lower()}] {entry.object_id}{hint}")


def cmd_sync(args: argparse.Namespace) -> None:
    settings = GitweaveSettings()
    git = load_git(settings, args.repo)
    try:
        outcome = asyncio.run(git.submodules.synchronize_all())
    except SubmoduleSyncError as exc:
        for path in sorted(exc.failures):
            print(f"FAILED {path}")
        print(str(exc))
        raise SystemExit(1)
    except GitError as exc:
        print(f"submodule sync failed: {exc}")
        raise SystemExit(1)
    for path in sorted(outcome.succeeded):
        print(f"synced {path}")
    if not outcome.attempted:
        print("no uninitialized submodules")


def cmd_tracking(args: argparse.Namespace) -> None:
    settings = GitweaveSettings()
    git = load_git(settings, args.repo)
    try:
        branch = asyncio.run(git.remote_branch_name())
    except GitError as exc:
        print(f"tracking resolution failed: {exc}")
        raise SystemExit(1)
    print(branch)


def cmd_config_env(args: argparse.Namespace) -> None:
    config: dict[str, str] = {}
    for item in args.pairs:
        key, sep, value = item.partition("=")
        if not sep or not key:
            print(f"expected KEY=VALUE, got {item!r}")
            raise SystemExit(2)
        config[key] = value
    print(json.dumps(config_env_vars(config), indent=2, sort_keys=True))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="gitweave diagnostics")
    parser.add_argument("--repo", default=None, help="Repository working directory")
    sub = parser.add_subparsers(dest="command", required=True)

    submodules = sub.add_parser("submodules", help="List submodule status")
    submodules.add_argument("--json", action="store_true")
    submodules.set_defaults(func=cmd_submodules)

    sync = sub.add_parser("sync", help="Initialize and fetch uninitialized submodules")
    sync.set_defaults(func=cmd_sync)

    tracking = sub.add_parser("tracking", help="Resolve the remote branch the current branch tracks")
    tracking.set_defaults(func=cmd_tracking)

    config_env = sub.add_parser("config-env", help="Show the GIT_CONFIG_* encoding of overrides")
    config_env.add_argument("pairs", nargs="*", metavar="KEY=VALUE")
    config_env.set_defaults(func=cmd_config_env)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(GitweaveSettings().log_level)
    args.func(args)


if __name__ == "__main__":
    main()
