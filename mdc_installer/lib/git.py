from __future__ import annotations

import logging
from typing import Optional

from .command import run_cmd

logger = logging.getLogger(__name__)


def get_global(key: str) -> str:
    """Read a global git config value; unset or unreadable reads as ''."""

    r = run_cmd(["git", "config", "--global", "--get", key], check=False)
    if r.returncode != 0:
        return ""
    return (r.stdout or "").strip()


def set_global(key: str, value: str, *, dry_run: bool = False) -> None:
    run_cmd(["git", "config", "--global", key, value], dry_run=dry_run)


def is_valid_repo(path: str) -> bool:
    r = run_cmd(["git", "-C", path, "rev-parse", "--git-dir"], check=False)
    return r.returncode == 0


def get_remote_url(path: str, remote: str = "origin") -> Optional[str]:
    r = run_cmd(["git", "-C", path, "remote", "get-url", remote], check=False)
    if r.returncode != 0:
        return None
    return (r.stdout or "").strip() or None


def set_remote_url(path: str, url: str, remote: str = "origin", *, dry_run: bool = False) -> None:
    run_cmd(["git", "-C", path, "remote", "set-url", remote, url], dry_run=dry_run)


def add_remote(path: str, url: str, remote: str = "origin", *, dry_run: bool = False) -> None:
    run_cmd(["git", "-C", path, "remote", "add", remote, url], dry_run=dry_run)


def clone(url: str, dest: str, *, dry_run: bool = False) -> None:
    # Streamed so clone progress reaches the operator.
    run_cmd(["git", "clone", url, dest], stream=True, dry_run=dry_run)


def ls_remote(url: str) -> bool:
    """Authoritative access check: can we list refs of url?"""

    r = run_cmd(["git", "ls-remote", url], check=False, env={"GIT_TERMINAL_PROMPT": "0"})
    return r.returncode == 0
