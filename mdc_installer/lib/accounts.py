from __future__ import annotations

import grp
import logging
import pwd

from .command import run_cmd

logger = logging.getLogger(__name__)


def group_exists(name: str) -> bool:
    try:
        grp.getgrnam(name)
        return True
    except KeyError:
        return False


def user_exists(name: str) -> bool:
    if not name:
        return False
    try:
        pwd.getpwnam(name)
        return True
    except KeyError:
        return False


def user_in_group(user: str, group: str) -> bool:
    """True if user is a member of group, either as supplementary or primary group."""

    try:
        g = grp.getgrnam(group)
    except KeyError:
        return False
    if user in g.gr_mem:
        return True
    try:
        return pwd.getpwnam(user).pw_gid == g.gr_gid
    except KeyError:
        return False


def ensure_group(name: str, *, dry_run: bool = False) -> None:
    # -f: succeed if the group already exists.
    run_cmd(["groupadd", "-f", name], dry_run=dry_run)


def add_user_to_group(user: str, group: str, *, dry_run: bool = False) -> None:
    run_cmd(["usermod", "-aG", group, user], dry_run=dry_run)
