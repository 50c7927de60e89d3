from __future__ import annotations

import grp
import logging
import os
import pwd
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .command import run_cmd

logger = logging.getLogger(__name__)

SHARED_DIR_MODE = 0o2775


@dataclass(frozen=True)
class Ownership:
    user: Optional[str]
    group: Optional[str]
    mode: Optional[int]

    @property
    def owner_spec(self) -> str:
        return f"{self.user or '?'}:{self.group or '?'}"

    @property
    def mode_str(self) -> str:
        return format(self.mode, "o") if self.mode is not None else "?"


def _name_for_uid(uid: int) -> str:
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


def _name_for_gid(gid: int) -> str:
    try:
        return grp.getgrgid(gid).gr_name
    except KeyError:
        return str(gid)


def inspect_ownership(path: str) -> Ownership:
    """Return owner/group names and permission bits of path.

    Any field that cannot be read is None, which callers treat as "needs change".
    """

    try:
        st = os.stat(path)
    except OSError as e:
        logger.info("Unable to stat %s (%s); assuming it needs updating", path, e)
        return Ownership(user=None, group=None, mode=None)
    return Ownership(
        user=_name_for_uid(st.st_uid),
        group=_name_for_gid(st.st_gid),
        mode=stat.S_IMODE(st.st_mode),
    )


def chown_tree(path: str, user: str, group: str, *, dry_run: bool = False) -> None:
    run_cmd(["chown", "-R", f"{user}:{group}", path], dry_run=dry_run)


def chmod_dirs(path: str, mode: int = SHARED_DIR_MODE, *, dry_run: bool = False) -> int:
    """Apply mode to path and every directory below it. Files keep their modes.

    Symlinks are never followed, so directories outside the tree stay untouched.

    Returns the number of directories changed.
    """

    root = Path(path)
    if root.is_symlink():
        return 0
    dirs = [root]
    for dirpath, dirnames, _ in os.walk(root):
        # os.walk lists symlinked directories without descending into them.
        dirs.extend(p for p in (Path(dirpath) / d for d in dirnames) if not p.is_symlink())

    if dry_run:
        logger.info("Would chmod %s on %d directories under %s", format(mode, "o"), len(dirs), path)
        return len(dirs)

    for d in dirs:
        os.chmod(d, mode)
    return len(dirs)


def is_executable(path: str) -> bool:
    try:
        return bool(os.stat(path).st_mode & stat.S_IXUSR)
    except OSError:
        return False


def make_executable(path: str, *, dry_run: bool = False) -> None:
    if dry_run:
        logger.info("Would chmod +x %s", path)
        return
    mode = stat.S_IMODE(os.stat(path).st_mode)
    os.chmod(path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
