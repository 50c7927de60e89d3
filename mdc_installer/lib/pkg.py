from __future__ import annotations

import logging
from typing import Sequence

from .command import run_cmd, which

logger = logging.getLogger(__name__)

_APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


def apt_update(*, dry_run: bool = False) -> None:
    run_cmd(["apt-get", "update"], env=_APT_ENV, dry_run=dry_run)


def apt_install(
    packages: Sequence[str],
    *,
    with_recommends: bool = True,
    dry_run: bool = False,
) -> None:
    if not packages:
        return
    argv = [
        "apt-get",
        "install",
        "-y",
    ]
    if not with_recommends:
        argv.append("--no-install-recommends")
    run_cmd([*argv, *packages], env=_APT_ENV, dry_run=dry_run)


def dpkg_architecture(*, dry_run: bool = False) -> str:
    if dry_run:
        return "amd64"
    r = run_cmd(["dpkg", "--print-architecture"])
    arch = (r.stdout or "").strip()
    if not arch:
        raise RuntimeError("Unable to determine package architecture")
    return arch


def tool_version(argv: Sequence[str]) -> str | None:
    """Return the first line of a version command's output, or None if it fails."""

    if not which(argv[0]):
        return None
    r = run_cmd(argv, check=False)
    if r.returncode != 0:
        return None
    text = (r.stdout or r.stderr or "").strip()
    return text.splitlines()[0] if text else ""


def systemctl(action: str, unit: str, *, dry_run: bool = False) -> None:
    run_cmd(["systemctl", action, unit], dry_run=dry_run)
