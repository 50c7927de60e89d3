from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import Dict, Optional

from .command import run_cmd

logger = logging.getLogger(__name__)

SUPPORTED_DISTROS = ("ubuntu", "debian")


def parse_os_release(text: str) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        try:
            parts = shlex.split(value)
        except ValueError:
            parts = [value.strip("\"'")]
        out[key.strip()] = parts[0] if parts else ""
    return out


def read_os_release(path: str = "/etc/os-release") -> Dict[str, str]:
    p = Path(path)
    if not p.exists():
        return {}
    return parse_os_release(p.read_text(encoding="utf-8", errors="ignore"))


def docker_distro(os_release: Dict[str, str]) -> str:
    """Pick the download.docker.com distribution directory for this host."""

    distro_id = (os_release.get("ID") or "").lower()
    if distro_id in SUPPORTED_DISTROS:
        return distro_id
    for like in (os_release.get("ID_LIKE") or "").lower().split():
        if like in SUPPORTED_DISTROS:
            return like
    raise RuntimeError(f"Unsupported distribution {distro_id or 'unknown'!r}; Debian-family required")


def release_codename(os_release: Dict[str, str], *, dry_run: bool = False) -> str:
    codename: Optional[str] = os_release.get("UBUNTU_CODENAME") or os_release.get("VERSION_CODENAME")
    if codename:
        return codename
    r = run_cmd(["lsb_release", "-cs"], check=False, dry_run=dry_run)
    codename = (r.stdout or "").strip()
    if not codename:
        raise RuntimeError("Unable to determine distribution codename")
    return codename
