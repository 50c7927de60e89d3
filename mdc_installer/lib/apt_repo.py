from __future__ import annotations

import logging
import os
from pathlib import Path

from .command import run_cmd

logger = logging.getLogger(__name__)

DOCKER_DOWNLOAD_BASE = "https://download.docker.com/linux"


def docker_gpg_url(distro: str) -> str:
    return f"{DOCKER_DOWNLOAD_BASE}/{distro}/gpg"


def render_docker_sources(*, distro: str, arch: str, codename: str, keyring: str) -> str:
    return f"deb [arch={arch} signed-by={keyring}] {DOCKER_DOWNLOAD_BASE}/{distro} {codename} stable\n"


def install_docker_keyring(
    *,
    distro: str,
    keyrings_dir: str,
    keyring: str,
    dry_run: bool = False,
) -> None:
    """Fetch Docker's signing key and store it dearmored under keyrings_dir.

    Uses the signed-by keyring method rather than apt-key.
    """

    run_cmd(["install", "-m", "0755", "-d", keyrings_dir], dry_run=dry_run)
    armored = run_cmd(["curl", "-fsSL", docker_gpg_url(distro)], dry_run=dry_run)
    run_cmd(
        ["gpg", "--dearmor", "--yes", "-o", keyring],
        input_text=armored.stdout,
        dry_run=dry_run,
    )
    if dry_run:
        return
    os.chmod(keyring, 0o644)


def write_docker_sources(
    path: str,
    *,
    distro: str,
    arch: str,
    codename: str,
    keyring: str,
    dry_run: bool = False,
) -> None:
    line = render_docker_sources(distro=distro, arch=arch, codename=codename, keyring=keyring)
    p = Path(path)
    if dry_run:
        logger.info("Would write %s: %s", str(p), line.strip())
        return
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(line, encoding="utf-8")
    logger.info("Configured Docker apt repo: %s", line.strip())
