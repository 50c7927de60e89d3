from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .command import run_cmd

logger = logging.getLogger(__name__)

_SCP_LIKE = re.compile(r"^(?:(?P<user>[^@/:]+)@)?(?P<host>[^:/]+):(?P<path>(?!//).+)$")
_SSH_URL = re.compile(r"^ssh://(?:(?P<user>[^@/]+)@)?(?P<host>[^:/]+)(?::(?P<port>\d+))?/(?P<path>.+)$")


@dataclass(frozen=True)
class RemoteSpec:
    user: str
    host: str
    path: str
    port: Optional[str] = None
    scp_like: bool = True

    def with_host(self, host: str) -> str:
        if self.scp_like:
            return f"{self.user}@{host}:{self.path}"
        port = f":{self.port}" if self.port else ""
        return f"ssh://{self.user}@{host}{port}/{self.path}"

    @property
    def repo_slug(self) -> str:
        slug = self.path.strip("/")
        return slug[:-4] if slug.endswith(".git") else slug


def parse_remote(url: str) -> Optional[RemoteSpec]:
    """Parse an SSH remote (scp-like or ssh://). Other schemes return None."""

    m = _SSH_URL.match(url)
    if m:
        return RemoteSpec(
            user=m.group("user") or "git",
            host=m.group("host"),
            path=m.group("path"),
            port=m.group("port"),
            scp_like=False,
        )
    if "://" in url:
        return None
    m = _SCP_LIKE.match(url)
    if m:
        return RemoteSpec(user=m.group("user") or "git", host=m.group("host"), path=m.group("path"))
    return None


def alias_url(url: str, alias: str) -> str:
    """Rewrite url so it connects through the SSH host alias, keeping user and path."""

    spec = parse_remote(url)
    if spec is None:
        return url
    return spec.with_host(alias)


def deploy_keys_page(url: str) -> Optional[str]:
    spec = parse_remote(url)
    if spec is None or spec.host != "github.com":
        return None
    return f"https://github.com/{spec.repo_slug}/settings/keys"


def has_host_alias(config_text: str, alias: str) -> bool:
    for line in config_text.splitlines():
        tokens = line.strip().split()
        if len(tokens) >= 2 and tokens[0].lower() == "host" and alias in tokens[1:]:
            return True
    return False


def render_alias_block(*, alias: str, host: str, user: str, identity_file: str) -> str:
    return (
        "\n"
        f"# {alias} deploy key\n"
        f"Host {alias}\n"
        f"    HostName {host}\n"
        f"    User {user}\n"
        f"    IdentityFile {identity_file}\n"
        "    IdentitiesOnly yes\n"
    )


def read_config(path: str) -> str:
    p = Path(path)
    if not p.exists():
        return ""
    return p.read_text(encoding="utf-8", errors="ignore")


def ensure_config_file(path: str, *, dry_run: bool = False) -> None:
    p = Path(path)
    if p.exists():
        return
    if dry_run:
        logger.info("Would create %s", path)
        return
    p.parent.mkdir(parents=True, exist_ok=True)
    p.touch()
    os.chmod(p, 0o600)


def append_alias_block(path: str, block: str, *, dry_run: bool = False) -> None:
    if dry_run:
        logger.info("Would append to %s:%s", path, block.rstrip())
        return
    with open(path, "a", encoding="utf-8") as f:
        f.write(block)
    os.chmod(path, 0o600)


def ensure_ssh_dir(path: str, *, dry_run: bool = False) -> bool:
    """Create the SSH directory with mode 0700 if missing. Returns True if created."""

    p = Path(path)
    if p.is_dir():
        return False
    if dry_run:
        logger.info("Would create %s (0700)", path)
        return True
    p.mkdir(parents=True, exist_ok=True)
    os.chmod(p, 0o700)
    return True


def generate_keypair(key_path: str, *, comment: str, key_type: str = "ed25519", dry_run: bool = False) -> None:
    run_cmd(
        ["ssh-keygen", "-t", key_type, "-f", key_path, "-N", "", "-C", comment, "-q"],
        dry_run=dry_run,
    )
    if dry_run:
        return
    os.chmod(key_path, 0o600)
    os.chmod(f"{key_path}.pub", 0o644)


def derive_public_key(key_path: str, pub_path: str, *, dry_run: bool = False) -> None:
    r = run_cmd(["ssh-keygen", "-y", "-f", key_path], dry_run=dry_run)
    if dry_run:
        return
    Path(pub_path).write_text(r.stdout.strip() + "\n", encoding="utf-8")
    os.chmod(pub_path, 0o644)


def probe_authentication(*, user: str, host: str, identity_file: str) -> bool:
    """ssh -T probe. Deploy keys often authenticate but get no shell, so False is inconclusive."""

    r = run_cmd(
        [
            "ssh",
            "-T",
            "-o",
            "StrictHostKeyChecking=accept-new",
            "-o",
            "IdentitiesOnly=yes",
            "-o",
            "BatchMode=yes",
            "-i",
            identity_file,
            f"{user}@{host}",
        ],
        check=False,
    )
    return "successfully authenticated" in r.output
