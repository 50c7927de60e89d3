from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

OWNER_USER = "root"
KEY_NAME = "micro-data-center-deploy"
KEY_TYPE = "ed25519"
PRIVATE_BOOTSTRAP_REL = "components/temporal/scripts/bootstrap/bootstrap.sh"

_TRUE = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Paths:
    state_default: str = "/var/lib/mdc-installer/state.json"
    log_default: str = "/var/log/mdc-installer.log"
    keyrings_dir: str = "/etc/apt/keyrings"
    docker_keyring: str = "/etc/apt/keyrings/docker.gpg"
    docker_sources: str = "/etc/apt/sources.list.d/docker.list"
    os_release: str = "/etc/os-release"


PATHS = Paths()


def _env(environ: Mapping[str, str], name: str) -> Optional[str]:
    # Empty values count as unset, matching ${VAR:-default}.
    v = environ.get(name)
    if v is None or v == "":
        return None
    return v


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in _TRUE


def load_config(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Resolve installer tunables from environment variables.

    Derived defaults follow the variable they hang off, so e.g. setting only
    BASE_DIR moves the repository directory along with it.
    """

    env = os.environ if environ is None else environ

    base_dir = _env(env, "BASE_DIR") or "/opt/skyy-net"
    ssh_dir = _env(env, "SSH_DIR") or "/root/.ssh"
    key_path = _env(env, "DEPLOY_KEY_PATH") or f"{ssh_dir}/{KEY_NAME}"

    return {
        "base_dir": base_dir,
        "repo_dir": _env(env, "MDC_REPO_DIR") or f"{base_dir}/micro-data-center",
        "repo_url": _env(env, "GITHUB_REPO") or "git@github.com:helloskyy-io/micro-data-center.git",
        "group_name": _env(env, "GROUP_NAME") or "skyy-net",
        "dev_user": _env(env, "DEV_USER") or "puma",
        "ssh_dir": ssh_dir,
        "deploy_key_path": key_path,
        "deploy_key_pub": _env(env, "DEPLOY_KEY_PUB") or f"{key_path}.pub",
        "ssh_config": _env(env, "SSH_CONFIG") or f"{ssh_dir}/config",
        "ssh_host_alias": _env(env, "SSH_HOST_ALIAS") or "micro-data-center-github",
        "git_user_name": _env(env, "GIT_USER_NAME") or "SkyyCommand Platform",
        "git_user_email": _env(env, "GIT_USER_EMAIL") or "info@helloskyy.io",
        "skip_key_check": parse_bool(_env(env, "SKIP_KEY_CHECK")),
        "dry_run": parse_bool(_env(env, "MDC_DRY_RUN")),
        "log_path": _env(env, "MDC_LOG_PATH") or PATHS.log_default,
        "state_path": _env(env, "MDC_STATE_PATH") or PATHS.state_default,
    }


@dataclass(frozen=True)
class InstallerConfig:
    raw: Dict[str, Any]

    @classmethod
    def from_state(cls, state: Dict[str, Any]) -> "InstallerConfig":
        return cls(raw=dict(state.get("config") or {}))

    @property
    def base_dir(self) -> str:
        return str(self.raw.get("base_dir") or "/opt/skyy-net")

    @property
    def repo_dir(self) -> str:
        return str(self.raw.get("repo_dir") or f"{self.base_dir}/micro-data-center")

    @property
    def repo_url(self) -> str:
        return str(self.raw.get("repo_url") or "git@github.com:helloskyy-io/micro-data-center.git")

    @property
    def group_name(self) -> str:
        return str(self.raw.get("group_name") or "skyy-net")

    @property
    def owner_user(self) -> str:
        return OWNER_USER

    @property
    def dev_user(self) -> str:
        return str(self.raw.get("dev_user") or "")

    @property
    def ssh_dir(self) -> str:
        return str(self.raw.get("ssh_dir") or "/root/.ssh")

    @property
    def deploy_key_path(self) -> str:
        return str(self.raw.get("deploy_key_path") or f"{self.ssh_dir}/{KEY_NAME}")

    @property
    def deploy_key_pub(self) -> str:
        return str(self.raw.get("deploy_key_pub") or f"{self.deploy_key_path}.pub")

    @property
    def ssh_config(self) -> str:
        return str(self.raw.get("ssh_config") or f"{self.ssh_dir}/config")

    @property
    def ssh_host_alias(self) -> str:
        return str(self.raw.get("ssh_host_alias") or "micro-data-center-github")

    @property
    def git_user_name(self) -> str:
        return str(self.raw.get("git_user_name") or "")

    @property
    def git_user_email(self) -> str:
        return str(self.raw.get("git_user_email") or "")

    @property
    def skip_key_check(self) -> bool:
        return parse_bool(self.raw.get("skip_key_check", False))

    @property
    def dry_run(self) -> bool:
        return parse_bool(self.raw.get("dry_run", False))

    @property
    def private_bootstrap_path(self) -> str:
        return os.path.join(self.repo_dir, PRIVATE_BOOTSTRAP_REL)
