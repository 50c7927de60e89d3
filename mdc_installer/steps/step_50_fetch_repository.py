from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import InstallerConfig
from ..errors import StepFailed
from ..lib.git import add_remote, clone, get_remote_url, is_valid_repo, set_remote_url
from ..lib.perms import SHARED_DIR_MODE, Ownership, chmod_dirs, chown_tree, inspect_ownership
from ..lib.ssh import alias_url, has_host_alias, read_config
from ..reconcile import Action, apply_actions
from ..state_store import record_changes, record_decision, record_warning
from .step_10_prepare_environment import ownership_actions

logger = logging.getLogger(__name__)


class RepoPathKind(str, Enum):
    ABSENT = "absent"
    NOT_DIRECTORY = "not_directory"
    PLAIN_DIRECTORY = "plain_directory"
    REPOSITORY = "repository"


@dataclass(frozen=True)
class ObservedRepository:
    kind: RepoPathKind
    parent_exists: bool
    valid: bool = False
    remote_url: Optional[str] = None
    ownership: Ownership = Ownership(None, None, None)


def alias_registered(cfg: InstallerConfig) -> bool:
    return (
        Path(cfg.deploy_key_path).is_file()
        and Path(cfg.deploy_key_pub).is_file()
        and has_host_alias(read_config(cfg.ssh_config), cfg.ssh_host_alias)
    )


def effective_url(cfg: InstallerConfig, registered: bool) -> str:
    if registered:
        return alias_url(cfg.repo_url, cfg.ssh_host_alias)
    return cfg.repo_url


def inspect_repository(path: str) -> ObservedRepository:
    p = Path(path)
    parent_exists = p.parent.is_dir()
    if not p.exists():
        return ObservedRepository(kind=RepoPathKind.ABSENT, parent_exists=parent_exists)
    if not p.is_dir():
        return ObservedRepository(kind=RepoPathKind.NOT_DIRECTORY, parent_exists=parent_exists)
    if not (p / ".git").exists():
        return ObservedRepository(kind=RepoPathKind.PLAIN_DIRECTORY, parent_exists=parent_exists)
    valid = is_valid_repo(path)
    return ObservedRepository(
        kind=RepoPathKind.REPOSITORY,
        parent_exists=parent_exists,
        valid=valid,
        remote_url=get_remote_url(path) if valid else None,
        ownership=inspect_ownership(path),
    )


def plan_repository(cfg: InstallerConfig, observed: ObservedRepository, url: str) -> List[Action]:
    """Actions reconciling the repository path. Unrecoverable layouts raise StepFailed.

    An existing repository only gets its origin URL and ownership reconciled;
    its content is never fetched or merged.
    """

    path = cfg.repo_dir

    if observed.kind == RepoPathKind.NOT_DIRECTORY:
        raise StepFailed(
            f"Path exists but is not a directory: {path}",
            remediation=["Please remove it manually and try again:", f"  rm -f {path}"],
        )

    if observed.kind == RepoPathKind.PLAIN_DIRECTORY or (
        observed.kind == RepoPathKind.REPOSITORY and not observed.valid
    ):
        raise StepFailed(
            f"Directory exists but is not a valid git repository: {path}",
            remediation=[
                "This may indicate a corrupted or incomplete clone",
                "Please remove the directory manually and try again:",
                f"  rm -rf {path}",
            ],
        )

    if observed.kind == RepoPathKind.ABSENT:
        actions: List[Action] = []
        if not observed.parent_exists:
            actions.append(Action("create_parent", str(Path(path).parent)))
        actions.append(Action("clone", path, url))
        actions.append(Action("chown", path, f"-> {cfg.owner_user}:{cfg.group_name}"))
        actions.append(Action("chmod_dirs", path, f"-> {format(SHARED_DIR_MODE, 'o')}"))
        return actions

    actions = []
    if observed.remote_url is None:
        actions.append(Action("add_remote", path, url))
    elif observed.remote_url != url:
        actions.append(Action("set_remote", path, f"{observed.remote_url} -> {url}"))
    actions.extend(ownership_actions(path, cfg, observed.ownership))
    return actions


class FetchRepositoryStep:
    step_id = "50_fetch_repository"
    title = "Cloning micro-data-center repository"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = InstallerConfig.from_state(state)
        dry_run = cfg.dry_run
        path = cfg.repo_dir

        registered = alias_registered(cfg)
        url = effective_url(cfg, registered)
        if registered:
            logger.info("Using SSH config alias: %s", cfg.ssh_host_alias)
        else:
            record_warning(
                state,
                self.step_id,
                "SSH config alias not found, using direct repository URL (may fail without a configured key)",
            )
        record_decision(state, "repo_url", url)

        observed = inspect_repository(path)
        logger.info("Repository path %s: %s", path, observed.kind.value)

        def _create_parent(a: Action) -> None:
            if dry_run:
                logger.info("Would create %s", a.target)
                return
            Path(a.target).mkdir(parents=True, exist_ok=True)

        applied = apply_actions(
            self.step_id,
            plan_repository(cfg, observed, url),
            {
                "create_parent": _create_parent,
                "clone": lambda a: clone(a.detail, a.target, dry_run=dry_run),
                "add_remote": lambda a: add_remote(a.target, url, dry_run=dry_run),
                "set_remote": lambda a: set_remote_url(a.target, url, dry_run=dry_run),
                "chown": lambda a: chown_tree(a.target, cfg.owner_user, cfg.group_name, dry_run=dry_run),
                "chmod_dirs": lambda a: chmod_dirs(a.target, SHARED_DIR_MODE, dry_run=dry_run),
            },
            remediation={
                "clone": [
                    "Please verify:",
                    "  1. SSH key has been added to GitHub",
                    f"  2. Repository URL is correct: {url}",
                    "  3. Network connectivity is available",
                    "  4. You have access to the repository",
                ],
            },
        )
        record_changes(state, self.step_id, applied)

        if observed.kind == RepoPathKind.REPOSITORY:
            logger.info("Repository is ready (skipping clone/pull)")
        return state
