from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

from ..config import InstallerConfig
from ..lib.accounts import add_user_to_group, ensure_group, group_exists, user_exists, user_in_group
from ..lib.perms import SHARED_DIR_MODE, Ownership, chmod_dirs, chown_tree, inspect_ownership
from ..reconcile import Action, apply_actions
from ..state_store import record_changes, record_decision, record_warning

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObservedEnvironment:
    dir_exists: bool
    group_exists: bool
    user_exists: bool
    user_in_group: bool
    ownership: Ownership


def inspect_environment(cfg: InstallerConfig) -> ObservedEnvironment:
    dir_exists = Path(cfg.base_dir).is_dir()
    has_user = user_exists(cfg.dev_user)
    return ObservedEnvironment(
        dir_exists=dir_exists,
        group_exists=group_exists(cfg.group_name),
        user_exists=has_user,
        user_in_group=has_user and user_in_group(cfg.dev_user, cfg.group_name),
        ownership=inspect_ownership(cfg.base_dir) if dir_exists else Ownership(None, None, None),
    )


def ownership_actions(path: str, cfg: InstallerConfig, own: Ownership) -> List[Action]:
    """chown/chmod actions needed to make path root:<group> with setgid 2775 directories."""

    actions: List[Action] = []
    if own.user != cfg.owner_user or own.group != cfg.group_name:
        actions.append(Action("chown", path, f"{own.owner_spec} -> {cfg.owner_user}:{cfg.group_name}"))
    if own.mode != SHARED_DIR_MODE:
        actions.append(Action("chmod_dirs", path, f"{own.mode_str} -> {format(SHARED_DIR_MODE, 'o')}"))
    return actions


def plan_environment(cfg: InstallerConfig, observed: ObservedEnvironment) -> List[Action]:
    actions: List[Action] = []
    if not observed.dir_exists:
        actions.append(Action("create_dir", cfg.base_dir))
    if not observed.group_exists:
        actions.append(Action("create_group", cfg.group_name))
    if observed.user_exists and not observed.user_in_group:
        actions.append(Action("add_user_to_group", cfg.dev_user, cfg.group_name))
    actions.extend(ownership_actions(cfg.base_dir, cfg, observed.ownership))
    return actions


class PrepareEnvironmentStep:
    step_id = "10_prepare_environment"
    title = "Setting up folder structure and user group"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = InstallerConfig.from_state(state)
        dry_run = cfg.dry_run

        observed = inspect_environment(cfg)
        if cfg.dev_user and not observed.user_exists:
            record_warning(
                state,
                self.step_id,
                f"User '{cfg.dev_user}' does not exist, skipping group assignment",
            )

        def _create_dir(a: Action) -> None:
            if dry_run:
                logger.info("Would create %s", a.target)
                return
            Path(a.target).mkdir(parents=True, exist_ok=True)

        def _add_user(a: Action) -> None:
            add_user_to_group(a.target, a.detail, dry_run=dry_run)
            logger.warning("User '%s' may need to log out and back in for group changes to take effect", a.target)

        actions = plan_environment(cfg, observed)
        applied = apply_actions(
            self.step_id,
            actions,
            {
                "create_dir": _create_dir,
                "create_group": lambda a: ensure_group(a.target, dry_run=dry_run),
                "add_user_to_group": _add_user,
                "chown": lambda a: chown_tree(a.target, cfg.owner_user, cfg.group_name, dry_run=dry_run),
                "chmod_dirs": lambda a: chmod_dirs(a.target, SHARED_DIR_MODE, dry_run=dry_run),
            },
            remediation={
                "create_dir": ["This is a critical error - cannot proceed without base directory"],
            },
        )
        record_changes(state, self.step_id, applied)
        record_decision(state, "base_dir", {"path": cfg.base_dir, "owner": cfg.owner_user, "group": cfg.group_name, "mode": "2775"})

        logger.info("Directory: %s owner=%s group=%s mode=2775 (setgid)", cfg.base_dir, cfg.owner_user, cfg.group_name)
        return state
