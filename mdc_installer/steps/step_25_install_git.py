from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..config import InstallerConfig
from ..errors import StepFailed
from ..lib.pkg import apt_install, apt_update, tool_version
from ..reconcile import Action, apply_actions
from ..state_store import record_changes

logger = logging.getLogger(__name__)


def plan_git(git_version: Optional[str]) -> List[Action]:
    if git_version is not None:
        return []
    return [Action("install_git", "git"), Action("verify_git")]


class InstallGitStep:
    step_id = "25_install_git"
    title = "Installing Git"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = InstallerConfig.from_state(state)
        dry_run = cfg.dry_run

        version = tool_version(["git", "--version"])
        if version is not None:
            logger.info("Git is already installed: %s", version)

        def _install(a: Action) -> None:
            apt_update(dry_run=dry_run)
            apt_install(["git"], dry_run=dry_run)

        def _verify(a: Action) -> None:
            if dry_run:
                return
            installed = tool_version(["git", "--version"])
            if installed is None:
                raise StepFailed(
                    "Git installation failed verification",
                    remediation=["Git is required to clone the micro-data-center repository"],
                )
            logger.info("Git installed successfully: %s", installed)

        applied = apply_actions(
            self.step_id,
            plan_git(version),
            {"install_git": _install, "verify_git": _verify},
            remediation={"install_git": ["Git is required to clone the micro-data-center repository"]},
        )
        record_changes(state, self.step_id, applied)
        return state
