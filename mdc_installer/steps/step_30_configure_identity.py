from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..config import InstallerConfig
from ..lib.git import get_global, set_global
from ..reconcile import Action, apply_actions
from ..state_store import record_changes

logger = logging.getLogger(__name__)


def plan_identity(cfg: InstallerConfig, current: Dict[str, str]) -> List[Action]:
    actions: List[Action] = []
    for key, wanted in (("user.name", cfg.git_user_name), ("user.email", cfg.git_user_email)):
        if current.get(key, "") != wanted:
            actions.append(Action("set_git_config", key, wanted))
        else:
            logger.info("Git %s already configured: %s", key, wanted)
    return actions


class ConfigureIdentityStep:
    step_id = "30_configure_identity"
    title = "Configuring git identity for root user"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = InstallerConfig.from_state(state)
        current = {key: get_global(key) for key in ("user.name", "user.email")}

        applied = apply_actions(
            self.step_id,
            plan_identity(cfg, current),
            {"set_git_config": lambda a: set_global(a.target, a.detail, dry_run=cfg.dry_run)},
        )
        record_changes(state, self.step_id, applied)
        return state
