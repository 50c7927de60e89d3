from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

from ..config import PRIVATE_BOOTSTRAP_REL, InstallerConfig
from ..errors import DelegateFailed, StepFailed
from ..lib.command import run_cmd
from ..lib.perms import is_executable, make_executable
from ..state_store import record_changes, record_decision
from .step_40_provision_deploy_key import BANNER

logger = logging.getLogger(__name__)

DELEGATE_HINTS = [
    "Please review the private bootstrap output above for error details",
    "Common issues:",
    "  - Configuration file errors (check config.yaml and .env)",
    "  - Docker/container issues (check Docker is running)",
    "  - Network connectivity issues",
    "  - Insufficient permissions",
]


class LaunchPrivateBootstrapStep:
    step_id = "60_launch_private_bootstrap"
    title = "Launching private bootstrap script"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = InstallerConfig.from_state(state)
        dry_run = cfg.dry_run
        repo = Path(cfg.repo_dir)
        script = Path(cfg.private_bootstrap_path)

        if not repo.is_dir() and not dry_run:
            raise StepFailed(
                f"Micro-data-center repository directory not found: {repo}",
                remediation=["Please ensure the repository was cloned successfully in the previous step"],
            )

        if not script.is_file():
            if dry_run:
                logger.info("Dry run: would execute %s", script)
                return state
            raise StepFailed(
                f"Private bootstrap script not found at: {script}",
                remediation=[
                    f"Expected location: {repo}/{PRIVATE_BOOTSTRAP_REL}",
                    "Please verify:",
                    "  1. The micro-data-center repository was cloned correctly",
                    "  2. The repository contains the expected directory structure",
                    "  3. You have access to the correct branch/version",
                ],
            )

        changes = []
        if is_executable(str(script)):
            logger.info("Private bootstrap script is already executable")
        else:
            logger.info("Making private bootstrap script executable...")
            try:
                make_executable(str(script), dry_run=dry_run)
            except OSError as e:
                raise StepFailed(f"Failed to make private bootstrap script executable: {e}") from e
            changes.append(f"chmod +x {script}")
        record_changes(state, self.step_id, changes)

        logger.info(BANNER)
        logger.info("Launching Private Bootstrap Script")
        logger.info("Script location: %s", script)
        logger.info("All output from the private bootstrap will stream below...")
        logger.info(BANNER)

        r = run_cmd(["bash", str(script)], check=False, stream=True, cwd=str(repo), dry_run=dry_run)
        record_decision(state, "delegate_exit_code", r.returncode)

        if r.returncode != 0:
            logger.error(BANNER)
            logger.error("Private Bootstrap Script Failed")
            logger.error(BANNER)
            # Killed by a signal: report it the way a shell would (128 + signal).
            exit_code = r.returncode if r.returncode > 0 else 128 - r.returncode
            raise DelegateFailed(
                f"Private bootstrap script failed with exit code {exit_code}",
                remediation=DELEGATE_HINTS,
                exit_code=exit_code,
            )

        logger.info(BANNER)
        logger.info("Private Bootstrap Script Completed Successfully")
        logger.info(BANNER)
        return state
