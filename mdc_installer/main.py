from __future__ import annotations

import argparse
import logging
import os
from typing import Any, Dict, Mapping, Optional, Sequence

from .config import load_config
from .errors import InstallerError, PrivilegeError
from .lib.prompt import Confirmation, StdinConfirmation
from .logging_utils import configure_logging
from .pipeline import Step, run_pipeline
from .state_store import begin_run, load_state, save_state
from .steps import (
    ConfigureIdentityStep,
    FetchRepositoryStep,
    InstallDockerStep,
    InstallGitStep,
    LaunchPrivateBootstrapStep,
    PrepareEnvironmentStep,
    ProvisionDeployKeyStep,
)

logger = logging.getLogger(__name__)

BANNER = "=" * 63

ENVIRONMENT_HELP = """\
environment variables:
  BASE_DIR          base directory (default /opt/skyy-net)
  MDC_REPO_DIR      repository checkout (default $BASE_DIR/micro-data-center)
  GITHUB_REPO       repository SSH URL
  GROUP_NAME        shared group (default skyy-net)
  DEV_USER          user added to the group when present (default puma)
  SSH_DIR           SSH directory (default /root/.ssh)
  DEPLOY_KEY_PATH   deploy key (default $SSH_DIR/micro-data-center-deploy)
  DEPLOY_KEY_PUB    deploy public key (default $DEPLOY_KEY_PATH.pub)
  SSH_CONFIG        SSH client config (default $SSH_DIR/config)
  SSH_HOST_ALIAS    SSH host alias (default micro-data-center-github)
  GIT_USER_NAME     global git user.name
  GIT_USER_EMAIL    global git user.email
  SKIP_KEY_CHECK    continue when repository access cannot be verified
  MDC_DRY_RUN       log mutations instead of performing them
  MDC_LOG_PATH      log file (default /var/log/mdc-installer.log)
  MDC_STATE_PATH    run record (default /var/lib/mdc-installer/state.json)
"""


def build_steps(confirmation: Optional[Confirmation] = None) -> list:
    return [
        PrepareEnvironmentStep(),
        InstallDockerStep(),
        InstallGitStep(),
        ConfigureIdentityStep(),
        ProvisionDeployKeyStep(confirmation or StdinConfirmation()),
        FetchRepositoryStep(),
        LaunchPrivateBootstrapStep(),
    ]


def is_root() -> bool:
    return os.geteuid() == 0


def check_privileges() -> None:
    logger.info("Verifying root access...")
    if not is_root():
        raise PrivilegeError("This script must be run as root")
    logger.info("Root access verified")


def _load_record(path: str) -> Dict[str, Any]:
    try:
        return load_state(path)
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable run record %s (%s); starting a new one", path, e)
        return {}


def run(
    *,
    environ: Optional[Mapping[str, str]] = None,
    confirmation: Optional[Confirmation] = None,
    steps: Optional[Sequence[Step]] = None,
) -> Dict[str, Any]:
    """Run the bootstrap pipeline and persist the run record."""

    config = load_config(environ)
    actual_log_path = configure_logging(log_path=config["log_path"])

    logger.info(BANNER)
    logger.info("Micro Data Center Public Installer")
    logger.info(BANNER)

    check_privileges()

    state_path = config["state_path"]
    state = begin_run(_load_record(state_path), config)
    paths = state["execution"].setdefault("paths", {})
    paths["log_path_requested"] = config["log_path"]
    paths["log_path_actual"] = actual_log_path
    if config["dry_run"]:
        logger.info("Dry run: mutations are logged, not performed")

    try:
        result = run_pipeline(state=state, steps=list(steps) if steps is not None else build_steps(confirmation))
        state = result.state
        state["execution"]["summary"] = {"ok": True, "ran_steps": result.ran_steps}
        logger.info(BANNER)
        logger.info("Public Installer Completed Successfully")
        logger.info(BANNER)
        return state
    except InstallerError as e:
        state.setdefault("execution", {}).setdefault("errors", []).append(
            {
                "step": (state.get("execution") or {}).get("current_step"),
                "error": e.message,
                "exit_code": e.exit_code,
            }
        )
        state["execution"]["summary"] = {"ok": False, "exit_code": e.exit_code}
        raise
    finally:
        save_state(state_path, state)


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(
        prog="mdc-installer",
        description="Prepare this host and launch the private Micro Data Center bootstrap.",
        epilog=ENVIRONMENT_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.parse_args(argv)

    try:
        run()
    except InstallerError as e:
        logger.error(e.message)
        for line in e.remediation:
            logger.error(line)
        return e.exit_code
    except Exception:
        logger.exception("Installer failed")
        return 1
    return 0
