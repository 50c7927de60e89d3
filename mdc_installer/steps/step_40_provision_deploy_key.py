from __future__ import annotations

import logging
import socket
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

from ..config import KEY_NAME, KEY_TYPE, InstallerConfig
from ..errors import StepFailed
from ..lib.git import ls_remote
from ..lib.prompt import Confirmation
from ..lib.ssh import (
    RemoteSpec,
    alias_url,
    append_alias_block,
    deploy_keys_page,
    derive_public_key,
    ensure_config_file,
    ensure_ssh_dir,
    generate_keypair,
    has_host_alias,
    parse_remote,
    probe_authentication,
    read_config,
    render_alias_block,
)
from ..reconcile import Action, apply_actions
from ..state_store import record_changes, record_decision, record_warning

logger = logging.getLogger(__name__)

BANNER = "=" * 63


class KeyState(str, Enum):
    ABSENT = "absent"
    GENERATED = "generated"
    REGISTERED = "registered"
    VERIFIED = "verified"


@dataclass(frozen=True)
class ObservedKey:
    ssh_dir_exists: bool
    private_exists: bool
    public_exists: bool
    config_exists: bool
    alias_present: bool

    @property
    def key_exists(self) -> bool:
        return self.private_exists and self.public_exists

    @property
    def state(self) -> KeyState:
        if not self.key_exists:
            return KeyState.ABSENT
        if not self.alias_present:
            return KeyState.GENERATED
        return KeyState.REGISTERED


def inspect_key(cfg: InstallerConfig) -> ObservedKey:
    config_exists = Path(cfg.ssh_config).is_file()
    return ObservedKey(
        ssh_dir_exists=Path(cfg.ssh_dir).is_dir(),
        private_exists=Path(cfg.deploy_key_path).is_file(),
        public_exists=Path(cfg.deploy_key_pub).is_file(),
        config_exists=config_exists,
        alias_present=config_exists and has_host_alias(read_config(cfg.ssh_config), cfg.ssh_host_alias),
    )


def key_comment(now: Optional[datetime] = None, hostname: Optional[str] = None) -> str:
    now = now or datetime.now()
    hostname = hostname or socket.gethostname()
    return f"{KEY_NAME}-key-{hostname}-{now:%Y%m%d}"


def plan_deploy_key(cfg: InstallerConfig, observed: ObservedKey, with_alias: bool = True) -> List[Action]:
    """Mutations moving the key towards "registered". Verification is not planned; it always runs.

    with_alias is False when the repository URL has no SSH host to bind an alias to.
    """

    actions: List[Action] = []
    if not observed.ssh_dir_exists:
        actions.append(Action("create_ssh_dir", cfg.ssh_dir, "0700"))
    if observed.private_exists and not observed.public_exists:
        # Never replace an existing private key; rebuild its public half instead.
        actions.append(Action("derive_public_key", cfg.deploy_key_pub))
    elif not observed.key_exists:
        actions.append(Action("generate_key", cfg.deploy_key_path, KEY_TYPE))
        actions.append(Action("await_registration", cfg.deploy_key_pub))
    if not observed.config_exists:
        actions.append(Action("create_ssh_config", cfg.ssh_config, "0600"))
    if with_alias and not observed.alias_present:
        actions.append(Action("register_alias", cfg.ssh_config, cfg.ssh_host_alias))
    return actions


def registration_instructions(cfg: InstallerConfig) -> List[str]:
    page = deploy_keys_page(cfg.repo_url) or "the repository's deploy key settings"
    return [
        "Steps to add key to GitHub:",
        f"  1. Go to: {page}",
        "  2. Click 'Add deploy key'",
        "  3. Paste the public key above",
        "  4. For production: Give the key READ access only",
        "  5. For development: Check 'Allow write access'",
        "  6. Click 'Add key'",
    ]


def troubleshooting(cfg: InstallerConfig) -> List[str]:
    page = deploy_keys_page(cfg.repo_url) or cfg.repo_url
    return [
        "Troubleshooting steps:",
        "  1. Verify the public key has been added to GitHub",
        f"     Public key location: {cfg.deploy_key_pub}",
        f"     Deploy keys page: {page}",
        "  2. Verify the key has the correct permissions (read for prod, read/write for dev)",
        "  3. Verify the repository exists and is accessible",
        "  4. If the key was just added, wait a few seconds and try again",
    ]


class ProvisionDeployKeyStep:
    step_id = "40_provision_deploy_key"
    title = "Configuring SSH deploy key for micro-data-center repository"

    def __init__(self, confirmation: Confirmation, out: Optional[TextIO] = None) -> None:
        self.confirmation = confirmation
        self.out = out

    def _write(self, text: str = "") -> None:
        out = self.out or sys.stdout
        out.write(text + "\n")
        out.flush()

    def _show_public_key(self, cfg: InstallerConfig) -> None:
        self._write()
        self._write(Path(cfg.deploy_key_pub).read_text(encoding="utf-8").strip())
        self._write()

    def _await_registration(self, cfg: InstallerConfig) -> None:
        logger.warning(BANNER)
        logger.warning("ACTION REQUIRED: Add the following public key to GitHub")
        logger.warning(BANNER)
        self._show_public_key(cfg)
        for line in registration_instructions(cfg):
            logger.warning(line)
        if not self.confirmation.confirm("Press ENTER after you have added the key to GitHub..."):
            raise StepFailed(
                "Deploy key registration was not confirmed by the operator",
                remediation=[f"Add {cfg.deploy_key_pub} as a deploy key, then re-run the installer"],
            )

    def verify_access(self, cfg: InstallerConfig, remote: Optional[RemoteSpec]) -> bool:
        if remote is not None:
            logger.info("Testing SSH connection to %s...", remote.host)
            if probe_authentication(user=remote.user, host=remote.host, identity_file=cfg.deploy_key_path):
                logger.info("SSH connection test successful")
                return True
            logger.info("SSH connection test inconclusive (this is normal for deploy keys)")

        logger.info("Attempting direct git repository access test...")
        if ls_remote(alias_url(cfg.repo_url, cfg.ssh_host_alias)):
            logger.info("Git repository access test successful - key is properly configured")
            return True
        return False

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = InstallerConfig.from_state(state)
        dry_run = cfg.dry_run

        remote = parse_remote(cfg.repo_url)
        if remote is None:
            record_warning(
                state,
                self.step_id,
                f"Repository URL is not an SSH remote, skipping SSH alias setup: {cfg.repo_url}",
            )

        observed = inspect_key(cfg)
        key_existed = observed.key_exists
        logger.info("Deploy key state: %s", observed.state.value)
        if key_existed:
            logger.info("Deploy key already exists: %s (skipping generation)", cfg.deploy_key_path)

        def _await(a: Action) -> None:
            if dry_run:
                logger.info("Would pause for operator to register %s", a.target)
                return
            self._await_registration(cfg)

        def _register(a: Action) -> None:
            block = render_alias_block(
                alias=cfg.ssh_host_alias,
                host=remote.host,
                user=remote.user,
                identity_file=cfg.deploy_key_path,
            )
            append_alias_block(a.target, block, dry_run=dry_run)

        applied = apply_actions(
            self.step_id,
            plan_deploy_key(cfg, observed, with_alias=remote is not None),
            {
                "create_ssh_dir": lambda a: ensure_ssh_dir(a.target, dry_run=dry_run),
                "generate_key": lambda a: generate_keypair(
                    a.target, comment=key_comment(), key_type=KEY_TYPE, dry_run=dry_run
                ),
                "derive_public_key": lambda a: derive_public_key(cfg.deploy_key_path, a.target, dry_run=dry_run),
                "await_registration": _await,
                "create_ssh_config": lambda a: ensure_config_file(a.target, dry_run=dry_run),
                "register_alias": _register,
            },
        )
        record_changes(state, self.step_id, applied)

        if dry_run:
            logger.info("Dry run: skipping repository access verification")
            record_decision(state, "deploy_key", KeyState.REGISTERED.value)
            return state

        if self.verify_access(cfg, remote):
            logger.info("SSH key configuration verified successfully")
            record_decision(state, "deploy_key", KeyState.VERIFIED.value)
            return state

        logger.error("Git repository access test failed")
        for line in troubleshooting(cfg):
            logger.error(line)
        if key_existed:
            logger.warning("Key exists but access test failed - key may not be added to GitHub")
            logger.warning("Displaying public key again for verification:")
            self._show_public_key(cfg)

        if not cfg.skip_key_check:
            raise StepFailed(
                "Git access verification failed - cannot proceed without repository access",
                remediation=[
                    "SSH key is required to access the private micro-data-center repository",
                    "Set SKIP_KEY_CHECK=true to continue anyway (not recommended)",
                ],
            )

        record_warning(state, self.step_id, "Skipping key check (SKIP_KEY_CHECK=true) - proceeding anyway")
        record_decision(state, "deploy_key", KeyState.REGISTERED.value)
        return state
