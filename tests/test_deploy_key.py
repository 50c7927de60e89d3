from __future__ import annotations

import io
import os
import stat
from datetime import datetime
from pathlib import Path

import pytest

from mdc_installer.config import InstallerConfig, load_config
from mdc_installer.errors import StepFailed
from mdc_installer.lib.prompt import PresetConfirmation, StdinConfirmation
from mdc_installer.reconcile import ops
from mdc_installer.state_store import begin_run
from mdc_installer.steps.step_40_provision_deploy_key import (
    KeyState,
    ObservedKey,
    ProvisionDeployKeyStep,
    key_comment,
    plan_deploy_key,
)

from conftest import ALIAS_URL, keygen_effect, write_key_pair

AUTHENTICATED = "Hi helloskyy-io/micro-data-center! You've successfully authenticated, but GitHub does not provide shell access."


def _cfg():
    return InstallerConfig(raw=load_config({}))


def _observed(**overrides):
    values = dict(
        ssh_dir_exists=True,
        private_exists=True,
        public_exists=True,
        config_exists=True,
        alias_present=True,
    )
    values.update(overrides)
    return ObservedKey(**values)


class TestPlanDeployKey:
    def test_registered_key_needs_nothing(self):
        observed = _observed()
        assert observed.state == KeyState.REGISTERED
        assert plan_deploy_key(_cfg(), observed) == []

    def test_fresh_host(self):
        observed = _observed(
            ssh_dir_exists=False,
            private_exists=False,
            public_exists=False,
            config_exists=False,
            alias_present=False,
        )
        assert observed.state == KeyState.ABSENT
        assert ops(plan_deploy_key(_cfg(), observed)) == [
            "create_ssh_dir",
            "generate_key",
            "await_registration",
            "create_ssh_config",
            "register_alias",
        ]

    def test_existing_key_without_alias(self):
        observed = _observed(alias_present=False)
        assert observed.state == KeyState.GENERATED
        assert ops(plan_deploy_key(_cfg(), observed)) == ["register_alias"]

    def test_lost_public_half_is_derived_not_regenerated(self):
        assert ops(plan_deploy_key(_cfg(), _observed(public_exists=False))) == ["derive_public_key"]

    def test_no_alias_without_ssh_host(self):
        observed = _observed(config_exists=False, alias_present=False)
        assert ops(plan_deploy_key(_cfg(), observed, with_alias=False)) == ["create_ssh_config"]


def test_key_comment():
    assert key_comment(datetime(2024, 3, 9), "node-7") == "micro-data-center-deploy-key-node-7-20240309"


def _alias_count(cfg: InstallerConfig) -> int:
    text = Path(cfg.ssh_config).read_text()
    return sum(1 for line in text.splitlines() if line.split() == ["Host", cfg.ssh_host_alias])


class TestProvisionDeployKeyStep:
    def test_fresh_host_generates_and_waits_for_operator(self, state, fake_cmd):
        cfg = InstallerConfig.from_state(state)
        fake_cmd.on("ssh-keygen", effect=keygen_effect)
        fake_cmd.on("ssh", stdout="", stderr=AUTHENTICATED, returncode=1)
        confirmation = PresetConfirmation(True)
        out = io.StringIO()

        ProvisionDeployKeyStep(confirmation, out=out).run(state)

        assert len(confirmation.prompts) == 1
        assert "ssh-ed25519 AAAAC3Nza test@host" in out.getvalue()
        assert stat.S_IMODE(os.stat(cfg.ssh_dir).st_mode) == 0o700
        assert stat.S_IMODE(os.stat(cfg.deploy_key_path).st_mode) == 0o600
        assert stat.S_IMODE(os.stat(cfg.ssh_config).st_mode) == 0o600
        assert _alias_count(cfg) == 1
        assert f"IdentityFile {cfg.deploy_key_path}" in Path(cfg.ssh_config).read_text()
        assert state["execution"]["decisions"]["deploy_key"] == "verified"

    def test_existing_key_is_never_touched(self, state, fake_cmd):
        cfg = InstallerConfig.from_state(state)
        write_key_pair(cfg.deploy_key_path, body="ORIGINAL")
        before = Path(cfg.deploy_key_path).read_bytes()
        fake_cmd.on("ssh", stderr=AUTHENTICATED, returncode=1)
        confirmation = PresetConfirmation(True)

        ProvisionDeployKeyStep(confirmation, out=io.StringIO()).run(state)

        assert Path(cfg.deploy_key_path).read_bytes() == before
        assert not fake_cmd.ran("ssh-keygen")
        assert confirmation.prompts == []

    def test_alias_is_appended_once_across_runs(self, environ, fake_cmd):
        fake_cmd.on("ssh", stderr=AUTHENTICATED, returncode=1)
        cfg = InstallerConfig(raw=load_config(environ))
        write_key_pair(cfg.deploy_key_path)

        for _ in range(3):
            state = begin_run({}, load_config(environ))
            ProvisionDeployKeyStep(PresetConfirmation(True), out=io.StringIO()).run(state)

        assert _alias_count(cfg) == 1

    def test_falls_back_to_ls_remote(self, state, fake_cmd):
        cfg = InstallerConfig.from_state(state)
        write_key_pair(cfg.deploy_key_path)
        fake_cmd.on("ssh", returncode=255, stderr="Permission denied (publickey).")

        ProvisionDeployKeyStep(PresetConfirmation(True), out=io.StringIO()).run(state)

        assert ["git", "ls-remote", ALIAS_URL] in fake_cmd.calls
        assert state["execution"]["decisions"]["deploy_key"] == "verified"

    def test_unverified_access_is_fatal(self, state, fake_cmd):
        cfg = InstallerConfig.from_state(state)
        write_key_pair(cfg.deploy_key_path)
        fake_cmd.on("ssh", returncode=255, stderr="Permission denied (publickey).")
        fake_cmd.on("git", "ls-remote", returncode=128, stderr="ERROR: Repository not found.")
        out = io.StringIO()

        with pytest.raises(StepFailed) as exc:
            ProvisionDeployKeyStep(PresetConfirmation(True), out=out).run(state)

        assert "verification failed" in exc.value.message
        assert any("SKIP_KEY_CHECK" in line for line in exc.value.remediation)
        # The existing key is shown again so the operator can re-register it.
        assert "ssh-ed25519 AAAAC3Nza test@host" in out.getvalue()

    def test_skip_key_check_downgrades_to_warning(self, environ, fake_cmd):
        state = begin_run({}, load_config(dict(environ, SKIP_KEY_CHECK="true")))
        cfg = InstallerConfig.from_state(state)
        write_key_pair(cfg.deploy_key_path)
        fake_cmd.on("ssh", returncode=255)
        fake_cmd.on("git", "ls-remote", returncode=128)

        ProvisionDeployKeyStep(PresetConfirmation(True), out=io.StringIO()).run(state)

        assert state["execution"]["warnings"][-1]["step"] == "40_provision_deploy_key"
        assert state["execution"]["decisions"]["deploy_key"] == "registered"

    def test_declined_confirmation_is_fatal(self, state, fake_cmd):
        fake_cmd.on("ssh-keygen", effect=keygen_effect)

        with pytest.raises(StepFailed) as exc:
            ProvisionDeployKeyStep(PresetConfirmation(False), out=io.StringIO()).run(state)

        assert "not confirmed" in exc.value.message
        assert not fake_cmd.ran("git", "ls-remote")

    def test_end_of_input_counts_as_declined(self, state, fake_cmd):
        fake_cmd.on("ssh-keygen", effect=keygen_effect)
        confirmation = StdinConfirmation(stream=io.StringIO(""), out=io.StringIO())

        with pytest.raises(StepFailed):
            ProvisionDeployKeyStep(confirmation, out=io.StringIO()).run(state)

    def test_missing_public_key_is_rebuilt(self, state, fake_cmd):
        cfg = InstallerConfig.from_state(state)
        write_key_pair(cfg.deploy_key_path, body="ORIGINAL")
        os.remove(cfg.deploy_key_pub)
        fake_cmd.on("ssh-keygen", "-y", stdout="ssh-ed25519 AAAAderived root@host\n")
        fake_cmd.on("ssh", stderr=AUTHENTICATED, returncode=1)

        ProvisionDeployKeyStep(PresetConfirmation(True), out=io.StringIO()).run(state)

        assert Path(cfg.deploy_key_pub).read_text() == "ssh-ed25519 AAAAderived root@host\n"
        assert Path(cfg.deploy_key_path).read_text() == "ORIGINAL\n"

    def test_https_remote_warns_and_verifies_raw_url(self, environ, fake_cmd):
        url = "https://github.com/helloskyy-io/micro-data-center.git"
        state = begin_run({}, load_config(dict(environ, GITHUB_REPO=url)))
        cfg = InstallerConfig.from_state(state)
        write_key_pair(cfg.deploy_key_path)

        ProvisionDeployKeyStep(PresetConfirmation(True), out=io.StringIO()).run(state)

        assert "not an SSH remote" in state["execution"]["warnings"][0]["warning"]
        assert not fake_cmd.ran("ssh")
        assert ["git", "ls-remote", url] in fake_cmd.calls
        assert "Host " not in Path(cfg.ssh_config).read_text()
        assert state["execution"]["decisions"]["deploy_key"] == "verified"

    def test_dry_run_writes_nothing(self, environ, fake_cmd):
        state = begin_run({}, load_config(dict(environ, MDC_DRY_RUN="1")))
        confirmation = PresetConfirmation(True)

        ProvisionDeployKeyStep(confirmation, out=io.StringIO()).run(state)

        assert not os.path.exists(environ["SSH_DIR"])
        assert confirmation.prompts == []
        assert not fake_cmd.ran("ssh")
