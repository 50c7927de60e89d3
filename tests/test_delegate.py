from __future__ import annotations

import os
from pathlib import Path

import pytest

from mdc_installer.config import InstallerConfig, load_config
from mdc_installer.errors import DelegateFailed, StepFailed
from mdc_installer.state_store import begin_run
from mdc_installer.steps.step_60_launch_private_bootstrap import LaunchPrivateBootstrapStep


def _write_script(state, body: str, executable: bool = False) -> Path:
    script = Path(InstallerConfig.from_state(state).private_bootstrap_path)
    script.parent.mkdir(parents=True)
    script.write_text("#!/bin/bash\n" + body + "\n")
    if executable:
        os.chmod(script, 0o755)
    return script


def test_success_marks_script_executable(state, tmp_path):
    marker = tmp_path / "ran-in"
    script = _write_script(state, f'pwd > "{marker}"')

    LaunchPrivateBootstrapStep().run(state)

    assert os.access(script, os.X_OK)
    assert marker.read_text().strip() == InstallerConfig.from_state(state).repo_dir
    assert state["execution"]["decisions"]["delegate_exit_code"] == 0
    assert state["execution"]["changes"]["60_launch_private_bootstrap"] == [f"chmod +x {script}"]


def test_already_executable_is_left_alone(state):
    _write_script(state, "exit 0", executable=True)
    LaunchPrivateBootstrapStep().run(state)
    assert state["execution"]["changes"]["60_launch_private_bootstrap"] == []


def test_exit_code_is_propagated(state):
    _write_script(state, "echo provisioning failed >&2\nexit 3")

    with pytest.raises(DelegateFailed) as exc:
        LaunchPrivateBootstrapStep().run(state)

    assert exc.value.exit_code == 3
    assert state["execution"]["decisions"]["delegate_exit_code"] == 3


def test_signal_is_reported_like_a_shell(state):
    _write_script(state, "kill -TERM $$")

    with pytest.raises(DelegateFailed) as exc:
        LaunchPrivateBootstrapStep().run(state)

    assert exc.value.exit_code == 143


def test_missing_repository(state):
    with pytest.raises(StepFailed) as exc:
        LaunchPrivateBootstrapStep().run(state)
    assert "repository directory not found" in exc.value.message


def test_missing_script(state):
    os.makedirs(InstallerConfig.from_state(state).repo_dir)
    with pytest.raises(StepFailed) as exc:
        LaunchPrivateBootstrapStep().run(state)
    assert "components/temporal/scripts/bootstrap/bootstrap.sh" in exc.value.message


def test_dry_run_does_not_execute(environ, tmp_path):
    state = begin_run({}, load_config(dict(environ, MDC_DRY_RUN="1")))
    marker = tmp_path / "ran"
    _write_script(state, f'touch "{marker}"')

    LaunchPrivateBootstrapStep().run(state)

    assert not marker.exists()
