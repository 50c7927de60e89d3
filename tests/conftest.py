"""Shared pytest fixtures for mdc-installer tests.

No test touches the real host: every external command goes through
``FakeRunner`` and every path lives under ``tmp_path``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import pytest

from mdc_installer.config import load_config
from mdc_installer.lib import accounts, apt_repo, git, osinfo, perms, pkg, ssh
from mdc_installer.lib.command import CmdResult, CommandError
from mdc_installer.state_store import begin_run
from mdc_installer.steps import step_60_launch_private_bootstrap

RUN_CMD_MODULES = [accounts, apt_repo, git, osinfo, perms, pkg, ssh, step_60_launch_private_bootstrap]

REPO_URL = "git@github.com:helloskyy-io/micro-data-center.git"
ALIAS_URL = "git@micro-data-center-github:helloskyy-io/micro-data-center.git"


class FakeRunner:
    """Stands in for run_cmd. Rules match on argv prefix; the most recent rule wins."""

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self._rules: list = []

    def on(
        self,
        *prefix: str,
        returncode: Union[int, Callable[[], int]] = 0,
        stdout: str = "",
        stderr: str = "",
        effect: Optional[Callable[[List[str]], None]] = None,
    ) -> "FakeRunner":
        self._rules.insert(0, (list(prefix), returncode, stdout, stderr, effect))
        return self

    def __call__(self, argv, *, check=True, env=None, cwd=None, input_text=None, stream=False, dry_run=False):
        argv = list(argv)
        self.calls.append(argv)
        if dry_run:
            return CmdResult(argv=argv, returncode=0, stdout="", stderr="")

        returncode, stdout, stderr = 0, "", ""
        for prefix, rc, out, err, effect in self._rules:
            if argv[: len(prefix)] == prefix:
                if effect is not None:
                    effect(argv)
                # returncode may be a callable evaluated at call time.
                returncode = rc() if callable(rc) else rc
                stdout, stderr = out, err
                break

        if check and returncode != 0:
            raise CommandError(argv, returncode, stderr)
        return CmdResult(argv=argv, returncode=returncode, stdout=stdout, stderr=stderr)

    def ran(self, *prefix: str) -> bool:
        return any(c[: len(prefix)] == list(prefix) for c in self.calls)


@pytest.fixture
def fake_cmd(monkeypatch) -> FakeRunner:
    runner = FakeRunner()
    for module in RUN_CMD_MODULES:
        monkeypatch.setattr(module, "run_cmd", runner)
    return runner


@pytest.fixture
def installed_tools(monkeypatch) -> set:
    """Tools visible on PATH; tests add or remove names."""

    tools = {"docker", "git", "ssh", "ssh-keygen"}
    monkeypatch.setattr(pkg, "which", lambda name: f"/usr/bin/{name}" if name in tools else None)
    return tools


@pytest.fixture
def environ(tmp_path: Path) -> Dict[str, str]:
    return {
        "BASE_DIR": str(tmp_path / "opt" / "skyy-net"),
        "SSH_DIR": str(tmp_path / "root-ssh"),
        "GROUP_NAME": "skyy-net",
        "DEV_USER": "puma",
        "MDC_LOG_PATH": str(tmp_path / "log" / "mdc-installer.log"),
        "MDC_STATE_PATH": str(tmp_path / "state" / "state.json"),
    }


@pytest.fixture
def state(environ):
    return begin_run({}, load_config(environ))


def write_key_pair(key_path: str, body: str = "PRIVATE-KEY") -> None:
    p = Path(key_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(body + "\n", encoding="utf-8")
    Path(key_path + ".pub").write_text("ssh-ed25519 AAAAC3Nza test@host\n", encoding="utf-8")


def keygen_effect(argv: List[str]) -> None:
    write_key_pair(argv[argv.index("-f") + 1], body="GENERATED-KEY")


def install_dir_effect(argv: List[str]) -> None:
    """Effect for `install -d DIR`: create the directory like the real command."""

    Path(argv[-1]).mkdir(parents=True, exist_ok=True)
