from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..config import PATHS, InstallerConfig
from ..errors import StepFailed
from ..lib.apt_repo import install_docker_keyring, write_docker_sources
from ..lib.osinfo import docker_distro, read_os_release, release_codename
from ..lib.pkg import apt_install, apt_update, dpkg_architecture, systemctl, tool_version
from ..reconcile import Action, apply_actions
from ..state_store import record_changes, record_decision

logger = logging.getLogger(__name__)

PREREQ_PACKAGES = ["ca-certificates", "curl", "gnupg", "lsb-release"]
DOCKER_PACKAGES = [
    "docker-ce",
    "docker-ce-cli",
    "containerd.io",
    "docker-buildx-plugin",
    "docker-compose-plugin",
]
COMPOSE_PACKAGE = "docker-compose-plugin"


@dataclass(frozen=True)
class ObservedDocker:
    docker_version: Optional[str]
    compose_version: Optional[str]


def inspect_docker() -> ObservedDocker:
    docker = tool_version(["docker", "--version"])
    compose = tool_version(["docker", "compose", "version"]) if docker is not None else None
    return ObservedDocker(docker_version=docker, compose_version=compose)


def plan_docker(observed: ObservedDocker) -> List[Action]:
    if observed.docker_version is None:
        # The engine packages include the compose plugin.
        return [
            Action("install_prerequisites", " ".join(PREREQ_PACKAGES)),
            Action("add_docker_repository"),
            Action("install_docker", " ".join(DOCKER_PACKAGES)),
            Action("enable_service", "docker"),
            Action("verify_docker"),
            Action("verify_compose"),
        ]
    if observed.compose_version is None:
        return [
            Action("install_compose", COMPOSE_PACKAGE),
            Action("verify_compose"),
        ]
    return []


class InstallDockerStep:
    step_id = "20_install_docker"
    title = "Installing Docker and Docker Compose"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = InstallerConfig.from_state(state)
        dry_run = cfg.dry_run

        observed = inspect_docker()
        if observed.docker_version is not None:
            logger.info("Docker is already installed: %s", observed.docker_version)
        if observed.compose_version is not None:
            logger.info("Docker Compose is already available: %s", observed.compose_version)

        def _prereqs(a: Action) -> None:
            apt_update(dry_run=dry_run)
            apt_install(PREREQ_PACKAGES, dry_run=dry_run)

        def _repo(a: Action) -> None:
            os_release = read_os_release(PATHS.os_release)
            distro = docker_distro(os_release)
            codename = release_codename(os_release, dry_run=dry_run)
            arch = dpkg_architecture(dry_run=dry_run)
            install_docker_keyring(
                distro=distro,
                keyrings_dir=PATHS.keyrings_dir,
                keyring=PATHS.docker_keyring,
                dry_run=dry_run,
            )
            write_docker_sources(
                PATHS.docker_sources,
                distro=distro,
                arch=arch,
                codename=codename,
                keyring=PATHS.docker_keyring,
                dry_run=dry_run,
            )
            record_decision(state, "docker_repository", {"distro": distro, "codename": codename, "arch": arch})

        def _install(a: Action) -> None:
            apt_update(dry_run=dry_run)
            apt_install(DOCKER_PACKAGES, dry_run=dry_run)

        def _enable(a: Action) -> None:
            systemctl("enable", a.target, dry_run=dry_run)
            systemctl("start", a.target, dry_run=dry_run)

        def _install_compose(a: Action) -> None:
            logger.warning("Docker Compose plugin not found, attempting to install...")
            apt_update(dry_run=dry_run)
            apt_install([COMPOSE_PACKAGE], dry_run=dry_run)

        def _verify(argv: List[str], what: str) -> None:
            if dry_run:
                return
            version = tool_version(argv)
            if version is None:
                raise StepFailed(
                    f"{what} installation failed verification",
                    remediation=["Docker is required for the platform infrastructure"],
                )
            logger.info("%s installed successfully: %s", what, version)

        applied = apply_actions(
            self.step_id,
            plan_docker(observed),
            {
                "install_prerequisites": _prereqs,
                "add_docker_repository": _repo,
                "install_docker": _install,
                "enable_service": _enable,
                "install_compose": _install_compose,
                "verify_docker": lambda a: _verify(["docker", "--version"], "Docker"),
                "verify_compose": lambda a: _verify(["docker", "compose", "version"], "Docker Compose"),
            },
            remediation={
                "add_docker_repository": ["Check network connectivity to download.docker.com"],
                "install_docker": ["Docker is required for the platform infrastructure"],
            },
        )
        record_changes(state, self.step_id, applied)
        return state
