from .step_10_prepare_environment import PrepareEnvironmentStep
from .step_20_install_docker import InstallDockerStep
from .step_25_install_git import InstallGitStep
from .step_30_configure_identity import ConfigureIdentityStep
from .step_40_provision_deploy_key import ProvisionDeployKeyStep
from .step_50_fetch_repository import FetchRepositoryStep
from .step_60_launch_private_bootstrap import LaunchPrivateBootstrapStep

__all__ = [
    "PrepareEnvironmentStep",
    "InstallDockerStep",
    "InstallGitStep",
    "ConfigureIdentityStep",
    "ProvisionDeployKeyStep",
    "FetchRepositoryStep",
    "LaunchPrivateBootstrapStep",
]
