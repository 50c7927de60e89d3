from __future__ import annotations

from typing import Iterable, Optional


class InstallerError(RuntimeError):
    """Fatal installer failure.

    Carries operator-facing remediation lines and the process exit code the
    entry point should return.
    """

    exit_code = 1

    def __init__(
        self,
        message: str,
        *,
        remediation: Optional[Iterable[str]] = None,
        exit_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.remediation = list(remediation or [])
        if exit_code is not None:
            self.exit_code = exit_code


class PrivilegeError(InstallerError):
    pass


class StepFailed(InstallerError):
    pass


class DelegateFailed(InstallerError):
    pass
