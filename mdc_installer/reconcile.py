"""Inspect -> plan -> apply helpers shared by every step.

A step inspects the host into an ``Observed*`` value, hands it to a pure
``plan_*`` function that returns the list of ``Action`` items still needed,
and applies them in order. An empty plan means the host already conforms.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from .errors import InstallerError, StepFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Action:
    op: str
    target: str = ""
    detail: str = ""

    def describe(self) -> str:
        parts = [self.op]
        if self.target:
            parts.append(self.target)
        if self.detail:
            parts.append(f"({self.detail})")
        return " ".join(parts)


Handler = Callable[[Action], None]


def ops(actions: Sequence[Action]) -> List[str]:
    return [a.op for a in actions]


def apply_actions(
    step_id: str,
    actions: Sequence[Action],
    handlers: Dict[str, Handler],
    remediation: Optional[Dict[str, List[str]]] = None,
) -> List[str]:
    """Run each action through its handler; returns the applied descriptions.

    A failing handler aborts the remaining actions with StepFailed naming the
    action, plus any remediation lines registered for its op.
    """

    if not actions:
        logger.info("[%s] nothing to change", step_id)
        return []

    applied: List[str] = []
    for action in actions:
        handler = handlers.get(action.op)
        if handler is None:
            raise KeyError(f"{step_id}: no handler for action {action.op!r}")
        logger.info("[%s] %s", step_id, action.describe())
        try:
            handler(action)
        except InstallerError:
            raise
        except (RuntimeError, OSError) as e:
            raise StepFailed(
                f"Failed to {action.describe()}: {e}",
                remediation=remediation.get(action.op, []) if remediation else [],
            ) from e
        applied.append(action.describe())
    return applied
