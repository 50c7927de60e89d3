from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Sequence

from .state_store import mark_step_completed

logger = logging.getLogger(__name__)


class Step(Protocol):
    """A single idempotent step."""

    step_id: str
    title: str

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ...


@dataclass(frozen=True)
class PipelineResult:
    state: Dict[str, Any]
    ran_steps: List[str]
    changes: Dict[str, List[str]] = field(default_factory=dict)


def run_pipeline(*, state: Dict[str, Any], steps: Sequence[Step]) -> PipelineResult:
    """Run steps strictly in order. The first failure propagates and stops the run.

    Steps always run: each one re-inspects the host and only changes what
    differs, so the run record is never used to skip work.
    """

    ran: List[str] = []
    total = len(steps)

    for index, step in enumerate(steps):
        label = f"[Task {index}/{total - 1}]"
        state.setdefault("execution", {})["current_step"] = step.step_id
        logger.info("%s %s...", label, step.title)
        try:
            state = step.run(state)
        except Exception:
            logger.error("%s Failed", label)
            raise
        mark_step_completed(state, step.step_id)
        ran.append(step.step_id)
        logger.info("%s Completed", label)

    state.setdefault("execution", {})["current_step"] = None
    changes = dict((state.get("execution") or {}).get("changes") or {})
    return PipelineResult(state=state, ran_steps=ran, changes=changes)
