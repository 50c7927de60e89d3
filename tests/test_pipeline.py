from __future__ import annotations

import pytest

from mdc_installer.errors import StepFailed
from mdc_installer.pipeline import run_pipeline
from mdc_installer.state_store import begin_run, record_changes


class RecordingStep:
    def __init__(self, step_id, log, fail=False):
        self.step_id = step_id
        self.title = f"step {step_id}"
        self.log = log
        self.fail = fail

    def run(self, state):
        self.log.append(self.step_id)
        if self.fail:
            raise StepFailed(f"{self.step_id} broke")
        record_changes(state, self.step_id, [f"changed by {self.step_id}"])
        return state


def test_runs_every_step_in_order():
    log = []
    state = begin_run({}, {})
    result = run_pipeline(state=state, steps=[RecordingStep("a", log), RecordingStep("b", log)])
    assert log == ["a", "b"]
    assert result.ran_steps == ["a", "b"]
    assert result.changes == {"a": ["changed by a"], "b": ["changed by b"]}
    assert state["execution"]["current_step"] is None


def test_steps_rerun_even_if_previously_completed():
    log = []
    state = begin_run({"execution": {"completed_steps": ["a"]}}, {})
    run_pipeline(state=state, steps=[RecordingStep("a", log)])
    assert log == ["a"]


def test_failure_stops_the_pipeline():
    log = []
    state = begin_run({}, {})
    steps = [RecordingStep("a", log), RecordingStep("b", log, fail=True), RecordingStep("c", log)]
    with pytest.raises(StepFailed):
        run_pipeline(state=state, steps=steps)
    assert log == ["a", "b"]
    assert state["execution"]["current_step"] == "b"
    assert state["execution"]["completed_steps"] == ["a"]
