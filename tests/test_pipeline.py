import pytest

from glitch_installer.pipeline import run_pipeline
from glitch_installer.state_store import ensure_defaults


class RecordingStep:
    def __init__(self, step_id, log):
        self.step_id = step_id
        self.title = f"Step {step_id}"
        self.progress = 0
        self.log = log

    def run(self, state):
        self.log.append(self.step_id)
        state.setdefault("seen", []).append(self.step_id)
        return state


def _steps(log):
    return [RecordingStep(s, log) for s in ("a", "b", "c", "d")]


def test_runs_all_steps_in_order():
    log = []
    announced = []
    result = run_pipeline(state=ensure_defaults({}), steps=_steps(log), on_step=lambda s: announced.append(s.title))
    assert log == ["a", "b", "c", "d"]
    assert result.ran_steps == log
    assert announced == ["Step a", "Step b", "Step c", "Step d"]
    assert result.state["execution"]["completed_steps"] == log
    assert result.state["execution"]["current_step"] is None


def test_start_at_and_stop_after():
    log = []
    result = run_pipeline(state=ensure_defaults({}), steps=_steps(log), start_at="b", stop_after="c")
    assert log == ["b", "c"]
    assert result.skipped_steps == []


def test_completed_steps_are_skipped_unless_forced():
    state = ensure_defaults({})
    state["execution"]["completed_steps"] = ["a", "b"]

    log = []
    result = run_pipeline(state=state, steps=_steps(log))
    assert log == ["c", "d"]
    assert result.skipped_steps == ["a", "b"]

    log.clear()
    run_pipeline(state=state, steps=_steps(log), force=True)
    assert log == ["a", "b", "c", "d"]


def test_unknown_step_id():
    with pytest.raises(ValueError, match="Unknown start_at"):
        run_pipeline(state={}, steps=_steps([]), start_at="zz")
    with pytest.raises(ValueError, match="Unknown stop_after"):
        run_pipeline(state={}, steps=_steps([]), stop_after="zz")


def test_failing_step_is_not_marked_completed():
    class Boom(RecordingStep):
        def run(self, state):
            raise RuntimeError("boom")

    state = ensure_defaults({})
    with pytest.raises(RuntimeError):
        run_pipeline(state=state, steps=[RecordingStep("a", []), Boom("b", [])])
    assert state["execution"]["completed_steps"] == ["a"]
    assert state["execution"]["current_step"] == "b"
