"""State machine tests."""

import pytest

from kobansync.machine import StateMachine, Step, failed, stop, success


class Recorder:
    """Builds steps that record their execution order."""

    def __init__(self):
        self.calls = []

    def step(self, name, result):
        async def handler(state):
            self.calls.append(name)
            return result

        return Step(name, handler)


@pytest.mark.asyncio
async def test_all_steps_succeed_and_merge_data():
    rec = Recorder()
    steps = [
        rec.step("a", success("A done", {"a": 1})),
        rec.step("b", success(data={"b": 2})),
    ]
    machine = StateMachine(steps, {"seed": True}, workflow_id="wkf_test")

    state = await machine.process_steps()

    assert rec.calls == ["a", "b"]
    assert state.status == "success"
    assert state.get_data() == {"seed": True, "a": 1, "b": 2}
    assert list(state.step_records) == ["a", "b"]
    assert state.step_records["a"].message == "A done"
    assert state.failed_step is None


@pytest.mark.asyncio
async def test_resume_skips_completed_steps():
    rec = Recorder()
    steps = [rec.step(n, success()) for n in ("a", "b", "c", "d")]
    machine = StateMachine(steps, failed_step="c")

    state = await machine.process_steps()

    assert rec.calls == ["c", "d"]
    assert list(state.step_records) == ["c", "d"]
    assert state.status == "success"


@pytest.mark.asyncio
async def test_unknown_failed_step_runs_everything():
    rec = Recorder()
    steps = [rec.step(n, success()) for n in ("a", "b")]
    machine = StateMachine(steps, failed_step="renamed_step")

    await machine.process_steps()

    assert rec.calls == ["a", "b"]


@pytest.mark.asyncio
async def test_stop_halts_without_failure():
    rec = Recorder()
    steps = [
        rec.step("a", success(data={"a": 1})),
        rec.step("b", stop("nothing to do")),
        rec.step("c", success(data={"c": 3})),
    ]
    state = await StateMachine(steps, {"seed": True}).process_steps()

    assert rec.calls == ["a", "b"]
    assert state.status == "stop"
    assert state.failed_step is None
    assert state.retry is True
    assert state.message == "nothing to do"
    assert state.get_data() == {"seed": True, "a": 1}


@pytest.mark.asyncio
async def test_resumed_run_that_succeeds_clears_failed_step():
    rec = Recorder()
    steps = [rec.step(n, success()) for n in ("a", "b")]
    state = await StateMachine(steps, failed_step="b").process_steps()

    assert state.status == "success"
    assert state.failed_step is None
    assert state.to_dict()["failed_step"] is None


@pytest.mark.asyncio
async def test_abort_marks_the_raising_step_as_retryable_failure():
    async def ok(state):
        return success(data={"a": 1})

    async def explode(state):
        raise OSError("disk full")

    machine = StateMachine([Step("ok", ok), Step("explode", explode)])
    with pytest.raises(OSError):
        await machine.process_steps()

    state = machine.abort("Unexpected error: disk full")

    assert state.status == "failed"
    assert state.failed_step == "explode"
    assert state.retry is True
    assert state.step_records["explode"].message == "Unexpected error: disk full"
    assert state.get_data() == {"a": 1}


@pytest.mark.asyncio
async def test_failure_halts_immediately_and_keeps_data_untouched():
    rec = Recorder()
    steps = [
        rec.step("a", success(data={"a": 1})),
        rec.step("b", failed("boom")),
        rec.step("c", success()),
    ]
    state = await StateMachine(steps).process_steps()

    assert rec.calls == ["a", "b"]
    assert state.status == "failed"
    assert state.failed_step == "b"
    assert state.retry is True
    assert state.get_data() == {"a": 1}
    assert "c" not in state.step_records


@pytest.mark.asyncio
async def test_non_retryable_failure_clears_retry_flag():
    rec = Recorder()
    state = await StateMachine([rec.step("a", failed("bad input", retry=False))]).process_steps()

    assert state.status == "failed"
    assert state.retry is False
    assert state.to_dict()["steps"] == {"a": {"status": "failed", "message": "bad input"}}


@pytest.mark.asyncio
async def test_empty_step_list_stays_processing():
    state = await StateMachine([]).process_steps()

    assert state.status == "processing"
    assert state.step_records == {}


@pytest.mark.asyncio
async def test_step_returning_garbage_raises_type_error():
    async def broken(state):
        return "success"

    with pytest.raises(TypeError):
        await StateMachine([Step("broken", broken)]).process_steps()


@pytest.mark.asyncio
async def test_steps_see_data_from_earlier_steps():
    seen = {}

    async def first(state):
        return success(data={"guid": "abc"})

    async def second(state):
        seen["guid"] = state.get_data("guid")
        seen["missing"] = state.get_data("missing")
        return success()

    await StateMachine([Step("first", first), Step("second", second)]).process_steps()

    assert seen == {"guid": "abc", "missing": None}
