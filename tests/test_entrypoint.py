"""Tests for the entrypoint adapter: decoding, run states and task-local helpers."""

import asyncio
import logging

import pytest

from conftest import Flaky, NullStep, OutOfStock, Params
from ergonbridge import (
    BridgeConfig,
    DecodeError,
    RunState,
    WorkflowDefect,
    WorkflowEvent,
    current_event,
    get_current_workflow,
    make_workflow,
    step,
)
from ergonbridge.workflow import CURRENT_WORKFLOW

PAYLOAD = {"id": "42", "name": "Ada"}


def event(payload=PAYLOAD, instance_id="run-1"):
    return WorkflowEvent(payload=payload, instance_id=instance_id)


def run_states(caplog, instance_id="run-1"):
    return [
        record.run_state
        for record in caplog.records
        if hasattr(record, "run_state") and record.instance_id == instance_id
    ]


@pytest.fixture(autouse=True)
def debug_logs(caplog):
    caplog.set_level(logging.DEBUG, logger="ergonbridge")


@pytest.mark.asyncio
async def test_completed_run_returns_body_result(local_step, bridge_config, caplog):
    @make_workflow(name="Greeter", binding="GREETER", schema=Params, config=bridge_config)
    async def greeter(params):
        value = await step("s1", lambda: 10)
        return f"{params.name}:{value}"

    assert await greeter.run(event(), local_step) == "Ada:10"
    assert run_states(caplog) == [RunState.DECODING, RunState.RUNNING, RunState.COMPLETED]


@pytest.mark.asyncio
async def test_sync_body(bridge_config):
    def body(params):
        return params.id

    workflow = make_workflow(body, name="Sync", binding="SYNC", schema=Params, config=bridge_config)

    assert await workflow.run(event(), NullStep()) == "42"


@pytest.mark.asyncio
async def test_invalid_payload_raises_decode_error(bridge_config, caplog):
    called = False

    @make_workflow(name="Strict", binding="STRICT", schema=Params, config=bridge_config)
    async def strict(params):
        nonlocal called
        called = True

    with pytest.raises(DecodeError):
        await strict.run(event(payload={}), NullStep())

    assert not called
    assert run_states(caplog) == [RunState.DECODING]


@pytest.mark.asyncio
async def test_unhandled_failure_is_logged_not_raised(local_step, bridge_config, caplog):
    @make_workflow(name="Shop", binding="SHOP", schema=Params, config=bridge_config)
    async def shop(params):
        raise OutOfStock("sold out", sku="x")

    result = await shop.run(event(), local_step)

    assert result is None
    assert run_states(caplog)[-1] is RunState.LOGGED_FAILURE
    assert "finished with unhandled failure: inventory.OutOfStock: sold out" in caplog.text


@pytest.mark.asyncio
async def test_failure_logging_can_be_disabled(local_step, caplog):
    config = BridgeConfig(log_failures=False)

    @make_workflow(name="Quiet", binding="QUIET", schema=Params, config=config)
    async def quiet(params):
        raise Flaky("ignored")

    assert await quiet.run(event(), local_step) is None

    assert "unhandled failure" not in caplog.text


@pytest.mark.asyncio
async def test_defect_is_reraised(local_step, bridge_config, caplog):
    @make_workflow(name="Broken", binding="BROKEN", schema=Params, config=bridge_config)
    async def broken(params):
        await step("explode", lambda: 1 / 0)

    with pytest.raises(WorkflowDefect):
        await broken.run(event(), local_step)

    assert run_states(caplog)[-1] is RunState.FATAL_DEFECT
    assert "Workflow Broken died" in caplog.text


@pytest.mark.asyncio
async def test_unexpected_exception_is_reraised(bridge_config, caplog):
    @make_workflow(name="Buggy", binding="BUGGY", schema=Params, config=bridge_config)
    async def buggy(params):
        raise RuntimeError("outside any step")

    with pytest.raises(RuntimeError, match="outside any step"):
        await buggy.run(event(), NullStep())

    assert run_states(caplog)[-1] is RunState.FATAL_DEFECT


@pytest.mark.asyncio
async def test_failure_can_be_handled_in_body(local_step):
    @make_workflow(name="Fallback", binding="FALLBACK", schema=Params, config=BridgeConfig(retry_limit=0))
    async def fallback(params):
        def reserve():
            raise OutOfStock("none", sku="y")

        try:
            return await step("reserve", reserve)
        except OutOfStock as exc:
            return f"backorder {exc.sku}"

    assert await fallback.run(event(), local_step) == "backorder y"
    assert local_step.attempts["reserve"] == 1


@pytest.mark.asyncio
async def test_context_helpers_inside_run(local_step, bridge_config):
    seen = {}

    @make_workflow(name="Ctx", binding="CTX", schema=Params, config=bridge_config)
    async def ctx(params):
        seen["event"] = current_event()
        seen["workflow"] = get_current_workflow()

    await ctx.run({"payload": PAYLOAD, "instanceId": "abc", "timestamp": 1704067200000}, local_step)

    assert seen["event"].instance_id == "abc"
    assert seen["event"].timestamp.year == 2024
    assert seen["workflow"].event is seen["event"]
    assert CURRENT_WORKFLOW.get() is None


def test_helpers_outside_run_raise():
    with pytest.raises(RuntimeError):
        get_current_workflow()
    with pytest.raises(RuntimeError):
        current_event()


@pytest.mark.asyncio
async def test_concurrent_runs_see_their_own_workflow(clock, bridge_config, caplog):
    from ergonbridge.local import LocalStep

    @make_workflow(name="Pair", binding="PAIR", schema=Params, config=bridge_config)
    async def pair(params):
        await asyncio.sleep(0)
        return current_event().instance_id

    results = await asyncio.gather(
        pair.run(event(instance_id="a"), LocalStep(clock)),
        pair.run(event(instance_id="b"), LocalStep(clock)),
    )

    assert results == ["a", "b"]
    assert run_states(caplog, "a") == [RunState.DECODING, RunState.RUNNING, RunState.COMPLETED]
    assert run_states(caplog, "b") == [RunState.DECODING, RunState.RUNNING, RunState.COMPLETED]


@pytest.mark.asyncio
async def test_default_step_config_comes_from_bridge_config(local_step):
    config = BridgeConfig(retry_limit=0, step_timeout_ms=2000)
    calls = 0

    @make_workflow(name="NoRetry", binding="NO_RETRY", schema=Params, config=config)
    async def no_retry(params):
        def once():
            nonlocal calls
            calls += 1
            raise Flaky("no second chance")

        await step("once", once)

    assert await no_retry.run(event(), local_step) is None
    assert calls == 1


@pytest.mark.asyncio
async def test_transitions_are_logged(local_step, bridge_config, caplog):
    @make_workflow(name="Traced", binding="TRACED", schema=Params, config=bridge_config)
    async def traced(params):
        return None

    await traced.run(event(instance_id="t-9"), local_step)

    levels = {record.run_state: record.levelno for record in caplog.records if hasattr(record, "run_state")}
    assert levels == {
        RunState.DECODING: logging.DEBUG,
        RunState.RUNNING: logging.DEBUG,
        RunState.COMPLETED: logging.INFO,
    }
    assert "Workflow Traced [t-9] COMPLETED" in caplog.text
