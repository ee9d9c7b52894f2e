"""
End-to-end scenario: a workflow with an untyped step, a timer and a flaky
typed step, run through the registry on the in-process host.
"""

from typing import Any, ClassVar

import pytest

from conftest import Flaky, Params
from ergonbridge import (
    BridgeConfig,
    InstanceStatus,
    RetryConfig,
    StepConfig,
    StepRequest,
    TaggedFailure,
    Workflows,
    fn,
    make_workflow,
    sleep,
    step,
)
from ergonbridge.local import LocalWorkflowBinding


class Step2Request(StepRequest):
    success_type: ClassVar[Any] = str | None
    failure_types: ClassVar[tuple[type[TaggedFailure], ...]] = (Flaky,)

    id: str
    name: str | None = None


@pytest.fixture
def scenario(clock):
    calls = {"step2": 0}

    def handle_step2(request):
        calls["step2"] += 1
        if calls["step2"] <= 2:
            raise Flaky(f"not yet ({calls['step2']})")
        return f"hi {request.name}"

    step2 = fn(Step2Request, handle_step2, StepConfig(retries=RetryConfig(limit=3, delay_ms=1000)))

    @make_workflow(name="MyWorkflow", binding="MY_WORKFLOW", schema=Params, config=BridgeConfig())
    async def my_workflow(params):
        value = await step("s1", lambda: 10)
        await sleep("s2", 1)
        greeting = await step2(Step2Request(id=params.id, name=params.name))
        return {"value": value, "greeting": greeting}

    binding = LocalWorkflowBinding(my_workflow, clock=clock)
    workflows = Workflows(lambda: {"MY_WORKFLOW": binding}, {"MyWorkflow": my_workflow})
    return workflows, binding, calls


@pytest.mark.asyncio
async def test_full_run(scenario, clock, caplog):
    workflows, binding, calls = scenario
    start = clock.now_ms()

    with caplog.at_level("INFO", logger="ergonbridge"):
        handle = await workflows.create("MyWorkflow", id="e2e", params=Params(id="1", name="Ada"))
        instance = await binding.wait(handle.id)

    details = await handle.status()
    assert details.status is InstanceStatus.COMPLETE
    assert details.output == {"value": 10, "greeting": "hi Ada"}

    assert dict(instance.step.attempts) == {"s1": 1, "Step2Request": 3}
    assert instance.step.sleeps == [("s2", 1000)]
    # 1000ms timer, then 1000ms + 2000ms between the typed step's attempts.
    assert clock.now_ms() - start == 4000

    assert "Step 's1' completed" in caplog.text
    assert "Step 'Step2Request' completed" in caplog.text
    assert "Workflow MyWorkflow [e2e] COMPLETED" in caplog.text


@pytest.mark.asyncio
async def test_rerun_replays_every_step(scenario):
    workflows, binding, calls = scenario

    handle = await workflows.create("MyWorkflow", id="again", params={"id": "2", "name": "Bo"})
    instance = await binding.wait(handle.id)
    first_output = instance.output

    # Running the same workflow on the same step controller simulates a host replay.
    replayed = await binding.workflow.run(
        {"payload": instance.params, "instanceId": instance.id}, instance.step
    )

    assert replayed == first_output
    assert calls["step2"] == 3
    assert dict(instance.step.attempts) == {"s1": 1, "Step2Request": 3}
    assert instance.step.sleeps == [("s2", 1000)]


@pytest.mark.asyncio
async def test_exhausted_typed_step_is_logged_failure(clock):
    def always_flaky(request):
        raise Flaky("never")

    step2 = fn(Step2Request, always_flaky, StepConfig(retries=RetryConfig(limit=1, delay_ms=10)))

    @make_workflow(name="Doomed", binding="DOOMED", schema=Params, config=BridgeConfig())
    async def doomed(params):
        return await step2(Step2Request(id=params.id))

    binding = LocalWorkflowBinding(doomed, clock=clock)
    instance = await binding.create(params={"id": "1", "name": "x"})
    await instance.wait()

    assert instance.state is InstanceStatus.COMPLETE
    assert instance.output is None
    assert instance.step.attempts["Step2Request"] == 2
