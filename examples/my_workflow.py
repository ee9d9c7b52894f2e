import asyncio
from typing import Any, ClassVar

from pydantic import BaseModel

from ergonbridge import (
    RetryConfig,
    StepConfig,
    StepRequest,
    TaggedFailure,
    Workflows,
    configure_logging,
    fn,
    load_config,
    make_workflow,
    sleep,
    step,
)
from ergonbridge.local import LocalWorkflowBinding


class Params(BaseModel):
    id: str
    name: str


class GreeterBusy(TaggedFailure):
    pass


class Greet(StepRequest):
    success_type: ClassVar[Any] = str | None
    failure_types: ClassVar[tuple[type[TaggedFailure], ...]] = (GreeterBusy,)

    id: str
    name: str | None = None


attempts = 0


async def handle_greet(request: Greet) -> str | None:
    global attempts
    attempts += 1
    if attempts < 3:
        raise GreeterBusy(f"busy (attempt {attempts})")
    return f"hi {request.name}" if request.name else None


greet = fn(Greet, handle_greet, StepConfig(retries=RetryConfig(limit=3, delay_ms=200)))


@make_workflow(name="MyWorkflow", binding="MY_WORKFLOW", schema=Params)
async def my_workflow(params: Params) -> str | None:
    value = await step("step1", lambda: 10)
    print(f"{params.id} step1 -> {value}")

    await sleep("pause", 1)

    message = await greet(Greet(id=params.id, name=params.name))
    print(f"{params.id} greet -> {message}")
    return message


async def main():
    configure_logging(load_config())

    binding = LocalWorkflowBinding(my_workflow)
    env = {"MY_WORKFLOW": binding}
    workflows = Workflows(lambda: env, {"MyWorkflow": my_workflow})

    handle = await workflows.create("MyWorkflow", params=Params(id="wf_001", name="Ada"))
    await binding.wait(handle.id)

    details = await handle.status()
    print(f"Workflow {handle.id}: {details.status} output={details.output!r}")


if __name__ == "__main__":
    asyncio.run(main())
