"""
ergonbridge: durable step execution on top of an external workflow host.

Write a long-running process as ordinary sequential ``async`` code. The host
(checkpoint log, retry scheduler, suspend/resume) runs each step exactly as
its log says it did; ergonbridge translates between the two worlds.

Design Pattern: Façade Pattern
This module re-exports the public surface so applications only import
``ergonbridge``.

Example:
    ```python
    from datetime import timedelta
    from typing import Any, ClassVar

    from pydantic import BaseModel
    from ergonbridge import StepRequest, fn, make_workflow, sleep, step

    class Params(BaseModel):
        id: str
        name: str

    class Greet(StepRequest):
        success_type: ClassVar[Any] = str | None
        id: str
        name: str | None = None

    greet = fn(Greet, lambda req: f"hi {req.name}" if req.name else None)

    @make_workflow(name="MyWorkflow", binding="MY_WORKFLOW", schema=Params)
    async def my_workflow(params: Params) -> str | None:
        await step("step1", lambda: 10)
        await sleep("pause", timedelta(seconds=1))
        return await greet(Greet(id=params.id, name=params.name))
    ```
"""

from ergonbridge.codec import OutcomeCodec
from ergonbridge.config import BridgeConfig, configure_logging, load_config
from ergonbridge.core import (
    BridgeError,
    DecodeError,
    Defect,
    DefectInfo,
    EncodeError,
    Failure,
    InstanceRef,
    InstanceStatus,
    InstanceStatusDetails,
    NotFoundError,
    Outcome,
    RunState,
    StepAttemptError,
    StepController,
    Success,
    TaggedFailure,
    UnknownWorkflowError,
    WorkflowBinding,
    WorkflowDefect,
)
from ergonbridge.executor.entrypoint import WorkflowClass, make_workflow
from ergonbridge.models import Backoff, RetryConfig, StepConfig, WorkflowEvent
from ergonbridge.registry import InstanceHandle, Workflows, WorkflowView
from ergonbridge.schema import NO_VALUE, StepRequest, decode, encode
from ergonbridge.workflow import (
    Workflow,
    current_event,
    fn,
    get_current_workflow,
    sleep,
    sleep_until,
    step,
)

__version__ = "0.1.0"

__all__ = [
    # Errors
    "BridgeError",
    "DecodeError",
    "EncodeError",
    "NotFoundError",
    "UnknownWorkflowError",
    "StepAttemptError",
    "TaggedFailure",
    "WorkflowDefect",
    # Outcomes
    "Outcome",
    "Success",
    "Failure",
    "Defect",
    "DefectInfo",
    "OutcomeCodec",
    # Host interfaces
    "StepController",
    "WorkflowBinding",
    "InstanceRef",
    # Models
    "Backoff",
    "RetryConfig",
    "StepConfig",
    "WorkflowEvent",
    "RunState",
    "InstanceStatus",
    "InstanceStatusDetails",
    # Payload codec
    "encode",
    "decode",
    "StepRequest",
    "NO_VALUE",
    # Workflow authoring
    "Workflow",
    "get_current_workflow",
    "current_event",
    "step",
    "sleep",
    "sleep_until",
    "fn",
    "make_workflow",
    "WorkflowClass",
    # Registry
    "Workflows",
    "WorkflowView",
    "InstanceHandle",
    # Configuration
    "BridgeConfig",
    "load_config",
    "configure_logging",
    "__version__",
]
