"""
Entrypoint adapter: the function the host invokes for every workflow run.

State machine per invocation::

    DECODING → RUNNING → COMPLETED
                       → LOGGED_FAILURE   (typed failure escaped; logged, swallowed)
                       → FATAL_DEFECT     (defect escaped; logged, re-raised)

A payload that fails to decode is raised straight to the host as a
``DecodeError``; the adapter never retries it.

Example:
    ```python
    class Params(BaseModel):
        id: str
        name: str

    @make_workflow(name="MyWorkflow", binding="MY_WORKFLOW", schema=Params)
    async def my_workflow(params: Params) -> str:
        value = await step("step1", lambda: 10)
        await sleep("pause", timedelta(seconds=1))
        return f"{params.id}: {value}"

    # host side
    await my_workflow.run(event, step_controller)
    ```
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, Generic, TypeVar

from ergonbridge.config import BridgeConfig, load_config
from ergonbridge.core.errors import DecodeError, TaggedFailure, WorkflowDefect
from ergonbridge.core.host import StepController
from ergonbridge.core.status import RunState
from ergonbridge.models.event import WorkflowEvent
from ergonbridge.schema import decode
from ergonbridge.workflow import CURRENT_WORKFLOW, Workflow

logger = logging.getLogger(__name__)

__all__ = ["WorkflowClass", "make_workflow"]

A = TypeVar("A")

WorkflowBody = Callable[[A], Awaitable[Any] | Any]


class WorkflowClass(Generic[A]):
    """
    A registered workflow type: static binding metadata plus ``run``.

    Attributes:
        tag: Logical workflow name used by the registry
        binding: Key of the host binding in the environment
        schema: Schema of the event payload (params)
    """

    def __init__(
        self,
        tag: str,
        binding: str,
        schema: Any,
        body: WorkflowBody[A],
        config: BridgeConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.tag = tag
        self.binding = binding
        self.schema = schema
        self.config = config or load_config()
        self._body = body
        self._clock = clock

    def _transition(self, state: RunState, event: WorkflowEvent) -> None:
        level = logging.INFO if state.is_terminal else logging.DEBUG
        logger.log(
            level,
            f"Workflow {self.tag} [{event.instance_id or '-'}] {state}",
            extra={"run_state": state, "instance_id": event.instance_id},
        )

    async def run(self, event: WorkflowEvent | dict[str, Any], step: StepController) -> Any:
        """
        Execute one run of the workflow.

        Args:
            event: Event delivered by the host
            step: Host step controller for this run

        Returns:
            The workflow body's return value, or None if a typed failure
            escaped the body

        Raises:
            DecodeError: The event payload does not match ``schema``
            WorkflowDefect: A defect escaped the body
            Exception: Any other unexpected error escaping the body
        """
        event = WorkflowEvent.coerce(event)
        self._transition(RunState.DECODING, event)
        try:
            params = decode(self.schema, event.payload)
        except DecodeError as exc:
            logger.error(f"Workflow {self.tag} received an invalid payload: {exc}")
            raise

        workflow = Workflow(
            step,
            event,
            zone=self.config.zone,
            default_config=self.config.default_step_config(),
            clock=self._clock,
        )
        token = CURRENT_WORKFLOW.set(workflow)
        self._transition(RunState.RUNNING, event)
        try:
            result = self._body(params)
            if inspect.isawaitable(result):
                result = await result
        except TaggedFailure as exc:
            self._transition(RunState.LOGGED_FAILURE, event)
            if self.config.log_failures:
                logger.error(f"Workflow {self.tag} finished with unhandled failure: {exc}")
            return None
        except WorkflowDefect as exc:
            self._transition(RunState.FATAL_DEFECT, event)
            logger.error(f"Workflow {self.tag} died: {exc}", exc_info=exc)
            raise
        except Exception as exc:
            self._transition(RunState.FATAL_DEFECT, event)
            logger.error(f"Workflow {self.tag} died: {type(exc).__name__}: {exc}", exc_info=exc)
            raise
        finally:
            CURRENT_WORKFLOW.reset(token)

        self._transition(RunState.COMPLETED, event)
        return result

    def __repr__(self) -> str:
        return f"WorkflowClass(tag={self.tag!r}, binding={self.binding!r})"


def make_workflow(
    run: WorkflowBody[A] | None = None,
    *,
    name: str,
    binding: str,
    schema: Any,
    config: BridgeConfig | None = None,
    clock: Callable[[], datetime] | None = None,
) -> Any:
    """
    Declare a workflow type.

    Usable directly or as a decorator::

        MyWorkflow = make_workflow(body, name="MyWorkflow", binding="MY_WORKFLOW", schema=Params)

        @make_workflow(name="MyWorkflow", binding="MY_WORKFLOW", schema=Params)
        async def my_workflow(params: Params): ...

    Args:
        run: Workflow body, called with the decoded params
        name: Logical workflow name (registry tag)
        binding: Environment key of the host binding
        schema: Schema of the params
        config: Run configuration (defaults to ``load_config()``)
        clock: Source of "now" for ``Workflow.now`` (defaults to the system clock)
    """

    def decorator(body: WorkflowBody[A]) -> WorkflowClass[A]:
        return WorkflowClass(name, binding, schema, body, config=config, clock=clock)

    if run is not None:
        return decorator(run)
    return decorator
