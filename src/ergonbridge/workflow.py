"""Per-run capability set handed to a workflow body.

A ``Workflow`` bundles the host step controller, the decoded event and the
run's calendar zone. The Entrypoint Adapter creates one per run and binds it
to a task-local ``ContextVar`` so helpers like ``step()`` and ``sleep()`` can
be called from anywhere inside the body without threading it through.

Design: Task-Local State (contextvars)
    Concurrent runs in one process each see their own ``Workflow``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from datetime import UTC, datetime, timedelta, tzinfo
from typing import Any, TypeVar

from ergonbridge.executor import timer
from ergonbridge.executor.step import run_step, run_typed_step
from ergonbridge.models.event import WorkflowEvent
from ergonbridge.models.retry import StepConfig
from ergonbridge.schema import StepRequest

__all__ = [
    "Workflow",
    "CURRENT_WORKFLOW",
    "get_current_workflow",
    "current_event",
    "step",
    "sleep",
    "sleep_until",
    "fn",
]

T = TypeVar("T")
R = TypeVar("R", bound=StepRequest)

CURRENT_WORKFLOW: ContextVar[Workflow | None] = ContextVar("current_workflow", default=None)


class Workflow:
    """
    Capabilities available to one workflow run.

    Usage:
        ```python
        async def body(params: Params) -> str:
            wf = get_current_workflow()
            total = await wf.do("sum", lambda: compute(params))
            await wf.sleep("cool-down", timedelta(minutes=1))
            return await greet(Greet(id=params.id))
        ```
    """

    def __init__(
        self,
        step: Any,
        event: WorkflowEvent,
        zone: tzinfo = UTC,
        default_config: StepConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._step = step
        self._event = event
        self.zone = zone
        self.default_config = default_config
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def event(self) -> WorkflowEvent:
        """The raw event this run was started with."""
        return self._event

    def now(self) -> datetime:
        """Current time, always expressed in the run's fixed zone."""
        return self._clock().astimezone(self.zone)

    async def do(
        self,
        name: str,
        computation: Callable[[], Awaitable[T] | T],
        config: StepConfig | None = None,
    ) -> T:
        """Run ``computation`` as the durable step ``name``."""
        return await run_step(self._step, name, computation, config or self.default_config)

    async def typed_step(
        self,
        request: R,
        handler: Callable[[R], Awaitable[Any] | Any],
        config: StepConfig | None = None,
    ) -> Any:
        """Run a schema-typed step once for ``request``."""
        return await run_typed_step(self._step, request, handler, config or self.default_config)

    def fn(
        self,
        request_cls: type[R],
        handler: Callable[[R], Awaitable[Any] | Any],
        config: StepConfig | None = None,
    ) -> Callable[[R], Awaitable[Any]]:
        """Build a reusable async callable for a schema-typed step."""

        async def invoke(request: R) -> Any:
            if not isinstance(request, request_cls):
                request = request_cls.model_validate(request)
            return await self.typed_step(request, handler, config)

        invoke.__name__ = request_cls.tag()
        return invoke

    schema = fn

    async def sleep(self, name: str, duration: timedelta | float) -> None:
        await timer.sleep(self._step, name, duration)

    async def sleep_until(self, name: str, timestamp: datetime) -> None:
        await timer.sleep_until(self._step, name, timestamp, self.zone)


def get_current_workflow() -> Workflow:
    """
    Return the ``Workflow`` of the run executing in this task.

    Raises:
        RuntimeError: If called outside a workflow run
    """
    workflow = CURRENT_WORKFLOW.get()
    if workflow is None:
        raise RuntimeError("No workflow is running. Call this from inside a workflow body.")
    return workflow


def current_event() -> WorkflowEvent:
    return get_current_workflow().event


async def step(
    name: str,
    computation: Callable[[], Awaitable[T] | T],
    config: StepConfig | None = None,
) -> T:
    """Module-level shorthand for ``get_current_workflow().do(...)``."""
    return await get_current_workflow().do(name, computation, config)


async def sleep(name: str, duration: timedelta | float) -> None:
    await get_current_workflow().sleep(name, duration)


async def sleep_until(name: str, timestamp: datetime) -> None:
    await get_current_workflow().sleep_until(name, timestamp)


def fn(
    request_cls: type[R],
    handler: Callable[[R], Awaitable[Any] | Any],
    config: StepConfig | None = None,
) -> Callable[[R], Awaitable[Any]]:
    """
    Declare a schema-typed step at module level.

    The current workflow is resolved when the returned callable is awaited,
    so the step can be declared once and used by every run::

        greet = fn(Greet, handle_greet)

        async def body(params):
            return await greet(Greet(id=params.id))
    """

    async def invoke(request: R) -> Any:
        return await get_current_workflow().fn(request_cls, handler, config)(request)

    invoke.__name__ = request_cls.tag()
    return invoke
