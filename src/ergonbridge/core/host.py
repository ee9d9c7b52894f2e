"""
Interfaces of the durable-execution host.

Design: Protocol-based (PEP 544) for structural typing.
No inheritance required: any object with the right async methods can act as
the host. ``ergonbridge.local`` provides an in-process implementation.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

__all__ = ["StepController", "WorkflowBinding", "InstanceRef", "StepCallback"]

StepCallback = Callable[[], Awaitable[Any]]


@runtime_checkable
class StepController(Protocol):
    """
    Per-run step API offered by the host.

    ``run`` executes ``callback`` as a checkpointed unit named ``name``. A
    callback that raises means "this attempt failed"; the host retries it
    according to ``config`` and, once retries are exhausted, raises an error
    carrying the last failure's message. A persisted result is returned
    without calling ``callback`` again.
    """

    async def run(self, name: str, config: dict[str, Any], callback: StepCallback) -> Any: ...

    async def sleep(self, name: str, millis: int) -> None: ...

    async def sleep_until(self, name: str, epoch_millis: int) -> None: ...


@runtime_checkable
class InstanceRef(Protocol):
    """Host reference to one workflow instance."""

    @property
    def id(self) -> str: ...

    async def pause(self) -> None: ...

    async def resume(self) -> None: ...

    async def terminate(self) -> None: ...

    async def restart(self) -> None: ...

    async def status(self) -> Any: ...


@runtime_checkable
class WorkflowBinding(Protocol):
    """Host binding for one workflow type."""

    async def create(self, id: str | None = None, params: Any = None) -> InstanceRef: ...

    async def get(self, id: str) -> InstanceRef: ...
