"""
Workflow handle registry: create and look up durable workflow instances.

Host bindings are resolved through an environment accessor at the moment of
each call, never at construction time. Process wiring may only make the
bindings available after the registry has been built.

Example:
    ```python
    workflows = Workflows(lambda: env, {"MyWorkflow": MyWorkflow})

    handle = await workflows.create("MyWorkflow", params={"id": "1", "name": "x"})
    details = await handle.status()
    await handle.pause()
    ```
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from ergonbridge.core.errors import NotFoundError, UnknownWorkflowError
from ergonbridge.core.host import InstanceRef, WorkflowBinding
from ergonbridge.core.status import InstanceStatusDetails
from ergonbridge.executor.entrypoint import WorkflowClass
from ergonbridge.schema import encode

logger = logging.getLogger(__name__)

__all__ = ["InstanceHandle", "Workflows", "WorkflowView"]

EnvAccessor = Callable[[], Mapping[str, Any]]
RecordAccessor = Callable[[], Mapping[str, WorkflowClass[Any]]]


class InstanceHandle:
    """
    Thin capability wrapper over a host instance reference.

    Holds no state of its own; every call goes to the host.
    """

    def __init__(self, ref: InstanceRef):
        self._ref = ref

    @property
    def id(self) -> str:
        return self._ref.id

    async def pause(self) -> None:
        await self._ref.pause()

    async def resume(self) -> None:
        await self._ref.resume()

    async def terminate(self) -> None:
        await self._ref.terminate()

    async def restart(self) -> None:
        await self._ref.restart()

    async def status(self) -> InstanceStatusDetails:
        """Fetch the host's status and validate it into ``InstanceStatusDetails``."""
        raw = await self._ref.status()
        if isinstance(raw, InstanceStatusDetails):
            return raw
        return InstanceStatusDetails.model_validate(raw)

    def __repr__(self) -> str:
        return f"InstanceHandle(id={self.id!r})"


class Workflows:
    """
    Resolves workflow tags to host bindings and manages instances.

    Args:
        env: Zero-argument accessor returning the binding-key → binding mapping
        record: Mapping of tag → ``WorkflowClass``, or an accessor returning it
    """

    def __init__(
        self,
        env: EnvAccessor,
        record: Mapping[str, WorkflowClass[Any]] | RecordAccessor,
    ):
        self._env = env
        self._record = record

    @classmethod
    def from_record(cls, record: RecordAccessor, env: EnvAccessor) -> Workflows:
        """Build a registry whose workflow record is also resolved lazily."""
        return cls(env, record)

    def _workflows(self) -> Mapping[str, WorkflowClass[Any]]:
        return self._record() if callable(self._record) else self._record

    def workflow_class(self, tag: str) -> WorkflowClass[Any]:
        try:
            return self._workflows()[tag]
        except KeyError:
            raise UnknownWorkflowError(f"No workflow registered under {tag!r}") from None

    def _binding(self, workflow: WorkflowClass[Any]) -> WorkflowBinding:
        env = self._env()
        try:
            return env[workflow.binding]
        except KeyError:
            raise UnknownWorkflowError(
                f"Binding {workflow.binding!r} for workflow {workflow.tag!r} is not in the environment"
            ) from None

    async def create(self, tag: str, id: str | None = None, params: Any = None) -> InstanceHandle:
        """
        Start a new durable run of workflow ``tag``.

        Raises:
            UnknownWorkflowError: ``tag`` is not registered
            EncodeError: ``params`` do not match the workflow schema
        """
        workflow = self.workflow_class(tag)
        encoded = encode(workflow.schema, params) if params is not None else None
        binding = self._binding(workflow)

        ref = await binding.create(id=id, params=encoded)
        logger.info(f"Created {tag} instance {ref.id}")
        return InstanceHandle(ref)

    async def get(self, tag: str, id: str) -> InstanceHandle:
        """
        Look up an existing instance of workflow ``tag``.

        Raises:
            UnknownWorkflowError: ``tag`` is not registered
            NotFoundError: The host has no instance ``id``
        """
        workflow = self.workflow_class(tag)
        binding = self._binding(workflow)
        try:
            ref = await binding.get(id)
        except LookupError as exc:
            raise NotFoundError(f"No {tag} instance with id {id!r}") from exc
        if ref is None:
            raise NotFoundError(f"No {tag} instance with id {id!r}")

        logger.debug(f"Resolved {tag} instance {id}")
        return InstanceHandle(ref)

    def get_workflow(self, tag: str) -> WorkflowView:
        """Return a view bound to one workflow tag."""
        return WorkflowView(self, tag)


class WorkflowView:
    """``create``/``get`` pre-bound to a single workflow tag."""

    def __init__(self, workflows: Workflows, tag: str):
        self._workflows = workflows
        self.tag = tag

    async def create(self, id: str | None = None, params: Any = None) -> InstanceHandle:
        return await self._workflows.create(self.tag, id=id, params=params)

    async def get(self, id: str) -> InstanceHandle:
        return await self._workflows.get(self.tag, id)
