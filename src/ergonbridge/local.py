"""In-process host for tests, examples and local development.

Design Pattern: Adapter Pattern
``LocalStep`` and ``LocalWorkflowBinding`` adapt plain dictionaries and
asyncio tasks to the ``StepController`` / ``WorkflowBinding`` interfaces, so a
workflow can be run end to end without a real durable-execution host.

Behaviour mirrors the host contract the bridge relies on:

- a step result, once returned, is checkpointed and replayed without calling
  the callback again;
- a raising callback is retried per the step's retry config, sleeping on the
  (simulated) clock between attempts;
- once retries are exhausted, only the last error's *message* survives;
- results are JSON round-tripped as a real host would persist them.

Nothing here is durable. State lives in dicts for the lifetime of the objects.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import xxhash
from uuid_extensions import uuid7

from ergonbridge.core.errors import WorkflowDefect
from ergonbridge.core.host import StepCallback
from ergonbridge.core.status import InstanceStatus
from ergonbridge.models.event import WorkflowEvent
from ergonbridge.models.retry import RetryConfig, StepConfig

if TYPE_CHECKING:
    from ergonbridge.executor.entrypoint import WorkflowClass

logger = logging.getLogger(__name__)

__all__ = [
    "SimulatedClock",
    "Checkpoint",
    "StepRetriesExhausted",
    "LocalStep",
    "LocalInstance",
    "LocalWorkflowBinding",
    "step_key",
    "DEFAULT_RETRIES",
]

DEFAULT_RETRIES = RetryConfig.STANDARD
"""Retry config applied to steps that do not provide one."""


def step_key(name: str) -> int:
    """Stable checkpoint key for a step name (masked to 31 bits)."""
    return xxhash.xxh64(name.encode("utf-8")).intdigest() & 0x7FFFFFFF


class SimulatedClock:
    """
    Manually advanced clock. Sleeping advances time instead of waiting.

    Usage:
        clock = SimulatedClock()
        before = clock.now_ms()
        await clock.sleep(5000)
        assert clock.now_ms() - before == 5000
    """

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2024, 1, 1, tzinfo=UTC)

    def now(self) -> datetime:
        return self._now

    def now_ms(self) -> int:
        return int(self._now.timestamp() * 1000)

    def advance(self, millis: int) -> None:
        self._now += timedelta(milliseconds=max(0, millis))

    async def sleep(self, millis: int) -> None:
        self.advance(millis)
        # Yield so other tasks observe the suspension point.
        await asyncio.sleep(0)


class StepRetriesExhausted(Exception):  # noqa: N818
    """Raised by ``LocalStep.run`` after the last attempt failed. Carries only the message."""


@dataclass
class Checkpoint:
    """Persisted result of one step."""

    name: str
    result: Any = None
    error: str | None = None
    attempts: int = 0


def _persist(value: Any) -> Any:
    return json.loads(json.dumps(value))


class LocalStep:
    """
    In-process ``StepController``.

    Reusing the same ``LocalStep`` for a second ``run`` of a workflow
    simulates a host replay: every checkpointed step returns its persisted
    result without invoking the callback.

    Attributes:
        checkpoints: Persisted step results keyed by ``step_key(name)``
        attempts: Number of callback invocations per step name
        sleeps: History of ``(name, millis)`` timers actually slept
    """

    def __init__(self, clock: SimulatedClock | None = None, gate: asyncio.Event | None = None):
        self.clock = clock or SimulatedClock()
        self.checkpoints: dict[int, Checkpoint] = {}
        self.attempts: dict[str, int] = defaultdict(int)
        self.sleeps: list[tuple[str, int]] = []
        self._timers: set[int] = set()
        self._gate = gate

    async def _wait_if_paused(self) -> None:
        if self._gate is not None:
            await self._gate.wait()

    async def run(self, name: str, config: dict[str, Any], callback: StepCallback) -> Any:
        key = step_key(name)
        checkpoint = self.checkpoints.get(key)
        if checkpoint is not None:
            logger.debug(f"Replaying checkpointed step '{name}'")
            if checkpoint.error is not None:
                raise StepRetriesExhausted(checkpoint.error)
            return _persist(checkpoint.result)

        await self._wait_if_paused()
        step_config = StepConfig.from_host(config)
        retries = step_config.retries or DEFAULT_RETRIES

        attempt = 0
        while True:
            attempt += 1
            self.attempts[name] += 1
            try:
                result = await self._attempt(callback, step_config.timeout_ms)
            except Exception as exc:
                delay = retries.delay_for_attempt(attempt)
                if delay is None:
                    logger.info(f"Step '{name}' exhausted {attempt} attempts")
                    self.checkpoints[key] = Checkpoint(name, error=str(exc), attempts=attempt)
                    raise StepRetriesExhausted(str(exc)) from exc
                logger.debug(f"Step '{name}' attempt {attempt} failed, retrying in {delay}ms")
                await self.clock.sleep(delay)
                continue

            persisted = _persist(result)
            self.checkpoints[key] = Checkpoint(name, result=persisted, attempts=attempt)
            return persisted

    @staticmethod
    async def _attempt(callback: StepCallback, timeout_ms: int | None) -> Any:
        if timeout_ms is None:
            return await callback()
        return await asyncio.wait_for(callback(), timeout_ms / 1000)

    async def sleep(self, name: str, millis: int) -> None:
        key = step_key(name)
        if key in self._timers:
            logger.debug(f"Timer '{name}' already elapsed")
            return
        await self._wait_if_paused()
        millis = max(0, millis)
        self.sleeps.append((name, millis))
        await self.clock.sleep(millis)
        self._timers.add(key)

    async def sleep_until(self, name: str, epoch_millis: int) -> None:
        await self.sleep(name, epoch_millis - self.clock.now_ms())


class LocalInstance:
    """One workflow instance running as a background asyncio task."""

    def __init__(self, binding: LocalWorkflowBinding, id: str, params: Any):
        self._binding = binding
        self._id = id
        self.params = params
        self._gate = asyncio.Event()
        self._gate.set()
        self._task: asyncio.Task[None] | None = None
        self.state = InstanceStatus.QUEUED
        self.output: Any = None
        self.error: str | None = None
        self.step = LocalStep(clock=binding.clock, gate=self._gate)

    @property
    def id(self) -> str:
        return self._id

    def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name=f"workflow-{self._id}")

    async def _run(self) -> None:
        self.state = InstanceStatus.RUNNING
        event = WorkflowEvent(payload=self.params, timestamp=self._binding.clock.now(), instance_id=self._id)
        try:
            self.output = await self._binding.workflow.run(event, self.step)
        except asyncio.CancelledError:
            self.state = InstanceStatus.TERMINATED
            raise
        except (Exception, WorkflowDefect) as exc:
            self.state = InstanceStatus.ERRORED
            self.error = str(exc)
            logger.info(f"Instance {self._id} errored: {exc}")
        else:
            self.state = InstanceStatus.COMPLETE

    async def wait(self) -> None:
        """Wait for the current run task to finish (test helper)."""
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

    async def pause(self) -> None:
        if self.state.is_terminal:
            return
        self._gate.clear()
        self.state = InstanceStatus.PAUSED

    async def resume(self) -> None:
        if self.state != InstanceStatus.PAUSED:
            return
        self.state = InstanceStatus.RUNNING
        self._gate.set()

    async def terminate(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            await self.wait()
        self.state = InstanceStatus.TERMINATED

    async def restart(self) -> None:
        """Discard all checkpoints and run the workflow again from the start."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            await self.wait()
        self._gate.set()
        self.output = None
        self.error = None
        self.step = LocalStep(clock=self._binding.clock, gate=self._gate)
        self.state = InstanceStatus.QUEUED
        self.start()

    async def status(self) -> dict[str, Any]:
        return {"status": self.state.value, "error": self.error, "output": self.output}

    def __repr__(self) -> str:
        return f"LocalInstance(id={self._id!r}, status={self.state})"


class LocalWorkflowBinding:
    """
    In-process ``WorkflowBinding`` for one workflow type.

    Usage:
        env = {"MY_WORKFLOW": LocalWorkflowBinding(MyWorkflow)}
        workflows = Workflows(lambda: env, {"MyWorkflow": MyWorkflow})
    """

    def __init__(self, workflow: WorkflowClass[Any], clock: SimulatedClock | None = None):
        self.workflow = workflow
        self.clock = clock or SimulatedClock()
        self.instances: dict[str, LocalInstance] = {}

    async def create(self, id: str | None = None, params: Any = None) -> LocalInstance:
        instance_id = id or str(uuid7())
        if instance_id in self.instances:
            raise ValueError(f"Instance {instance_id!r} already exists")

        instance = LocalInstance(self, instance_id, params)
        self.instances[instance_id] = instance
        instance.start()
        return instance

    async def get(self, id: str) -> LocalInstance:
        try:
            return self.instances[id]
        except KeyError:
            raise KeyError(f"Instance {id!r} not found") from None

    async def wait(self, id: str) -> LocalInstance:
        instance = await self.get(id)
        await instance.wait()
        return instance
