"""
Status enums for run and instance tracking.

Following Dave Cheney's principle: "Make zero values useful"
The first member of each enum is the initial state.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel


class RunState(Enum):
    """
    State of one Entrypoint Adapter invocation.

    Lifecycle:
    DECODING → RUNNING → COMPLETED / LOGGED_FAILURE / FATAL_DEFECT
    """

    DECODING = "DECODING"
    """Event payload is being validated against the workflow schema."""

    RUNNING = "RUNNING"
    """Workflow body is executing."""

    COMPLETED = "COMPLETED"
    """Body returned normally."""

    LOGGED_FAILURE = "LOGGED_FAILURE"
    """A typed failure reached the top. Logged and reported to the host as success."""

    FATAL_DEFECT = "FATAL_DEFECT"
    """A defect reached the top. Logged and re-raised so the host marks the run failed."""

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.COMPLETED, RunState.LOGGED_FAILURE, RunState.FATAL_DEFECT)

    def __str__(self) -> str:
        return self.value


class InstanceStatus(str, Enum):
    """
    Host-reported status of a workflow instance.

    Lifecycle:
    QUEUED → RUNNING ⇄ WAITING / PAUSED → COMPLETE / ERRORED / TERMINATED
    """

    QUEUED = "queued"
    RUNNING = "running"
    PAUSED = "paused"
    ERRORED = "errored"
    TERMINATED = "terminated"
    COMPLETE = "complete"
    WAITING = "waiting"
    WAITING_FOR_PAUSE = "waitingForPause"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> InstanceStatus:
        return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in (InstanceStatus.COMPLETE, InstanceStatus.ERRORED, InstanceStatus.TERMINATED)

    def __str__(self) -> str:
        return self.value


class InstanceStatusDetails(BaseModel):
    """Status payload returned by ``InstanceRef.status()``."""

    status: InstanceStatus
    error: str | None = None
    output: Any = None
