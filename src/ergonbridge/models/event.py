"""Workflow event as delivered by the host on every run."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

__all__ = ["WorkflowEvent"]


@dataclass(frozen=True)
class WorkflowEvent:
    """
    The raw event a run was started with.

    Attributes:
        payload: Encoded params exactly as passed to ``create`` (JSON value)
        timestamp: When the instance was created
        instance_id: Host id of the instance this run belongs to
    """

    payload: Any = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    instance_id: str = ""

    @classmethod
    def coerce(cls, event: Any) -> WorkflowEvent:
        """Accept a ``WorkflowEvent`` or a host-style mapping."""
        if isinstance(event, WorkflowEvent):
            return event
        if isinstance(event, dict):
            timestamp = event.get("timestamp")
            if isinstance(timestamp, (int, float)):
                timestamp = datetime.fromtimestamp(timestamp / 1000, UTC)
            elif isinstance(timestamp, str):
                timestamp = datetime.fromisoformat(timestamp)
            return cls(
                payload=event.get("payload"),
                timestamp=timestamp or datetime.now(UTC),
                instance_id=event.get("instance_id") or event.get("instanceId") or "",
            )
        raise TypeError(f"Unsupported workflow event: {type(event).__name__}")
