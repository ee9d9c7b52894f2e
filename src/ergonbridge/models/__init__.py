"""Plain data models: step descriptors and workflow events."""

from ergonbridge.models.event import WorkflowEvent
from ergonbridge.models.retry import Backoff, RetryConfig, StepConfig

__all__ = ["Backoff", "RetryConfig", "StepConfig", "WorkflowEvent"]
