"""
Core types for the ergonbridge step-execution bridge.

This module contains the fundamental types used throughout ergonbridge:
- Outcome (Success / Failure / Defect): what one step attempt produced
- DefectInfo: serializable description of a defect
- TaggedFailure: declared, recoverable domain error
- WorkflowDefect: fatal error that aborts a run
- RunState / InstanceStatus: run and instance lifecycle states
- StepController / WorkflowBinding / InstanceRef: host interfaces
"""

from ergonbridge.core.errors import (
    BridgeError,
    DecodeError,
    EncodeError,
    NotFoundError,
    StepAttemptError,
    TaggedFailure,
    UnknownWorkflowError,
    WorkflowDefect,
)
from ergonbridge.core.host import InstanceRef, StepController, WorkflowBinding
from ergonbridge.core.outcome import (
    Defect,
    DefectInfo,
    Failure,
    Outcome,
    Success,
    capture,
    describe_defect,
    unwrap,
)
from ergonbridge.core.status import InstanceStatus, InstanceStatusDetails, RunState

__all__ = [
    "BridgeError",
    "DecodeError",
    "EncodeError",
    "NotFoundError",
    "UnknownWorkflowError",
    "StepAttemptError",
    "TaggedFailure",
    "WorkflowDefect",
    "StepController",
    "WorkflowBinding",
    "InstanceRef",
    "Success",
    "Failure",
    "Defect",
    "DefectInfo",
    "Outcome",
    "capture",
    "describe_defect",
    "unwrap",
    "RunState",
    "InstanceStatus",
    "InstanceStatusDetails",
]
