"""
Executor module - the bridges between workflow code and the host.

- step: step bridge (``run_step`` untyped, ``run_typed_step`` schema-typed)
- timer: timer bridge (``sleep``, ``sleep_until``)
- entrypoint: per-run adapter (``make_workflow``, ``WorkflowClass``)

``entrypoint`` is imported from its module directly; it depends on
``ergonbridge.workflow``, which in turn depends on the bridges here.
"""

from ergonbridge.executor.step import run_step, run_typed_step
from ergonbridge.executor.timer import sleep, sleep_until, to_epoch_millis, to_millis

__all__ = [
    "run_step",
    "run_typed_step",
    "sleep",
    "sleep_until",
    "to_millis",
    "to_epoch_millis",
]
