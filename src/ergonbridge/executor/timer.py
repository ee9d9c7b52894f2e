"""
Timer bridge: durable sleeps delegated to the host.

The name passed to ``sleep``/``sleep_until`` is part of the host's checkpoint
key. Reusing a name for a different delay within one run is undefined after a
replay; give every timer in a workflow body its own name.

Durations accept ``timedelta`` or a number of seconds (``float``/``int``),
matching ``asyncio.sleep``. The host primitive is millisecond-based.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, tzinfo

from ergonbridge.core.host import StepController

logger = logging.getLogger(__name__)

__all__ = ["sleep", "sleep_until", "to_millis", "to_epoch_millis"]


def to_millis(duration: timedelta | float) -> int:
    """Convert a duration to whole milliseconds."""
    if isinstance(duration, timedelta):
        return int(duration / timedelta(milliseconds=1))
    if isinstance(duration, (int, float)):
        return int(duration * 1000)
    raise TypeError(f"Unsupported duration type: {type(duration).__name__}")


def to_epoch_millis(timestamp: datetime, zone: tzinfo) -> int:
    """
    Convert ``timestamp`` to epoch milliseconds.

    A naive timestamp is interpreted in ``zone``, the run's fixed calendar
    zone, never in the host process's local time.
    """
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=zone)
    return int(timestamp.timestamp() * 1000)


async def sleep(step: StepController, name: str, duration: timedelta | float) -> None:
    """
    Suspend the workflow for ``duration``.

    Args:
        step: Host step controller of the current run
        name: Durable timer name
        duration: How long to sleep (``timedelta`` or seconds)
    """
    millis = to_millis(duration)
    logger.debug(f"Sleeping '{name}' for {millis}ms")
    await step.sleep(name, millis)


async def sleep_until(step: StepController, name: str, timestamp: datetime, zone: tzinfo) -> None:
    """
    Suspend the workflow until ``timestamp``.

    A timestamp in the past is not an error; the host resumes immediately.
    """
    epoch_millis = to_epoch_millis(timestamp, zone)
    logger.debug(f"Sleeping '{name}' until {epoch_millis} (epoch ms)")
    await step.sleep_until(name, epoch_millis)
