"""
Pytest configuration and fixtures for ergonbridge tests.

Provides a simulated clock, an in-process step controller and the failure
types and payload schemas shared across test modules.
"""

from typing import Any

import pytest
from pydantic import BaseModel

from ergonbridge import BridgeConfig, TaggedFailure
from ergonbridge.local import LocalStep, SimulatedClock


class Flaky(TaggedFailure):
    """Transient failure used to drive host retries."""


class OutOfStock(TaggedFailure, tag="inventory.OutOfStock"):
    """Failure registered under an explicit tag."""


class Params(BaseModel):
    id: str
    name: str


class NullStep:
    """Step controller that never runs the callback and reports no result."""

    def __init__(self):
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def run(self, name, config, callback):
        self.calls.append((name, config))
        return None

    async def sleep(self, name, millis):
        return None

    async def sleep_until(self, name, epoch_millis):
        return None


@pytest.fixture
def clock() -> SimulatedClock:
    """Simulated clock starting at 2024-01-01T00:00:00Z."""
    return SimulatedClock()


@pytest.fixture
def local_step(clock: SimulatedClock) -> LocalStep:
    """In-process step controller sharing the simulated clock."""
    return LocalStep(clock=clock)


@pytest.fixture
def bridge_config() -> BridgeConfig:
    """Default configuration, independent of ERGONBRIDGE_* environment variables."""
    return BridgeConfig()
