"""
Step descriptor: retry and timeout configuration handed to the host.

Design Pattern: Strategy Pattern
RetryConfig encapsulates how the host should space out attempts of a step,
without the step bridge knowing anything about scheduling.

The host receives the descriptor verbatim as a plain dict (see
``StepConfig.to_host``); ``delay_for_attempt`` is the reference backoff
calculation used by the local host.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, cast

__all__ = ["Backoff", "RetryConfig", "StepConfig"]


class Backoff(str, Enum):
    """How the delay grows between attempts."""

    CONSTANT = "constant"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RetryConfig:
    """
    Retry policy for one step.

    Examples:
        # Shorthand: retry up to 3 times with standard delays
        policy = RetryConfig.with_limit(3)

        # Named policy
        policy = RetryConfig.STANDARD

        # Full control
        policy = RetryConfig(limit=5, delay_ms=500, backoff=Backoff.LINEAR)
    """

    limit: int
    """Number of retries after the first attempt.

    limit = 2 means up to 3 attempts in total.
    """

    delay_ms: int = 10_000
    """Delay before the first retry in milliseconds."""

    backoff: Backoff = Backoff.EXPONENTIAL
    """Growth of the delay for subsequent retries."""

    if TYPE_CHECKING:
        NONE: RetryConfig
        STANDARD: RetryConfig
        AGGRESSIVE: RetryConfig
    else:
        NONE = cast("RetryConfig", None)
        STANDARD = cast("RetryConfig", None)
        AGGRESSIVE = cast("RetryConfig", None)

    def __post_init__(self) -> None:
        if self.limit < 0:
            raise ValueError(f"retry limit must be >= 0, got {self.limit}")
        if self.delay_ms < 0:
            raise ValueError(f"retry delay must be >= 0, got {self.delay_ms}")
        object.__setattr__(self, "backoff", Backoff(self.backoff))

    @classmethod
    def with_limit(cls, limit: int) -> RetryConfig:
        return cls(limit=limit, delay_ms=1000, backoff=Backoff.EXPONENTIAL)

    @property
    def max_attempts(self) -> int:
        return self.limit + 1

    def delay_for_attempt(self, attempt: int) -> int | None:
        """
        Delay before retrying after failed attempt number ``attempt``.

        Args:
            attempt: The attempt that just failed (1-indexed)

        Returns:
            Delay in milliseconds, or None when no retries remain.

        Example:
            policy = RetryConfig(limit=2, delay_ms=1000)
            policy.delay_for_attempt(1)  # 1000
            policy.delay_for_attempt(2)  # 2000
            policy.delay_for_attempt(3)  # None
        """
        if attempt > self.limit:
            return None

        match self.backoff:
            case Backoff.CONSTANT:
                return self.delay_ms
            case Backoff.LINEAR:
                return self.delay_ms * attempt
            case _:
                return self.delay_ms * 2 ** (attempt - 1)

    def to_host(self) -> dict[str, Any]:
        return {"limit": self.limit, "delay": self.delay_ms, "backoff": self.backoff.value}

    @classmethod
    def from_host(cls, data: dict[str, Any]) -> RetryConfig:
        return cls(
            limit=int(data.get("limit", 0)),
            delay_ms=int(data.get("delay", 10_000)),
            backoff=Backoff(data.get("backoff", Backoff.EXPONENTIAL.value)),
        )


RetryConfig.NONE = RetryConfig(limit=0, delay_ms=0, backoff=Backoff.CONSTANT)

RetryConfig.STANDARD = RetryConfig(
    limit=5,
    delay_ms=10_000,  # 10 seconds
    backoff=Backoff.EXPONENTIAL,
)

RetryConfig.AGGRESSIVE = RetryConfig(
    limit=10,
    delay_ms=100,
    backoff=Backoff.LINEAR,
)


@dataclass(frozen=True)
class StepConfig:
    """
    Per-invocation step descriptor.

    Both fields are optional; anything left out falls back to the host's own
    defaults.
    """

    retries: RetryConfig | None = None
    timeout_ms: int | None = None

    @classmethod
    def with_timeout(cls, timeout: timedelta | float, retries: RetryConfig | None = None) -> StepConfig:
        if isinstance(timeout, timedelta):
            timeout_ms = int(timeout.total_seconds() * 1000)
        else:
            timeout_ms = int(timeout * 1000)
        return cls(retries=retries, timeout_ms=timeout_ms)

    def to_host(self) -> dict[str, Any]:
        """Plain-dict form passed to ``StepController.run``."""
        config: dict[str, Any] = {}
        if self.retries is not None:
            config["retries"] = self.retries.to_host()
        if self.timeout_ms is not None:
            config["timeout"] = self.timeout_ms
        return config

    @classmethod
    def from_host(cls, data: dict[str, Any] | None) -> StepConfig:
        data = data or {}
        retries = data.get("retries")
        return cls(
            retries=RetryConfig.from_host(retries) if retries else None,
            timeout_ms=data.get("timeout"),
        )
