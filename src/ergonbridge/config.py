"""Configuration for workflow runs.

Values come from ``ERGONBRIDGE_*`` environment variables; anything unset keeps
its default. The library never configures logging on import; applications
call ``configure_logging`` themselves.
"""

from __future__ import annotations

import logging
import os
from datetime import tzinfo
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, field_validator

from ergonbridge.models.retry import Backoff, RetryConfig, StepConfig

__all__ = ["BridgeConfig", "load_config", "configure_logging"]

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class BridgeConfig(BaseModel):
    """Top-level configuration model."""

    timezone: str = "UTC"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    retry_limit: int | None = None
    retry_delay_ms: int | None = None
    retry_backoff: Backoff = Backoff.EXPONENTIAL
    step_timeout_ms: int | None = None
    log_failures: bool = True

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value!r}") from exc
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper() if isinstance(value, str) else value

    @property
    def zone(self) -> tzinfo:
        return ZoneInfo(self.timezone)

    def default_step_config(self) -> StepConfig | None:
        """Step descriptor applied when a step is called without one."""
        retries = None
        if self.retry_limit is not None:
            retries = RetryConfig(
                limit=self.retry_limit,
                delay_ms=self.retry_delay_ms if self.retry_delay_ms is not None else 10_000,
                backoff=self.retry_backoff,
            )
        if retries is None and self.step_timeout_ms is None:
            return None
        return StepConfig(retries=retries, timeout_ms=self.step_timeout_ms)


def load_config(**overrides: object) -> BridgeConfig:
    """
    Build configuration from the environment.

    Recognised variables: ``ERGONBRIDGE_TIMEZONE``, ``ERGONBRIDGE_LOG_LEVEL``,
    ``ERGONBRIDGE_RETRY_LIMIT``, ``ERGONBRIDGE_RETRY_DELAY_MS``,
    ``ERGONBRIDGE_RETRY_BACKOFF``, ``ERGONBRIDGE_STEP_TIMEOUT_MS``,
    ``ERGONBRIDGE_LOG_FAILURES``. Keyword overrides win over the environment.
    """
    env = {
        "timezone": os.getenv("ERGONBRIDGE_TIMEZONE"),
        "log_level": os.getenv("ERGONBRIDGE_LOG_LEVEL"),
        "retry_limit": os.getenv("ERGONBRIDGE_RETRY_LIMIT"),
        "retry_delay_ms": os.getenv("ERGONBRIDGE_RETRY_DELAY_MS"),
        "retry_backoff": os.getenv("ERGONBRIDGE_RETRY_BACKOFF"),
        "step_timeout_ms": os.getenv("ERGONBRIDGE_STEP_TIMEOUT_MS"),
        "log_failures": os.getenv("ERGONBRIDGE_LOG_FAILURES"),
    }
    data = {key: value for key, value in env.items() if value is not None}
    data.update(overrides)
    return BridgeConfig(**data)


def configure_logging(config: BridgeConfig | None = None) -> None:
    """Install a basic stderr handler at the configured level."""
    config = config or load_config()
    logging.basicConfig(level=getattr(logging, config.log_level), format=LOG_FORMAT)
    logging.getLogger("ergonbridge").setLevel(config.log_level)
