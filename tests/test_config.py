"""Tests for environment-driven configuration."""

import logging
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from ergonbridge import Backoff, BridgeConfig, RetryConfig, StepConfig, configure_logging, load_config

ENV_VARS = (
    "ERGONBRIDGE_TIMEZONE",
    "ERGONBRIDGE_LOG_LEVEL",
    "ERGONBRIDGE_RETRY_LIMIT",
    "ERGONBRIDGE_RETRY_DELAY_MS",
    "ERGONBRIDGE_RETRY_BACKOFF",
    "ERGONBRIDGE_STEP_TIMEOUT_MS",
    "ERGONBRIDGE_LOG_FAILURES",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = load_config()

    assert config.timezone == "UTC"
    assert config.log_level == "INFO"
    assert config.log_failures is True
    assert config.default_step_config() is None


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("ERGONBRIDGE_TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("ERGONBRIDGE_LOG_LEVEL", "debug")
    monkeypatch.setenv("ERGONBRIDGE_RETRY_LIMIT", "3")
    monkeypatch.setenv("ERGONBRIDGE_RETRY_DELAY_MS", "250")
    monkeypatch.setenv("ERGONBRIDGE_RETRY_BACKOFF", "linear")
    monkeypatch.setenv("ERGONBRIDGE_STEP_TIMEOUT_MS", "5000")
    monkeypatch.setenv("ERGONBRIDGE_LOG_FAILURES", "false")

    config = load_config()

    assert config.zone == ZoneInfo("Europe/Berlin")
    assert config.log_level == "DEBUG"
    assert config.log_failures is False
    assert config.default_step_config() == StepConfig(
        retries=RetryConfig(limit=3, delay_ms=250, backoff=Backoff.LINEAR),
        timeout_ms=5000,
    )


def test_overrides_win(monkeypatch):
    monkeypatch.setenv("ERGONBRIDGE_RETRY_LIMIT", "3")

    assert load_config(retry_limit=1).retry_limit == 1


def test_timeout_only_step_config():
    assert BridgeConfig(step_timeout_ms=100).default_step_config() == StepConfig(timeout_ms=100)


def test_retry_delay_defaults_when_only_limit_set():
    assert BridgeConfig(retry_limit=2).default_step_config().retries.delay_ms == 10_000


def test_unknown_timezone():
    with pytest.raises(ValidationError, match="Unknown timezone"):
        BridgeConfig(timezone="Mars/Olympus_Mons")


def test_invalid_log_level():
    with pytest.raises(ValidationError):
        BridgeConfig(log_level="chatty")


def test_configure_logging_sets_package_level():
    configure_logging(BridgeConfig(log_level="WARNING"))

    assert logging.getLogger("ergonbridge").level == logging.WARNING

    logging.getLogger("ergonbridge").setLevel(logging.NOTSET)
