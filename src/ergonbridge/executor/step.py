"""
Step bridge: runs one unit of in-process work as a durable host step.

The host only understands "the callback returned" (persist the result, never
run it again) and "the callback raised" (retry per policy). Outcomes map onto
that protocol as follows:

=========  ==============================  =========================
Outcome    Callback behaviour              Host reaction
=========  ==============================  =========================
Success    return envelope                 persist, never re-run
Defect     return envelope                 persist, never re-run
Failure    raise StepAttemptError(json)    retry until limit
=========  ==============================  =========================

Defects are reported as successful attempts and are never retried. The body
sees the ``die`` envelope on decode and raises ``WorkflowDefect``.

When retries are exhausted the host raises an error whose message is the last
envelope. ``OutcomeCodec.decode_error`` reads it back so the workflow body
receives the original ``TaggedFailure``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from ergonbridge.codec import OutcomeCodec
from ergonbridge.core.errors import StepAttemptError
from ergonbridge.core.host import StepController
from ergonbridge.core.outcome import Defect, Failure, Outcome, Success, capture, unwrap
from ergonbridge.models.retry import StepConfig
from ergonbridge.schema import StepRequest

logger = logging.getLogger(__name__)

__all__ = ["run_step", "run_typed_step"]

T = TypeVar("T")
R = TypeVar("R", bound=StepRequest)


def _make_callback(
    name: str, computation: Callable[[], Any], codec: OutcomeCodec
) -> Callable[[], Awaitable[dict[str, Any]]]:
    attempt = 0

    async def callback() -> dict[str, Any]:
        nonlocal attempt
        attempt += 1
        logger.debug(f"Step '{name}' attempt {attempt} starting")

        outcome = await capture(computation)
        envelope = codec.encode(outcome)

        match envelope["tag"]:
            case "failure":
                logger.warning(f"Step '{name}' attempt {attempt} failed: {envelope['error'].get('_tag')}")
                raise StepAttemptError(codec.to_message(envelope))
            case "die":
                logger.error(f"Step '{name}' attempt {attempt} hit a defect; not retrying")
            case _:
                logger.debug(f"Step '{name}' attempt {attempt} succeeded")
        return envelope

    return callback


async def _execute(
    step: StepController,
    name: str,
    computation: Callable[[], Any],
    config: StepConfig | None,
    codec: OutcomeCodec,
) -> Outcome[Any]:
    callback = _make_callback(name, computation, codec)
    host_config = config.to_host() if config is not None else {}

    try:
        result = await step.run(name, host_config, callback)
    except Exception as exc:
        # Retries exhausted; the host carries only the last message.
        outcome = codec.decode_error(exc)
    else:
        outcome = codec.decode_result(result)

    match outcome:
        case Success():
            logger.info(f"Step '{name}' completed")
        case Failure(error):
            logger.warning(f"Step '{name}' failed after retries: {error}")
        case Defect(cause):
            logger.error(f"Step '{name}' ended with defect: {cause}")
    return outcome


async def run_step(
    step: StepController,
    name: str,
    computation: Callable[[], Awaitable[T] | T],
    config: StepConfig | None = None,
) -> T:
    """
    Run ``computation`` as the durable step ``name`` and return its value.

    Args:
        step: Host step controller of the current run
        name: Durable step name (stable across replays)
        computation: Zero-argument callable; called once per attempt
        config: Retry/timeout descriptor for the host

    Returns:
        The computation's value (None for a step whose host result is absent)

    Raises:
        TaggedFailure: The declared failure, once the host gives up retrying
        WorkflowDefect: The computation hit a defect
    """
    outcome = await _execute(step, name, computation, config, OutcomeCodec.untyped())
    return unwrap(outcome)


async def run_typed_step(
    step: StepController,
    request: R,
    handler: Callable[[R], Awaitable[Any] | Any],
    config: StepConfig | None = None,
) -> Any:
    """
    Run a schema-typed step named after ``request``'s tag.

    The request is serialized before the step and re-validated inside each
    attempt, so the handler sees exactly what the host would replay. The
    success value and failures are validated against the request's declared
    schemas; anything that does not validate becomes a defect.
    """
    request_cls = type(request)
    codec = OutcomeCodec.for_request(request_cls)
    payload = request.model_dump(mode="json")

    async def computation() -> Any:
        decoded = request_cls.model_validate(payload)
        result = handler(decoded)
        if isinstance(result, Awaitable):
            result = await result
        return result

    outcome = await _execute(step, request_cls.tag(), computation, config, codec)
    return unwrap(outcome)
