"""
Step outcomes: what one attempt of a step's inner computation produced.

**Design Pattern**: State machine using Union types. An ``Outcome`` is exactly
one of:

- ``Success(value)``: the computation returned.
- ``Failure(error)``: the computation raised a declared ``TaggedFailure``.
- ``Defect(cause)``: anything else went wrong (a bug, not a domain error).

Example:
    ```python
    outcome = await capture(lambda: charge_card(order))

    match outcome:
        case Success(value):
            print(f"charged: {value}")
        case Failure(error):
            print(f"declined: {error}")
        case Defect(cause):
            print(f"bug: {cause}")
    ```
"""

from __future__ import annotations

import inspect
import traceback
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from ergonbridge.core.errors import TaggedFailure, WorkflowDefect

__all__ = [
    "Success",
    "Failure",
    "Defect",
    "DefectInfo",
    "Outcome",
    "capture",
    "describe_defect",
    "unwrap",
]

T = TypeVar("T")


@dataclass(frozen=True)
class DefectInfo:
    """
    Serializable description of a defect.

    ``cause`` links to a nested defect while the value lives in-process. It is
    never written into an envelope, so a decoded ``DefectInfo`` always has
    ``cause=None``.
    """

    name: str
    message: str
    stack: str | None = None
    cause: DefectInfo | None = field(default=None, compare=False, repr=False)

    def without_cause(self) -> DefectInfo:
        return DefectInfo(name=self.name, message=self.message, stack=self.stack)

    def __str__(self) -> str:
        return f"{self.name}: {self.message}"


@dataclass(frozen=True)
class Success(Generic[T]):
    """The computation returned ``value``."""

    value: T


@dataclass(frozen=True)
class Failure:
    """The computation raised a declared, recoverable ``TaggedFailure``."""

    error: TaggedFailure

    def __str__(self) -> str:
        return f"Failure({self.error})"


@dataclass(frozen=True)
class Defect:
    """
    The computation hit an unrecoverable defect.

    ``cause`` is an exception raised in-process, a ``DefectInfo`` decoded
    from an envelope, or a plain string.
    """

    cause: Any

    def __str__(self) -> str:
        return f"Defect({describe_defect(self.cause)})"


Outcome = Success[T] | Failure | Defect


def describe_defect(cause: Any) -> DefectInfo | str:
    """
    Project a defect cause into its serializable form.

    Exceptions become ``DefectInfo`` (``__cause__`` is followed one level so
    in-process callers can still inspect it). Strings stay strings. Anything
    else is described by ``repr``.
    """
    if isinstance(cause, WorkflowDefect):
        return describe_defect(cause.defect)
    if isinstance(cause, DefectInfo):
        return cause
    if isinstance(cause, BaseException):
        stack = "".join(traceback.format_exception(type(cause), cause, cause.__traceback__))
        nested = cause.__cause__
        return DefectInfo(
            name=type(cause).__name__,
            message=str(cause),
            stack=stack,
            cause=describe_defect(nested) if isinstance(nested, BaseException) else None,
        )
    if isinstance(cause, str):
        return cause
    return repr(cause)


async def capture(computation: Callable[[], Any]) -> Outcome[Any]:
    """
    Run ``computation`` once and classify how it ended.

    ``computation`` is a zero-argument callable returning either an awaitable
    or a plain value. Cancellation (``asyncio.CancelledError``) is not an
    outcome and propagates untouched.
    """
    try:
        result = computation()
        if inspect.isawaitable(result):
            result = await result
    except TaggedFailure as exc:
        return Failure(exc)
    except WorkflowDefect as exc:
        return Defect(exc.defect)
    except Exception as exc:
        return Defect(exc)
    return Success(result)


def unwrap(outcome: Outcome[T]) -> T:
    """
    Return a success value, or raise the failure/defect back into the caller.

    Failures re-raise as the reconstructed ``TaggedFailure``; defects raise
    ``WorkflowDefect``.
    """
    match outcome:
        case Success(value):
            return value
        case Failure(error):
            raise error
        case Defect(cause):
            if isinstance(cause, BaseException):
                raise WorkflowDefect(cause) from cause
            raise WorkflowDefect(cause)
    raise TypeError(f"Not an outcome: {outcome!r}")
