"""
Error taxonomy for the step-execution bridge.

Two channels are kept strictly apart:

- Recoverable failures (``TaggedFailure``) are ordinary exceptions. They are
  declared by the workflow author, retried by the host, and can be caught
  inside the workflow body with a plain ``try/except``.
- Defects (``WorkflowDefect``) derive from ``BaseException``. Like
  ``GeneratorExit`` they slip past ``except Exception:``, so a programming
  error ends the run unless someone explicitly asks to catch everything.

Library errors (decode/encode/lookup problems) share the ``BridgeError`` base.
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar

logger = logging.getLogger(__name__)

__all__ = [
    "BridgeError",
    "DecodeError",
    "EncodeError",
    "NotFoundError",
    "UnknownWorkflowError",
    "TaggedFailure",
    "StepAttemptError",
    "WorkflowDefect",
]


class BridgeError(Exception):
    """Base class for errors raised by ergonbridge itself."""


class _ValidationProblem(BridgeError):
    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []


class DecodeError(_ValidationProblem):
    """Incoming data (event payload or step result) does not match its schema."""


class EncodeError(_ValidationProblem):
    """A caller-supplied value cannot be encoded with the declared schema."""


class NotFoundError(BridgeError, LookupError):
    """The host has no instance with the requested id."""


class UnknownWorkflowError(NotFoundError):
    """No workflow is registered under the requested tag."""


class TaggedFailure(Exception):
    """
    A declared, recoverable domain error.

    Every subclass registers itself under a tag (the class name unless a
    ``tag=`` class keyword is given) so that a failure serialized by one
    attempt can be rebuilt as the same type after crossing the host boundary.

    Extra fields travel in ``details`` and must be JSON-serializable. They are
    also readable as attributes::

        class PaymentDeclined(TaggedFailure):
            pass

        err = PaymentDeclined("card expired", order_id="o-1")
        err.order_id  # "o-1"
    """

    _tag: ClassVar[str] = "TaggedFailure"
    _registry: ClassVar[dict[str, type[TaggedFailure]]] = {}

    def __init_subclass__(cls, tag: str | None = None, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._tag = tag or cls.__name__
        existing = TaggedFailure._registry.get(cls._tag)
        if existing is not None and _qualified(existing) != _qualified(cls):
            logger.warning(
                f"Failure tag {cls._tag!r} of {cls.__module__}.{cls.__qualname__} replaces "
                f"{existing.__module__}.{existing.__qualname__}; declare failure_types on the step "
                "or pass tag= to keep them apart"
            )
        TaggedFailure._registry[cls._tag] = cls

    def __init__(self, message: str = "", **details: Any):
        super().__init__(message)
        self.tag = type(self)._tag
        self.message = message
        self.details = details

    def __getattr__(self, name: str) -> Any:
        details = self.__dict__.get("details") or {}
        if name in details:
            return details[name]
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    @classmethod
    def lookup(cls, tag: str) -> type[TaggedFailure] | None:
        """Return the registered failure class for ``tag``, if any."""
        if tag == TaggedFailure._tag:
            return TaggedFailure
        return TaggedFailure._registry.get(tag)

    def to_dict(self) -> dict[str, Any]:
        return {"_tag": self.tag, "message": self.message, "details": dict(self.details)}

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], candidates: tuple[type[TaggedFailure], ...] = ()
    ) -> TaggedFailure:
        """
        Rebuild a failure from ``to_dict`` output without calling ``__init__``.

        Subclasses may define their own constructor signatures, so the instance
        is assembled directly. ``candidates`` are matched by tag before the
        process-wide registry. An unknown tag yields a plain ``TaggedFailure``
        that still reports the original tag.
        """
        tag = data["_tag"]
        declared = next((c for c in candidates if c._tag == tag), None)
        failure_cls = declared or cls.lookup(tag) or TaggedFailure
        failure = failure_cls.__new__(failure_cls)
        message = data.get("message", "")
        Exception.__init__(failure, message)
        failure.tag = tag
        failure.message = message
        failure.details = dict(data.get("details") or {})
        return failure

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TaggedFailure):
            return NotImplemented
        return (
            type(self) is type(other)
            and self.tag == other.tag
            and self.message == other.message
            and self.details == other.details
        )

    def __hash__(self) -> int:
        return hash((type(self), self.tag, self.message))

    def __str__(self) -> str:
        return f"{self.tag}: {self.message}" if self.message else self.tag

    def __repr__(self) -> str:
        return f"{type(self).__name__}(tag={self.tag!r}, message={self.message!r}, details={self.details!r})"


class StepAttemptError(Exception):
    """
    Raised to the host to mark one step attempt as failed.

    The message is the JSON-encoded failure envelope. Hosts only carry the
    message through exhausted retries, so the bridge parses it back later.
    """


class WorkflowDefect(BaseException):  # noqa: N818
    """
    An unrecoverable defect that aborts the workflow run.

    Not an ``Exception`` subclass: ``except Exception`` inside a workflow body
    will not swallow it. Catch ``WorkflowDefect`` (or ``BaseException``)
    explicitly to intercept it.

    Attributes:
        defect: ``DefectInfo`` rebuilt from the step envelope, a string
            description, or the original exception when raised in-process
    """

    def __init__(self, defect: Any):
        super().__init__(defect)
        self.defect = defect

    @property
    def name(self) -> str:
        return getattr(self.defect, "name", None) or type(self.defect).__name__

    @property
    def message(self) -> str:
        if isinstance(self.defect, str):
            return self.defect
        return getattr(self.defect, "message", None) or str(self.defect)

    def __str__(self) -> str:
        if isinstance(self.defect, str):
            return self.defect
        return f"{self.name}: {self.message}"


def _qualified(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"
