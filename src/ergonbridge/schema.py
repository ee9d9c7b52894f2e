"""
Payload codec and typed step requests.

``encode``/``decode`` move values across the JSON boundary using pydantic
``TypeAdapter``; a schema is any type pydantic can validate (a ``BaseModel``,
``int``, ``str | None``, ``list[Item]`` ...).

``StepRequest`` declares a schema-typed step: the model fields are the
payload, and ``ClassVar``s describe the success value and the failures the
step may raise::

    class Greet(StepRequest):
        success_type: ClassVar[Any] = str | None
        failure_types: ClassVar[tuple[type[TaggedFailure], ...]] = (Unreachable,)

        id: str
        name: str | None = None
"""

import functools
from typing import Any, ClassVar

from pydantic import BaseModel, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from ergonbridge.core.errors import DecodeError, EncodeError, TaggedFailure

__all__ = ["encode", "decode", "adapter", "StepRequest", "NO_VALUE"]

NO_VALUE: Any = None
"""Marker for ``success_type``: the step produces no value."""


@functools.lru_cache(maxsize=256)
def _cached_adapter(schema: Any) -> TypeAdapter[Any]:
    return TypeAdapter(schema)


def adapter(schema: Any) -> TypeAdapter[Any]:
    """Return a (cached when hashable) TypeAdapter for ``schema``."""
    try:
        return _cached_adapter(schema)
    except TypeError:
        return TypeAdapter(schema)


def encode(schema: Any, value: Any) -> Any:
    """
    Validate ``value`` against ``schema`` and dump it to JSON-safe data.

    Raises:
        EncodeError: If ``value`` does not satisfy ``schema`` or validates but
            has no JSON form
    """
    type_adapter = adapter(schema)
    try:
        validated = type_adapter.validate_python(value)
    except ValidationError as exc:
        raise EncodeError(f"Cannot encode value as {_schema_name(schema)}: {exc}", exc.errors()) from exc
    try:
        return type_adapter.dump_python(validated, mode="json")
    except (PydanticSerializationError, TypeError, ValueError) as exc:
        raise EncodeError(f"Cannot serialize {_schema_name(schema)} value to JSON: {exc}") from exc


def decode(schema: Any, data: Any) -> Any:
    """
    Validate JSON-safe ``data`` against ``schema``.

    Raises:
        DecodeError: If ``data`` does not satisfy ``schema``
    """
    try:
        return adapter(schema).validate_python(data)
    except ValidationError as exc:
        raise DecodeError(f"Cannot decode {_schema_name(schema)}: {exc}", exc.errors()) from exc


def _schema_name(schema: Any) -> str:
    return getattr(schema, "__name__", None) or repr(schema)


class StepRequest(BaseModel):
    """
    Base class for schema-typed step payloads.

    Subclasses set:
        step_tag: Durable name of the step (defaults to the class name)
        success_type: Schema of the handler's return value, ``NO_VALUE`` for none
        failure_types: ``TaggedFailure`` subclasses the handler may raise
    """

    step_tag: ClassVar[str | None] = None
    success_type: ClassVar[Any] = NO_VALUE
    failure_types: ClassVar[tuple[type[TaggedFailure], ...]] = ()

    @classmethod
    def tag(cls) -> str:
        return cls.step_tag or cls.__name__

    @classmethod
    def has_value(cls) -> bool:
        return cls.success_type is not NO_VALUE and cls.success_type is not type(None)
