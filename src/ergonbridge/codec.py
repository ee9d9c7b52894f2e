"""
Outcome codec: maps ``Outcome`` to and from a JSON-safe envelope.

The host persists whatever a step callback returns and only carries a message
string through exhausted retries. The envelope is the one shape that survives
both paths::

    {"tag": "success", "value": ...}      # value omitted for no-value steps
    {"tag": "failure", "error": {"_tag": ..., "message": ..., "details": {...}}}
    {"tag": "die", "defect": {"name": ..., "message": ..., "stack": ...}}
    {"tag": "die", "defect": "plain description"}

``encode`` never raises: an outcome that cannot be represented is re-wrapped
as a defect describing why. ``decode`` is exact for success/failure and lossy
for defects (the nested cause is never written).
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import JsonValue

from ergonbridge import schema
from ergonbridge.core.errors import DecodeError, EncodeError, TaggedFailure
from ergonbridge.core.outcome import Defect, DefectInfo, Failure, Outcome, Success, describe_defect

logger = logging.getLogger(__name__)

__all__ = ["OutcomeCodec", "SUCCESS", "FAILURE", "DIE"]

SUCCESS = "success"
FAILURE = "failure"
DIE = "die"

_DETAILS_SCHEMA = dict[str, JsonValue]


class OutcomeCodec:
    """
    Encodes and decodes step outcomes for one step schema.

    Args:
        success_schema: Schema of the success value
        has_value: False for steps that produce no value (``value`` is omitted)
        failure_types: Allowed failure classes, or None to accept any
            registered ``TaggedFailure``

    Usage:
        ```python
        codec = OutcomeCodec.untyped()
        envelope = codec.encode(Success(10))   # {"tag": "success", "value": 10}
        codec.decode(envelope)                 # Success(value=10)
        ```
    """

    def __init__(
        self,
        success_schema: Any = JsonValue,
        has_value: bool = True,
        failure_types: tuple[type[TaggedFailure], ...] | None = None,
    ):
        self.success_schema = success_schema
        self.has_value = has_value
        self.failure_types = failure_types

    @classmethod
    def untyped(cls) -> OutcomeCodec:
        """Codec for ``Workflow.do``: any JSON value, any registered failure."""
        return cls()

    @classmethod
    def for_request(cls, request_cls: type[schema.StepRequest]) -> OutcomeCodec:
        """Codec for a schema-typed step declared by ``request_cls``."""
        return cls(
            success_schema=request_cls.success_type,
            has_value=request_cls.has_value(),
            failure_types=tuple(request_cls.failure_types),
        )

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def encode(self, outcome: Outcome[Any]) -> dict[str, Any]:
        """Project ``outcome`` into an envelope. Never raises."""
        try:
            return self._encode(outcome)
        except EncodeError as exc:
            logger.warning(f"Outcome not representable, encoding as defect: {exc}")
            return self._encode_defect(exc)
        except Exception as exc:
            logger.error(f"Encoding outcome failed unexpectedly: {type(exc).__name__}: {exc}")
            return self._encode_defect(exc)

    def _encode(self, outcome: Outcome[Any]) -> dict[str, Any]:
        match outcome:
            case Success(value):
                if not self.has_value:
                    return {"tag": SUCCESS}
                return {"tag": SUCCESS, "value": schema.encode(self.success_schema, value)}
            case Failure(error):
                self._check_failure_type(error, EncodeError)
                data = error.to_dict()
                data["details"] = schema.encode(_DETAILS_SCHEMA, data["details"])
                return {"tag": FAILURE, "error": data}
            case Defect(cause):
                return self._encode_defect(cause)
        raise TypeError(f"Not an outcome: {outcome!r}")

    @staticmethod
    def _encode_defect(cause: Any) -> dict[str, Any]:
        described = describe_defect(cause)
        if isinstance(described, DefectInfo):
            defect: dict[str, Any] = {"name": described.name, "message": described.message}
            if described.stack is not None:
                defect["stack"] = described.stack
            return {"tag": DIE, "defect": defect}
        return {"tag": DIE, "defect": described}

    def _check_failure_type(self, error: TaggedFailure, error_cls: type[Exception]) -> None:
        if self.failure_types is None:
            return
        if not isinstance(error, self.failure_types):
            allowed = ", ".join(t._tag for t in self.failure_types) or "none"
            raise error_cls(f"Undeclared failure {error.tag!r} (declared: {allowed})")

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def decode(self, envelope: Any) -> Outcome[Any]:
        """
        Rebuild the outcome stored in ``envelope``.

        Raises:
            DecodeError: If the envelope is malformed or its contents fail
                validation against this codec's schemas
        """
        if not isinstance(envelope, dict):
            raise DecodeError(f"Expected an outcome envelope, got {type(envelope).__name__}")

        tag = envelope.get("tag")
        if tag == SUCCESS:
            if not self.has_value:
                return Success(None)
            return Success(schema.decode(self.success_schema, envelope.get("value")))

        if tag == FAILURE:
            error = envelope.get("error")
            if not isinstance(error, dict) or not isinstance(error.get("_tag"), str):
                raise DecodeError(f"Malformed failure envelope: {error!r}")
            failure = TaggedFailure.from_dict(error, self.failure_types or ())
            self._check_failure_type(failure, DecodeError)
            return Failure(failure)

        if tag == DIE:
            defect = envelope.get("defect")
            if isinstance(defect, dict) and ("name" in defect or "message" in defect):
                return Defect(
                    DefectInfo(
                        name=str(defect.get("name") or "Error"),
                        message=str(defect.get("message") or ""),
                        stack=defect.get("stack"),
                    )
                )
            return Defect(defect if isinstance(defect, str) else json.dumps(defect))

        raise DecodeError(f"Unknown outcome tag: {tag!r}")

    def decode_result(self, result: Any) -> Outcome[Any]:
        """
        Decode a step result returned by the host.

        An absent result (side-effect-only step) is ``Success(None)``.
        A result that cannot be decoded becomes a defect.
        """
        if result is None:
            return Success(None)
        try:
            return self.decode(result)
        except DecodeError as exc:
            logger.error(f"Step result failed to decode: {exc}")
            return Defect(exc)

    def decode_error(self, error: BaseException) -> Outcome[Any]:
        """
        Recover the outcome from an error raised by the host.

        After retries are exhausted the host raises a generic error whose
        message is the last attempt's serialized envelope. If no envelope can
        be recovered from the message, the error itself becomes a defect.
        """
        envelope = _extract_envelope(str(error))
        if envelope is None:
            logger.warning(f"Host error carries no outcome envelope: {type(error).__name__}: {error}")
            return Defect(error)
        try:
            return self.decode(envelope)
        except DecodeError as exc:
            logger.error(f"Host error envelope failed to decode: {exc}")
            return Defect(exc)

    def to_message(self, envelope: dict[str, Any]) -> str:
        return json.dumps(envelope, separators=(",", ":"))


def _extract_envelope(text: str) -> dict[str, Any] | None:
    """Parse an envelope from ``text``, tolerating a prefix before the JSON."""
    candidates = [text]
    start = text.find("{")
    if start > 0:
        candidates.append(text[start:])

    for index, candidate in enumerate(candidates):
        try:
            parsed, _ = json.JSONDecoder().raw_decode(candidate.strip())
        except ValueError:
            continue
        if isinstance(parsed, dict) and parsed.get("tag") in (SUCCESS, FAILURE, DIE):
            if index > 0:
                logger.warning("Host error message was prefixed; recovered envelope after the prefix")
            return parsed
    return None
