"""Sequence error types for the aioseq engine."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field


class ErrorType:
    """Registry of error_type values carried by SequenceError."""

    STEP_SHAPE_MISMATCH = "StepShapeMismatchError"
    INVALID_STEP = "InvalidStepError"
    INVALID_PRODUCER = "InvalidProducerError"
    INVALID_COLLECTION = "InvalidCollectionError"
    PRODUCER_FAILURE = "ProducerFailure"
    FACTORY_ERROR = "FactoryError"
    EMPTY_PRODUCER = "EmptyProducerError"


CONFIGURATION_ERRORS = frozenset(
    {
        ErrorType.STEP_SHAPE_MISMATCH,
        ErrorType.INVALID_STEP,
        ErrorType.INVALID_PRODUCER,
        ErrorType.INVALID_COLLECTION,
    },
)

MAX_CONTEXT_CHARS = 500


def _json_safe(value: object) -> object:
    """Render a context value with JSON-compatible types only.

    Exceptions keep their type name, nested SequenceErrors (a join
    member wrapping a sub-run failure) become dicts themselves.
    """
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, SequenceError):
        return value.to_dict()
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    if isinstance(value, Mapping):
        return {str(key): _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(item) for item in value]
    return repr(value)


def _clip(text: str, limit: int = MAX_CONTEXT_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


@dataclass(frozen=True)
class SequenceError:
    """Structured error for sequence, join and producer failures."""

    step_name: str
    error_type: str
    message: str
    context: dict[str, object] = field(default_factory=dict)

    @property
    def is_configuration_error(self) -> bool:
        """True when the run was misconfigured rather than failed."""
        return self.error_type in CONFIGURATION_ERRORS

    def to_dict(self) -> dict[str, object]:
        """Return the error as JSON-compatible data for logs and APIs.

        The context dict itself is left untouched.
        """
        return {
            "step_name": self.step_name,
            "error_type": self.error_type,
            "message": self.message,
            "context": _json_safe(self.context),
        }

    def __str__(self) -> str:
        head = f"SequenceError[{self.step_name}] {self.error_type}: {self.message}"
        if not self.context:
            return head
        return f"{head} | context={_clip(str(self.context))}"
