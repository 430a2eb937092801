"""Step shape discriminator and sequence planning (pure functions).

is_record() decides whether a raw value is a record (map mode) or a
producer/factory (list mode). plan_sequence() classifies every step
and validates the run before anything is started.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping

from returns.result import Failure, Result, Success

from aioseq.seq_modules.engine.types import (
    FactoryStep,
    ProducerStep,
    RecordMember,
    RecordStep,
    SequencePlan,
    Step,
)
from aioseq.seq_modules.errors import ErrorType, SequenceError
from aioseq.seq_modules.producers import (
    discard,
    invalid_producer_error,
    is_producer,
)
from aioseq.seq_modules.types import LIST_MODE, MAP_MODE, AccumulatorMode

SEQUENCE_LABEL = "in_sequence"


def is_record(value: object) -> bool:
    """Return True for a record step: a RecordStep or any Mapping.

    Lists, producers, callables and the other step variants are not
    records. An empty mapping is a record.
    """
    return isinstance(value, (RecordStep, Mapping))


def _to_member(value: object) -> RecordMember:
    if isinstance(value, (ProducerStep, FactoryStep)):
        return value
    if callable(value) and not is_producer(value):
        return FactoryStep(value)
    return ProducerStep(value)


def to_step(value: object) -> Step:
    """Coerce a raw value into its tagged step variant."""
    if isinstance(value, (ProducerStep, FactoryStep, RecordStep)):
        return value
    if isinstance(value, Mapping):
        return RecordStep(
            {key: _to_member(member) for key, member in value.items()},
        )
    if callable(value) and not is_producer(value):
        return FactoryStep(value)
    return ProducerStep(value)


def step_producers(step: Step) -> list[object]:
    """Return the already-instantiated producers a step holds."""
    if isinstance(step, ProducerStep):
        return [step.producer]
    if isinstance(step, RecordStep):
        return [
            member.producer
            for member in step.entries.values()
            if isinstance(member, ProducerStep)
        ]
    return []


def discard_steps(steps: Iterable[object]) -> None:
    """Close the coroutine producers of steps that will never run."""
    for value in steps:
        for producer in step_producers(to_step(value)):
            discard(producer)


def step_mode(step: Step) -> AccumulatorMode:
    """Return the accumulator mode a step belongs to."""
    return MAP_MODE if isinstance(step, RecordStep) else LIST_MODE


def step_label(index: int, key: str | None = None) -> str:
    """Label used in errors and logs: in_sequence[2] or in_sequence[1].b."""
    base = f"{SEQUENCE_LABEL}[{index}]"
    return base if key is None else f"{base}.{key}"


def mismatch_error(
    label: str,
    expected: AccumulatorMode,
    found: AccumulatorMode,
) -> SequenceError:
    """Build the StepShapeMismatchError for a step in the wrong mode."""
    return SequenceError(
        step_name=label,
        error_type=ErrorType.STEP_SHAPE_MISMATCH,
        message=(
            f"Step '{label}' is a {found}-mode step"
            f" in a {expected}-mode sequence"
        ),
        context={"expected_mode": expected, "found_mode": found},
    )


def validate_step(
    step: Step,
    label: str,
) -> Result[Step, SequenceError]:
    """Check record keys and producer shapes of a single step.

    Factories are not called; their producers are checked when the
    step runs.
    """
    if isinstance(step, ProducerStep):
        if not is_producer(step.producer):
            return Failure(invalid_producer_error(step.producer, label))
        return Success(step)
    if isinstance(step, FactoryStep):
        return Success(step)

    for key, member in step.entries.items():
        if not isinstance(key, str):
            return Failure(
                SequenceError(
                    step_name=label,
                    error_type=ErrorType.INVALID_STEP,
                    message=(
                        f"Record step '{label}' has a non-string"
                        f" key {key!r}"
                    ),
                    context={"key_type": type(key).__name__},
                ),
            )
        if isinstance(member, ProducerStep) and not is_producer(
            member.producer,
        ):
            return Failure(
                invalid_producer_error(
                    member.producer, f"{label}.{key}",
                ),
            )
    return Success(step)


def plan_sequence(
    steps: Iterable[object],
) -> Result[SequencePlan, SequenceError]:
    """Classify and validate a run (pure function).

    The first step fixes the mode; an empty run is list mode.
    Returns Success(SequencePlan) or Failure(SequenceError).
    """
    classified = tuple(to_step(value) for value in steps)
    if not classified:
        return Success(SequencePlan(mode=LIST_MODE))

    mode = step_mode(classified[0])
    for index, step in enumerate(classified):
        label = step_label(index)
        found = step_mode(step)
        if found != mode:
            return Failure(mismatch_error(label, mode, found))
        checked = validate_step(step, label)
        if isinstance(checked, Failure):
            return checked
    return Success(SequencePlan(mode=mode, steps=classified))
