"""Engine executor -- sequential step execution with ROP error handling.

Tier 2: runs SequencePlans one step at a time, threading the
accumulator through FutureResult. Callers only see the final
accumulator (or the first SequenceError) emitted once per run.
"""
from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

import structlog
from returns.future import FutureResult
from returns.io import IOFailure
from returns.result import Failure, Result, Success
from returns.unsafe import unsafe_perform_io

from aioseq.seq_modules.engine.join import join_members
from aioseq.seq_modules.engine.shapes import (
    discard_steps,
    mismatch_error,
    plan_sequence,
    step_label,
    step_mode,
    step_producers,
)
from aioseq.seq_modules.engine.types import (
    FactoryStep,
    ProducerStep,
    RecordMember,
    RecordStep,
)
from aioseq.seq_modules.errors import ErrorType, SequenceError
from aioseq.seq_modules.producers import (
    consume,
    discard,
    invalid_producer_error,
    is_producer,
    release,
    run_once,
)
from aioseq.seq_modules.types import (
    Accumulator,
    MapAccumulator,
    accumulator_mode,
    empty_accumulator,
    snapshot,
)

if TYPE_CHECKING:
    from aioseq.seq_modules.engine.types import SequencePlan, Step

logger = structlog.get_logger(__name__)

UNCOLLATED_LABEL = "in_sequence_uncollated"


def _call_factory(
    step: FactoryStep,
    accumulator: Accumulator,
    label: str,
) -> Result[object, SequenceError]:
    """Invoke a factory with a snapshot and check what it returned."""
    try:
        produced = step(snapshot(accumulator))
    except Exception as exc:  # noqa: BLE001
        return Failure(
            SequenceError(
                step_name=label,
                error_type=ErrorType.FACTORY_ERROR,
                message=f"Factory for step '{label}' raised: {exc}",
                context={
                    "exception_type": type(exc).__name__,
                    "exception_message": str(exc),
                    "cause": exc,
                },
            ),
        )
    if not is_producer(produced):
        return Failure(invalid_producer_error(produced, label))
    return Success(produced)


async def _resolve_member(
    member: RecordMember,
    accumulator: Accumulator,
    label: str,
) -> Result[object, SequenceError]:
    """Resolve one producer or factory to its final value."""
    if isinstance(member, ProducerStep):
        return await consume(member.producer, label, require_value=True)
    produced = _call_factory(member, accumulator, label)
    if isinstance(produced, Failure):
        return produced
    return await consume(produced.unwrap(), label, require_value=True)


async def _run_record(
    step: RecordStep,
    accumulator: MapAccumulator,
    label: str,
) -> Result[Accumulator, SequenceError]:
    """Join a record's members concurrently and merge them as a unit.

    Every factory in the record sees the same snapshot: the
    accumulator as it was when the record step started.
    """
    keys = list(step.entries.keys())
    try:
        joined = await join_members(
            [
                (
                    f"{label}.{key}",
                    _resolve_member(
                        step.entries[key], accumulator, f"{label}.{key}",
                    ),
                )
                for key in keys
            ],
        )
    finally:
        await release(step_producers(step))
    return joined.map(
        lambda values: {
            **accumulator,
            **dict(zip(keys, values, strict=True)),
        },
    )


async def _run_step(
    step: Step,
    accumulator: Accumulator,
    label: str,
) -> Result[Accumulator, SequenceError]:
    current_mode = accumulator_mode(accumulator)
    if step_mode(step) != current_mode:
        await release(step_producers(step))
        return Failure(mismatch_error(label, current_mode, step_mode(step)))

    if isinstance(step, RecordStep):
        return await _run_record(step, accumulator, label)  # type: ignore[arg-type]

    resolved = await _resolve_member(step, accumulator, label)
    return resolved.map(lambda value: [*accumulator, value])


def run_step(
    step: Step,
    accumulator: Accumulator,
    *,
    label: str = "run_step",
) -> FutureResult[Accumulator, SequenceError]:
    """Execute a single step against an accumulator.

    Returns a new accumulator with the step's contribution appended
    (list mode) or merged (map mode). The input is never mutated.
    """
    return run_once(_run_step(step, accumulator, label))


async def _run_plan(
    plan: SequencePlan,
) -> Result[Accumulator, SequenceError]:
    accumulator = empty_accumulator(plan.mode)
    logger.debug(
        "sequence.started", mode=plan.mode, steps=len(plan.steps),
    )
    started = 0
    try:
        for index, step in enumerate(plan.steps):
            started = index + 1
            label = step_label(index)
            result = await run_step(step, accumulator, label=label)
            if isinstance(result, IOFailure):
                error = unsafe_perform_io(result.failure())
                logger.warning(
                    "sequence.failed",
                    step=label,
                    step_index=index,
                    error_type=error.error_type,
                )
                return Failure(error)
            accumulator = unsafe_perform_io(result.unwrap())
            logger.debug(
                "sequence.step_completed", step=label, kind=step.kind,
            )
    finally:
        await release(
            producer
            for later in plan.steps[started:]
            for producer in step_producers(later)
        )

    logger.debug("sequence.completed", mode=plan.mode)
    return Success(snapshot(accumulator))


def run_sequence(
    plan: SequencePlan,
) -> FutureResult[Accumulator, SequenceError]:
    """Execute a validated plan; emits the final accumulator once.

    The run starts on the first await. Later and concurrent awaits
    share that one execution and its outcome.
    """
    if not plan.steps:
        return FutureResult.from_value(empty_accumulator(plan.mode))
    return run_once(_run_plan(plan))


def in_sequence(
    steps: Iterable[object],
) -> FutureResult[Accumulator, SequenceError]:
    """Run steps strictly in order, accumulating their results.

    Each step is a producer, a factory called with the results so far,
    or a mapping of producers/factories resolved concurrently. The
    first step fixes the mode: a mapping gives a dict accumulator,
    anything else a list. Shape errors fail before any step starts,
    and the coroutine producers of a rejected run are closed.
    Nothing runs until the returned container is awaited.
    """
    items = list(steps)
    planned = plan_sequence(items)
    if isinstance(planned, Failure):
        discard_steps(items)
        return FutureResult.from_failure(planned.failure())
    return run_sequence(planned.unwrap())


def concat_join(*steps: object) -> FutureResult[Accumulator, SequenceError]:
    """Variadic form of in_sequence()."""
    return in_sequence(steps)


async def _drain_in_order(
    producers: list[object],
) -> Result[None, SequenceError]:
    started = 0
    try:
        for index, producer in enumerate(producers):
            started = index + 1
            result = await consume(
                producer,
                f"{UNCOLLATED_LABEL}[{index}]",
                require_value=False,
            )
            if isinstance(result, Failure):
                return result
    finally:
        await release(producers[started:])
    logger.debug("uncollated.completed", mode="sequence")
    return Success(None)


def in_sequence_uncollated(
    producers: Iterable[object],
) -> FutureResult[None, SequenceError]:
    """Run producers one after another, discarding values; resolves None."""
    items = list(producers)
    for index, producer in enumerate(items):
        if not is_producer(producer):
            for item in items:
                discard(item)
            return FutureResult.from_failure(
                invalid_producer_error(
                    producer, f"{UNCOLLATED_LABEL}[{index}]",
                ),
            )
    if not items:
        return FutureResult.from_value(None)
    return run_once(_drain_in_order(items))
