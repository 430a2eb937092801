"""Sequence combinators -- build runs one step at a time.

collate(step) returns a bindable arrow (accumulator -> FutureResult).
Binding collate(s0) ... collate(sn) onto FutureResult.from_value([])
gives the same result as in_sequence([s0, ..., sn]).
"""
from __future__ import annotations

from collections.abc import Callable

from returns.future import FutureResult
from returns.result import Failure, Result
from returns.unsafe import unsafe_perform_io

from aioseq.seq_modules.engine.executor import run_step
from aioseq.seq_modules.engine.shapes import (
    mismatch_error,
    step_mode,
    step_producers,
    to_step,
    validate_step,
)
from aioseq.seq_modules.engine.types import RecordStep
from aioseq.seq_modules.errors import SequenceError
from aioseq.seq_modules.producers import release, run_once
from aioseq.seq_modules.types import Accumulator, accumulator_mode

COLLATE_LABEL = "collate"

Collator = Callable[[Accumulator], FutureResult[Accumulator, SequenceError]]


def collate(step: object, *, label: str = COLLATE_LABEL) -> Collator:
    """Turn one step into an accumulator transform.

    An empty list accumulator followed by a record starts map mode.
    Any other shape change is a StepShapeMismatchError. The step's
    producer or factory is only used when the transform is applied;
    a rejected step has its coroutine producers closed.
    """
    classified = to_step(step)

    async def apply(
        accumulator: Accumulator,
    ) -> Result[Accumulator, SequenceError]:
        current = accumulator
        if isinstance(classified, RecordStep) and (
            isinstance(current, list) and not current
        ):
            current = {}
        if step_mode(classified) != accumulator_mode(current):
            await release(step_producers(classified))
            return Failure(
                mismatch_error(
                    label,
                    accumulator_mode(current),
                    step_mode(classified),
                ),
            )
        checked = validate_step(classified, label)
        if isinstance(checked, Failure):
            await release(step_producers(classified))
            return checked
        resolved = await run_step(classified, current, label=label)
        return unsafe_perform_io(resolved)

    def transform(
        accumulator: Accumulator,
    ) -> FutureResult[Accumulator, SequenceError]:
        return run_once(apply(accumulator))

    return transform


def collate_all(*steps: object) -> Collator:
    """Compose collate() transforms left to right into one transform.

    A failure skips the remaining steps and closes their coroutine
    producers.
    """
    classified = [to_step(step) for step in steps]
    collators = [collate(step) for step in classified]

    async def apply(
        accumulator: Accumulator,
    ) -> Result[Accumulator, SequenceError]:
        current = accumulator
        for index, collator in enumerate(collators):
            resolved = unsafe_perform_io(await collator(current))
            if isinstance(resolved, Failure):
                await release(
                    producer
                    for later in classified[index + 1:]
                    for producer in step_producers(later)
                )
                return resolved
            current = resolved.unwrap()
        return Result.from_value(current)

    def transform(
        accumulator: Accumulator,
    ) -> FutureResult[Accumulator, SequenceError]:
        return run_once(apply(accumulator))

    return transform
