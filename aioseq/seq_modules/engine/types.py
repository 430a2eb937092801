"""Public API types for sequence definitions (Tier 1).

Callers describe a run as data: an ordered tuple of steps, each a
producer, a factory or a record. ROP internals (FutureResult, bind)
stay in Tier 2 (executor, join).
"""
from __future__ import annotations

import inspect
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Literal, TypeAlias

from aioseq.seq_modules.types import Accumulator, AccumulatorMode

StepKind = Literal["producer", "factory", "record"]

StepFactory = Callable[..., object]


@dataclass(frozen=True)
class ProducerStep:
    """An already-instantiated producer whose final value fills one slot."""

    producer: object
    kind: StepKind = field(default="producer", init=False)


@dataclass(frozen=True)
class FactoryStep:
    """A factory called with the accumulator so far, returning a producer.

    Called exactly once, only after every earlier step has contributed.
    A factory with no positional parameters is called without arguments.
    """

    factory: StepFactory
    kind: StepKind = field(default="factory", init=False)

    def __call__(self, accumulator: Accumulator) -> object:
        """Invoke the factory with an accumulator snapshot."""
        if _takes_accumulator(self.factory):
            return self.factory(accumulator)
        return self.factory()


RecordMember: TypeAlias = ProducerStep | FactoryStep


@dataclass(frozen=True)
class RecordStep:
    """Named producers/factories resolved concurrently, merged as a unit."""

    entries: Mapping[str, RecordMember] = field(default_factory=dict)
    kind: StepKind = field(default="record", init=False)


Step: TypeAlias = ProducerStep | FactoryStep | RecordStep


@dataclass(frozen=True)
class SequencePlan:
    """A validated run: its accumulator mode and its ordered steps.

    Plans are inert. Nothing is started until an executor runs them.
    """

    mode: AccumulatorMode
    steps: tuple[Step, ...] = ()


def _takes_accumulator(factory: StepFactory) -> bool:
    try:
        signature = inspect.signature(factory)
    except (TypeError, ValueError):
        return True
    return any(
        param.kind
        in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
            inspect.Parameter.VAR_POSITIONAL,
        )
        for param in signature.parameters.values()
    )
