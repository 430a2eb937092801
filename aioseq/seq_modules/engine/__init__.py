"""Engine package -- ordered accumulation of asynchronous producers."""
from aioseq.seq_modules.engine.combinators import collate, collate_all
from aioseq.seq_modules.engine.executor import (
    concat_join,
    in_sequence,
    in_sequence_uncollated,
    run_sequence,
    run_step,
)
from aioseq.seq_modules.engine.join import (
    in_parallel,
    in_parallel_uncollated,
)
from aioseq.seq_modules.engine.shapes import (
    is_record,
    plan_sequence,
    to_step,
)
from aioseq.seq_modules.engine.types import (
    FactoryStep,
    ProducerStep,
    RecordStep,
    SequencePlan,
)

__all__ = [
    "FactoryStep",
    "ProducerStep",
    "RecordStep",
    "SequencePlan",
    "collate",
    "collate_all",
    "concat_join",
    "in_parallel",
    "in_parallel_uncollated",
    "in_sequence",
    "in_sequence_uncollated",
    "is_record",
    "plan_sequence",
    "run_sequence",
    "run_step",
    "to_step",
]
