"""Parallel join -- concurrent resolution of a list or map of producers.

Members run as asyncio tasks on the awaiting loop. The first member
failure observed fails the join; every sibling still in flight is
cancelled and awaited before the failure is returned.
"""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Mapping
from typing import TYPE_CHECKING, TypeAlias

import structlog
from returns.future import FutureResult
from returns.result import Failure, Result, Success

from aioseq.seq_modules.errors import ErrorType, SequenceError
from aioseq.seq_modules.producers import (
    consume,
    discard,
    invalid_producer_error,
    is_producer,
    release,
    run_once,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable, Sequence

logger = structlog.get_logger(__name__)

PARALLEL_LABEL = "in_parallel"

MemberResult: TypeAlias = "Result[object, SequenceError]"


async def _cancel_all(tasks: Sequence[asyncio.Task[MemberResult]]) -> None:
    pending = [task for task in tasks if not task.done()]
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)


async def join_members(
    members: Sequence[tuple[str, Awaitable[MemberResult]]],
) -> Result[list[object], SequenceError]:
    """Await labelled member results concurrently, in input order.

    Returns Success(values) once every member succeeded, or the first
    Failure observed. Members that finish in the same wakeup of the
    loop are checked in input order. Remaining tasks are cancelled on
    any exit.
    """
    labels = [label for label, _ in members]
    tasks = [asyncio.ensure_future(awaitable) for _, awaitable in members]
    logger.debug("parallel.started", members=labels)
    try:
        pending: set[asyncio.Task[MemberResult]] = set(tasks)
        while pending:
            done, pending = await asyncio.wait(
                pending, return_when=asyncio.FIRST_COMPLETED,
            )
            for label, task in zip(labels, tasks, strict=True):
                if task not in done:
                    continue
                result = task.result()
                if isinstance(result, Failure):
                    error = result.failure()
                    logger.warning(
                        "parallel.member_failed",
                        member=label,
                        error_type=error.error_type,
                        cancelled=len(pending),
                    )
                    return result
    finally:
        await _cancel_all(tasks)

    logger.debug("parallel.completed", members=labels)
    return Success([task.result().unwrap() for task in tasks])


def member_label(key: Hashable) -> str:
    """Label for a join member: in_parallel[0] or in_parallel.name."""
    if isinstance(key, int):
        return f"{PARALLEL_LABEL}[{key}]"
    return f"{PARALLEL_LABEL}.{key}"


def _invalid_collection(sources: object) -> SequenceError:
    return SequenceError(
        step_name=PARALLEL_LABEL,
        error_type=ErrorType.INVALID_COLLECTION,
        message=(
            "in_parallel() expects a list, tuple or mapping"
            f" of producers, got {type(sources).__name__}"
        ),
        context={"sources_type": type(sources).__name__},
    )


def _keyed_members(
    sources: object,
) -> Result[list[tuple[Hashable, object]], SequenceError]:
    """Pair every member with its key; reject anything else up front."""
    if isinstance(sources, Mapping):
        members = list(sources.items())
    elif isinstance(sources, (list, tuple)):
        members = list(enumerate(sources))
    else:
        return Failure(_invalid_collection(sources))

    for key, producer in members:
        if not is_producer(producer):
            for _, other in members:
                discard(other)
            return Failure(
                invalid_producer_error(producer, member_label(key)),
            )
    return Success(members)


async def _run_join(
    members: list[tuple[Hashable, object]],
    member: Callable[[object, str], Awaitable[MemberResult]],
) -> Result[list[object], SequenceError]:
    try:
        return await join_members(
            [
                (
                    member_label(key),
                    member(producer, member_label(key)),
                )
                for key, producer in members
            ],
        )
    finally:
        await release(producer for _, producer in members)


def _resolve_member(
    producer: object,
    label: str,
) -> Awaitable[MemberResult]:
    return consume(producer, label, require_value=True)


def _drain_member(
    producer: object,
    label: str,
) -> Awaitable[MemberResult]:
    return consume(producer, label, require_value=False)


async def _collect(
    members: list[tuple[Hashable, object]],
    keyed: bool,
) -> Result[list[object] | dict[object, object], SequenceError]:
    joined = await _run_join(members, _resolve_member)
    if not keyed:
        return joined
    keys = [key for key, _ in members]
    return joined.map(
        lambda values: dict(zip(keys, values, strict=True)),
    )


async def _drain_all(
    members: list[tuple[Hashable, object]],
) -> Result[None, SequenceError]:
    joined = await _run_join(members, _drain_member)
    if isinstance(joined, Success):
        logger.debug("uncollated.completed", mode="parallel")
    return joined.map(lambda _: None)


def in_parallel(
    sources: Sequence[object] | Mapping[str, object],
) -> FutureResult[list[object] | dict[object, object], SequenceError]:
    """Join producers concurrently into a list or dict of final values.

    An empty list resolves to [] and an empty mapping to {} immediately,
    without subscribing to anything. A member that is not a producer
    fails the join before any member starts. Members start only when
    the returned container is first awaited.
    """
    checked = _keyed_members(sources)
    if isinstance(checked, Failure):
        return FutureResult.from_failure(checked.failure())
    members = checked.unwrap()
    keyed = isinstance(sources, Mapping)
    if not members:
        return FutureResult.from_value({} if keyed else [])
    return run_once(_collect(members, keyed))


def in_parallel_uncollated(
    sources: Sequence[object] | Mapping[str, object],
) -> FutureResult[None, SequenceError]:
    """Run producers concurrently, discarding values; resolves None."""
    checked = _keyed_members(sources)
    if isinstance(checked, Failure):
        return FutureResult.from_failure(checked.failure())
    members = checked.unwrap()
    if not members:
        return FutureResult.from_value(None)
    return run_once(_drain_all(members))
