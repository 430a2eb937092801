"""Producer boundary -- every producer the engine touches is consumed here.

Converts the accepted producer shapes (returns containers, awaitables,
async iterables) into FutureResult[value, SequenceError]. Exceptions
raised by producers never escape this module; cancellation does.
"""
from __future__ import annotations

import asyncio
import inspect
from collections.abc import AsyncIterable, Coroutine, Generator, Iterable
from contextlib import aclosing
from typing import TypeVar

import structlog
from returns.future import Future, FutureResult
from returns.io import IO, IOFailure, IOResult
from returns.result import Failure, Result, Success
from returns.unsafe import unsafe_perform_io

from aioseq.seq_modules.errors import ErrorType, SequenceError

_ValueType = TypeVar("_ValueType")
_ErrorType = TypeVar("_ErrorType")

logger = structlog.get_logger(__name__)

_NO_VALUE = object()


def is_producer(value: object) -> bool:
    """Return True when value is a shape the engine can consume."""
    return (
        isinstance(value, (FutureResult, Future, IOResult, Result))
        or inspect.isawaitable(value)
        or isinstance(value, AsyncIterable)
    )


def invalid_producer_error(
    value: object,
    label: str,
) -> SequenceError:
    """Build the InvalidProducerError for a non-producer value."""
    return SequenceError(
        step_name=label,
        error_type=ErrorType.INVALID_PRODUCER,
        message=(
            f"Step '{label}' is not a producer:"
            f" got {type(value).__name__}"
        ),
        context={"value_type": type(value).__name__},
    )


def _failure_from(
    error: object,
    label: str,
) -> Result[object, SequenceError]:
    """Wrap a producer's failure value as a SequenceError."""
    if isinstance(error, SequenceError):
        return Failure(error)
    return Failure(
        SequenceError(
            step_name=label,
            error_type=ErrorType.PRODUCER_FAILURE,
            message=f"Producer '{label}' failed: {error}",
            context={"cause": error},
        ),
    )


def _exception_failure(
    exc: Exception,
    label: str,
) -> Result[object, SequenceError]:
    return Failure(
        SequenceError(
            step_name=label,
            error_type=ErrorType.PRODUCER_FAILURE,
            message=f"Producer '{label}' raised: {exc}",
            context={
                "exception_type": type(exc).__name__,
                "exception_message": str(exc),
                "cause": exc,
            },
        ),
    )


def _from_ioresult(
    container: IOResult[object, object],
    label: str,
) -> Result[object, SequenceError]:
    if isinstance(container, IOFailure):
        return _failure_from(
            unsafe_perform_io(container.failure()), label,
        )
    return Success(unsafe_perform_io(container.unwrap()))


async def _last_of(
    stream: AsyncIterable[object],
) -> object:
    """Consume an async iterable and return its last value."""
    last: object = _NO_VALUE
    if hasattr(stream, "aclose"):
        async with aclosing(stream) as closing:  # type: ignore[type-var]
            async for item in closing:
                last = item
    else:
        async for item in stream:
            last = item
    return last


async def _consume(
    producer: object,
    label: str,
) -> Result[object, SequenceError]:
    """Run a producer; Success(_NO_VALUE) when it emitted nothing."""
    if isinstance(producer, IOResult):
        return _from_ioresult(producer, label)
    if isinstance(producer, Result):
        if isinstance(producer, Failure):
            return _failure_from(producer.failure(), label)
        return Success(producer.unwrap())

    try:
        if isinstance(producer, FutureResult):
            return _from_ioresult(await producer, label)
        if isinstance(producer, Future):
            io_value: IO[object] = await producer
            return Success(unsafe_perform_io(io_value))
        if inspect.isawaitable(producer):
            return Success(await producer)
        if isinstance(producer, AsyncIterable):
            return Success(await _last_of(producer))
    except Exception as exc:  # noqa: BLE001
        return _exception_failure(exc, label)
    return Failure(invalid_producer_error(producer, label))


async def consume(
    producer: object,
    label: str,
    *,
    require_value: bool,
) -> Result[object, SequenceError]:
    """Run a producer to completion and return its final value.

    With require_value=False values are discarded and an empty
    producer is a success (uncollated consumption).
    """
    result = await _consume(producer, label)
    if isinstance(result, Failure):
        return result
    if not require_value:
        return Success(None)
    if result.unwrap() is _NO_VALUE:
        return Failure(
            SequenceError(
                step_name=label,
                error_type=ErrorType.EMPTY_PRODUCER,
                message=(
                    f"Producer '{label}' completed"
                    " without emitting a value"
                ),
                context={},
            ),
        )
    return result


class _SharedRun:
    """Awaitable that starts its coroutine as a task on the first await.

    Every consumer awaits the same task, so a run can be awaited
    concurrently and still executes once.
    """

    __slots__ = ("_coro", "_task")

    def __init__(self, coro: Coroutine[object, object, object]) -> None:
        self._coro = coro
        self._task: asyncio.Future[object] | None = None

    def __await__(self) -> Generator[object, None, object]:
        if self._task is None:
            self._task = asyncio.ensure_future(self._coro)
        return self._task.__await__()


def run_once(
    coro: Coroutine[object, object, Result[_ValueType, _ErrorType]],
) -> FutureResult[_ValueType, _ErrorType]:
    """Wrap a run coroutine in a FutureResult safe for concurrent awaits."""
    return FutureResult(_SharedRun(coro))  # type: ignore[arg-type]


def discard(producer: object) -> None:
    """Close a coroutine producer that will never be awaited.

    Unstarted async generators hold no resources and need no closing.
    """
    if inspect.iscoroutine(producer):
        producer.close()


async def release(producers: Iterable[object]) -> None:
    """Close producers a failed run left unconsumed.

    Coroutines are closed and async iterables with aclose() are
    closed. Both are no-ops on producers that already finished. A
    cleanup error is logged; the run's outcome is already decided.
    """
    for producer in producers:
        if inspect.iscoroutine(producer):
            producer.close()
        elif isinstance(producer, AsyncIterable) and hasattr(
            producer, "aclose",
        ):
            try:
                await producer.aclose()
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "producer.release_failed",
                    exception_type=type(exc).__name__,
                    exception_message=str(exc),
                )


def resolve_last(
    producer: object,
    *,
    label: str = "producers.resolve_last",
) -> FutureResult[object, SequenceError]:
    """Lazily resolve a producer to its final value."""
    return run_once(consume(producer, label, require_value=True))


def drain(
    producer: object,
    *,
    label: str = "producers.drain",
) -> FutureResult[None, SequenceError]:
    """Lazily run a producer to completion, discarding its values."""
    return run_once(consume(producer, label, require_value=False))


def run_blocking(
    container: FutureResult[_ValueType, _ErrorType],
) -> IOResult[_ValueType, _ErrorType]:
    """Run a container on a fresh event loop. Synchronous boundary."""
    return asyncio.run(container.awaitable())
