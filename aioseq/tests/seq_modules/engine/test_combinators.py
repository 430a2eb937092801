"""Tests for collate and collate_all."""
from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from typing import TYPE_CHECKING

from returns.future import FutureResult
from returns.io import IOFailure, IOSuccess
from returns.unsafe import unsafe_perform_io

from aioseq.seq_modules.engine.combinators import collate, collate_all
from aioseq.seq_modules.engine.executor import in_sequence
from aioseq.seq_modules.errors import ErrorType, SequenceError
from aioseq.seq_modules.producers import run_blocking

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


def _start() -> FutureResult[list[object], SequenceError]:
    return FutureResult.from_value([])


def _failure_of(container: FutureResult[object, SequenceError]) -> SequenceError:
    result = run_blocking(container)
    assert isinstance(result, IOFailure)
    return unsafe_perform_io(result.failure())


class TestCollate:
    """Tests for collate()."""

    def test_appends_in_list_mode(self) -> None:
        """Binding collate steps builds a list like in_sequence."""
        result = run_blocking(
            _start()
            .bind(collate(FutureResult.from_value("a")))
            .bind(collate(lambda acc: FutureResult.from_value(len(acc)))),
        )
        assert result == IOSuccess(["a", 1])

    def test_matches_in_sequence(self) -> None:
        """collate chains and in_sequence agree on the same steps."""

        def steps() -> list[object]:
            return [
                FutureResult.from_value(1),
                lambda acc: FutureResult.from_value(sum(acc) + 1),
                lambda acc: FutureResult.from_value(acc[-1] * 10),
            ]

        chained = _start()
        for step in steps():
            chained = chained.bind(collate(step))
        assert run_blocking(chained) == run_blocking(in_sequence(steps()))

    def test_record_on_empty_list_starts_map_mode(self) -> None:
        """A record applied to [] starts a dict accumulator."""
        result = run_blocking(
            _start()
            .bind(collate({"a": FutureResult.from_value(1)}))
            .bind(collate({"b": lambda m: FutureResult.from_value(m["a"] + 1)})),
        )
        assert result == IOSuccess({"a": 1, "b": 2})

    def test_record_on_non_empty_list_mismatch(self) -> None:
        """A record after list values is a shape mismatch."""
        error = _failure_of(
            _start()
            .bind(collate(FutureResult.from_value(1)))
            .bind(collate({"a": FutureResult.from_value(2)})),
        )
        assert error.error_type == ErrorType.STEP_SHAPE_MISMATCH
        assert error.step_name == "collate"

    def test_producer_on_map_mismatch(
        self,
        make_value: Callable[..., object],
    ) -> None:
        """A producer applied to a dict accumulator is a mismatch."""
        producer = make_value(1)
        error = _failure_of(collate(producer)({"a": 1}))
        assert error.error_type == ErrorType.STEP_SHAPE_MISMATCH
        assert error.context == {"expected_mode": "map", "found_mode": "list"}
        assert inspect.getcoroutinestate(producer) == inspect.CORO_CLOSED

    def test_invalid_producer(self) -> None:
        """A plain value is rejected when the transform runs."""
        error = _failure_of(_start().bind(collate(5, label="fifth")))
        assert error.error_type == ErrorType.INVALID_PRODUCER
        assert error.step_name == "fifth"

    def test_factory_deferred_until_applied(self, mocker: MockerFixture) -> None:
        """Building a collator calls nothing."""
        factory = mocker.Mock(return_value=FutureResult.from_value("x"))
        transform = collate(factory)
        factory.assert_not_called()
        assert run_blocking(transform(["a"])) == IOSuccess(["a", "x"])
        factory.assert_called_once_with(["a"])

    def test_input_accumulator_not_mutated(self) -> None:
        """The accumulator passed in is left unchanged."""
        acc: list[object] = ["a"]
        run_blocking(collate(FutureResult.from_value("b"))(acc))
        assert acc == ["a"]

    def test_failure_short_circuits_later_collators(
        self,
        mocker: MockerFixture,
    ) -> None:
        """A failed step skips every later collate."""
        later = mocker.Mock(side_effect=lambda acc: FutureResult.from_value("x"))
        error = _failure_of(
            _start()
            .bind(collate(FutureResult.from_failure("boom")))
            .bind(collate(later)),
        )
        assert error.error_type == ErrorType.PRODUCER_FAILURE
        later.assert_not_called()


class TestCollateAll:
    """Tests for collate_all()."""

    def test_composes_left_to_right(self) -> None:
        """collate_all applies steps in order."""
        transform = collate_all(
            FutureResult.from_value(1),
            lambda acc: FutureResult.from_value(acc[-1] + 1),
        )
        assert run_blocking(transform([])) == IOSuccess([1, 2])

    def test_no_steps_is_identity(self) -> None:
        """With no steps the accumulator is returned as is."""
        assert run_blocking(collate_all()(["x"])) == IOSuccess(["x"])

    def test_bindable(self) -> None:
        """The composed transform binds like a single collate."""
        result = run_blocking(
            _start().bind(
                collate_all(
                    {"a": FutureResult.from_value(1)},
                    {"b": FutureResult.from_value(2)},
                ),
            ),
        )
        assert result == IOSuccess({"a": 1, "b": 2})

    def test_failure_closes_remaining_producers(
        self,
        make_value: Callable[..., object],
        make_failure: Callable[..., object],
        event_log: list[str],
    ) -> None:
        """Steps after a failure are skipped and their coroutines closed."""
        later = make_value("later")
        transform = collate_all(make_failure("boom"), later)
        error = _failure_of(transform([]))
        assert error.error_type == ErrorType.PRODUCER_FAILURE
        assert error.step_name == "collate"
        assert "later:start" not in event_log
        assert inspect.getcoroutinestate(later) == inspect.CORO_CLOSED

    def test_concurrent_awaits(
        self,
        make_value: Callable[..., object],
        event_log: list[str],
    ) -> None:
        """Awaiting one applied transform concurrently runs it once."""
        container = collate_all(make_value("a", delay=0.01))([])

        async def both() -> list[object]:
            return await asyncio.gather(
                container.awaitable(), container.awaitable(),
            )

        first, second = asyncio.run(both())
        assert first == second == IOSuccess(["a"])
        assert event_log == ["a:start", "a:end"]
