"""Shared test fixtures for the aioseq test suite."""
from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator

import pytest
import structlog


@pytest.fixture
def event_log() -> list[str]:
    """Return an ordered log producers append start/end markers to."""
    return []


@pytest.fixture
def make_value(
    event_log: list[str],
) -> Callable[..., object]:
    """Return a builder for logged coroutine producers.

    make_value("a") is a coroutine resolving to "a"; the log records
    "a:start" and "a:end" around an optional delay.
    """

    async def produce(
        value: object,
        *,
        name: str | None = None,
        delay: float = 0.0,
    ) -> object:
        tag = name or str(value)
        event_log.append(f"{tag}:start")
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            event_log.append(f"{tag}:cancelled")
            raise
        event_log.append(f"{tag}:end")
        return value

    return produce


@pytest.fixture
def make_failure(
    event_log: list[str],
) -> Callable[..., object]:
    """Return a builder for coroutine producers that raise RuntimeError."""

    async def fail(message: str, *, delay: float = 0.0) -> object:
        event_log.append(f"{message}:start")
        await asyncio.sleep(delay)
        event_log.append(f"{message}:raise")
        raise RuntimeError(message)

    return fail


@pytest.fixture
def reset_structlog() -> Iterator[None]:
    """Restore structlog defaults after a test reconfigures it."""
    yield
    structlog.reset_defaults()
