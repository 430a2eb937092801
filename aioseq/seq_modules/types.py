"""Shared type definitions for the aioseq engine."""
from __future__ import annotations

from typing import Literal, TypeAlias

from pydantic import BaseModel, ConfigDict

DEFAULT_SERVICE_NAME = "aioseq"

AccumulatorMode = Literal["list", "map"]
LIST_MODE: AccumulatorMode = "list"
MAP_MODE: AccumulatorMode = "map"

ListAccumulator: TypeAlias = list[object]
MapAccumulator: TypeAlias = dict[str, object]
Accumulator: TypeAlias = ListAccumulator | MapAccumulator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


def empty_accumulator(mode: AccumulatorMode) -> Accumulator:
    """Return a fresh, empty accumulator for the given mode."""
    if mode == MAP_MODE:
        return {}
    return []


def accumulator_mode(accumulator: Accumulator) -> AccumulatorMode:
    """Return the mode an existing accumulator belongs to."""
    return MAP_MODE if isinstance(accumulator, dict) else LIST_MODE


def snapshot(accumulator: Accumulator) -> Accumulator:
    """Return a shallow copy handed to factories and to the caller.

    Nothing outside the run can mutate the accumulator the run owns.
    """
    if isinstance(accumulator, dict):
        return dict(accumulator)
    return list(accumulator)


class LogConfig(BaseModel):
    """Logging configuration for configure_logging()."""

    model_config = ConfigDict(frozen=True)

    level: LogLevel = "WARNING"
    json_format: bool = False
    service: str = DEFAULT_SERVICE_NAME
