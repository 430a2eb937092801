"""Structured logging setup for the aioseq engine.

Engine modules bind their own logger with structlog.get_logger(__name__)
and emit dotted event names (``sequence.step_completed``). Nothing is
configured on import; applications call configure_logging() once.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import structlog

from aioseq.seq_modules.types import LogConfig

if TYPE_CHECKING:
    from structlog.types import EventDict, Processor, WrappedLogger


def _service_metadata(
    service: str,
) -> Processor:
    """Build a processor stamping every event with the service name."""

    def add_service(
        logger: WrappedLogger,
        method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        event_dict.setdefault("service", service)
        return event_dict

    return add_service


def build_processors(config: LogConfig) -> list[Processor]:
    """Return the structlog processor chain for a configuration."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        _service_metadata(config.service),
    ]
    if config.json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def configure_logging(config: LogConfig | None = None) -> LogConfig:
    """Install the structlog configuration and return the one applied."""
    effective = config or LogConfig()
    level = logging.getLevelName(effective.level)
    structlog.configure(
        processors=build_processors(effective),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )
    return effective
