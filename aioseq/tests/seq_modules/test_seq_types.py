"""Tests for accumulator helpers and LogConfig."""
import pytest
from pydantic import ValidationError

from aioseq.seq_modules.types import (
    DEFAULT_SERVICE_NAME,
    LIST_MODE,
    MAP_MODE,
    LogConfig,
    accumulator_mode,
    empty_accumulator,
    snapshot,
)


class TestAccumulators:
    """Tests for empty_accumulator, accumulator_mode and snapshot."""

    def test_empty_accumulator_list_mode(self) -> None:
        """List mode starts from an empty list."""
        assert empty_accumulator(LIST_MODE) == []

    def test_empty_accumulator_map_mode(self) -> None:
        """Map mode starts from an empty dict."""
        assert empty_accumulator(MAP_MODE) == {}

    def test_empty_accumulator_is_fresh(self) -> None:
        """Each call returns a new object."""
        assert empty_accumulator(LIST_MODE) is not empty_accumulator(LIST_MODE)

    def test_accumulator_mode(self) -> None:
        """Lists are list mode, dicts are map mode."""
        assert accumulator_mode([1, 2]) == LIST_MODE
        assert accumulator_mode([]) == LIST_MODE
        assert accumulator_mode({"a": 1}) == MAP_MODE
        assert accumulator_mode({}) == MAP_MODE

    def test_snapshot_copies_list(self) -> None:
        """Mutating a list snapshot leaves the original alone."""
        original: list[object] = ["a"]
        copy = snapshot(original)
        assert copy == original
        copy.append("b")  # type: ignore[union-attr]
        assert original == ["a"]

    def test_snapshot_copies_dict(self) -> None:
        """Mutating a dict snapshot leaves the original alone."""
        original: dict[str, object] = {"a": 1}
        copy = snapshot(original)
        assert copy == original
        copy["b"] = 2  # type: ignore[index]
        assert original == {"a": 1}


class TestLogConfig:
    """Tests for the LogConfig model."""

    def test_defaults(self) -> None:
        """Defaults are console output at WARNING."""
        config = LogConfig()
        assert config.level == "WARNING"
        assert config.json_format is False
        assert config.service == DEFAULT_SERVICE_NAME

    def test_frozen(self) -> None:
        """LogConfig cannot be mutated."""
        config = LogConfig()
        with pytest.raises(ValidationError):
            config.level = "DEBUG"  # type: ignore[misc]

    def test_rejects_unknown_level(self) -> None:
        """Only the four supported levels validate."""
        with pytest.raises(ValidationError):
            LogConfig(level="TRACE")  # type: ignore[arg-type]
