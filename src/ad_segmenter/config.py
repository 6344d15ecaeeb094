from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml

from .errors import ConfigError


@dataclass(slots=True)
class SegmenterConfig:
    """Tunable thresholds for the segmentation pipeline."""

    # Candidates overlapping an accepted one by more than this share of the
    # smaller span are dropped.
    overlap_threshold: float = 0.5
    # Max characters between a span end and a footnote marker it absorbs.
    adjacency_gap: int = 5
    # Longest trailing fragment that is folded into a marker-terminated segment.
    fragment_max_length: int = 20
    coverage_warning_threshold: float = 0.8
    marker_priority_boost: int = 5
    debug: bool = False
    pattern_catalog_path: str | None = None
    rules_dir: str = "config/products"

    def to_dict(self) -> dict[str, Any]:
        """Return a mutable dictionary representation of the configuration."""
        return dict(asdict(self))

    def validate(self) -> "SegmenterConfig":
        """Raise ConfigError when a field has the wrong type or is out of range."""
        for name, expected in _FIELD_TYPES.items():
            value = getattr(self, name)
            # bool is an int subclass; only the debug flag may be one.
            if not isinstance(value, expected) or (
                isinstance(value, bool) and expected is not bool
            ):
                raise ConfigError(
                    f"{name} must be {_type_name(expected)}, got {value!r}"
                )
        if not 0.0 < self.overlap_threshold <= 1.0:
            raise ConfigError(
                f"overlap_threshold must be in (0, 1], got {self.overlap_threshold}"
            )
        if not 0.0 <= self.coverage_warning_threshold <= 1.0:
            raise ConfigError(
                "coverage_warning_threshold must be in [0, 1], "
                f"got {self.coverage_warning_threshold}"
            )
        if self.adjacency_gap < 0:
            raise ConfigError(f"adjacency_gap must be >= 0, got {self.adjacency_gap}")
        if self.fragment_max_length < 0:
            raise ConfigError(
                f"fragment_max_length must be >= 0, got {self.fragment_max_length}"
            )
        if self.marker_priority_boost < 0:
            # Priorities may only ever increase after creation.
            raise ConfigError(
                f"marker_priority_boost must be >= 0, got {self.marker_priority_boost}"
            )
        return self


_FIELD_TYPES: dict[str, type | tuple[type, ...]] = {
    "overlap_threshold": (int, float),
    "adjacency_gap": int,
    "fragment_max_length": int,
    "coverage_warning_threshold": (int, float),
    "marker_priority_boost": int,
    "debug": bool,
    "pattern_catalog_path": (str, os.PathLike, type(None)),
    "rules_dir": (str, os.PathLike),
}


def _type_name(expected: type | tuple[type, ...]) -> str:
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return expected.__name__


def _build_kwargs(data: Mapping[str, Any]) -> dict[str, Any]:
    allowed = {field.name for field in fields(SegmenterConfig)}
    return {key: data[key] for key in data if key in allowed}


def config_from_dict(data: Mapping[str, Any] | None) -> SegmenterConfig:
    """Build a SegmenterConfig from a dictionary-like input."""
    if data is None:
        return SegmenterConfig()
    return SegmenterConfig(**_build_kwargs(data)).validate()


def config_from_yaml(path: str | Path) -> SegmenterConfig:
    """Load configuration from a YAML file."""
    try:
        contents = Path(path).read_text(encoding="utf-8")
        parsed = yaml.safe_load(contents) or {}
    except OSError as exc:
        raise ConfigError(f"Unable to read configuration {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid configuration YAML {path}: {exc}") from exc
    if not isinstance(parsed, MutableMapping):
        raise ConfigError("Configuration YAML must define a mapping.")
    return config_from_dict(parsed)


def load_config(path: str | Path | None = None) -> SegmenterConfig:
    """Load configuration from YAML when provided, otherwise return defaults."""
    if path is None:
        return SegmenterConfig()
    return config_from_yaml(path)
