"""Shared configuration used across the tracking and rep detection pipeline.

Every threshold here is an empirically tuned default for kettlebell snatch
footage at roughly 30 fps. They are meant to be overridden, either at
construction time or from a JSON file via :func:`load_config`.
"""

from __future__ import annotations

import json
import math
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Mapping, Type, TypeVar

T = TypeVar("T")

HAND_CHOICES = ("auto", "left", "right")


def _check_numbers(config: Any) -> None:
    """Reject non-numeric or non-finite values in ``float``/``int`` fields."""
    for f in fields(config):
        if f.type not in ("float", "int"):
            continue
        value = getattr(config, f.name)
        expected = int if f.type == "int" else (int, float)
        if isinstance(value, bool) or not isinstance(value, expected) or not math.isfinite(value):
            raise ValueError(
                f"{type(config).__name__}.{f.name} must be a finite {f.type}, got {value!r}"
            )


@dataclass(frozen=True)
class FilterConfig:
    """Noise parameters for a constant-velocity Kalman filter.

    Attributes:
        process_noise: Q, how much the tracked signal is expected to change.
        measurement_noise: R, how noisy the raw measurements are.
        initial_position_variance: Position variance after a reset.
        initial_velocity_variance: Velocity variance after a reset.
    """

    process_noise: float = 0.1
    measurement_noise: float = 0.5
    initial_position_variance: float = 1.0
    initial_velocity_variance: float = 1.0

    def __post_init__(self) -> None:
        _check_numbers(self)
        for name in (
            "process_noise",
            "measurement_noise",
            "initial_position_variance",
            "initial_velocity_variance",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if self.measurement_noise <= 0:
            raise ValueError("measurement_noise must be positive")


ANGLE_FILTER = FilterConfig(process_noise=0.05, measurement_noise=0.3)


@dataclass(frozen=True)
class VelocityThresholds:
    """Vertical velocity thresholds (normalized units per second, up is positive)."""

    backswing_min: float = -0.15
    pull_min: float = 0.2
    lockout_max: float = 0.05
    drop_max: float = -0.1
    idle_max: float = 0.05
    idle_hold_ms: float = 500.0
    punch_velocity_fraction: float = 0.5

    def __post_init__(self) -> None:
        _check_numbers(self)
        if self.lockout_max < 0 or self.idle_max < 0:
            raise ValueError("lockout_max and idle_max are magnitudes and must be non-negative")
        if self.idle_hold_ms < 0:
            raise ValueError("idle_hold_ms must be non-negative")


@dataclass(frozen=True)
class HeightThresholds:
    """Height-ratio thresholds (0 at hip level, 1 at shoulder level).

    ``lockout_shoulder_angle`` is the minimum shoulder abduction (degrees)
    accepted as an overhead arm.
    """

    backswing_ratio: float = 0.7
    lockout_ratio: float = 0.3
    punch_height_fraction: float = 0.7
    lockout_shoulder_angle: float = 150.0

    def __post_init__(self) -> None:
        _check_numbers(self)


@dataclass(frozen=True)
class FatigueThresholds:
    """Percent drops from the set baseline that trigger alerts."""

    velocity_drop_warning: float = 15.0
    velocity_drop_critical: float = 25.0
    power_drop_warning: float = 20.0
    power_drop_critical: float = 35.0
    baseline_reps: int = 3

    def __post_init__(self) -> None:
        _check_numbers(self)
        if self.baseline_reps < 1:
            raise ValueError("baseline_reps must be at least 1")


@dataclass(frozen=True)
class SetDetectionConfig:
    max_rep_gap_ms: float = 5000.0
    min_reps_for_set: int = 1

    def __post_init__(self) -> None:
        _check_numbers(self)
        if self.max_rep_gap_ms <= 0:
            raise ValueError("max_rep_gap_ms must be positive")
        if self.min_reps_for_set < 0:
            raise ValueError("min_reps_for_set must be non-negative")


@dataclass(frozen=True)
class TrackingConfig:
    """Settings for turning raw landmarks into detector frames.

    Attributes:
        landmark_filter: Filter used for each axis of a tracked landmark.
        angle_filter: Filter used for each named joint angle.
        min_visibility: Landmarks below this visibility skip the filter update.
        dominant_hand: ``"auto"``, ``"left"`` or ``"right"``.
        hand_speed_margin: Speed lead a wrist needs to score an activity point.
        hand_activity_lead: Score lead needed before the dominant hand flips.
    """

    landmark_filter: FilterConfig = field(
        default_factory=lambda: FilterConfig(process_noise=0.1, measurement_noise=0.3)
    )
    angle_filter: FilterConfig = field(
        default_factory=lambda: FilterConfig(process_noise=0.05, measurement_noise=0.2)
    )
    min_visibility: float = 0.5
    dominant_hand: str = "auto"
    hand_speed_margin: float = 0.05
    hand_activity_lead: int = 10

    def __post_init__(self) -> None:
        _check_numbers(self)
        for name in ("landmark_filter", "angle_filter"):
            if not isinstance(getattr(self, name), FilterConfig):
                raise ValueError(f"{name} must be a FilterConfig")
        if self.dominant_hand not in HAND_CHOICES:
            raise ValueError(f"dominant_hand must be one of {HAND_CHOICES}")
        if not 0.0 <= self.min_visibility <= 1.0:
            raise ValueError("min_visibility must be within [0, 1]")


@dataclass(frozen=True)
class DetectorConfig:
    """Top-level configuration for a :class:`~kbvbt.repdetect.detector.SnatchDetector`."""

    implement_mass: float = 16.0
    velocity: VelocityThresholds = field(default_factory=VelocityThresholds)
    height: HeightThresholds = field(default_factory=HeightThresholds)
    fatigue: FatigueThresholds = field(default_factory=FatigueThresholds)
    set_detection: SetDetectionConfig = field(default_factory=SetDetectionConfig)
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    history_length: int = 300

    def __post_init__(self) -> None:
        _check_numbers(self)
        for f in fields(self):
            default = _default_of(f)
            if is_dataclass(default) and not isinstance(getattr(self, f.name), type(default)):
                raise ValueError(f"{f.name} must be a {type(default).__name__}")
        if self.implement_mass <= 0:
            raise ValueError("implement_mass must be positive")
        if self.history_length <= 0:
            raise ValueError("history_length must be positive")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DetectorConfig":
        """Build a config from a (possibly partial) nested mapping."""
        return _build(cls, data)


def _build(cls: Type[T], data: Mapping[str, Any]) -> T:
    known = {f.name: f for f in fields(cls)}
    unknown = set(data) - set(known)
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} keys: {sorted(unknown)}")

    kwargs: dict[str, Any] = {}
    for name, value in data.items():
        default = _default_of(known[name])
        if is_dataclass(default):
            if not isinstance(value, Mapping):
                raise ValueError(f"{cls.__name__}.{name} must be an object, got {value!r}")
            kwargs[name] = _build(type(default), value)
        else:
            kwargs[name] = value
    return cls(**kwargs)


def _default_of(f) -> Any:
    if f.default_factory is not MISSING:
        return f.default_factory()
    return f.default


def load_config(path: str | Path) -> DetectorConfig:
    """Read a JSON config file; missing keys fall back to defaults."""
    config_path = Path(path)
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid config JSON in {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Config root must be an object: {config_path}")
    return DetectorConfig.from_dict(data)
