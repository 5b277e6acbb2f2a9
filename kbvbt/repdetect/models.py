"""Immutable records produced and consumed by rep detection.

Timestamps and durations are monotonic milliseconds throughout; velocities
are normalized image heights per second (upwards positive).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Mapping, Optional, Tuple


class Hand(str, Enum):
    LEFT = "left"
    RIGHT = "right"


class Phase(str, Enum):
    """Snatch movement phases in canonical cycle order."""

    IDLE = "idle"
    BACKSWING = "backswing"  # bell between the legs, hips hinged
    HIKE = "hike"  # bell reverses out of the backswing
    PULL = "pull"  # hip drive, bell accelerating upwards
    PUNCH = "punch"  # hand insertion near the apex
    LOCKOUT = "lockout"  # arm fixed overhead
    DROP = "drop"  # controlled descent
    RETURN = "return"  # heading back to the backswing


class AlertKind(str, Enum):
    VELOCITY_DROP = "velocity_drop"
    POWER_DROP = "power_drop"
    FORM_DEGRADATION = "form_degradation"


class Severity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Frame:
    """One frame of detector input.

    Attributes:
        timestamp: Monotonic time in milliseconds.
        vertical_velocity: Filtered vertical wrist velocity, upwards positive.
        height_ratio: Wrist height relative to the body; 0 at the hip, 1 at
            the shoulder, above 1 overhead.
        joint_angles: Filtered joint angles in degrees keyed by name
            (``right_shoulder_abduction``, ``left_elbow``, ...).
        hand: Hand the upstream tracker considers dominant, if known.
            Informational only: the detector reads angles for its own active
            hand (see ``SnatchDetector.switch_hand``), so callers feeding
            precomputed signals may leave it unset.
    """

    timestamp: float
    vertical_velocity: float
    height_ratio: float
    joint_angles: Mapping[str, float] = field(default_factory=dict)
    hand: Optional[Hand] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "joint_angles", dict(self.joint_angles))


@dataclass(frozen=True)
class PhaseInterval:
    phase: Phase
    start_time: float
    end_time: float

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class PhaseChange:
    previous: Phase
    current: Phase
    timestamp: float


@dataclass(frozen=True)
class JointAngleExtrema:
    max_shoulder_abduction: float = 0.0
    max_elbow_angle: float = 0.0
    min_hip_angle: float = 0.0
    lockout_shoulder_angle: float = 0.0


@dataclass(frozen=True)
class RepData:
    """A finalized repetition.

    ``power`` is an uncalibrated estimate (watts); see
    :func:`kbvbt.repdetect.aggregator.estimate_power`.
    """

    rep_number: int
    start_time: float
    end_time: float
    duration: float
    peak_velocity: float
    mean_velocity: float
    peak_height: float
    lockout_duration: float
    phases: Tuple[PhaseInterval, ...]
    joint_angles: JointAngleExtrema
    power: float
    hand: Hand


@dataclass(frozen=True)
class SetData:
    set_number: int
    start_time: float
    end_time: float
    duration: float
    hand: Hand
    reps: Tuple[RepData, ...]
    total_reps: int
    average_velocity: float
    peak_velocity: float
    velocity_dropoff: float
    average_power: float
    fatigue_factor: float
    implement_mass: float


@dataclass(frozen=True)
class FatigueAlert:
    timestamp: float
    set_number: int
    rep_number: int
    kind: AlertKind
    severity: Severity
    message: str
    velocity_drop_percent: Optional[float] = None


@dataclass(frozen=True)
class VelocityPoint:
    timestamp: float
    velocity: float
    rep_number: int


@dataclass(frozen=True)
class SessionSnapshot:
    session_id: str
    start_time: Optional[float]
    end_time: Optional[float]
    duration: float
    implement_mass: float
    sets: Tuple[SetData, ...]
    total_reps: int
    total_sets: int
    average_velocity: float
    peak_velocity: float
    average_power: float
    total_work: float
    fatigue_alerts: Tuple[FatigueAlert, ...]
    velocity_history: Tuple[VelocityPoint, ...] = ()

    @property
    def reps(self) -> List[RepData]:
        return [rep for s in self.sets for rep in s.reps]
