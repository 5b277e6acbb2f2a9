import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kbvbt.repdetect.models import AlertKind, Hand, Phase, Severity


class SessionCreate(BaseModel):
    """
    Request payload for opening a tracking session. ``config`` takes the same nested keys as
    ``DetectorConfig.from_dict`` (e.g. ``{"fatigue": {"baseline_reps": 2}}``).
    """
    hand: Hand = Field(Hand.RIGHT, description="Working hand at session start.")
    implement_mass: Optional[float] = Field(None, gt=0, description="Kettlebell mass in kg; defaults to config value.")
    config: Dict[str, Any] = Field(default_factory=dict, description="Optional DetectorConfig overrides.")


class HandUpdate(BaseModel):
    hand: Hand = Field(..., description="Hand to track from now on; closes the current set.")


class MassUpdate(BaseModel):
    implement_mass: float = Field(..., gt=0, description="Kettlebell mass in kg for subsequent reps.")


class FrameIn(BaseModel):
    timestamp: float = Field(..., description="Monotonic timestamp in milliseconds.")
    vertical_velocity: float = Field(..., description="Filtered vertical wrist velocity, positive upward.")
    height_ratio: float = Field(..., description="Wrist height: 0 at hip level, 1 at shoulder level.")
    joint_angles: Dict[str, float] = Field(default_factory=dict, description="Named joint angles in degrees.")
    hand: Optional[Hand] = Field(None, description="Hand the provider attributed this frame to.")

    @field_validator("timestamp", "vertical_velocity", "height_ratio")
    @classmethod
    def values_are_finite(cls, v: float) -> float:
        if math.isnan(v) or math.isinf(v):
            raise ValueError("must be a finite number")
        return v

    @field_validator("joint_angles")
    @classmethod
    def angles_are_finite(cls, v: Dict[str, float]) -> Dict[str, float]:
        if any(math.isnan(x) or math.isinf(x) for x in v.values()):
            raise ValueError("joint angles must be finite numbers")
        return v


class FrameBatch(BaseModel):
    frames: List[FrameIn] = Field(..., min_length=1, description="Frames in timestamp order.")


class PhaseIntervalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    phase: Phase
    start_time: float
    end_time: float


class JointAngleExtremaOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    max_shoulder_abduction: float
    max_elbow_angle: float
    min_hip_angle: float
    lockout_shoulder_angle: float


class RepOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rep_number: int
    start_time: float
    end_time: float
    duration: float
    peak_velocity: float
    mean_velocity: float
    peak_height: float
    lockout_duration: float
    phases: List[PhaseIntervalOut]
    joint_angles: JointAngleExtremaOut
    power: float = Field(..., description="Estimated average power in watts.")
    hand: Hand


class SetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    set_number: int
    start_time: float
    end_time: float
    duration: float
    hand: Hand
    reps: List[RepOut]
    total_reps: int
    average_velocity: float
    peak_velocity: float
    velocity_dropoff: float = Field(..., description="First-to-last peak velocity drop, percent.")
    average_power: float
    fatigue_factor: float = Field(..., ge=0, le=1)
    implement_mass: float


class AlertOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    timestamp: float
    set_number: int
    rep_number: int
    kind: AlertKind
    severity: Severity
    message: str
    velocity_drop_percent: Optional[float] = None


class VelocityPointOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    timestamp: float
    velocity: float
    rep_number: int


class SessionStatus(BaseModel):
    session_id: str
    phase: Phase
    hand: Hand
    active: bool
    paused: bool
    stopped: bool
    implement_mass: float
    reps_in_current_set: int
    rep_in_progress: bool
    total_reps: int = Field(..., description="Reps in finalized sets.")
    total_sets: int


class FrameBatchResult(BaseModel):
    accepted: int = Field(..., description="Frames processed; paused sessions accept none.")
    phase: Phase
    reps: List[RepOut] = Field(default_factory=list)
    sets: List[SetOut] = Field(default_factory=list)
    alerts: List[AlertOut] = Field(default_factory=list)


class SessionSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    session_id: str
    start_time: Optional[float]
    end_time: Optional[float]
    duration: float
    implement_mass: float
    sets: List[SetOut]
    total_reps: int
    total_sets: int
    average_velocity: float
    peak_velocity: float
    average_power: float
    total_work: float = Field(..., description="Sum of power x duration over all reps, joules.")
    fatigue_alerts: List[AlertOut]
    velocity_history: List[VelocityPointOut]
