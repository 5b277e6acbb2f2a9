"""Repetition and set aggregation.

Keeps bounded per-frame histories, turns a closed repetition window into a
:class:`RepData`, and rolls finalized reps up into :class:`SetData`.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from kbvbt.config import SetDetectionConfig
from kbvbt.repdetect.models import (
    Hand,
    JointAngleExtrema,
    Phase,
    PhaseInterval,
    RepData,
    SetData,
    VelocityPoint,
)
from kbvbt.signals.kinematics import angle_key

logger = logging.getLogger(__name__)

GRAVITY = 9.81


def estimate_power(
    mass: float, peak_velocity: float, mean_velocity: float, duration_ms: float
) -> float:
    """Rough average power (W) of one rep.

    Work is potential energy over an estimated displacement
    ``mean_velocity * t * 0.5`` plus kinetic energy at peak velocity, divided
    by the rep duration ``t``. Not a calibrated measurement.
    """

    seconds = duration_ms / 1000.0
    if seconds <= 0:
        return 0.0
    displacement = mean_velocity * seconds * 0.5
    potential = mass * GRAVITY * abs(displacement)
    kinetic = 0.5 * mass * peak_velocity**2
    return (potential + kinetic) / seconds


def percent_drop(reference: float, value: float) -> float:
    """Percentage decline of ``value`` from ``reference``; 0 for a zero reference."""
    if reference == 0:
        return 0.0
    return (reference - value) / reference * 100.0


def velocity_dropoff(peak_velocities: Sequence[float]) -> float:
    """First-to-last percentage drop of rep peak velocities."""
    if not peak_velocities:
        return 0.0
    return percent_drop(peak_velocities[0], peak_velocities[-1])


def fatigue_factor(peak_velocities: Sequence[float], powers: Sequence[float]) -> float:
    """Blend of velocity dropoff and power drop, clamped to [0, 1]."""
    if not peak_velocities or not powers:
        return 0.0
    power_term = percent_drop(powers[0], powers[-1]) / 100.0 / 2.0
    raw = velocity_dropoff(peak_velocities) / 50.0 + power_term
    return min(1.0, max(0.0, raw))


class RepSetAggregator:
    """Buffers frame samples and emits rep/set summaries.

    Args:
        implement_mass: Bell mass in kg used for power estimates; may be
            changed between reps through the attribute.
        set_detection: Minimum reps per set (gap handling lives in the
            detector, which owns the clock).
        history_length: Maximum samples kept; oldest are evicted first.
    """

    def __init__(
        self,
        implement_mass: float = 16.0,
        set_detection: Optional[SetDetectionConfig] = None,
        history_length: int = 300,
    ) -> None:
        self.implement_mass = implement_mass
        self.set_detection = set_detection or SetDetectionConfig()
        self._velocities: Deque[Tuple[float, float]] = deque(maxlen=history_length)
        self._heights: Deque[Tuple[float, float]] = deque(maxlen=history_length)
        self._angles: Deque[Tuple[float, Mapping[str, float]]] = deque(maxlen=history_length)

        self._current_set: List[RepData] = []
        self._sets: List[SetData] = []
        self._velocity_history: List[VelocityPoint] = []
        self._rep_counter = 0
        self._set_counter = 0
        self._last_rep_end_time: Optional[float] = None

    @property
    def current_set_reps(self) -> List[RepData]:
        return list(self._current_set)

    @property
    def sets(self) -> List[SetData]:
        return list(self._sets)

    @property
    def velocity_history(self) -> List[VelocityPoint]:
        return list(self._velocity_history)

    @property
    def rep_count(self) -> int:
        return self._rep_counter

    @property
    def set_count(self) -> int:
        return self._set_counter

    @property
    def last_rep_end_time(self) -> Optional[float]:
        return self._last_rep_end_time

    def record(
        self,
        timestamp: float,
        velocity: float,
        height_ratio: float,
        joint_angles: Mapping[str, float],
    ) -> None:
        self._velocities.append((timestamp, velocity))
        self._heights.append((timestamp, height_ratio))
        self._angles.append((timestamp, joint_angles))

    def clear_history(self) -> None:
        self._velocities.clear()
        self._heights.clear()
        self._angles.clear()

    def finalize_rep(
        self,
        start_time: float,
        end_time: float,
        phases: Sequence[PhaseInterval],
        hand: Hand,
    ) -> RepData:
        """Summarize samples in ``[start_time, end_time)`` as the next rep."""
        velocities = [v for t, v in self._velocities if start_time <= t < end_time]
        heights = [h for t, h in self._heights if start_time <= t < end_time]
        angles = [a for t, a in self._angles if start_time <= t < end_time]

        peak_velocity = float(np.max(velocities)) if velocities else 0.0
        mean_velocity = float(np.mean(velocities)) if velocities else 0.0
        peak_height = float(np.max(heights)) if heights else 0.0

        lockout = next((p for p in phases if p.phase is Phase.LOCKOUT), None)
        lockout_duration = lockout.duration if lockout else 0.0

        duration = end_time - start_time
        power = estimate_power(self.implement_mass, peak_velocity, mean_velocity, duration)

        self._rep_counter += 1
        rep = RepData(
            rep_number=self._rep_counter,
            start_time=start_time,
            end_time=end_time,
            duration=duration,
            peak_velocity=peak_velocity,
            mean_velocity=mean_velocity,
            peak_height=peak_height,
            lockout_duration=lockout_duration,
            phases=tuple(phases),
            joint_angles=_angle_extrema(angles, hand, has_lockout=lockout is not None),
            power=power,
            hand=hand,
        )

        self._current_set.append(rep)
        self._last_rep_end_time = end_time
        self._velocity_history.append(
            VelocityPoint(timestamp=end_time, velocity=peak_velocity, rep_number=rep.rep_number)
        )
        logger.info(
            "rep %d: peak %.2f mean %.2f power %.0f W (%.0f ms)",
            rep.rep_number,
            peak_velocity,
            mean_velocity,
            power,
            duration,
        )
        return rep

    def finalize_set(self, hand: Hand) -> Optional[SetData]:
        """Close the current set; ``None`` if it was empty or too short."""
        reps = tuple(self._current_set)
        self._current_set = []
        if not reps:
            return None
        if len(reps) < self.set_detection.min_reps_for_set:
            logger.info(
                "discarding set with %d reps (minimum %d)",
                len(reps),
                self.set_detection.min_reps_for_set,
            )
            return None

        velocities = [r.peak_velocity for r in reps]
        powers = [r.power for r in reps]
        start_time = reps[0].start_time
        end_time = reps[-1].end_time

        self._set_counter += 1
        set_data = SetData(
            set_number=self._set_counter,
            start_time=start_time,
            end_time=end_time,
            duration=end_time - start_time,
            hand=hand,
            reps=reps,
            total_reps=len(reps),
            average_velocity=float(np.mean(velocities)),
            peak_velocity=float(np.max(velocities)),
            velocity_dropoff=velocity_dropoff(velocities),
            average_power=float(np.mean(powers)),
            fatigue_factor=fatigue_factor(velocities, powers),
            implement_mass=self.implement_mass,
        )
        self._sets.append(set_data)
        logger.info(
            "set %d: %d reps, dropoff %.1f%%, fatigue %.2f",
            set_data.set_number,
            set_data.total_reps,
            set_data.velocity_dropoff,
            set_data.fatigue_factor,
        )
        return set_data


def _angle_extrema(
    samples: Sequence[Mapping[str, float]], hand: Hand, *, has_lockout: bool
) -> JointAngleExtrema:
    shoulder = _series(samples, angle_key(hand.value, "shoulder_abduction"))
    elbow = _series(samples, angle_key(hand.value, "elbow"))
    hip = _series(samples, angle_key(hand.value, "hip"))

    return JointAngleExtrema(
        max_shoulder_abduction=max(shoulder) if shoulder else 0.0,
        max_elbow_angle=max(elbow) if elbow else 0.0,
        min_hip_angle=min(hip) if hip else 0.0,
        lockout_shoulder_angle=shoulder[-1] if has_lockout and shoulder else 0.0,
    )


def _series(samples: Sequence[Mapping[str, float]], key: str) -> List[float]:
    return [a[key] for a in samples if key in a]
