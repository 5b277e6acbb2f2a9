"""Constant-velocity Kalman filters for landmark positions and joint angles.

Each :class:`ScalarEstimator` tracks a single channel with state
``[position, velocity]`` and a position-only measurement. Timestamps are
monotonic milliseconds; ``dt`` is clamped so a dropped or duplicated frame
cannot destabilise the covariance.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple, Optional, Tuple

import numpy as np

from kbvbt.config import ANGLE_FILTER, FilterConfig

DEFAULT_DT = 1 / 30
MIN_DT = 0.001
MAX_DT = 0.5


@dataclass(frozen=True)
class FilterState:
    """Snapshot of a scalar filter's state and covariance."""

    position: float
    velocity: float
    position_variance: float
    velocity_variance: float
    covariance: float


class Vector3(NamedTuple):
    x: float
    y: float
    z: float


class ScalarEstimator:
    """Kalman filter over one scalar channel (position -> position + velocity)."""

    def __init__(self, config: Optional[FilterConfig] = None) -> None:
        self.config = config or FilterConfig()
        self._state = self._initial_state(0.0)
        self._last_timestamp: Optional[float] = None

    def _initial_state(self, position: float) -> FilterState:
        return FilterState(
            position=position,
            velocity=0.0,
            position_variance=self.config.initial_position_variance,
            velocity_variance=self.config.initial_velocity_variance,
            covariance=0.0,
        )

    @property
    def state(self) -> FilterState:
        return self._state

    @property
    def position(self) -> float:
        return self._state.position

    @property
    def velocity(self) -> float:
        return self._state.velocity

    @property
    def last_timestamp(self) -> Optional[float]:
        return self._last_timestamp

    def reset(self, initial_position: float = 0.0) -> None:
        """Restore initial variances and forget the last timestamp."""
        self._state = self._initial_state(initial_position)
        self._last_timestamp = None

    def _step_dt(self, timestamp: float) -> float:
        if self._last_timestamp is None:
            return DEFAULT_DT
        dt = (timestamp - self._last_timestamp) / 1000.0
        return max(MIN_DT, min(dt, MAX_DT))

    def _predict(self, dt: float) -> FilterState:
        q = self.config.process_noise
        s = self._state
        dt2 = dt * dt
        return FilterState(
            position=s.position + s.velocity * dt,
            velocity=s.velocity,
            position_variance=(
                s.position_variance + 2 * dt * s.covariance + dt2 * s.velocity_variance + q * dt2
            ),
            velocity_variance=s.velocity_variance + q,
            covariance=s.covariance + dt * s.velocity_variance + q * dt,
        )

    def update(self, measurement: float, timestamp: float) -> FilterState:
        """Predict to ``timestamp`` and correct with a position measurement.

        Args:
            measurement: Observed position.
            timestamp: Monotonic time in milliseconds. Non-monotonic input is
                not rejected; its ``dt`` is clamped to the minimum.

        Returns:
            The corrected (immutable) state.
        """

        dt = self._step_dt(timestamp)
        self._last_timestamp = timestamp

        predicted = self._predict(dt)
        innovation = measurement - predicted.position
        innovation_variance = predicted.position_variance + self.config.measurement_noise
        gain_position = predicted.position_variance / innovation_variance
        gain_velocity = predicted.covariance / innovation_variance

        self._state = FilterState(
            position=predicted.position + gain_position * innovation,
            velocity=predicted.velocity + gain_velocity * innovation,
            position_variance=(1 - gain_position) * predicted.position_variance,
            velocity_variance=predicted.velocity_variance - gain_velocity * predicted.covariance,
            covariance=(1 - gain_position) * predicted.covariance,
        )
        return self._state


class VectorEstimator:
    """Tracks a 3D point with one independent :class:`ScalarEstimator` per axis."""

    def __init__(self, config: Optional[FilterConfig] = None) -> None:
        self._axes = tuple(ScalarEstimator(config) for _ in range(3))

    def update(
        self, measurement: Tuple[float, float, float], timestamp: float
    ) -> Tuple[Vector3, Vector3]:
        """Return filtered ``(position, velocity)`` for a new measurement."""
        states = [axis.update(value, timestamp) for axis, value in zip(self._axes, measurement)]
        position = Vector3(*(s.position for s in states))
        velocity = Vector3(*(s.velocity for s in states))
        return position, velocity

    def reset(self, initial_position: Tuple[float, float, float] = (0.0, 0.0, 0.0)) -> None:
        for axis, value in zip(self._axes, initial_position):
            axis.reset(value)

    @property
    def position(self) -> Vector3:
        return Vector3(*(axis.position for axis in self._axes))

    @property
    def velocity(self) -> Vector3:
        return Vector3(*(axis.velocity for axis in self._axes))

    def speed(self) -> float:
        """Euclidean norm of the velocity vector."""
        return float(np.linalg.norm(np.asarray(self.velocity, dtype=float)))


class AngleEstimator:
    """Scalar filter tuned for slowly varying joint angles in degrees.

    Angles are not unwrapped; a signal crossing +/-180 degrees will be
    smoothed across the jump. Snatch joint angles stay within [0, 180].
    """

    def __init__(self, config: Optional[FilterConfig] = None) -> None:
        self._filter = ScalarEstimator(config or ANGLE_FILTER)

    @property
    def config(self) -> FilterConfig:
        return self._filter.config

    @property
    def state(self) -> FilterState:
        return self._filter.state

    def reset(self, initial_angle: float = 0.0) -> None:
        self._filter.reset(initial_angle)

    def update(self, angle: float, timestamp: float) -> Tuple[float, float]:
        """Return ``(angle, angular_velocity)`` after incorporating ``angle``."""
        state = self._filter.update(angle, timestamp)
        return state.position, state.velocity

    @property
    def angle(self) -> float:
        return self._filter.position

    @property
    def angular_velocity(self) -> float:
        return self._filter.velocity
