"""Snatch phase classification.

The state machine only answers "which phase are we in now"; opening,
finalizing and abandoning repetitions based on its transitions is the
detector's job.

Cycle::

    idle -> backswing -> hike -> pull -> punch -> lockout -> drop -> return
                ^          |                                          |
                +----------+ (abort)                                  |
                +-----------------------------------------------------+
    return -> idle once the bell has been still for long enough
"""

from __future__ import annotations

import logging
from typing import Optional

from kbvbt.config import HeightThresholds, VelocityThresholds
from kbvbt.repdetect.models import Phase, PhaseChange

logger = logging.getLogger(__name__)


class PhaseStateMachine:
    """Advances through :class:`Phase` values from per-frame signals."""

    def __init__(
        self,
        velocity: Optional[VelocityThresholds] = None,
        height: Optional[HeightThresholds] = None,
    ) -> None:
        self.velocity = velocity or VelocityThresholds()
        self.height = height or HeightThresholds()
        self._phase = Phase.IDLE
        self._phase_start_time: Optional[float] = None
        # Highest velocity seen since entering the current phase.
        self._phase_peak_velocity = 0.0

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def phase_start_time(self) -> Optional[float]:
        return self._phase_start_time

    @property
    def phase_peak_velocity(self) -> float:
        return self._phase_peak_velocity

    def phase_duration(self, timestamp: float) -> float:
        if self._phase_start_time is None:
            return 0.0
        return timestamp - self._phase_start_time

    def update(
        self,
        velocity: float,
        height_ratio: float,
        shoulder_abduction: float,
        timestamp: float,
    ) -> Optional[PhaseChange]:
        """Feed one frame; return the transition it caused, if any."""
        self._phase_peak_velocity = max(self._phase_peak_velocity, velocity)

        target = self._next_phase(velocity, height_ratio, shoulder_abduction, timestamp)
        if target is self._phase:
            return None
        return self._enter(target, timestamp, velocity)

    def force_idle(self, timestamp: float) -> Optional[PhaseChange]:
        """Drop straight back to idle; returns the change unless already idle."""
        if self._phase is Phase.IDLE:
            return None
        return self._enter(Phase.IDLE, timestamp, 0.0)

    def _enter(self, target: Phase, timestamp: float, velocity: float) -> PhaseChange:
        change = PhaseChange(previous=self._phase, current=target, timestamp=timestamp)
        self._phase = target
        self._phase_start_time = timestamp
        self._phase_peak_velocity = velocity
        logger.debug("phase %s -> %s at %.0f ms", change.previous.value, target.value, timestamp)
        return change

    def _is_backswing(self, velocity: float, height_ratio: float) -> bool:
        return (
            velocity < self.velocity.backswing_min
            and height_ratio < self.height.backswing_ratio
        )

    def _next_phase(
        self,
        velocity: float,
        height_ratio: float,
        shoulder_abduction: float,
        timestamp: float,
    ) -> Phase:
        v = self.velocity
        h = self.height
        near_shoulder = h.lockout_ratio * h.punch_height_fraction
        phase = self._phase

        if phase is Phase.IDLE:
            if self._is_backswing(velocity, height_ratio):
                return Phase.BACKSWING

        elif phase is Phase.BACKSWING:
            if velocity > 0 and height_ratio < h.backswing_ratio:
                return Phase.HIKE

        elif phase is Phase.HIKE:
            if velocity > v.pull_min:
                return Phase.PULL
            if velocity < v.backswing_min:
                return Phase.BACKSWING

        elif phase is Phase.PULL:
            if (
                height_ratio > near_shoulder
                and velocity < self._phase_peak_velocity * v.punch_velocity_fraction
            ):
                return Phase.PUNCH

        elif phase is Phase.PUNCH:
            if (
                abs(velocity) < v.lockout_max
                and height_ratio > h.lockout_ratio
                and shoulder_abduction > h.lockout_shoulder_angle
            ):
                return Phase.LOCKOUT

        elif phase is Phase.LOCKOUT:
            if velocity < v.drop_max:
                return Phase.DROP

        elif phase is Phase.DROP:
            if height_ratio < near_shoulder:
                return Phase.RETURN

        elif phase is Phase.RETURN:
            if self._is_backswing(velocity, height_ratio):
                return Phase.BACKSWING
            if abs(velocity) < v.idle_max and self.phase_duration(timestamp) > v.idle_hold_ms:
                return Phase.IDLE

        return phase
