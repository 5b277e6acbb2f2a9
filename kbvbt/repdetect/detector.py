"""Kettlebell snatch session detector.

One :class:`SnatchDetector` owns everything a tracking session accumulates:
the phase state machine, sample histories, rep/set aggregation and the
fatigue baseline. Frames are pushed in one at a time and processed to
completion before the call returns; events are published synchronously from
inside :meth:`SnatchDetector.process_frame`.

Typical use::

    detector = SnatchDetector(DetectorConfig(implement_mass=24))
    detector.rep_finalized.subscribe(lambda rep: print(rep.rep_number))
    detector.start(Hand.RIGHT)
    for frame in frames:
        detector.process_frame(frame)
    session = detector.stop()
"""

from __future__ import annotations

import logging
from typing import List, Optional, Union
from uuid import uuid4

import numpy as np

from kbvbt.config import DetectorConfig
from kbvbt.events import EventChannel
from kbvbt.repdetect.aggregator import RepSetAggregator
from kbvbt.repdetect.fatigue import FatigueAnalyzer
from kbvbt.repdetect.models import (
    FatigueAlert,
    Frame,
    Hand,
    Phase,
    PhaseChange,
    PhaseInterval,
    RepData,
    SessionSnapshot,
    SetData,
)
from kbvbt.repdetect.phases import PhaseStateMachine
from kbvbt.signals.kinematics import angle_key

logger = logging.getLogger(__name__)


class DetectorStateError(RuntimeError):
    """Raised when a detector is driven through an invalid lifecycle step."""


class SnatchDetector:
    """Segments a stream of :class:`Frame` objects into reps, sets and alerts.

    Event channels (subscribe with ``channel.subscribe(callback)``):
        phase_changed: :class:`PhaseChange` on every phase transition.
        rep_finalized: :class:`RepData` when a rep completes its lockout.
        set_finalized: :class:`SetData` when a set closes with enough reps.
        fatigue_alert: :class:`FatigueAlert` for each baseline deviation.
    """

    def __init__(self, config: Optional[DetectorConfig] = None, session_id: Optional[str] = None) -> None:
        self.config = config or DetectorConfig()
        self.session_id = session_id or uuid4().hex

        self.phase_changed: EventChannel[PhaseChange] = EventChannel("phase_changed")
        self.rep_finalized: EventChannel[RepData] = EventChannel("rep_finalized")
        self.set_finalized: EventChannel[SetData] = EventChannel("set_finalized")
        self.fatigue_alert: EventChannel[FatigueAlert] = EventChannel("fatigue_alert")

        self._machine = PhaseStateMachine(self.config.velocity, self.config.height)
        self._aggregator = RepSetAggregator(
            implement_mass=self.config.implement_mass,
            set_detection=self.config.set_detection,
            history_length=self.config.history_length,
        )
        self._fatigue = FatigueAnalyzer(self.config.fatigue)

        self._hand = Hand.RIGHT
        self._active = False
        self._paused = False
        self._stopped = False
        self._final_snapshot: Optional[SessionSnapshot] = None

        self._start_time: Optional[float] = None
        self._last_timestamp: Optional[float] = None

        # Open repetition buffer.
        self._rep_start_time: Optional[float] = None
        self._rep_phases: List[PhaseInterval] = []
        self._interval_start: Optional[float] = None

    # Lifecycle -----------------------------------------------------------

    def start(self, hand: Union[Hand, str] = Hand.RIGHT) -> None:
        """Begin accepting frames for the given hand."""
        if self._stopped:
            raise DetectorStateError("Session already stopped; create a new detector.")
        self._hand = Hand(hand)
        self._active = True
        self._paused = False
        self.reset()
        logger.info("session %s started (%s hand)", self.session_id, self._hand.value)

    def pause(self) -> None:
        """Ignore incoming frames; filter, phase and set state are kept."""
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def reset(self) -> None:
        """Return to idle and drop sample history; finalized reps and sets are kept."""
        if self._stopped:
            raise DetectorStateError("Session already stopped; create a new detector.")
        timestamp = self._last_timestamp if self._last_timestamp is not None else 0.0
        change = self._machine.force_idle(timestamp)
        if change is not None:
            self._on_transition(change)
        self._discard_open_rep()
        self._aggregator.clear_history()

    def stop(self) -> SessionSnapshot:
        """Finalize the in-progress set and return the session summary.

        An open (not yet locked out) rep is discarded. Calling ``stop`` again
        returns the same snapshot.
        """

        if self._final_snapshot is not None:
            return self._final_snapshot
        self._discard_open_rep()
        self._finalize_set()
        self._active = False
        self._stopped = True
        self._final_snapshot = self.snapshot()
        logger.info(
            "session %s stopped: %d sets, %d reps",
            self.session_id,
            self._final_snapshot.total_sets,
            self._final_snapshot.total_reps,
        )
        return self._final_snapshot

    def switch_hand(self, hand: Union[Hand, str]) -> Optional[SetData]:
        """Change the tracked hand, closing the current set first.

        Returns the closed set, if it had enough reps to be kept.
        """
        if self._stopped:
            raise DetectorStateError("Session already stopped; create a new detector.")
        hand = Hand(hand)
        if hand is self._hand:
            return None
        set_data = self._finalize_set()
        self._hand = hand
        logger.info("session %s switched to %s hand", self.session_id, hand.value)
        return set_data

    def set_implement_mass(self, mass: float) -> None:
        if mass <= 0:
            raise ValueError("implement mass must be positive")
        self._aggregator.implement_mass = float(mass)

    # Frame processing ----------------------------------------------------

    def process_frame(self, frame: Frame) -> bool:
        """Run one frame through classification, aggregation and fatigue checks.

        Returns:
            False if the frame was ignored because the detector is not
            started, paused or stopped.
        """

        if not self._active or self._paused:
            return False

        timestamp = frame.timestamp
        if self._start_time is None:
            self._start_time = timestamp
        self._last_timestamp = timestamp

        self._aggregator.record(
            timestamp, frame.vertical_velocity, frame.height_ratio, frame.joint_angles
        )
        shoulder = frame.joint_angles.get(angle_key(self._hand.value, "shoulder_abduction"), 0.0)
        change = self._machine.update(
            frame.vertical_velocity, frame.height_ratio, shoulder, timestamp
        )
        if change is not None:
            self._on_transition(change)

        last_rep_end = self._aggregator.last_rep_end_time
        if (
            self._aggregator.current_set_reps
            and self._machine.phase is Phase.IDLE
            and last_rep_end is not None
            and timestamp - last_rep_end > self.config.set_detection.max_rep_gap_ms
        ):
            self._finalize_set()
        return True

    def _on_transition(self, change: PhaseChange) -> None:
        if self.rep_in_progress and self._interval_start is not None:
            self._rep_phases.append(
                PhaseInterval(change.previous, self._interval_start, change.timestamp)
            )
        self._interval_start = change.timestamp

        self.phase_changed.publish(change)

        if change.current is Phase.BACKSWING and not self.rep_in_progress:
            self._rep_start_time = change.timestamp
            self._rep_phases = []
        elif change.previous is Phase.LOCKOUT and change.current is Phase.DROP:
            if self.rep_in_progress:
                self._finalize_rep(change.timestamp)
        elif change.current is Phase.IDLE and self.rep_in_progress:
            logger.debug("rep abandoned at %.0f ms", change.timestamp)
            self._discard_open_rep()

    def _discard_open_rep(self) -> None:
        self._rep_start_time = None
        self._rep_phases = []

    def _finalize_rep(self, timestamp: float) -> None:
        start_time = self._rep_start_time
        phases = self._rep_phases
        self._discard_open_rep()

        rep = self._aggregator.finalize_rep(start_time, timestamp, phases, self._hand)
        alerts = self._fatigue.observe(rep, set_number=self._aggregator.set_count + 1)

        self.rep_finalized.publish(rep)
        for alert in alerts:
            self.fatigue_alert.publish(alert)

    def _finalize_set(self) -> Optional[SetData]:
        set_data = self._aggregator.finalize_set(self._hand)
        self._fatigue.reset()
        if set_data is not None:
            self.set_finalized.publish(set_data)
        return set_data

    # Accessors -----------------------------------------------------------

    @property
    def phase(self) -> Phase:
        return self._machine.phase

    @property
    def hand(self) -> Hand:
        return self._hand

    @property
    def implement_mass(self) -> float:
        return self._aggregator.implement_mass

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    @property
    def rep_in_progress(self) -> bool:
        return self._rep_start_time is not None

    @property
    def reps_in_current_set(self) -> int:
        return len(self._aggregator.current_set_reps)

    @property
    def current_set_reps(self) -> List[RepData]:
        return self._aggregator.current_set_reps

    @property
    def sets(self) -> List[SetData]:
        return self._aggregator.sets

    @property
    def fatigue_alerts(self) -> List[FatigueAlert]:
        return self._fatigue.alerts

    def snapshot(self) -> SessionSnapshot:
        """Summary of finalized sets so far (reps of an open set are excluded)."""
        sets = tuple(self._aggregator.sets)
        reps = [rep for s in sets for rep in s.reps]
        velocities = [r.peak_velocity for r in reps]
        powers = [r.power for r in reps]

        start = self._start_time
        end = self._last_timestamp
        duration = end - start if start is not None and end is not None else 0.0

        return SessionSnapshot(
            session_id=self.session_id,
            start_time=start,
            end_time=end,
            duration=duration,
            implement_mass=self.implement_mass,
            sets=sets,
            total_reps=len(reps),
            total_sets=len(sets),
            average_velocity=float(np.mean(velocities)) if velocities else 0.0,
            peak_velocity=float(np.max(velocities)) if velocities else 0.0,
            average_power=float(np.mean(powers)) if powers else 0.0,
            total_work=sum(r.power * r.duration / 1000.0 for r in reps),
            fatigue_alerts=tuple(self._fatigue.alerts),
            velocity_history=tuple(self._aggregator.velocity_history),
        )
