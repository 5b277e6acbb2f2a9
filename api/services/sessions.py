"""
Service helpers holding live detector sessions for the HTTP surface.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Sequence

from fastapi import HTTPException

from api.schemas import (
    AlertOut,
    FrameBatchResult,
    FrameIn,
    RepOut,
    SessionCreate,
    SessionStatus,
    SetOut,
)
from kbvbt.config import DetectorConfig
from kbvbt.repdetect.detector import SnatchDetector
from kbvbt.repdetect.models import FatigueAlert, Frame, RepData, SetData

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    In-memory map of session id -> detector. One registry per app instance; nothing is persisted.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, SnatchDetector] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, payload: SessionCreate) -> SnatchDetector:
        try:
            config = DetectorConfig.from_dict(payload.config)
            if payload.implement_mass is not None:
                config = replace(config, implement_mass=payload.implement_mass)
        except (TypeError, ValueError) as exc:
            raise HTTPException(status_code=422, detail=f"Invalid config: {exc}") from exc

        detector = SnatchDetector(config)
        detector.start(payload.hand)
        self._sessions[detector.session_id] = detector
        return detector

    def get(self, session_id: str) -> SnatchDetector:
        detector = self._sessions.get(session_id)
        if detector is None:
            raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
        return detector

    def get_running(self, session_id: str) -> SnatchDetector:
        """
        Like ``get`` but rejects sessions that have already been stopped.
        """
        detector = self.get(session_id)
        if detector.is_stopped:
            raise HTTPException(status_code=409, detail=f"Session {session_id} is stopped.")
        return detector

    def remove(self, session_id: str) -> None:
        self.get(session_id)
        del self._sessions[session_id]
        logger.info("session %s removed", session_id)


def session_status(detector: SnatchDetector) -> SessionStatus:
    finalized = detector.sets
    return SessionStatus(
        session_id=detector.session_id,
        phase=detector.phase,
        hand=detector.hand,
        active=detector.is_active,
        paused=detector.is_paused,
        stopped=detector.is_stopped,
        implement_mass=detector.implement_mass,
        reps_in_current_set=detector.reps_in_current_set,
        rep_in_progress=detector.rep_in_progress,
        total_reps=sum(s.total_reps for s in finalized),
        total_sets=len(finalized),
    )


def ingest_frames(detector: SnatchDetector, frames: Sequence[FrameIn]) -> FrameBatchResult:
    """
    Push a batch through the detector, collecting everything it publishes while doing so.
    """
    reps: List[RepData] = []
    sets: List[SetData] = []
    alerts: List[FatigueAlert] = []
    subscriptions = [
        detector.rep_finalized.subscribe(reps.append),
        detector.set_finalized.subscribe(sets.append),
        detector.fatigue_alert.subscribe(alerts.append),
    ]
    accepted = 0
    try:
        for item in frames:
            frame = Frame(
                timestamp=item.timestamp,
                vertical_velocity=item.vertical_velocity,
                height_ratio=item.height_ratio,
                joint_angles=item.joint_angles,
                hand=item.hand,
            )
            if detector.process_frame(frame):
                accepted += 1
    finally:
        for subscription in subscriptions:
            subscription.unsubscribe()

    return FrameBatchResult(
        accepted=accepted,
        phase=detector.phase,
        reps=[RepOut.model_validate(r) for r in reps],
        sets=[SetOut.model_validate(s) for s in sets],
        alerts=[AlertOut.model_validate(a) for a in alerts],
    )
