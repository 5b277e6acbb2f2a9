from __future__ import annotations

from fastapi import APIRouter, Request, Response

from api.schemas import (
    FrameBatch,
    FrameBatchResult,
    HandUpdate,
    MassUpdate,
    SessionCreate,
    SessionStatus,
    SessionSummary,
)
from api.services.sessions import SessionRegistry, ingest_frames, session_status

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


@router.post("", response_model=SessionStatus, status_code=201)
async def create_session(payload: SessionCreate, request: Request) -> SessionStatus:
    """
    Open a new tracking session. The detector is started immediately for the requested hand.
    """
    detector = _registry(request).create(payload)
    return session_status(detector)


@router.get("/{session_id}", response_model=SessionStatus)
async def get_session(session_id: str, request: Request) -> SessionStatus:
    return session_status(_registry(request).get(session_id))


@router.post("/{session_id}/frames", response_model=FrameBatchResult)
async def push_frames(session_id: str, batch: FrameBatch, request: Request) -> FrameBatchResult:
    """
    Process frames in order. Reps, sets and alerts finalized by this batch are returned with it.
    """
    detector = _registry(request).get_running(session_id)
    return ingest_frames(detector, batch.frames)


@router.post("/{session_id}/pause", response_model=SessionStatus)
async def pause_session(session_id: str, request: Request) -> SessionStatus:
    detector = _registry(request).get_running(session_id)
    detector.pause()
    return session_status(detector)


@router.post("/{session_id}/resume", response_model=SessionStatus)
async def resume_session(session_id: str, request: Request) -> SessionStatus:
    detector = _registry(request).get_running(session_id)
    detector.resume()
    return session_status(detector)


@router.put("/{session_id}/hand", response_model=SessionStatus)
async def switch_hand(session_id: str, payload: HandUpdate, request: Request) -> SessionStatus:
    detector = _registry(request).get_running(session_id)
    detector.switch_hand(payload.hand)
    return session_status(detector)


@router.put("/{session_id}/mass", response_model=SessionStatus)
async def set_mass(session_id: str, payload: MassUpdate, request: Request) -> SessionStatus:
    detector = _registry(request).get_running(session_id)
    detector.set_implement_mass(payload.implement_mass)
    return session_status(detector)


@router.post("/{session_id}/stop", response_model=SessionSummary)
async def stop_session(session_id: str, request: Request) -> SessionSummary:
    """
    Finalize the current set and return the session summary. Safe to call more than once.
    """
    detector = _registry(request).get(session_id)
    return SessionSummary.model_validate(detector.stop())


@router.delete("/{session_id}", status_code=204)
async def delete_session(session_id: str, request: Request) -> Response:
    _registry(request).remove(session_id)
    return Response(status_code=204)
