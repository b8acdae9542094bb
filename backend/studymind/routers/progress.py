"""
Progress Router

Study timer sessions and the XP / streak dashboard.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from studymind.database import get_db
from studymind.dependencies.auth import get_current_user_id
from studymind.schemas.progress import DashboardResponse, StudySessionRequest, StudySessionResponse
from studymind.services.gamification import get_gamification_service

router = APIRouter(tags=["progress"])


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Columns store naive UTC
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@router.post("/study-sessions", response_model=StudySessionResponse)
def save_study_session(
    request: StudySessionRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Save a finished study timer session.

    Awards 5 XP per full minute and extends the daily streak. Sessions
    shorter than 10 seconds are acknowledged but not stored.
    """
    service = get_gamification_service()
    session = service.save_study_session(
        db,
        user_id,
        request.duration_seconds,
        started_at=_naive_utc(request.started_at),
        ended_at=_naive_utc(request.ended_at),
    )
    if session is None:
        return StudySessionResponse(saved=False)

    streak = service.get_or_create_streak(db, user_id)
    return StudySessionResponse(
        saved=True,
        session_id=session.id,
        xp_awarded=session.xp_awarded,
        current_streak=streak.current_streak,
    )


@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Total XP, streaks, study time and quiz count for the signed-in student."""
    return get_gamification_service().get_dashboard(db, user_id)
