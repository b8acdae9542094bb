from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class StudySessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    duration_seconds: int = Field(..., ge=0, alias="durationSeconds")
    started_at: Optional[datetime] = Field(None, alias="startedAt")
    ended_at: Optional[datetime] = Field(None, alias="endedAt")


class StudySessionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    saved: bool
    session_id: Optional[str] = Field(None, alias="sessionId")
    xp_awarded: int = Field(0, alias="xpAwarded")
    current_streak: Optional[int] = Field(None, alias="currentStreak")


class DashboardResponse(BaseModel):
    total_xp: int
    current_streak: int
    longest_streak: int
    last_study_date: Optional[str] = None
    study_time: str
    quizzes_taken: int
