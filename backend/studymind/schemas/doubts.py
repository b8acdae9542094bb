from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SolveDoubtRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: Optional[str] = None
    session_id: Optional[str] = Field(None, alias="sessionId")


class DoubtSessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    question_preview: str
    topic_id: Optional[str] = None
    created_at: datetime


class DoubtMessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    role: str
    message_text: str
    created_at: datetime


class DoubtHistoryResponse(BaseModel):
    sessions: List[DoubtSessionOut]


class DoubtMessagesResponse(BaseModel):
    session: DoubtSessionOut
    messages: List[DoubtMessageOut]
