"""
Doubt Solving Router

Streams step-by-step tutoring answers from the AI gateway as
Server-Sent Events. For signed-in students the conversation is saved:
the question before the gateway call, the answer afterwards in a
background task reading a second copy of the stream.
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from typing import Optional
import logging

from studymind.database import get_db
from studymind.dependencies.auth import get_current_user_id, get_optional_user_id
from studymind.models.models import DoubtMessage, DoubtSession
from studymind.schemas.doubts import (
    DoubtHistoryResponse,
    DoubtMessageOut,
    DoubtMessagesResponse,
    DoubtSessionOut,
    SolveDoubtRequest,
)
from studymind.services.ai_gateway import AIGateway, GatewayError, get_gateway
from studymind.services.background import spawn_background
from studymind.services.persistence import PersistenceWriter, get_persistence_writer
from studymind.services.stream_splitter import relay_stream, tee_stream

logger = logging.getLogger(__name__)

router = APIRouter(tags=["doubts"])

SESSION_HEADER = "X-Doubt-Session-Id"

SYSTEM_PROMPT = """You are an expert academic tutor helping students understand concepts clearly. When a student asks a doubt:

1. Provide a clear, step-by-step solution
2. Include a worked example when applicable
3. Highlight the key concept or insight
4. Use simple language appropriate for high school / early college students
5. Use markdown formatting: **bold** for emphasis, `code` for math expressions, numbered lists for steps

Structure your response as:
## Step-by-Step Solution
(numbered steps)

## Example
(a worked example)

## 💡 Key Concept
(the core insight in 1-2 sentences)"""

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


@router.post("/solve-doubt")
async def solve_doubt(
    request: SolveDoubtRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    gateway: AIGateway = Depends(get_gateway),
    writer: PersistenceWriter = Depends(get_persistence_writer),
):
    """
    Answer a student's doubt as a text/event-stream.

    The response body is the gateway's SSE stream, byte for byte. The
    X-Doubt-Session-Id header carries the session the answer belongs to
    (empty for anonymous callers) so the client can send follow-ups.
    """
    question = request.question
    if not question or not question.strip():
        raise HTTPException(status_code=400, detail="Question is required")

    try:
        doubt_session_id = request.session_id
        persist_session_id = None

        if user_id and not doubt_session_id:
            doubt_session_id = await run_in_threadpool(writer.create_doubt_session, user_id, question)
            persist_session_id = doubt_session_id
        elif user_id and doubt_session_id:
            if await run_in_threadpool(writer.session_belongs_to, doubt_session_id, user_id):
                await run_in_threadpool(writer.add_message, doubt_session_id, "user", question)
                persist_session_id = doubt_session_id
            else:
                logger.warning(f"Doubt session {doubt_session_id} not owned by {user_id}; not persisting")

        upstream = await gateway.stream_chat(SYSTEM_PROMPT, question)

        if persist_session_id:
            client_stream, save_stream = tee_stream(upstream)
            spawn_background(
                writer.persist_doubt_stream(save_stream, persist_session_id, user_id, upstream.model),
                name=f"persist-doubt-{persist_session_id}",
            )
        else:
            client_stream = relay_stream(upstream)

    except GatewayError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"solve-doubt error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e) or "Unknown error")

    return StreamingResponse(
        client_stream,
        media_type="text/event-stream",
        headers={**STREAM_HEADERS, SESSION_HEADER: doubt_session_id or ""},
    )


@router.get("/doubt-sessions", response_model=DoubtHistoryResponse)
def list_doubt_sessions(
    limit: int = 50,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """The signed-in student's doubt sessions, newest first."""
    if limit < 1 or limit > 200:
        limit = 50

    sessions = (
        db.query(DoubtSession)
        .filter(DoubtSession.user_id == user_id)
        .order_by(DoubtSession.created_at.desc())
        .limit(limit)
        .all()
    )
    return DoubtHistoryResponse(sessions=[DoubtSessionOut.model_validate(s) for s in sessions])


@router.get("/doubt-sessions/{session_id}/messages", response_model=DoubtMessagesResponse)
def get_doubt_messages(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Messages of one session in conversation order.

    SECURITY: Sessions of other users are reported as not found.
    """
    session = db.query(DoubtSession).filter(DoubtSession.id == session_id).first()
    if not session or session.user_id != user_id:
        raise HTTPException(status_code=404, detail="Doubt session not found")

    messages = (
        db.query(DoubtMessage)
        .filter(DoubtMessage.doubt_session_id == session_id)
        .order_by(DoubtMessage.created_at)
        .all()
    )
    return DoubtMessagesResponse(
        session=DoubtSessionOut.model_validate(session),
        messages=[DoubtMessageOut.model_validate(m) for m in messages],
    )
