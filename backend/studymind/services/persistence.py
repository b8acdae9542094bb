"""
Persistence Writer

Writes the outcome of AI calls to the database: doubt sessions and
messages, generated quizzes, and the ai_usage_logs audit trail.

Every write is best-effort. Failures are logged and reported to Sentry,
then swallowed: by the time we persist, the student already has their
answer, and bookkeeping must never turn that into an error. Writes are
independent statements, not one transaction, so partial rows (a session
without its assistant message) are possible when something fails midway.
"""

import logging
from typing import AsyncIterator, Callable, Optional

import sentry_sdk
from fastapi import Depends
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from studymind.config import QUESTION_PREVIEW_MAX_CHARS
from studymind.database import get_session_factory
from studymind.models.models import AiUsageLog, DoubtMessage, DoubtSession, Quiz, QuizQuestion
from studymind.schemas.quiz import GeneratedQuiz
from studymind.services.ai_gateway import TokenUsage
from studymind.services.sse_parser import collect_stream_text

logger = logging.getLogger(__name__)


class PersistenceWriter:
    """Best-effort writer; every method opens and closes its own session."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def _report(self, what: str, exc: Exception) -> None:
        logger.error(f"Error persisting {what}: {exc}", exc_info=True)
        sentry_sdk.capture_exception(exc)

    # ------------------------------------------------------------------
    # Doubt solving
    # ------------------------------------------------------------------

    def create_doubt_session(self, user_id: str, question: str) -> Optional[str]:
        """Insert a new session and its opening user message. Returns the session id."""
        db = self._session_factory()
        try:
            session = DoubtSession(
                user_id=user_id,
                question_preview=question[:QUESTION_PREVIEW_MAX_CHARS],
            )
            db.add(session)
            db.commit()
            session_id = session.id
        except Exception as e:
            db.rollback()
            self._report("doubt session", e)
            return None
        finally:
            db.close()

        self.add_message(session_id, "user", question)
        return session_id

    def session_belongs_to(self, session_id: str, user_id: str) -> bool:
        db = self._session_factory()
        try:
            session = db.query(DoubtSession).filter(DoubtSession.id == session_id).first()
            return session is not None and session.user_id == user_id
        except Exception as e:
            self._report("doubt session lookup", e)
            return False
        finally:
            db.close()

    def add_message(self, session_id: str, role: str, text: str) -> bool:
        db = self._session_factory()
        try:
            db.add(DoubtMessage(doubt_session_id=session_id, role=role, message_text=text))
            db.commit()
            return True
        except Exception as e:
            db.rollback()
            self._report(f"{role} doubt message", e)
            return False
        finally:
            db.close()

    async def persist_doubt_stream(
        self,
        stream: AsyncIterator[bytes],
        session_id: str,
        user_id: str,
        model: str,
    ) -> None:
        """
        Drain the persistence branch of a streamed answer, then save it.

        Runs as a detached task; database calls go through the threadpool so
        the event loop keeps serving the client branch.
        """
        try:
            full_response = await collect_stream_text(stream)
        except Exception as e:
            self._report("doubt response stream", e)
            return

        if full_response:
            await run_in_threadpool(self.add_message, session_id, "assistant", full_response)

        await run_in_threadpool(self.log_ai_usage, user_id, "doubt", model)

    # ------------------------------------------------------------------
    # Quizzes
    # ------------------------------------------------------------------

    def save_quiz(self, quiz: GeneratedQuiz, topic_id: Optional[str] = None) -> Optional[str]:
        """Insert a quiz and its questions together. Returns the quiz id or None."""
        db = self._session_factory()
        try:
            quiz_row = Quiz(topic_id=topic_id, generated_by_ai=True)
            db.add(quiz_row)
            db.flush()

            for position, q in enumerate(quiz.questions):
                db.add(QuizQuestion(
                    quiz_id=quiz_row.id,
                    position=position,
                    question_text=q.question,
                    options=list(q.options),
                    correct_answer=str(q.correct),
                    explanation=q.explanation or "",
                ))

            db.commit()
            return quiz_row.id
        except Exception as e:
            db.rollback()
            self._report("quiz", e)
            return None
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Usage accounting
    # ------------------------------------------------------------------

    def log_ai_usage(
        self,
        user_id: str,
        feature_type: str,
        model_name: str,
        usage: Optional[TokenUsage] = None,
        request_status: str = "success",
    ) -> bool:
        db = self._session_factory()
        try:
            usage = usage or TokenUsage()
            db.add(AiUsageLog(
                user_id=user_id,
                feature_type=feature_type,
                model_name=model_name,
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
                request_status=request_status,
            ))
            db.commit()
            return True
        except Exception as e:
            db.rollback()
            self._report(f"{feature_type} usage log", e)
            return False
        finally:
            db.close()


def get_persistence_writer(
    session_factory: Callable[[], Session] = Depends(get_session_factory),
) -> PersistenceWriter:
    """FastAPI dependency building a writer on the configured session factory."""
    return PersistenceWriter(session_factory)
