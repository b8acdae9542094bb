"""
Quiz Router

AI quiz generation plus recording of finished quiz attempts.
Generation succeeds independently of persistence: if the quiz cannot be
saved the questions are still returned, with a null quizId.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from typing import Any, Dict, Optional
import logging

from studymind.database import get_db
from studymind.dependencies.auth import get_current_user_id, get_optional_user_id
from studymind.models.models import Quiz
from studymind.schemas.quiz import (
    GenerateQuizRequest,
    GenerateQuizResponse,
    QuizAttemptRequest,
    QuizAttemptResponse,
    QuizPayloadError,
)
from studymind.services.ai_gateway import AIGateway, GatewayError, get_gateway
from studymind.services.gamification import QuizNotFoundError, get_gamification_service
from studymind.services.persistence import PersistenceWriter, get_persistence_writer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["quiz"])


@router.post("/generate-quiz", response_model=GenerateQuizResponse)
async def generate_quiz(
    request: GenerateQuizRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    gateway: AIGateway = Depends(get_gateway),
    writer: PersistenceWriter = Depends(get_persistence_writer),
):
    """
    Generate `count` multiple-choice questions (4 options each) on a topic.

    Usage is logged against the caller when a valid bearer token is sent.
    """
    topic = (request.topic or "").strip()
    if not topic:
        raise HTTPException(status_code=400, detail="Topic is required")

    try:
        generation = await gateway.generate_quiz(topic, request.subject, request.count)
    except GatewayError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except QuizPayloadError as e:
        logger.error(f"generate-quiz payload error: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"generate-quiz error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e) or "Unknown error")

    quiz = generation.quiz
    # Models occasionally overshoot the requested count
    if len(quiz.questions) > request.count:
        quiz.questions = quiz.questions[:request.count]

    quiz_id = await run_in_threadpool(writer.save_quiz, quiz, request.topic_id)
    if user_id:
        await run_in_threadpool(writer.log_ai_usage, user_id, "quiz", generation.model, generation.usage)

    return GenerateQuizResponse(questions=quiz.questions, quiz_id=quiz_id)


@router.get("/quizzes/{quiz_id}")
def get_quiz(quiz_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Stored quiz with its questions, in the same shape generate-quiz returns."""
    quiz = db.query(Quiz).filter(Quiz.id == quiz_id).first()
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")

    return {
        "quizId": quiz.id,
        "topicId": quiz.topic_id,
        "questions": [
            {
                "question": q.question_text,
                "options": q.options,
                "correct": int(q.correct_answer),
                "explanation": q.explanation or "",
            }
            for q in quiz.questions
        ],
    }


@router.post("/quiz-attempts", response_model=QuizAttemptResponse)
def submit_quiz_attempt(
    request: QuizAttemptRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Record a finished quiz and award XP (10 per correct answer).

    With quizId + answers the score is graded against the stored quiz;
    otherwise the client-reported score is used.
    """
    service = get_gamification_service()
    try:
        attempt = service.record_quiz_attempt(
            db,
            user_id,
            quiz_id=request.quiz_id,
            answers=request.answers,
            score=request.score,
            total_questions=request.total_questions,
            topic_id=request.topic_id,
            topic_title=request.topic_title,
        )
    except QuizNotFoundError:
        raise HTTPException(status_code=404, detail="Quiz not found")

    return QuizAttemptResponse(
        attempt_id=attempt.id,
        score=attempt.score,
        total_questions=attempt.total_questions,
        xp_awarded=attempt.xp_awarded,
    )
