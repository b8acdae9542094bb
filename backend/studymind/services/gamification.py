"""
Gamification Service.
XP awards, daily study streaks and the dashboard summary.

XP is an append-only ledger (xp_logs) summed on read. A streak counts
consecutive UTC calendar days with at least one study session or finished
quiz; missing a full day resets it to 1 on the next activity.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from studymind.models.models import Quiz, QuizAttempt, StudySession, UserStreak, XpLog

logger = logging.getLogger(__name__)

XP_PER_STUDY_MINUTE = 5
XP_PER_CORRECT_ANSWER = 10
MIN_STUDY_SESSION_SECONDS = 10


class QuizNotFoundError(LookupError):
    pass


def study_session_xp(duration_seconds: int) -> int:
    return (max(duration_seconds, 0) // 60) * XP_PER_STUDY_MINUTE


def quiz_xp(score: int) -> int:
    return max(score, 0) * XP_PER_CORRECT_ANSWER


def grade_answers(correct_answers: List[str], answers: List[Optional[int]]) -> int:
    """Count answers matching the stored correct index. Missing answers score zero."""
    score = 0
    for i, correct in enumerate(correct_answers):
        if i < len(answers) and answers[i] is not None and str(answers[i]) == correct:
            score += 1
    return score


class GamificationService:
    """
    Service for XP and streak bookkeeping.

    Each public write stages every row it touches (the activity, its XP log
    and the streak) and commits them together.
    """

    def get_or_create_streak(self, db: Session, user_id: str) -> UserStreak:
        streak = db.query(UserStreak).filter(UserStreak.user_id == user_id).first()
        if not streak:
            streak = UserStreak(user_id=user_id, current_streak=0, longest_streak=0)
            db.add(streak)
            db.flush()
        return streak

    def touch_streak(self, db: Session, user_id: str, today: Optional[date] = None) -> UserStreak:
        """Register activity for `today` (UTC) without committing."""
        today = today or datetime.utcnow().date()
        streak = self.get_or_create_streak(db, user_id)
        last = streak.last_study_date

        if last == today:
            new_streak = streak.current_streak or 1
        elif last == today - timedelta(days=1):
            new_streak = (streak.current_streak or 0) + 1
        else:
            new_streak = 1

        streak.current_streak = new_streak
        streak.longest_streak = max(new_streak, streak.longest_streak or 0)
        streak.last_study_date = today
        return streak

    def save_study_session(
        self,
        db: Session,
        user_id: str,
        duration_seconds: int,
        started_at: Optional[datetime] = None,
        ended_at: Optional[datetime] = None,
    ) -> Optional[StudySession]:
        """
        Record a finished timer session and award its XP.

        Returns None (nothing written) for sessions under 10 seconds.
        """
        if duration_seconds < MIN_STUDY_SESSION_SECONDS:
            return None

        ended_at = ended_at or datetime.utcnow()
        started_at = started_at or ended_at - timedelta(seconds=duration_seconds)
        xp = study_session_xp(duration_seconds)

        session = StudySession(
            user_id=user_id,
            started_at=started_at,
            ended_at=ended_at,
            duration_seconds=duration_seconds,
            xp_awarded=xp,
        )
        db.add(session)
        db.flush()

        if xp > 0:
            db.add(XpLog(user_id=user_id, source_type="study_session", reference_id=session.id, xp_amount=xp))

        self.touch_streak(db, user_id, today=ended_at.date())
        db.commit()
        db.refresh(session)

        logger.info(f"Study session saved for {user_id}: {duration_seconds}s, +{xp} XP")
        return session

    def record_quiz_attempt(
        self,
        db: Session,
        user_id: str,
        quiz_id: Optional[str] = None,
        answers: Optional[List[Optional[int]]] = None,
        score: Optional[int] = None,
        total_questions: Optional[int] = None,
        topic_id: Optional[str] = None,
        topic_title: str = "",
    ) -> QuizAttempt:
        """
        Record a finished quiz. With a quiz id and answers the score is
        computed here against the stored questions.

        Raises:
            QuizNotFoundError: quiz_id given but no such quiz
        """
        if quiz_id is not None:
            quiz = db.query(Quiz).filter(Quiz.id == quiz_id).first()
            if not quiz:
                raise QuizNotFoundError(quiz_id)
            if answers is not None:
                correct_answers = [q.correct_answer for q in quiz.questions]
                score = grade_answers(correct_answers, answers)
                total_questions = len(correct_answers)
            topic_id = topic_id or quiz.topic_id

        xp = quiz_xp(score or 0)
        attempt = QuizAttempt(
            user_id=user_id,
            quiz_id=quiz_id,
            topic_id=topic_id,
            topic_title=topic_title,
            score=score or 0,
            total_questions=total_questions or 0,
            xp_awarded=xp,
        )
        db.add(attempt)
        db.flush()

        if xp > 0:
            db.add(XpLog(user_id=user_id, source_type="quiz", reference_id=attempt.id, xp_amount=xp))

        self.touch_streak(db, user_id)
        db.commit()
        db.refresh(attempt)

        logger.info(f"Quiz attempt saved for {user_id}: {attempt.score}/{attempt.total_questions}, +{xp} XP")
        return attempt

    def total_xp(self, db: Session, user_id: str) -> int:
        total = db.query(func.coalesce(func.sum(XpLog.xp_amount), 0)).filter(XpLog.user_id == user_id).scalar()
        return int(total or 0)

    def get_dashboard(self, db: Session, user_id: str) -> Dict[str, Any]:
        streak = db.query(UserStreak).filter(UserStreak.user_id == user_id).first()
        total_seconds = db.query(
            func.coalesce(func.sum(StudySession.duration_seconds), 0)
        ).filter(StudySession.user_id == user_id).scalar() or 0
        quiz_count = db.query(func.count(QuizAttempt.id)).filter(QuizAttempt.user_id == user_id).scalar() or 0

        return {
            "total_xp": self.total_xp(db, user_id),
            "current_streak": streak.current_streak if streak else 0,
            "longest_streak": streak.longest_streak if streak else 0,
            "last_study_date": streak.last_study_date.isoformat() if streak and streak.last_study_date else None,
            "study_time": f"{int(total_seconds) / 3600:.1f}h",
            "quizzes_taken": int(quiz_count),
        }


_gamification_service: Optional[GamificationService] = None


def get_gamification_service() -> GamificationService:
    """Get the singleton GamificationService instance."""
    global _gamification_service
    if _gamification_service is None:
        _gamification_service = GamificationService()
    return _gamification_service
