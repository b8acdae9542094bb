from sqlalchemy import Column, String, Integer, Float, Boolean, DateTime, Date, JSON, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from studymind.database import Base

def generate_uuid():
    return str(uuid.uuid4())


# User ids come from the external auth provider (JWT "sub" claim), so there is
# no local users table and user_id columns are plain strings.


class DoubtSession(Base):
    """A conversation started by a student's first question"""
    __tablename__ = "doubt_sessions"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, nullable=False, index=True)
    question_preview = Column(String, nullable=False)  # First 200 chars of the initiating question
    topic_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    messages = relationship(
        "DoubtMessage",
        back_populates="session",
        order_by="DoubtMessage.created_at",
        cascade="all, delete-orphan",
    )


class DoubtMessage(Base):
    __tablename__ = "doubt_messages"

    id = Column(String, primary_key=True, default=generate_uuid)
    doubt_session_id = Column(String, ForeignKey("doubt_sessions.id"), nullable=False, index=True)
    role = Column(String, nullable=False)  # "user" or "assistant"
    message_text = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    session = relationship("DoubtSession", back_populates="messages")


class Material(Base):
    """An uploaded study document"""
    __tablename__ = "materials"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, nullable=False, index=True)
    file_name = Column(String, nullable=False)
    storage_path = Column(String, nullable=False)  # Key inside the materials bucket
    content_type = Column(String, nullable=True)
    file_size = Column(Integer, nullable=True)
    extracted_text = Column(Text, nullable=True)  # Null until processed
    processing_status = Column(String, default="processing", index=True)  # "processing", "ready", "error"
    uploaded_at = Column(DateTime, default=datetime.utcnow)

    chunks = relationship(
        "MaterialChunk",
        back_populates="material",
        order_by="MaterialChunk.chunk_index",
        cascade="all, delete-orphan",
    )


class MaterialChunk(Base):
    """Paragraph-aligned window of a material's extracted text"""
    __tablename__ = "material_chunks"

    id = Column(String, primary_key=True, default=generate_uuid)
    material_id = Column(String, ForeignKey("materials.id"), nullable=False, index=True)
    chunk_index = Column(Integer, nullable=False)
    chunk_text = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    material = relationship("Material", back_populates="chunks")


class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(String, primary_key=True, default=generate_uuid)
    topic_id = Column(String, nullable=True, index=True)
    generated_by_ai = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        order_by="QuizQuestion.position",
        cascade="all, delete-orphan",
    )


class QuizQuestion(Base):
    __tablename__ = "quiz_questions"

    id = Column(String, primary_key=True, default=generate_uuid)
    quiz_id = Column(String, ForeignKey("quizzes.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    question_text = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)  # Ordered list of 4 option strings
    correct_answer = Column(String, nullable=False)  # Index into options, stored as string
    explanation = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    quiz = relationship("Quiz", back_populates="questions")


class QuizAttempt(Base):
    """A finished quiz run by a student"""
    __tablename__ = "quiz_attempts"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, nullable=False, index=True)
    quiz_id = Column(String, ForeignKey("quizzes.id"), nullable=True)
    topic_id = Column(String, nullable=True)
    topic_title = Column(String, nullable=False, default="")
    score = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    xp_awarded = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class AiUsageLog(Base):
    """Append-only audit trail, one row per AI call"""
    __tablename__ = "ai_usage_logs"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, nullable=False, index=True)
    feature_type = Column(String, nullable=False, index=True)  # "quiz", "doubt", "material", "extraction"
    model_name = Column(String, nullable=True)
    prompt_tokens = Column(Integer, nullable=True)
    completion_tokens = Column(Integer, nullable=True)
    total_tokens = Column(Integer, nullable=True)
    estimated_cost = Column(Float, nullable=True)
    request_status = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class XpLog(Base):
    """Append-only XP ledger; totals are summed on read"""
    __tablename__ = "xp_logs"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, nullable=False, index=True)
    source_type = Column(String, nullable=False)  # "quiz", "study_session"
    reference_id = Column(String, nullable=True)
    xp_amount = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class StudySession(Base):
    __tablename__ = "study_sessions"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, nullable=False, index=True)
    started_at = Column(DateTime, nullable=False)
    ended_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Integer, nullable=False, default=0)
    xp_awarded = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)


class UserStreak(Base):
    __tablename__ = "user_streaks"

    user_id = Column(String, primary_key=True)
    current_streak = Column(Integer, default=0)
    longest_streak = Column(Integer, default=0)
    last_study_date = Column(Date, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
