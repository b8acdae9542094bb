"""
StudyMind Schemas Package

Pydantic models for request/response validation and the structured
AI tool-call payloads.
"""

from studymind.schemas.quiz import (
    GeneratedQuiz,
    GeneratedQuizQuestion,
    QuizPayloadError,
    parse_quiz_arguments,
    QUIZ_TOOL,
    GenerateQuizRequest,
    GenerateQuizResponse,
    QuizAttemptRequest,
    QuizAttemptResponse,
)
from studymind.schemas.doubts import (
    SolveDoubtRequest,
    DoubtSessionOut,
    DoubtMessageOut,
    DoubtHistoryResponse,
    DoubtMessagesResponse,
)
from studymind.schemas.materials import (
    ProcessMaterialRequest,
    ProcessMaterialResponse,
    QueryMaterialRequest,
    MaterialOut,
    MaterialListResponse,
)
from studymind.schemas.progress import (
    StudySessionRequest,
    StudySessionResponse,
    DashboardResponse,
)

__all__ = [
    "GeneratedQuiz",
    "GeneratedQuizQuestion",
    "QuizPayloadError",
    "parse_quiz_arguments",
    "QUIZ_TOOL",
    "GenerateQuizRequest",
    "GenerateQuizResponse",
    "QuizAttemptRequest",
    "QuizAttemptResponse",
    "SolveDoubtRequest",
    "DoubtSessionOut",
    "DoubtMessageOut",
    "DoubtHistoryResponse",
    "DoubtMessagesResponse",
    "ProcessMaterialRequest",
    "ProcessMaterialResponse",
    "QueryMaterialRequest",
    "MaterialOut",
    "MaterialListResponse",
    "StudySessionRequest",
    "StudySessionResponse",
    "DashboardResponse",
]
