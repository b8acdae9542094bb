"""
Quiz Schemas for StudyMind

Pydantic models for the structured quiz payload returned by the AI
gateway's `generate_quiz` tool call, plus the request bodies of the quiz
endpoints. Tool-call arguments are validated into these models as soon as
they arrive so nothing downstream touches untyped JSON.
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator


OPTIONS_PER_QUESTION = 4


class QuizPayloadError(ValueError):
    """Raised when the gateway's tool-call output is missing or malformed."""
    pass


# =============================================================================
# GENERATED QUIZ (tool-call output)
# =============================================================================

class GeneratedQuizQuestion(BaseModel):
    question: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=OPTIONS_PER_QUESTION, max_length=OPTIONS_PER_QUESTION)
    correct: int = Field(..., description="Index of the correct option (0-3)")
    explanation: str = ""

    @model_validator(mode="after")
    def correct_within_options(self) -> "GeneratedQuizQuestion":
        if not 0 <= self.correct < len(self.options):
            raise ValueError(
                f"correct index {self.correct} is outside 0..{len(self.options) - 1}"
            )
        return self


class GeneratedQuiz(BaseModel):
    questions: List[GeneratedQuizQuestion]


def parse_quiz_arguments(arguments: Optional[str]) -> GeneratedQuiz:
    """
    Parse the raw JSON `arguments` string of a generate_quiz tool call.

    Raises:
        QuizPayloadError: If there are no arguments or they fail validation
    """
    if not arguments:
        raise QuizPayloadError("No quiz generated")
    try:
        return GeneratedQuiz.model_validate_json(arguments)
    except ValidationError as e:
        raise QuizPayloadError(f"Invalid quiz payload: {e.error_count()} validation error(s)") from e


# JSON schema handed to the gateway as the generate_quiz tool parameters.
QUIZ_TOOL = {
    "type": "function",
    "function": {
        "name": "generate_quiz",
        "description": "Return quiz questions as structured data",
        "parameters": {
            "type": "object",
            "properties": {
                "questions": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "question": {"type": "string"},
                            "options": {
                                "type": "array",
                                "items": {"type": "string"},
                                "minItems": OPTIONS_PER_QUESTION,
                                "maxItems": OPTIONS_PER_QUESTION,
                            },
                            "correct": {"type": "integer", "description": "Index of the correct option (0-3)"},
                            "explanation": {"type": "string", "description": "Brief explanation of why the answer is correct"},
                        },
                        "required": ["question", "options", "correct", "explanation"],
                        "additionalProperties": False,
                    },
                },
            },
            "required": ["questions"],
            "additionalProperties": False,
        },
    },
}


# =============================================================================
# REQUEST / RESPONSE BODIES
# =============================================================================

class GenerateQuizRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    topic: Optional[str] = None
    subject: Optional[str] = None
    count: int = Field(5, ge=1)
    topic_id: Optional[str] = Field(None, alias="topicId")


class GenerateQuizResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    questions: List[GeneratedQuizQuestion]
    quiz_id: Optional[str] = Field(None, alias="quizId")


class QuizAttemptRequest(BaseModel):
    """
    Either `answers` (graded server-side against a stored quiz) or
    `score` + `total_questions` (graded by the client) must be supplied.
    """
    model_config = ConfigDict(populate_by_name=True)

    quiz_id: Optional[str] = Field(None, alias="quizId")
    topic_id: Optional[str] = Field(None, alias="topicId")
    topic_title: str = Field("", alias="topicTitle")
    answers: Optional[List[Optional[int]]] = None
    score: Optional[int] = Field(None, ge=0)
    total_questions: Optional[int] = Field(None, ge=0, alias="totalQuestions")

    @field_validator("topic_title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        return v.strip()

    @model_validator(mode="after")
    def has_answers_or_score(self) -> "QuizAttemptRequest":
        if self.quiz_id and self.answers is not None:
            return self
        if self.score is None or self.total_questions is None:
            raise ValueError("Provide quizId with answers, or score and totalQuestions")
        if self.score > self.total_questions:
            raise ValueError("score cannot exceed totalQuestions")
        return self


class QuizAttemptResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    attempt_id: str = Field(..., alias="attemptId")
    score: int
    total_questions: int = Field(..., alias="totalQuestions")
    xp_awarded: int = Field(..., alias="xpAwarded")
