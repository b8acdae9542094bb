"""
Mock infrastructure for StudyMind testing.
Provides deterministic fakes for the AI gateway.
"""

from .gateway_mocks import (
    MOCK_QUIZ_QUESTIONS,
    MOCK_DOUBT_ANSWER,
    MOCK_EXTRACTED_TEXT,
    FakeGateway,
    create_mock_quiz,
    sse_event,
    sse_done,
    sse_body,
    split_every,
)

__all__ = [
    "MOCK_QUIZ_QUESTIONS",
    "MOCK_DOUBT_ANSWER",
    "MOCK_EXTRACTED_TEXT",
    "FakeGateway",
    "create_mock_quiz",
    "sse_event",
    "sse_done",
    "sse_body",
    "split_every",
]
