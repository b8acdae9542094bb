"""
AI Gateway Service

Wraps every call StudyMind makes to the external model gateway:
- Structured quiz generation (forced `generate_quiz` tool call)
- Streamed chat completions (doubt solving, document Q&A)
- Multimodal document text extraction

Upstream failures are classified by HTTP status into GatewayError
subclasses. Nothing is retried: the student resubmits if they want to.

Usage:
    from studymind.services.ai_gateway import get_gateway, GatewayError

    try:
        upstream = await get_gateway().stream_chat(SYSTEM_PROMPT, question)
    except GatewayError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
"""

import base64
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

import openai
import sentry_sdk

from studymind.config import AI_MODEL, AI_EXTRACTION_MODEL
from studymind.schemas.quiz import QUIZ_TOOL, GeneratedQuiz, QuizPayloadError, parse_quiz_arguments
from studymind.utils.gateway_client import GatewayConfigError, get_gateway_client

logger = logging.getLogger(__name__)


QUIZ_SYSTEM_PROMPT = """You are a quiz question generator for students. Generate multiple-choice questions.

IMPORTANT: You MUST respond by calling the generate_quiz function. Do not respond with plain text."""

EXTRACTION_PROMPT = (
    "Extract all text content from this document. "
    "Preserve headings, paragraphs, and structure. Output as clean markdown."
)


# ============================================================================
# ERRORS
# ============================================================================

class GatewayError(Exception):
    """Base class for gateway failures, carrying the status surfaced to clients."""

    status_code = 500
    default_message = "AI service error"

    def __init__(self, message: Optional[str] = None, upstream_status: Optional[int] = None):
        self.message = message or self.default_message
        self.upstream_status = upstream_status
        super().__init__(self.message)


class GatewayRateLimitError(GatewayError):
    status_code = 429
    default_message = "Rate limit exceeded. Please try again."


class GatewayCreditsError(GatewayError):
    status_code = 402
    default_message = "AI credits exhausted."


class GatewayServiceError(GatewayError):
    status_code = 500
    default_message = "AI service error"


class NoStreamError(GatewayError):
    status_code = 500
    default_message = "No response stream from AI gateway"


def classify_status(status_code: int, body: str = "") -> GatewayError:
    """Map a non-OK upstream status to the error surfaced to the caller."""
    if status_code == 429:
        return GatewayRateLimitError(upstream_status=status_code)
    if status_code == 402:
        return GatewayCreditsError(upstream_status=status_code)
    logger.error(f"AI gateway error: {status_code} {body[:500]}")
    return GatewayServiceError(upstream_status=status_code)


def _translate(exc: Exception) -> GatewayError:
    if isinstance(exc, GatewayConfigError):
        return GatewayServiceError(str(exc))
    if isinstance(exc, openai.APIStatusError):
        body = ""
        try:
            body = exc.response.text
        except Exception:
            body = str(exc.body or "")
        return classify_status(exc.status_code, body)
    logger.error(f"AI gateway request failed: {exc}")
    sentry_sdk.capture_exception(exc)
    return GatewayServiceError()


# ============================================================================
# RESULT TYPES
# ============================================================================

@dataclass
class TokenUsage:
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


@dataclass
class QuizGeneration:
    quiz: GeneratedQuiz
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)


class UpstreamStream:
    """
    The raw SSE body of a streamed gateway response.

    `body` yields the upstream bytes untouched; `aclose` releases the
    underlying HTTP response and is safe to call more than once.
    """

    def __init__(
        self,
        body: Optional[AsyncIterator[bytes]],
        close: Optional[Callable[[], Awaitable[None]]] = None,
        model: str = AI_MODEL,
    ):
        self.body = body
        self.model = model
        self._close = close
        self._closed = False

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._close is not None:
            await self._close()


# ============================================================================
# GATEWAY
# ============================================================================

class AIGateway:
    """Thin client over the gateway's chat completions endpoint."""

    def __init__(self, model: str = AI_MODEL, extraction_model: str = AI_EXTRACTION_MODEL):
        self.model = model
        self.extraction_model = extraction_model

    async def generate_quiz(
        self,
        topic: str,
        subject: Optional[str] = None,
        count: int = 5,
    ) -> QuizGeneration:
        """
        Ask the model for `count` multiple-choice questions via a forced tool call.

        Raises:
            GatewayError: On any upstream failure
            QuizPayloadError: If the tool call is missing or malformed
        """
        messages = [
            {"role": "system", "content": QUIZ_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": (
                    f'Generate {count} multiple-choice questions about "{topic}" in {subject or "general"}. '
                    "Each question should have 4 options with exactly one correct answer. "
                    "Vary difficulty from easy to hard."
                ),
            },
        ]

        try:
            completion = await get_gateway_client().chat.completions.create(
                model=self.model,
                messages=messages,
                tools=[QUIZ_TOOL],
                tool_choice={"type": "function", "function": {"name": "generate_quiz"}},
            )
        except (openai.APIError, GatewayConfigError) as e:
            raise _translate(e) from e

        arguments = None
        if completion.choices:
            tool_calls = completion.choices[0].message.tool_calls or []
            if tool_calls:
                arguments = tool_calls[0].function.arguments
        if arguments is None:
            raise QuizPayloadError("No quiz generated")

        usage = TokenUsage()
        if completion.usage is not None:
            usage = TokenUsage(
                prompt_tokens=completion.usage.prompt_tokens,
                completion_tokens=completion.usage.completion_tokens,
                total_tokens=completion.usage.total_tokens,
            )

        return QuizGeneration(quiz=parse_quiz_arguments(arguments), model=self.model, usage=usage)

    async def stream_chat(self, system_prompt: str, user_content: str) -> UpstreamStream:
        """
        Open a streamed chat completion and hand back its raw SSE body.

        The HTTP status is checked before returning, so a 429/402 surfaces as
        an exception here rather than mid-stream.
        """
        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_content},
        ]

        stack = AsyncExitStack()
        try:
            response = await stack.enter_async_context(
                get_gateway_client().chat.completions.with_streaming_response.create(
                    model=self.model,
                    messages=messages,
                    stream=True,
                )
            )
        except (openai.APIError, GatewayConfigError) as e:
            await stack.aclose()
            raise _translate(e) from e

        body = None if response.http_response.is_closed else response.iter_bytes()
        return UpstreamStream(body=body, close=stack.aclose, model=self.model)

    async def extract_document_text(self, data: bytes, content_type: Optional[str]) -> str:
        """
        Have the extraction model transcribe a binary document (PDF, DOCX, image).

        Raises:
            GatewayError: On any upstream failure
        """
        encoded = base64.b64encode(data).decode("ascii")
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": EXTRACTION_PROMPT},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{content_type or 'application/pdf'};base64,{encoded}"},
                    },
                ],
            }
        ]

        try:
            completion = await get_gateway_client().chat.completions.create(
                model=self.extraction_model,
                messages=messages,
            )
        except (openai.APIError, GatewayConfigError) as e:
            raise _translate(e) from e

        content = completion.choices[0].message.content if completion.choices else None
        return content or "Could not extract text from this document."


_gateway: Optional[AIGateway] = None


def get_gateway() -> AIGateway:
    """FastAPI dependency returning the shared AIGateway instance."""
    global _gateway
    if _gateway is None:
        _gateway = AIGateway()
    return _gateway
