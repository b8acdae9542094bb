"""
Lazy-initialized AI gateway client to prevent import-time errors
when AI_GATEWAY_API_KEY is not set.

The gateway speaks the OpenAI chat completions protocol, so the official
SDK is pointed at its base URL. SDK retries are disabled: a failed call is
reported to the caller, who decides whether to resubmit.
"""

from typing import Optional
import httpx
from openai import AsyncOpenAI

from studymind.config import AI_GATEWAY_URL, AI_TIMEOUT_SECONDS, get_ai_gateway_api_key

_client: Optional[AsyncOpenAI] = None


class GatewayConfigError(RuntimeError):
    """Raised when the gateway API key is missing."""
    pass


def get_gateway_client() -> AsyncOpenAI:
    """
    Get a lazily-initialized AsyncOpenAI client bound to the AI gateway.

    Returns:
        AsyncOpenAI: The client instance

    Raises:
        GatewayConfigError: If AI_GATEWAY_API_KEY is not set
    """
    global _client

    if _client is None:
        api_key = get_ai_gateway_api_key()
        if not api_key:
            raise GatewayConfigError("AI_GATEWAY_API_KEY is not configured")
        _client = AsyncOpenAI(
            api_key=api_key,
            base_url=AI_GATEWAY_URL,
            max_retries=0,
            timeout=httpx.Timeout(AI_TIMEOUT_SECONDS, connect=10.0),
        )

    return _client


def reset_client() -> None:
    """
    Reset the client (useful for testing or when the API key changes).
    """
    global _client
    _client = None
