"""Streaming chat-completion client with OpenAI integration.

Security: Reads API key from settings only, never hardcoded.
Provides deterministic fallback when no key present for testing.
"""

import asyncio
import logging
import re
from collections.abc import AsyncIterator
from typing import Protocol

import httpx
import openai
from openai import AsyncOpenAI

from backend.docchat.config import Settings
from backend.docchat.errors import CompletionError, UpstreamTransportError
from backend.docchat.models.chunks import PromptMessage

logger = logging.getLogger(__name__)

STUB_ANSWER = (
    "This is a stub answer generated without a completion provider. "
    "Configure an OpenAI API key to get real answers about your document."
)


class CompletionClient(Protocol):
    """Protocol for streaming completion implementations."""

    def stream_completion(self, messages: list[PromptMessage]) -> AsyncIterator[str]:
        """Stream answer tokens for the given prompt.

        Args:
            messages: Ordered role/content turns

        Yields:
            Non-empty text fragments in generation order

        Raises:
            CompletionError: If the provider reports an error
            UpstreamTransportError: If the connection to the provider fails
        """
        ...


class DeterministicStubCompletionClient:
    """Deterministic stub client for testing (no API key required)."""

    def __init__(self, answer: str = STUB_ANSWER) -> None:
        self.answer = answer

    async def stream_completion(self, messages: list[PromptMessage]) -> AsyncIterator[str]:
        """Stream the fixed answer word by word."""
        for token in re.findall(r"\S+\s*", self.answer):
            yield token
            await asyncio.sleep(0)


class OpenAICompletionClient:
    """OpenAI-backed streaming completion client."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-3.5-turbo",
        temperature: float = 0.0,
    ) -> None:
        """Initialize OpenAI completion client.

        Args:
            client: Shared AsyncOpenAI client (process-scoped)
            model: Chat model name
            temperature: Sampling temperature (0 for reproducible answers)
        """
        self.client = client
        self.model = model
        self.temperature = temperature

    async def stream_completion(self, messages: list[PromptMessage]) -> AsyncIterator[str]:
        """Stream tokens from the chat completions API.

        The upstream stream is closed when the consumer stops early, so an
        abandoned answer does not keep generating.
        """
        try:
            stream = await self.client.chat.completions.create(
                model=self.model,
                messages=[message.model_dump() for message in messages],
                temperature=self.temperature,
                stream=True,
            )
        except (openai.APIConnectionError, httpx.TransportError) as e:
            logger.error(f"OpenAI connection failed: {e}")
            raise UpstreamTransportError(f"Completion connection failed: {type(e).__name__}") from e
        except openai.OpenAIError as e:
            logger.error(f"OpenAI API call failed: {e}")
            raise CompletionError(f"Completion request failed: {type(e).__name__}") from e

        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except (openai.APIConnectionError, httpx.TransportError) as e:
            logger.error(f"OpenAI stream dropped: {e}")
            raise UpstreamTransportError(f"Completion stream dropped: {type(e).__name__}") from e
        except openai.OpenAIError as e:
            logger.error(f"OpenAI stream error: {e}")
            raise CompletionError(f"Completion stream failed: {type(e).__name__}") from e
        finally:
            await stream.close()


def build_openai_client(settings: Settings) -> AsyncOpenAI | None:
    """Create the shared AsyncOpenAI client, or None when no key is configured."""
    api_key = settings.openai_api_key
    if api_key and api_key.get_secret_value():
        return AsyncOpenAI(api_key=api_key.get_secret_value())
    return None


def get_completion_client(settings: Settings, openai_client: AsyncOpenAI | None) -> CompletionClient:
    """Factory function to get appropriate completion client based on config.

    Returns:
        OpenAICompletionClient if a client is available, DeterministicStubCompletionClient otherwise
    """
    if openai_client is not None:
        logger.info("Using OpenAI client for answer streaming")
        return OpenAICompletionClient(
            openai_client,
            model=settings.openai_chat_model,
            temperature=settings.completion_temperature,
        )

    logger.warning("No OpenAI API key configured, using deterministic stub completion client")
    return DeterministicStubCompletionClient()
