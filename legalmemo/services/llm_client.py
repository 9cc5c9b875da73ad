"""LLM client wrapper for Anthropic structured outputs."""

from typing import TypeVar

from anthropic import APIError, AsyncAnthropic
from pydantic import BaseModel

from legalmemo.config import settings

T = TypeVar("T", bound=BaseModel)


class LLMClientError(Exception):
    """Raised when a structured LLM call fails."""

    pass


class LLMClient:
    """Async Anthropic client wrapper with structured output support.

    Uses client.beta.messages.parse with Pydantic models for
    schema-valid output.
    """

    def __init__(self, client: AsyncAnthropic | None = None, model: str | None = None):
        """Initialize LLM client.

        Args:
            client: Optional AsyncAnthropic client for dependency injection.
                   If not provided, creates one from settings.
            model: Model name. Defaults to settings.
        """
        self.model = model or settings.anthropic_model
        if client is not None:
            self._client = client
        elif settings.anthropic_api_key:
            self._client = AsyncAnthropic(api_key=settings.anthropic_api_key)
        else:
            # Allow initialization without API key; calls fail and callers fall back
            self._client = None

    async def extract(
        self,
        prompt: str,
        response_model: type[T],
        max_tokens: int = 4096,
    ) -> T:
        """Extract structured data from text using the LLM.

        Args:
            prompt: The user prompt containing text to extract from
            response_model: Pydantic model defining the output schema
            max_tokens: Output token limit

        Returns:
            Parsed response matching the response_model type

        Raises:
            LLMClientError: If extraction fails
        """
        if self._client is None:
            raise LLMClientError(
                "Anthropic client not initialized. "
                "Set ANTHROPIC_API_KEY environment variable."
            )

        try:
            response = await self._client.beta.messages.parse(
                model=self.model,
                max_tokens=max_tokens,
                betas=["structured-outputs-2025-11-13"],
                messages=[{"role": "user", "content": prompt}],
                output_format=response_model,
            )
        except APIError as e:
            raise LLMClientError(f"Anthropic API error: {e}") from e
        except Exception as e:
            raise LLMClientError(f"Extraction failed: {e}") from e

        if response.parsed_output is None:
            raise LLMClientError("Model returned no parseable output")
        return response.parsed_output
