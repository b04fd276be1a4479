"""
OpenAI model client
"""

import os
import time

import openai
from openai import OpenAI

from lead_rank_core.domain.value_objects import ModelResponse
from lead_rank_core.infrastructure.model_clients.base import ModelClient, RetryMixin


class OpenAIClient(RetryMixin, ModelClient):
    """Client using the OpenAI Chat Completions API"""

    def __init__(
        self,
        model_name: str,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout_seconds: int = 60,
        max_retries: int = 3,
        retry_delay_seconds: float = 1.0,
    ):
        """
        Args:
            model_name: Model name (e.g. gpt-4o-mini)
            api_key: OpenAI API key (falls back to OPENAI_API_KEY if not specified)
            base_url: Alternative API endpoint (OpenAI-compatible servers)
            timeout_seconds: Request timeout in seconds (default: 60)
            max_retries: Maximum number of retries (default: 3)
            retry_delay_seconds: Base delay for exponential backoff (default: 1.0)
        """
        self.model_name = model_name
        self.api_model_name = model_name
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds

        if not self.api_key:
            raise ValueError("OPENAI_API_KEY is not set")

        # Retries are handled by RetryMixin, so the SDK's own retries are disabled
        self.client = OpenAI(
            api_key=self.api_key,
            base_url=base_url,
            timeout=timeout_seconds,
            max_retries=0,
        )

    def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 1024,
        json_mode: bool = False,
    ) -> ModelResponse:
        """
        Send a prompt and retrieve the response

        Args:
            prompt: User message
            system_prompt: Optional system message
            temperature: Sampling temperature
            max_tokens: Maximum number of output tokens
            json_mode: Request a JSON object response

        Returns:
            ModelResponse: The model's response

        Raises:
            Exception: If the maximum number of retries is exceeded
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        extra = {"response_format": {"type": "json_object"}} if json_mode else {}

        def _call():
            start_time = time.time()
            response = self.client.chat.completions.create(
                model=self.api_model_name,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                **extra,
            )
            end_time = time.time()

            latency_ms = int((end_time - start_time) * 1000)
            content = response.choices[0].message.content if response.choices else None
            output = (content or "").strip()

            # Retrieve token usage
            input_tokens = 0
            output_tokens = 0
            if response.usage:
                input_tokens = response.usage.prompt_tokens or 0
                output_tokens = response.usage.completion_tokens or 0

            return ModelResponse(
                output=output,
                latency_ms=latency_ms,
                model_name=self.model_name,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
            )

        return self._with_retry(
            _call,
            retryable_exceptions=(
                openai.APIConnectionError,
                openai.APITimeoutError,
                openai.RateLimitError,
                openai.InternalServerError,
            ),
        )
