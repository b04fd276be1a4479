"""
LMStudio (OpenAI-compatible API) model client
"""

import os

from lead_rank_core.infrastructure.model_clients.openai_client import OpenAIClient


class LMStudioClient(OpenAIClient):
    """Client using LMStudio (OpenAI-compatible API)"""

    def __init__(
        self,
        model_name: str,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout_seconds: int = 60,
        max_retries: int = 3,
        retry_delay_seconds: float = 1.0,
    ):
        """
        Args:
            model_name: Model name (e.g. lmstudio/qwen2.5-7b)
            base_url: LMStudio API endpoint (falls back to LMSTUDIO_BASE_URL env var if not specified)
            api_key: API key (falls back to LMSTUDIO_API_KEY env var if not specified; usually not required for LMStudio)
            timeout_seconds: Request timeout in seconds (default: 60)
            max_retries: Maximum number of retries (default: 3)
            retry_delay_seconds: Base delay for exponential backoff (default: 1.0)
        """
        # Configuration priority: argument > environment variable > default value
        base_url = base_url or os.environ.get("LMSTUDIO_BASE_URL", "http://localhost:1234/v1")
        api_key = api_key or os.environ.get("LMSTUDIO_API_KEY", "lm-studio")

        super().__init__(
            model_name,
            api_key=api_key,
            base_url=base_url,
            timeout_seconds=timeout_seconds,
            max_retries=max_retries,
            retry_delay_seconds=retry_delay_seconds,
        )
        self.base_url = base_url
        # Strip the lmstudio/ prefix to get the model name for the API
        self.api_model_name = model_name.removeprefix("lmstudio/")
