"""
Model client factory

Creates the appropriate client instance based on the model name.
"""

from __future__ import annotations

from lead_rank_core.harness_config import HarnessConfig, load_config
from lead_rank_core.infrastructure.model_clients.base import ModelClient
from lead_rank_core.infrastructure.model_clients.claude import ClaudeClient
from lead_rank_core.infrastructure.model_clients.lmstudio import LMStudioClient
from lead_rank_core.infrastructure.model_clients.openai_client import OpenAIClient
from lead_rank_core.infrastructure.model_clients.vertex_ai import VertexAIClient

_OPENAI_PREFIXES = ("gpt-", "o1", "o3", "o4")


def create_client(model_name: str, config: HarnessConfig | None = None) -> ModelClient:
    """
    Create the appropriate client based on the model name

    Args:
        model_name: Model name
        config: HarnessConfig (loads from env if not provided)

    Returns:
        ModelClient: The appropriate client instance
    """
    if config is None:
        config = load_config()

    timeout = config.isolation.timeout_seconds
    retries = config.isolation.max_retries
    retry_delay = config.isolation.retry_delay_seconds

    if model_name.startswith("lmstudio/"):
        return LMStudioClient(
            model_name,
            base_url=config.lmstudio.base_url,
            api_key=config.lmstudio.api_key,
            timeout_seconds=timeout,
            max_retries=retries,
            retry_delay_seconds=retry_delay,
        )
    elif model_name.startswith(_OPENAI_PREFIXES):
        return OpenAIClient(model_name, timeout_seconds=timeout, max_retries=retries, retry_delay_seconds=retry_delay)
    elif model_name.startswith("claude"):
        return ClaudeClient(model_name, timeout_seconds=timeout, max_retries=retries, retry_delay_seconds=retry_delay)
    else:
        return VertexAIClient(model_name, timeout_seconds=timeout, max_retries=retries, retry_delay_seconds=retry_delay)
