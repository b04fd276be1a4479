"""
Model client package

Provides a unified interface to each LLM provider.
"""

from lead_rank_core.infrastructure.model_clients.base import ModelClient
from lead_rank_core.infrastructure.model_clients.factory import create_client
from lead_rank_core.domain.value_objects import ModelResponse

__all__ = ["ModelClient", "ModelResponse", "create_client"]
