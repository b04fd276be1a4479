"""
Evaluation Harness Configuration

Manages loading from environment variables and default values.
"""

import os
from dataclasses import dataclass, field, asdict

from lead_rank_core.domain.constants import (
    AB_TEST_TIE_THRESHOLD,
    DEFAULT_EVALUATION_MODEL,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_OPTIMIZER_MODEL,
    DEFAULT_TARGET_SCORE,
    SIGNIFICANT_RANK_ERROR,
)


def _env_int(key: str, default: int) -> int:
    """Convert an environment variable to int"""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"The value '{val}' of environment variable '{key}' cannot be converted to an integer.")


def _env_float(key: str, default: float) -> float:
    """Convert an environment variable to float"""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"The value '{val}' of environment variable '{key}' cannot be converted to a number.")


def _env_str(key: str, default: str) -> str:
    """Get an environment variable as a string"""
    return os.environ.get(key, default)


@dataclass
class ModelConfig:
    """Models and sampling parameters for the scoring and generation oracles"""
    evaluation_model: str = DEFAULT_EVALUATION_MODEL
    optimizer_model: str = DEFAULT_OPTIMIZER_MODEL
    scoring_temperature: float = 0.2
    scoring_max_tokens: int = 500
    generation_temperature: float = 0.7
    analysis_max_tokens: int = 1000
    rewrite_max_tokens: int = 2000


@dataclass
class EvaluationConfig:
    """Prompt evaluation configuration"""
    max_workers: int = 1  # 1 = sequential
    tie_threshold: float = AB_TEST_TIE_THRESHOLD


@dataclass
class OptimizationConfig:
    """Optimization loop configuration"""
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    target_score: float = DEFAULT_TARGET_SCORE
    rank_error_threshold: int = SIGNIFICANT_RANK_ERROR
    max_failure_examples: int = 5
    prompt_excerpt_chars: int = 2000
    persona_excerpt_chars: int = 1500


@dataclass
class IsolationConfig:
    """Oracle call isolation configuration"""
    timeout_seconds: int = 60
    max_retries: int = 3
    retry_delay_seconds: float = 1.0


@dataclass
class LMStudioConfig:
    """LMStudio (OpenAI-compatible local LLM) configuration"""
    base_url: str = "http://localhost:1234/v1"
    api_key: str = "lm-studio"


@dataclass
class HarnessConfig:
    """Overall configuration"""
    models: ModelConfig = field(default_factory=ModelConfig)
    evaluation: EvaluationConfig = field(default_factory=EvaluationConfig)
    optimization: OptimizationConfig = field(default_factory=OptimizationConfig)
    isolation: IsolationConfig = field(default_factory=IsolationConfig)
    lmstudio: LMStudioConfig = field(default_factory=LMStudioConfig)

    def to_dict(self) -> dict:
        """Convert to dictionary format"""
        return {"harness_config": asdict(self)}

    @classmethod
    def from_dict(cls, data: dict) -> "HarnessConfig":
        """Create from dictionary (handles presence/absence of harness_config key)"""
        config_data = data.get("harness_config", data)
        return cls(
            models=ModelConfig(**config_data.get("models", {})),
            evaluation=EvaluationConfig(**config_data.get("evaluation", {})),
            optimization=OptimizationConfig(**config_data.get("optimization", {})),
            isolation=IsolationConfig(**config_data.get("isolation", {})),
            lmstudio=LMStudioConfig(**config_data.get("lmstudio", {})),
        )


def load_config() -> HarnessConfig:
    """
    Load configuration from environment variables

    Uses default values when environment variables are not set.

    Returns:
        HarnessConfig
    """
    models = ModelConfig(
        evaluation_model=_env_str("LEADRANK_EVALUATION_MODEL", DEFAULT_EVALUATION_MODEL),
        optimizer_model=_env_str("LEADRANK_OPTIMIZER_MODEL", DEFAULT_OPTIMIZER_MODEL),
        scoring_temperature=_env_float("LEADRANK_SCORING_TEMPERATURE", 0.2),
        scoring_max_tokens=_env_int("LEADRANK_SCORING_MAX_TOKENS", 500),
        generation_temperature=_env_float("LEADRANK_GENERATION_TEMPERATURE", 0.7),
        analysis_max_tokens=_env_int("LEADRANK_ANALYSIS_MAX_TOKENS", 1000),
        rewrite_max_tokens=_env_int("LEADRANK_REWRITE_MAX_TOKENS", 2000),
    )
    evaluation = EvaluationConfig(
        max_workers=_env_int("LEADRANK_MAX_WORKERS", 1),
        tie_threshold=_env_float("LEADRANK_TIE_THRESHOLD", AB_TEST_TIE_THRESHOLD),
    )
    optimization = OptimizationConfig(
        max_iterations=_env_int("LEADRANK_MAX_ITERATIONS", DEFAULT_MAX_ITERATIONS),
        target_score=_env_float("LEADRANK_TARGET_SCORE", DEFAULT_TARGET_SCORE),
        rank_error_threshold=_env_int("LEADRANK_RANK_ERROR_THRESHOLD", SIGNIFICANT_RANK_ERROR),
        max_failure_examples=_env_int("LEADRANK_MAX_FAILURE_EXAMPLES", 5),
        prompt_excerpt_chars=_env_int("LEADRANK_PROMPT_EXCERPT_CHARS", 2000),
        persona_excerpt_chars=_env_int("LEADRANK_PERSONA_EXCERPT_CHARS", 1500),
    )
    isolation = IsolationConfig(
        timeout_seconds=_env_int("LEADRANK_TIMEOUT_SECONDS", 60),
        max_retries=_env_int("LEADRANK_MAX_RETRIES", 3),
        retry_delay_seconds=_env_float("LEADRANK_RETRY_DELAY_SECONDS", 1.0),
    )
    lmstudio = LMStudioConfig(
        base_url=_env_str("LMSTUDIO_BASE_URL", "http://localhost:1234/v1"),
        api_key=_env_str("LMSTUDIO_API_KEY", "lm-studio"),
    )
    return HarnessConfig(
        models=models,
        evaluation=evaluation,
        optimization=optimization,
        isolation=isolation,
        lmstudio=lmstudio,
    )
