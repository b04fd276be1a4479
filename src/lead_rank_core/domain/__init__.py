"""
Domain Layer

Defines constants, entities, and value objects that form the core of the business logic.
Has no dependencies on external libraries.
"""

from lead_rank_core.domain.constants import (
    AB_TEST_TIE_THRESHOLD,
    DEFAULT_EVALUATION_MODEL,
    DEFAULT_OPTIMIZER_MODEL,
    MODEL_PRICING,
    SIGNIFICANT_RANK_ERROR,
    _LOCAL_MODEL_PRICING,
)
from lead_rank_core.domain.entities import (
    ABTestResult,
    BestPrompt,
    EvaluationLead,
    EvaluationResult,
    HealthCheckResult,
    LeadRankingRun,
    OptimizationIteration,
    OptimizationResult,
    PromptEvaluationSummary,
    PromptVariant,
    RankingResult,
    RankingStats,
)
from lead_rank_core.domain.value_objects import (
    CompanyRanking,
    CostMetrics,
    FailureAnalysis,
    LeadAnalysis,
    MalformedResponse,
    ModelResponse,
    OracleFailure,
    OracleJudgment,
    PrefilterResult,
    PromptRevision,
    ScoringOutcome,
)

__all__ = [
    # constants
    "AB_TEST_TIE_THRESHOLD",
    "DEFAULT_EVALUATION_MODEL",
    "DEFAULT_OPTIMIZER_MODEL",
    "MODEL_PRICING",
    "SIGNIFICANT_RANK_ERROR",
    "_LOCAL_MODEL_PRICING",
    # entities
    "ABTestResult",
    "BestPrompt",
    "EvaluationLead",
    "EvaluationResult",
    "HealthCheckResult",
    "LeadRankingRun",
    "OptimizationIteration",
    "OptimizationResult",
    "PromptEvaluationSummary",
    "PromptVariant",
    "RankingResult",
    "RankingStats",
    # value objects
    "CompanyRanking",
    "CostMetrics",
    "FailureAnalysis",
    "LeadAnalysis",
    "MalformedResponse",
    "ModelResponse",
    "OracleFailure",
    "OracleJudgment",
    "PrefilterResult",
    "PromptRevision",
    "ScoringOutcome",
]
