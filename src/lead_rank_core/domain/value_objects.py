"""
Domain Value Objects

Defines immutable data structures representing values such as model responses,
oracle outcomes, lead judgments, and cost metrics.
"""

from dataclasses import dataclass, field
from typing import Union


@dataclass
class ModelResponse:
    """Model response"""
    output: str
    latency_ms: int
    model_name: str
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class CostMetrics:
    """Cost calculation metrics"""
    input_tokens: int
    output_tokens: int

    # Pricing (USD per 1M tokens)
    input_price_per_m: float = 0.0
    output_price_per_m: float = 0.0

    def __post_init__(self):
        if self.input_tokens < 0:
            raise ValueError("input_tokens must be non-negative")
        if self.output_tokens < 0:
            raise ValueError("output_tokens must be non-negative")


@dataclass(frozen=True)
class LeadAnalysis:
    """Normalized judgment of a single lead"""
    is_relevant: bool
    relevance_score: float
    reasoning: str
    department: str | None
    seniority: str | None
    buyer_type: str
    company_size_category: str
    positive_signals: list[str] = field(default_factory=list)
    negative_signals: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Scoring oracle outcomes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OracleJudgment:
    """The oracle answered with a JSON object"""
    payload: dict
    model_name: str
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class MalformedResponse:
    """The oracle answered, but the output could not be parsed"""
    raw_output: str
    reason: str


@dataclass(frozen=True)
class OracleFailure:
    """The oracle call itself failed (network, timeout, rate limit, ...)"""
    error: str


ScoringOutcome = Union[OracleJudgment, MalformedResponse, OracleFailure]


@dataclass(frozen=True)
class FailureAnalysis:
    """Diagnosis and improvement directives produced by the failure analyzer"""
    analysis: str
    improvements: list[str]
    false_negatives: int = 0
    false_positives: int = 0
    rank_errors: int = 0
    cost: float = 0.0


@dataclass(frozen=True)
class PromptRevision:
    """Prompt text returned by the prompt mutator"""
    prompt: str
    changed: bool
    cost: float = 0.0


# ---------------------------------------------------------------------------
# Lead ranking pipeline
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PrefilterResult:
    """Quick relevance check deciding whether a lead gets a full analysis"""
    should_process: bool
    reason: str
    quick_score: float
    cost: float = 0.0
    tokens: int = 0


@dataclass(frozen=True)
class CompanyRanking:
    """Contact order of the relevant leads of one company (lead ids, best first)"""
    ranking: list[str]
    cost: float = 0.0
    tokens: int = 0
