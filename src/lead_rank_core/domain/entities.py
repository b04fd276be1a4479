"""
Domain Entities

Defines the primary data structures used in the evaluation and optimization process.
"""

from dataclasses import dataclass, field

from lead_rank_core.domain.value_objects import LeadAnalysis


@dataclass(frozen=True)
class EvaluationLead:
    """A labeled lead from the evaluation set"""
    id: str
    name: str
    company: str
    title: str | None = None
    employee_range: str | None = None
    expected_rank: int | None = None  # None means "not relevant"
    industry: str | None = None
    domain: str | None = None

    @property
    def expected_relevant(self) -> bool:
        return self.expected_rank is not None


@dataclass
class EvaluationResult:
    """Result of judging a single lead with one prompt"""
    lead_id: str
    name: str
    company: str
    expected_rank: int | None
    predicted_relevant: bool
    predicted_score: float
    is_correct_relevance: bool
    predicted_rank: int | None = None  # Filled in by company rank assignment
    rank_error: float | None = None
    analysis: LeadAnalysis | None = None
    cost: float = 0.0
    tokens: int = 0


@dataclass
class PromptEvaluationSummary:
    """Metrics of one prompt over one evaluation set"""
    prompt_id: str
    prompt_name: str
    total_leads: int
    relevance_accuracy: float     # % correct relevant/not-relevant
    relevance_precision: float    # TP / (TP + FP)
    relevance_recall: float       # TP / (TP + FN)
    relevance_f1: float
    avg_rank_error: float         # Mean absolute rank error over true positives
    rank_correlation: float       # Spearman correlation of expected vs predicted rank
    total_cost: float
    avg_cost_per_lead: float
    results: list[EvaluationResult] = field(default_factory=list)


@dataclass(frozen=True)
class PromptVariant:
    """A prompt taking part in an A/B test"""
    id: str
    name: str
    system_prompt: str


@dataclass
class ABTestResult:
    """Outcome of comparing two prompts on the same evaluation set"""
    prompt_a: PromptEvaluationSummary
    prompt_b: PromptEvaluationSummary
    winner: str  # "A" / "B" / "tie"
    summary: str


@dataclass(frozen=True)
class OptimizationIteration:
    """One round of the optimization search (round 0 is the baseline)"""
    iteration: int
    prompt: str
    score: float
    metrics: PromptEvaluationSummary
    analysis: str
    improvements: list[str]
    cost: float


@dataclass(frozen=True)
class BestPrompt:
    """Highest-F1 prompt seen during an optimization run"""
    system_prompt: str
    score: float
    metrics: PromptEvaluationSummary


@dataclass
class OptimizationResult:
    """Final output of an optimization run"""
    iterations: list[OptimizationIteration]
    best_prompt: BestPrompt
    total_cost: float
    total_iterations: int
    improvement: float  # % relative F1 gain over the baseline
    stop_reason: str
    optimizer_cost: float = 0.0  # Analysis / rewrite calls, not part of total_cost


@dataclass
class HealthCheckResult:
    """Health check result"""
    model_name: str
    success: bool
    latency_ms: int | None
    error: str | None


@dataclass
class RankingResult:
    """Outcome of running one lead through the ranking pipeline"""
    lead_id: str
    name: str
    company: str
    title: str | None
    is_relevant: bool
    relevance_score: float
    company_rank: int | None = None
    analysis: LeadAnalysis | None = None
    cost: float = 0.0
    tokens: int = 0
    skipped: bool = False  # Rejected by the prefilter, never analyzed
    skip_reason: str | None = None


@dataclass(frozen=True)
class RankingStats:
    """Lead counts of a ranking run"""
    total: int
    prefiltered: int  # Rejected by the prefilter
    analyzed: int
    relevant: int


@dataclass
class LeadRankingRun:
    """Final output of the lead ranking pipeline"""
    results: list[RankingResult]
    total_cost: float
    total_tokens: int
    stats: RankingStats
