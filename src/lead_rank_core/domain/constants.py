"""
Domain Constants

Centrally manages constants shared across the evaluation and optimization engine.
"""

# Default models
DEFAULT_EVALUATION_MODEL = "gpt-4o-mini"
DEFAULT_OPTIMIZER_MODEL = "gpt-4o"

# Model pricing (USD / 1M tokens)
MODEL_PRICING = {
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4o": {"input": 2.50, "output": 10.0},
    "gpt-4-turbo": {"input": 10.0, "output": 30.0},
    "gemini-2.5-pro": {"input": 1.25, "output": 5.0},
    "gemini-2.5-flash": {"input": 0.075, "output": 0.30},
    "claude-sonnet-4-5-20250929": {"input": 3.0, "output": 15.0},
    "claude-haiku-4-5-20251001": {"input": 0.80, "output": 4.0},
}

# Default pricing for local models (LMStudio, etc.)
_LOCAL_MODEL_PRICING = {"input": 0.0, "output": 0.0}

# Buyer types the scoring oracle may return
BUYER_TYPES = ("decision_maker", "champion", "influencer", "not_relevant")
NOT_RELEVANT_BUYER_TYPE = "not_relevant"

# Placeholder when the oracle omits its reasoning
NO_REASONING_PLACEHOLDER = "No reasoning provided"

# Relevance score range (percent)
MIN_RELEVANCE_SCORE = 0.0
MAX_RELEVANCE_SCORE = 100.0

# A/B test: F1 gap (percentage points) below which two prompts tie
AB_TEST_TIE_THRESHOLD = 2.0

# Failure analysis: rank errors above this are reported as significant
SIGNIFICANT_RANK_ERROR = 1

# Optimization loop defaults
DEFAULT_MAX_ITERATIONS = 5
DEFAULT_TARGET_SCORE = 85.0
QUICK_MAX_ITERATIONS = 3
QUICK_TARGET_SCORE = 80.0

# Optimization stop reasons
STOP_TARGET_REACHED = "target_reached"
STOP_STALLED = "stalled"
STOP_EXHAUSTED = "exhausted"
STOP_CANCELLED = "cancelled"

# Lead ranking pipeline: prefilter and company ranking calls
PREFILTER_TEMPERATURE = 0.1
PREFILTER_MAX_TOKENS = 150
# Quick score given to a lead the prefilter could not judge (it is passed through)
PREFILTER_PASS_THROUGH_SCORE = 50.0
COMPANY_RANKING_TEMPERATURE = 0.1
COMPANY_RANKING_MAX_TOKENS = 200

# Lead ranking pipeline steps reported to progress callbacks
STEP_PREFILTER = "prefilter"
STEP_ANALYZE = "analyze"
STEP_RANK = "rank"
