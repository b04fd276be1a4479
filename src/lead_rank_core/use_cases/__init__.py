"""
Use Cases Layer

Aggregates business logic and provides use cases called from the runner.
"""

from lead_rank_core.use_cases.ab_test import (
    build_ab_test_summary,
    decide_winner,
    run_ab_test,
)
from lead_rank_core.use_cases.evaluation import (
    assign_company_ranks,
    build_summary,
    evaluate_lead,
    evaluate_prompt,
    make_lead_evaluator,
    SequentialLeadEvaluator,
    ThreadPoolLeadEvaluator,
)
from lead_rank_core.use_cases.health_check import (
    HEALTH_CHECK_PROMPT,
    health_check_model,
    health_check_all_models,
    run_health_check,
    troubleshooting_hint,
)
from lead_rank_core.use_cases.optimization import (
    analyze_failures,
    build_failure_report,
    generate_improved_prompt,
    optimize_prompt,
    partition_failures,
    quick_optimize,
    relative_improvement,
)
from lead_rank_core.use_cases.ranking import (
    analyze_lead,
    analyze_single_lead,
    prefilter_lead,
    rank_company_leads,
    rank_leads,
)

__all__ = [
    # ab_test
    "build_ab_test_summary",
    "decide_winner",
    "run_ab_test",
    # evaluation
    "assign_company_ranks",
    "build_summary",
    "evaluate_lead",
    "evaluate_prompt",
    "make_lead_evaluator",
    "SequentialLeadEvaluator",
    "ThreadPoolLeadEvaluator",
    # health_check
    "HEALTH_CHECK_PROMPT",
    "health_check_model",
    "health_check_all_models",
    "run_health_check",
    "troubleshooting_hint",
    # optimization
    "analyze_failures",
    "build_failure_report",
    "generate_improved_prompt",
    "optimize_prompt",
    "partition_failures",
    "quick_optimize",
    "relative_improvement",
    # ranking
    "analyze_lead",
    "analyze_single_lead",
    "prefilter_lead",
    "rank_company_leads",
    "rank_leads",
]
