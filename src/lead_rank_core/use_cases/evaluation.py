"""
Prompt Evaluation

Judges every lead of an evaluation set with one prompt, assigns per-company
ranks, and aggregates the results into a PromptEvaluationSummary.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable

from lead_rank_core.company_size import parse_employee_range
from lead_rank_core.cost_calc import calculate_cost
from lead_rank_core.domain.entities import (
    EvaluationLead,
    EvaluationResult,
    PromptEvaluationSummary,
)
from lead_rank_core.domain.value_objects import (
    MalformedResponse,
    OracleFailure,
    OracleJudgment,
    ScoringOutcome,
)
from lead_rank_core.harness_config import HarnessConfig, load_config
from lead_rank_core.infrastructure.model_clients.base import ModelClient
from lead_rank_core.metrics import compute_relevance_metrics, safe_ratio
from lead_rank_core.prompts import build_analysis_system_prompt
from lead_rank_core.scoring.lead_judge import LeadJudge, build_lead_analysis

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def _failed_result(lead: EvaluationLead) -> EvaluationResult:
    """Conservative result used when the oracle fails: not relevant, zero score, zero cost"""
    return EvaluationResult(
        lead_id=lead.id,
        name=lead.name,
        company=lead.company,
        expected_rank=lead.expected_rank,
        predicted_relevant=False,
        predicted_score=0.0,
        is_correct_relevance=lead.expected_rank is None,
        predicted_rank=None,
        rank_error=None,
        analysis=None,
        cost=0.0,
        tokens=0,
    )


def evaluate_lead(
    lead: EvaluationLead,
    system_prompt: str,
    judge: LeadJudge,
) -> EvaluationResult:
    """
    Judge a single lead with a prompt.

    Never raises on oracle problems: failures and malformed output produce a
    "not relevant, score 0, cost 0" result. Rank fields are left for
    assign_company_ranks().

    Args:
        lead: Labeled lead
        system_prompt: Prompt under evaluation (empty = size-aware default prompt)
        judge: Scoring oracle adapter

    Returns:
        EvaluationResult
    """
    size_category = parse_employee_range(lead.employee_range).category
    prompt = system_prompt or build_analysis_system_prompt(size_category)

    outcome: ScoringOutcome = judge.judge(lead, prompt)

    if isinstance(outcome, (OracleFailure, MalformedResponse)):
        return _failed_result(lead)
    if not isinstance(outcome, OracleJudgment):
        raise TypeError(f"Unexpected scoring outcome: {type(outcome).__name__}")

    analysis = build_lead_analysis(outcome.payload, size_category)
    cost = calculate_cost(outcome.model_name, outcome.input_tokens, outcome.output_tokens)

    expected_relevant = lead.expected_rank is not None
    predicted_relevant = analysis.is_relevant

    return EvaluationResult(
        lead_id=lead.id,
        name=lead.name,
        company=lead.company,
        expected_rank=lead.expected_rank,
        predicted_relevant=predicted_relevant,
        predicted_score=analysis.relevance_score,
        is_correct_relevance=expected_relevant == predicted_relevant,
        predicted_rank=None,
        # Placeholder, recomputed once the whole company has been judged
        rank_error=0 if expected_relevant and predicted_relevant else None,
        analysis=analysis,
        cost=cost,
        tokens=outcome.input_tokens + outcome.output_tokens,
    )


def assign_company_ranks(results: list[EvaluationResult]) -> None:
    """
    Assign dense predicted ranks within each company (in place).

    Relevant leads of a company are ranked 1..k by descending score; ties keep
    input order. Ranked leads with an expected rank get
    rank_error = |predicted_rank - expected_rank|. Leads predicted not
    relevant keep predicted_rank = None and rank_error = None.

    Args:
        results: All results of one evaluation pass
    """
    by_company: dict[str, list[EvaluationResult]] = {}
    for result in results:
        by_company.setdefault(result.company, []).append(result)

    for company_results in by_company.values():
        for result in company_results:
            if not result.predicted_relevant:
                result.predicted_rank = None
                result.rank_error = None

        relevant = sorted(
            (r for r in company_results if r.predicted_relevant),
            key=lambda r: -r.predicted_score,
        )
        for index, result in enumerate(relevant):
            result.predicted_rank = index + 1
            if result.expected_rank is not None:
                result.rank_error = abs(result.predicted_rank - result.expected_rank)
            else:
                result.rank_error = None


class SequentialLeadEvaluator:
    """Judges leads one at a time, in input order"""

    def evaluate_all(
        self,
        leads: list[EvaluationLead],
        system_prompt: str,
        judge: LeadJudge,
        on_progress: ProgressCallback | None = None,
    ) -> list[EvaluationResult]:
        results = []
        total = len(leads)
        for i, lead in enumerate(leads):
            results.append(evaluate_lead(lead, system_prompt, judge))
            if on_progress:
                on_progress(i + 1, total)
        return results


class ThreadPoolLeadEvaluator:
    """
    Judges leads on a bounded thread pool.

    Results are written into slots indexed by input position, so the returned
    list has input order whatever the completion order. The completed count
    reported to on_progress never decreases, and each result's cost lives in
    exactly one slot.
    """

    def __init__(self, max_workers: int) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1.")
        self.max_workers = max_workers

    def evaluate_all(
        self,
        leads: list[EvaluationLead],
        system_prompt: str,
        judge: LeadJudge,
        on_progress: ProgressCallback | None = None,
    ) -> list[EvaluationResult]:
        total = len(leads)
        slots: list[EvaluationResult | None] = [None] * total
        completed = 0

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(evaluate_lead, lead, system_prompt, judge): index
                for index, lead in enumerate(leads)
            }
            # Completions are consumed on this thread only, so the count is never shared
            for future in as_completed(futures):
                slots[futures[future]] = future.result()
                completed += 1
                if on_progress:
                    on_progress(completed, total)

        return [result for result in slots if result is not None]


def make_lead_evaluator(max_workers: int = 1):
    """Sequential evaluator for 1 worker, thread pool otherwise"""
    if max_workers <= 1:
        return SequentialLeadEvaluator()
    return ThreadPoolLeadEvaluator(max_workers)


def build_summary(
    prompt_id: str,
    prompt_name: str,
    results: list[EvaluationResult],
) -> PromptEvaluationSummary:
    """
    Package ranked results and their metrics into a summary.

    Args:
        prompt_id: Prompt identifier
        prompt_name: Prompt display name
        results: Results after assign_company_ranks()

    Returns:
        PromptEvaluationSummary
    """
    metrics = compute_relevance_metrics(results)
    total_cost = sum(r.cost for r in results)

    return PromptEvaluationSummary(
        prompt_id=prompt_id,
        prompt_name=prompt_name,
        total_leads=len(results),
        relevance_accuracy=metrics.relevance_accuracy,
        relevance_precision=metrics.relevance_precision,
        relevance_recall=metrics.relevance_recall,
        relevance_f1=metrics.relevance_f1,
        avg_rank_error=metrics.avg_rank_error,
        rank_correlation=metrics.rank_correlation,
        total_cost=total_cost,
        avg_cost_per_lead=safe_ratio(total_cost, len(results)),
        results=results,
    )


def resolve_client(
    model_client: ModelClient | None,
    model_name: str | None,
    config: HarnessConfig,
) -> ModelClient:
    """Return model_client, or create one for model_name (default: the evaluation model)"""
    if model_client is not None:
        return model_client
    from lead_rank_core.infrastructure.model_clients.factory import create_client
    return create_client(model_name or config.models.evaluation_model, config)


def make_judge(
    model_client: ModelClient | None = None,
    model_name: str | None = None,
    config: HarnessConfig | None = None,
) -> LeadJudge:
    """Build a LeadJudge, creating the model client from config when none is given"""
    if config is None:
        config = load_config()
    model_client = resolve_client(model_client, model_name, config)
    return LeadJudge(
        model_client,
        temperature=config.models.scoring_temperature,
        max_tokens=config.models.scoring_max_tokens,
    )


def evaluate_prompt(
    prompt_id: str,
    prompt_name: str,
    system_prompt: str,
    leads: list[EvaluationLead],
    model_client: ModelClient | None = None,
    on_progress: ProgressCallback | None = None,
    *,
    model_name: str | None = None,
    max_workers: int | None = None,
    config: HarnessConfig | None = None,
) -> PromptEvaluationSummary:
    """
    Evaluate a prompt against a labeled evaluation set.

    Args:
        prompt_id: Prompt identifier
        prompt_name: Prompt display name
        system_prompt: Prompt under evaluation
        leads: Labeled leads
        model_client: Scoring model client (created from config if not provided)
        on_progress: Called with (completed, total) after each lead
        model_name: Scoring model used when model_client is not provided
        max_workers: Concurrent oracle calls (default: config.evaluation.max_workers)
        config: HarnessConfig (loads from env if not provided)

    Returns:
        PromptEvaluationSummary

    Raises:
        ValueError: If leads is empty
    """
    if not leads:
        raise ValueError("Cannot evaluate a prompt against an empty lead list.")

    if config is None:
        config = load_config()
    judge = make_judge(model_client, model_name, config)
    workers = max_workers if max_workers is not None else config.evaluation.max_workers

    logger.info("Evaluating prompt '%s' on %d leads (workers=%d)", prompt_name, len(leads), workers)
    results = make_lead_evaluator(workers).evaluate_all(leads, system_prompt, judge, on_progress)

    assign_company_ranks(results)
    summary = build_summary(prompt_id, prompt_name, results)

    logger.info(
        "Prompt '%s': F1 %.1f%% | accuracy %.1f%% | cost $%.4f",
        prompt_name, summary.relevance_f1, summary.relevance_accuracy, summary.total_cost,
    )
    return summary
