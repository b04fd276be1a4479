"""
Prompt Optimization

Iteratively improves a lead-scoring prompt: evaluate, diagnose failures with a
generation model, rewrite the prompt, and keep the rewrite only when its F1
beats the best prompt so far (greedy hill climb, no backtracking).
"""

import logging
import threading
from typing import Callable

from lead_rank_core.cost_calc import response_cost
from lead_rank_core.domain.constants import (
    QUICK_MAX_ITERATIONS,
    QUICK_TARGET_SCORE,
    SIGNIFICANT_RANK_ERROR,
    STOP_CANCELLED,
    STOP_EXHAUSTED,
    STOP_STALLED,
    STOP_TARGET_REACHED,
)
from lead_rank_core.domain.entities import (
    BestPrompt,
    EvaluationLead,
    EvaluationResult,
    OptimizationIteration,
    OptimizationResult,
    PromptEvaluationSummary,
)
from lead_rank_core.domain.value_objects import FailureAnalysis, PromptRevision
from lead_rank_core.harness_config import HarnessConfig, load_config
from lead_rank_core.infrastructure.model_clients.base import ModelClient
from lead_rank_core.prompts import (
    DEFAULT_BASELINE_PROMPT,
    FAILURE_ANALYSIS_SYSTEM_PROMPT,
    PERSONA_SPEC,
    PROMPT_REWRITE_SYSTEM_PROMPT,
    build_failure_analysis_prompt,
    build_prompt_rewrite_prompt,
    truncate,
)
from lead_rank_core.scoring.response_parser import ResponseParseError, parse_json_object
from lead_rank_core.use_cases.evaluation import evaluate_prompt, resolve_client

logger = logging.getLogger(__name__)

# (iteration, max_iterations, best_score, phase, details)
OptimizationProgressCallback = Callable[[int, int, float, str, str], None]


# ---------------------------------------------------------------------------
# Failure analysis
# ---------------------------------------------------------------------------

def partition_failures(
    results: list[EvaluationResult],
    rank_error_threshold: float = SIGNIFICANT_RANK_ERROR,
) -> tuple[list[EvaluationResult], list[EvaluationResult], list[EvaluationResult]]:
    """
    Split results into false negatives, false positives and significant rank errors

    Args:
        results: Ranked evaluation results
        rank_error_threshold: Rank errors strictly above this are significant

    Returns:
        (false_negatives, false_positives, rank_errors)
    """
    false_negatives = [r for r in results if r.expected_rank is not None and not r.predicted_relevant]
    false_positives = [r for r in results if r.expected_rank is None and r.predicted_relevant]
    rank_errors = [
        r for r in results
        if r.rank_error is not None and r.rank_error > rank_error_threshold
    ]
    return false_negatives, false_positives, rank_errors


def _department(result: EvaluationResult) -> str:
    if result.analysis and result.analysis.department:
        return result.analysis.department
    return "Unknown"


def build_failure_report(
    summary: PromptEvaluationSummary,
    rank_error_threshold: float = SIGNIFICANT_RANK_ERROR,
    max_examples: int = 5,
) -> str:
    """
    Render current metrics and failure examples as markdown

    At most max_examples leads are listed per failure category.
    """
    false_negatives, false_positives, rank_errors = partition_failures(
        summary.results, rank_error_threshold
    )

    lines = [
        "## Current Performance",
        f"- Accuracy: {summary.relevance_accuracy:.1f}%",
        f"- F1 Score: {summary.relevance_f1:.1f}%",
        f"- Precision: {summary.relevance_precision:.1f}%",
        f"- Recall: {summary.relevance_recall:.1f}%",
        f"- Avg Rank Error: {summary.avg_rank_error:.2f}",
        "",
        "## Failure Analysis",
        f"- False Negatives (missed relevant leads): {len(false_negatives)}",
    ]
    lines.extend(
        f"  - {r.name} ({_department(r)}) - Expected rank {r.expected_rank}"
        for r in false_negatives[:max_examples]
    )
    lines.append("")
    lines.append(f"- False Positives (incorrectly marked relevant): {len(false_positives)}")
    lines.extend(f"  - {r.name} ({_department(r)})" for r in false_positives[:max_examples])
    lines.append("")
    lines.append(
        f"- Significant Rank Errors (>{rank_error_threshold:g} position off): {len(rank_errors)}"
    )
    lines.extend(
        f"  - {r.name}: Expected {r.expected_rank}, Got {r.predicted_rank} (error: {r.rank_error:g})"
        for r in rank_errors[:max_examples]
    )
    return "\n".join(lines)


def analyze_failures(
    summary: PromptEvaluationSummary,
    current_prompt: str,
    client: ModelClient,
    *,
    rank_error_threshold: float = SIGNIFICANT_RANK_ERROR,
    max_examples: int = 5,
    prompt_excerpt_chars: int = 2000,
    temperature: float = 0.7,
    max_tokens: int = 1000,
) -> FailureAnalysis:
    """
    Diagnose an evaluation and ask the generation model for improvements.

    Never raises on model problems: a failed call or an unparsable answer
    yields an empty analysis and no improvements.

    Args:
        summary: Evaluation of current_prompt
        current_prompt: Prompt that produced summary
        client: Generation model client
        rank_error_threshold: Rank errors strictly above this are reported
        max_examples: Examples listed per failure category
        prompt_excerpt_chars: Prompt characters included in the request

    Returns:
        FailureAnalysis
    """
    false_negatives, false_positives, rank_errors = partition_failures(
        summary.results, rank_error_threshold
    )
    counts = {
        "false_negatives": len(false_negatives),
        "false_positives": len(false_positives),
        "rank_errors": len(rank_errors),
    }

    request = build_failure_analysis_prompt(
        truncate(current_prompt, prompt_excerpt_chars),
        build_failure_report(summary, rank_error_threshold, max_examples),
    )

    try:
        response = client.generate(
            request,
            system_prompt=FAILURE_ANALYSIS_SYSTEM_PROMPT,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=True,
        )
    except Exception as e:
        logger.warning("Failure analysis call failed: %s", e)
        return FailureAnalysis(analysis="", improvements=[], **counts)

    cost = response_cost(response)
    try:
        payload = parse_json_object(response.output)
    except ResponseParseError as e:
        logger.warning("Unparsable failure analysis: %s", e)
        return FailureAnalysis(analysis="", improvements=[], cost=cost, **counts)

    analysis = payload.get("analysis")
    improvements = payload.get("improvements")
    if not isinstance(improvements, list):
        improvements = []

    return FailureAnalysis(
        analysis=analysis if isinstance(analysis, str) else "",
        improvements=[imp for imp in improvements if isinstance(imp, str) and imp.strip()],
        cost=cost,
        **counts,
    )


# ---------------------------------------------------------------------------
# Prompt mutation
# ---------------------------------------------------------------------------

def generate_improved_prompt(
    current_prompt: str,
    analysis: str,
    improvements: list[str],
    persona_spec: str,
    client: ModelClient,
    *,
    persona_excerpt_chars: int = 1500,
    temperature: float = 0.7,
    max_tokens: int = 2000,
) -> PromptRevision:
    """
    Ask the generation model to rewrite a prompt.

    The rewrite must keep the scoring JSON contract; the generation model is
    instructed accordingly. A failed call or an empty answer returns the
    current prompt unchanged.

    Returns:
        PromptRevision
    """
    request = build_prompt_rewrite_prompt(
        current_prompt,
        truncate(persona_spec, persona_excerpt_chars),
        analysis,
        improvements,
    )

    try:
        response = client.generate(
            request,
            system_prompt=PROMPT_REWRITE_SYSTEM_PROMPT,
            temperature=temperature,
            max_tokens=max_tokens,
        )
    except Exception as e:
        logger.warning("Prompt rewrite call failed, keeping current prompt: %s", e)
        return PromptRevision(prompt=current_prompt, changed=False)

    cost = response_cost(response)
    new_prompt = (response.output or "").strip()
    if not new_prompt:
        logger.warning("Prompt rewrite returned empty output, keeping current prompt")
        return PromptRevision(prompt=current_prompt, changed=False, cost=cost)

    return PromptRevision(prompt=new_prompt, changed=new_prompt != current_prompt, cost=cost)


# ---------------------------------------------------------------------------
# Optimization loop
# ---------------------------------------------------------------------------

def relative_improvement(baseline_score: float, best_score: float) -> float:
    """Relative gain in percent, 0 when the baseline scored 0"""
    if baseline_score <= 0:
        return 0.0
    return (best_score - baseline_score) / baseline_score * 100


def optimize_prompt(
    leads: list[EvaluationLead],
    max_iterations: int | None = None,
    target_score: float | None = None,
    baseline_prompt: str | None = None,
    on_progress: OptimizationProgressCallback | None = None,
    *,
    evaluation_client: ModelClient | None = None,
    optimizer_client: ModelClient | None = None,
    max_workers: int | None = None,
    config: HarnessConfig | None = None,
    cancel_event: threading.Event | None = None,
) -> OptimizationResult:
    """
    Optimize a prompt against a labeled evaluation set.

    Round 0 evaluates the baseline. Each following round stops the run when
    the best F1 already meets target_score (target_reached) or when the
    failure analysis suggests nothing (stalled); otherwise it rewrites the
    best prompt, evaluates the rewrite and adopts it only if its F1 is
    strictly higher. Running out of rounds stops with "exhausted". A set
    cancel_event is honored between rounds ("cancelled").

    Args:
        leads: Labeled leads
        max_iterations: Rewrite rounds after the baseline (default: config)
        target_score: F1 (percent) that ends the search (default: config)
        baseline_prompt: Starting prompt (default: DEFAULT_BASELINE_PROMPT)
        on_progress: Called with (iteration, max_iterations, best_score, phase, details)
        evaluation_client: Scoring model client (default: config.models.evaluation_model)
        optimizer_client: Generation model client (default: config.models.optimizer_model)
        max_workers: Concurrent oracle calls per evaluation
        config: HarnessConfig (loads from env if not provided)
        cancel_event: Stops the run between rounds when set

    Returns:
        OptimizationResult

    Raises:
        ValueError: If leads is empty or max_iterations is negative
    """
    if not leads:
        raise ValueError("Cannot optimize a prompt against an empty lead list.")

    if config is None:
        config = load_config()
    opt = config.optimization
    max_iterations = max_iterations if max_iterations is not None else opt.max_iterations
    target_score = target_score if target_score is not None else opt.target_score
    if max_iterations < 0:
        raise ValueError("max_iterations must be non-negative.")
    current_prompt = baseline_prompt or DEFAULT_BASELINE_PROMPT

    def notify(iteration: int, best: float, phase: str, details: str) -> None:
        if on_progress:
            on_progress(iteration, max_iterations, best, phase, details)

    evaluation_client = resolve_client(evaluation_client, config.models.evaluation_model, config)

    def evaluate(iteration: int, prompt: str, best: float, phase: str) -> PromptEvaluationSummary:
        prompt_id = "baseline" if iteration == 0 else f"iteration-{iteration}"
        prompt_name = "Baseline Prompt" if iteration == 0 else f"Iteration {iteration}"
        return evaluate_prompt(
            prompt_id,
            prompt_name,
            prompt,
            leads,
            evaluation_client,
            lambda current, total: notify(iteration, best, phase, f"Lead {current}/{total}"),
            max_workers=max_workers,
            config=config,
        )

    # Baseline
    notify(0, 0.0, "Evaluating Baseline", f"Testing {len(leads)} leads...")
    baseline = evaluate(0, current_prompt, 0.0, "Evaluating Baseline")
    baseline_score = baseline.relevance_f1

    iterations = [OptimizationIteration(
        iteration=0,
        prompt=current_prompt,
        score=baseline_score,
        metrics=baseline,
        analysis="Baseline evaluation",
        improvements=[],
        cost=baseline.total_cost,
    )]
    best_prompt, best_score, best_metrics = current_prompt, baseline_score, baseline
    total_cost = baseline.total_cost
    optimizer_cost = 0.0
    notify(0, best_score, "Baseline Complete", f"Score: {best_score:.1f}%")
    logger.info("Baseline F1 %.1f%% (target %.1f%%)", baseline_score, target_score)

    stop_reason = STOP_EXHAUSTED
    for i in range(1, max_iterations + 1):
        phase = f"Iteration {i}/{max_iterations}"

        if cancel_event is not None and cancel_event.is_set():
            stop_reason = STOP_CANCELLED
            notify(i, best_score, "Cancelled", f"Stopped before round {i}")
            logger.info("Optimization cancelled before round %d", i)
            break

        if best_score >= target_score:
            stop_reason = STOP_TARGET_REACHED
            notify(i, best_score, "Target Reached!", f"Score: {best_score:.1f}%")
            logger.info("Reached target F1 %.1f%% after round %d", target_score, i - 1)
            break

        # Created on first use: a run that stops after the baseline never needs it
        if optimizer_client is None:
            optimizer_client = resolve_client(None, config.models.optimizer_model, config)

        notify(i, best_score, phase, "Analyzing failures...")
        failures = analyze_failures(
            best_metrics,
            current_prompt,
            optimizer_client,
            rank_error_threshold=opt.rank_error_threshold,
            max_examples=opt.max_failure_examples,
            prompt_excerpt_chars=opt.prompt_excerpt_chars,
            temperature=config.models.generation_temperature,
            max_tokens=config.models.analysis_max_tokens,
        )
        optimizer_cost += failures.cost

        if not failures.improvements:
            stop_reason = STOP_STALLED
            notify(i, best_score, "Optimization Complete", "No more improvements found")
            logger.info("No improvements suggested in round %d; stopping", i)
            break

        notify(i, best_score, phase, "Generating improved prompt...")
        revision = generate_improved_prompt(
            current_prompt,
            failures.analysis,
            failures.improvements,
            PERSONA_SPEC,
            optimizer_client,
            persona_excerpt_chars=opt.persona_excerpt_chars,
            temperature=config.models.generation_temperature,
            max_tokens=config.models.rewrite_max_tokens,
        )
        optimizer_cost += revision.cost

        notify(i, best_score, phase, "Evaluating new prompt...")
        metrics = evaluate(i, revision.prompt, best_score, phase)
        score = metrics.relevance_f1
        total_cost += metrics.total_cost

        iterations.append(OptimizationIteration(
            iteration=i,
            prompt=revision.prompt,
            score=score,
            metrics=metrics,
            analysis=failures.analysis,
            improvements=list(failures.improvements),
            cost=metrics.total_cost,
        ))

        if score > best_score:
            best_prompt, best_score, best_metrics = revision.prompt, score, metrics
            current_prompt = revision.prompt

        logger.info("Round %d: F1 %.1f%% (best %.1f%%)", i, score, best_score)
    else:
        if best_score >= target_score:
            stop_reason = STOP_TARGET_REACHED

    improvement = relative_improvement(baseline_score, best_score)
    notify(
        len(iterations) - 1, best_score, "Done",
        f"Best score: {best_score:.1f}% ({improvement:+.1f}% vs baseline, {stop_reason})",
    )

    return OptimizationResult(
        iterations=iterations,
        best_prompt=BestPrompt(system_prompt=best_prompt, score=best_score, metrics=best_metrics),
        total_cost=total_cost,
        total_iterations=len(iterations),
        improvement=improvement,
        stop_reason=stop_reason,
        optimizer_cost=optimizer_cost,
    )


def quick_optimize(
    leads: list[EvaluationLead],
    on_progress: OptimizationProgressCallback | None = None,
    *,
    baseline_prompt: str | None = None,
    evaluation_client: ModelClient | None = None,
    optimizer_client: ModelClient | None = None,
    max_workers: int | None = None,
    config: HarnessConfig | None = None,
    cancel_event: threading.Event | None = None,
) -> OptimizationResult:
    """Short optimization run: 3 rounds, target F1 80%"""
    return optimize_prompt(
        leads,
        max_iterations=QUICK_MAX_ITERATIONS,
        target_score=QUICK_TARGET_SCORE,
        baseline_prompt=baseline_prompt,
        on_progress=on_progress,
        evaluation_client=evaluation_client,
        optimizer_client=optimizer_client,
        max_workers=max_workers,
        config=config,
        cancel_event=cancel_event,
    )
