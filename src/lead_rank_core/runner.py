"""
lead-rank-core CLI Runner

Minimal CLI for evaluating, comparing and optimizing lead-scoring prompts,
and for ranking leads with a prompt.

Usage:
    python -m lead_rank_core.runner evaluate --eval-set data/eval_leads.csv
    python -m lead_rank_core.runner evaluate --eval-set data/eval_leads.csv --prompt concise --model gpt-4o-mini
    python -m lead_rank_core.runner ab-test --eval-set data/eval_leads.json --prompt-a detailed --prompt-b prompts/my_prompt.txt
    python -m lead_rank_core.runner optimize --eval-set data/eval_leads.csv --max-iterations 5 --target-score 85
    python -m lead_rank_core.runner rank --eval-set data/leads.csv --skip-prefilter

--prompt, --prompt-a, --prompt-b and --baseline accept a built-in prompt name
(baseline, detailed, concise, cost_optimized) or a path to a text file.
rank ignores expected ranks in the file; without --prompt each lead is
analyzed with the prompt for its company size.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict
from datetime import datetime
from functools import partial
from pathlib import Path

import pandas as pd
from dotenv import load_dotenv

from lead_rank_core.domain.constants import QUICK_MAX_ITERATIONS, QUICK_TARGET_SCORE, STEP_RANK
from lead_rank_core.domain.entities import (
    LeadRankingRun,
    OptimizationResult,
    PromptEvaluationSummary,
    PromptVariant,
)
from lead_rank_core.evaluation_loader import load_evaluation_leads
from lead_rank_core.harness_config import HarnessConfig, load_config
from lead_rank_core.infrastructure.model_clients.factory import create_client
from lead_rank_core.prompts import DEFAULT_BASELINE_PROMPT, DEFAULT_PROMPTS
from lead_rank_core.use_cases.ab_test import run_ab_test
from lead_rank_core.use_cases.evaluation import evaluate_prompt
from lead_rank_core.use_cases.health_check import run_health_check, troubleshooting_hint
from lead_rank_core.use_cases.optimization import optimize_prompt
from lead_rank_core.use_cases.ranking import rank_leads


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="lead-rank-core: Evaluate and optimize lead qualification prompts",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--eval-set",
        required=True,
        help="Path to the labeled evaluation set (.json or .csv)",
    )
    common.add_argument(
        "--model",
        default=None,
        help="Scoring model (default: LEADRANK_EVALUATION_MODEL from .env)",
    )
    common.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Concurrent scoring calls (default: LEADRANK_MAX_WORKERS from .env)",
    )
    common.add_argument(
        "--run-id",
        default=None,
        help="Run ID used in output file names (default: current timestamp)",
    )
    common.add_argument(
        "--output-dir",
        default="results",
        help="Directory for output files (default: results)",
    )
    common.add_argument(
        "--skip-health-check",
        action="store_true",
        help="Do not ping the models before running",
    )
    common.add_argument(
        "--verbose",
        action="store_true",
        help="Show INFO-level log messages",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    evaluate = subparsers.add_parser("evaluate", parents=[common], help="Evaluate one prompt")
    evaluate.add_argument(
        "--prompt",
        default="baseline",
        help="Built-in prompt name or prompt file (default: baseline)",
    )

    ab_test = subparsers.add_parser("ab-test", parents=[common], help="Compare two prompts")
    ab_test.add_argument("--prompt-a", required=True, help="Built-in prompt name or prompt file")
    ab_test.add_argument("--prompt-b", required=True, help="Built-in prompt name or prompt file")
    ab_test.add_argument(
        "--tie-threshold",
        type=float,
        default=None,
        help="F1 gap (points) below which the test is a tie (default: LEADRANK_TIE_THRESHOLD)",
    )

    optimize = subparsers.add_parser("optimize", parents=[common], help="Optimize a prompt")
    optimize.add_argument(
        "--baseline",
        default="baseline",
        help="Starting prompt: built-in name or prompt file (default: baseline)",
    )
    optimize.add_argument(
        "--optimizer-model",
        default=None,
        help="Generation model for analysis and rewrites (default: LEADRANK_OPTIMIZER_MODEL)",
    )
    optimize.add_argument("--max-iterations", type=int, default=None)
    optimize.add_argument("--target-score", type=float, default=None)
    optimize.add_argument(
        "--quick",
        action="store_true",
        help="Quick run: 3 iterations, target F1 80%%",
    )

    rank = subparsers.add_parser("rank", parents=[common], help="Qualify leads and rank them per company")
    rank.add_argument(
        "--prompt",
        default=None,
        help="Analysis prompt: built-in name or prompt file (default: size-aware prompt per lead)",
    )
    rank.add_argument(
        "--skip-prefilter",
        action="store_true",
        help="Analyze every lead without the quick prefilter",
    )

    return parser.parse_args(argv)


def resolve_prompt(value: str) -> PromptVariant:
    """
    Turn a --prompt style argument into a PromptVariant

    Raises:
        ValueError: If value is neither a built-in prompt nor an existing file
    """
    if value == "baseline":
        return PromptVariant(id="baseline", name="Baseline Prompt", system_prompt=DEFAULT_BASELINE_PROMPT)
    if value in DEFAULT_PROMPTS:
        entry = DEFAULT_PROMPTS[value]
        return PromptVariant(id=value, name=entry["name"], system_prompt=entry["system_prompt"])

    path = Path(value)
    if not path.is_file():
        choices = ", ".join(["baseline", *DEFAULT_PROMPTS])
        raise ValueError(f"Unknown prompt '{value}'. Use one of: {choices}, or a prompt file path")
    return PromptVariant(id=path.stem, name=path.stem, system_prompt=path.read_text(encoding="utf-8"))


def _prompt_args(args: argparse.Namespace) -> list[str]:
    """Prompt arguments of the selected subcommand"""
    if args.command == "ab-test":
        return [args.prompt_a, args.prompt_b]
    if args.command == "optimize":
        return [args.baseline]
    if args.command == "rank":
        return [args.prompt] if args.prompt else []
    return [args.prompt]


def result_rows(summary: PromptEvaluationSummary) -> list[dict]:
    """Flatten per-lead results for CSV output"""
    rows = []
    for r in summary.results:
        rows.append({
            "prompt_id": summary.prompt_id,
            "lead_id": r.lead_id,
            "name": r.name,
            "company": r.company,
            "expected_rank": r.expected_rank,
            "predicted_relevant": r.predicted_relevant,
            "predicted_score": r.predicted_score,
            "predicted_rank": r.predicted_rank,
            "rank_error": r.rank_error,
            "is_correct_relevance": r.is_correct_relevance,
            "buyer_type": r.analysis.buyer_type if r.analysis else None,
            "department": r.analysis.department if r.analysis else None,
            "seniority": r.analysis.seniority if r.analysis else None,
            "reasoning": r.analysis.reasoning if r.analysis else None,
            "cost": r.cost,
            "tokens": r.tokens,
        })
    return rows


def summary_dict(summary: PromptEvaluationSummary) -> dict:
    """Summary metrics without the per-lead results"""
    data = asdict(summary)
    data.pop("results")
    return data


def optimization_dict(result: OptimizationResult) -> dict:
    """Serializable view of an optimization run"""
    return {
        "best_prompt": result.best_prompt.system_prompt,
        "best_score": result.best_prompt.score,
        "best_metrics": summary_dict(result.best_prompt.metrics),
        "total_cost": result.total_cost,
        "optimizer_cost": result.optimizer_cost,
        "total_iterations": result.total_iterations,
        "improvement": result.improvement,
        "stop_reason": result.stop_reason,
        "iterations": [
            {
                "iteration": it.iteration,
                "score": it.score,
                "cost": it.cost,
                "analysis": it.analysis,
                "improvements": it.improvements,
                "prompt": it.prompt,
                "metrics": summary_dict(it.metrics),
            }
            for it in result.iterations
        ],
    }


def ranking_rows(run: LeadRankingRun) -> list[dict]:
    """Flatten ranking results for CSV output"""
    rows = []
    for r in run.results:
        rows.append({
            "lead_id": r.lead_id,
            "name": r.name,
            "company": r.company,
            "title": r.title,
            "is_relevant": r.is_relevant,
            "relevance_score": r.relevance_score,
            "company_rank": r.company_rank,
            "skipped": r.skipped,
            "skip_reason": r.skip_reason,
            "buyer_type": r.analysis.buyer_type if r.analysis else None,
            "department": r.analysis.department if r.analysis else None,
            "seniority": r.analysis.seniority if r.analysis else None,
            "reasoning": r.analysis.reasoning if r.analysis else None,
            "cost": r.cost,
            "tokens": r.tokens,
        })
    return rows


def _write_json(data: dict, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def _save_results(rows: list[dict], path: Path) -> None:
    """Save per-lead results to CSV."""
    path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(rows).to_csv(path, index=False)


def _print_lead_progress(current: int, total: int, label: str = "") -> None:
    print(f"\r  {label}Lead {current}/{total}", end="" if current < total else "\n", flush=True)


def _print_summary(summary: PromptEvaluationSummary) -> None:
    print(f"  Prompt:          {summary.prompt_name}")
    print(f"  Leads:           {summary.total_leads}")
    print(f"  Accuracy:        {summary.relevance_accuracy:.1f}%")
    print(f"  Precision:       {summary.relevance_precision:.1f}%")
    print(f"  Recall:          {summary.relevance_recall:.1f}%")
    print(f"  F1:              {summary.relevance_f1:.1f}%")
    print(f"  Avg rank error:  {summary.avg_rank_error:.2f}")
    print(f"  Rank corr.:      {summary.rank_correlation:.3f}")
    print(f"  Cost:            ${summary.total_cost:.4f} (${summary.avg_cost_per_lead:.6f}/lead)")
    print()


def _check_models(models: list[str], config: HarnessConfig) -> None:
    """Exit with status 1 unless every model answers"""
    available, results = run_health_check(models, partial(create_client, config=config))
    failed = [r.model_name for r in results if not r.success]
    if failed:
        for model_name in failed:
            print(f"  Hint ({model_name}): {troubleshooting_hint(model_name)}")
        print("\nERROR: Required models are not available. Exiting.")
        sys.exit(1)


def run_evaluate(args: argparse.Namespace, config: HarnessConfig, leads, output_dir: Path, run_id: str) -> None:
    variant = resolve_prompt(args.prompt)
    print(f"=== Evaluating: {variant.name} ===\n")
    summary = evaluate_prompt(
        variant.id,
        variant.name,
        variant.system_prompt,
        leads,
        on_progress=_print_lead_progress,
        model_name=args.model,
        max_workers=args.workers,
        config=config,
    )
    print()
    _print_summary(summary)

    results_path = output_dir / f"results_{run_id}.csv"
    summary_path = output_dir / f"summary_{run_id}.json"
    _save_results(result_rows(summary), results_path)
    _write_json(summary_dict(summary), summary_path)

    print("=== Output ===\n")
    print(f"  Results: {results_path}")
    print(f"  Summary: {summary_path}")
    print()


def run_ab(args: argparse.Namespace, config: HarnessConfig, leads, output_dir: Path, run_id: str) -> None:
    prompt_a = resolve_prompt(args.prompt_a)
    prompt_b = resolve_prompt(args.prompt_b)
    print(f"=== A/B Test: {prompt_a.name} vs {prompt_b.name} ===\n")

    result = run_ab_test(
        prompt_a,
        prompt_b,
        leads,
        on_progress=lambda index, current, total: _print_lead_progress(
            current, total, f"Prompt {'AB'[index]}: "
        ),
        tie_threshold=args.tie_threshold,
        model_name=args.model,
        max_workers=args.workers,
        config=config,
    )
    print()
    print(result.summary)
    print()

    results_path = output_dir / f"ab_results_{run_id}.csv"
    summary_path = output_dir / f"ab_summary_{run_id}.json"
    _save_results(result_rows(result.prompt_a) + result_rows(result.prompt_b), results_path)
    _write_json(
        {
            "winner": result.winner,
            "prompt_a": summary_dict(result.prompt_a),
            "prompt_b": summary_dict(result.prompt_b),
            "summary": result.summary,
        },
        summary_path,
    )

    print("=== Output ===\n")
    print(f"  Results: {results_path}")
    print(f"  Summary: {summary_path}")
    print()


def run_optimize(args: argparse.Namespace, config: HarnessConfig, leads, output_dir: Path, run_id: str) -> None:
    baseline = resolve_prompt(args.baseline)
    if args.quick:
        max_iterations, target_score = QUICK_MAX_ITERATIONS, QUICK_TARGET_SCORE
    else:
        max_iterations, target_score = args.max_iterations, args.target_score

    def on_progress(iteration: int, total: int, best: float, phase: str, details: str) -> None:
        if details.startswith("Lead "):
            print(f"\r  [{iteration}/{total}] {phase}: {details}   ", end="", flush=True)
        else:
            print(f"\r  [{iteration}/{total}] best={best:.1f}% | {phase}: {details}")

    evaluation_client = create_client(args.model, config) if args.model else None
    optimizer_client = create_client(args.optimizer_model, config) if args.optimizer_model else None
    cancel_event = threading.Event()

    print(f"=== Optimizing: {baseline.name} ===\n")
    # The loop runs in a worker thread so Ctrl+C can stop it between rounds
    with ThreadPoolExecutor(max_workers=1) as executor:
        future = executor.submit(
            optimize_prompt,
            leads,
            max_iterations,
            target_score,
            baseline.system_prompt,
            on_progress,
            evaluation_client=evaluation_client,
            optimizer_client=optimizer_client,
            max_workers=args.workers,
            config=config,
            cancel_event=cancel_event,
        )
        try:
            result = future.result()
        except KeyboardInterrupt:
            print("\n  Interrupted: finishing the current round...")
            cancel_event.set()
            result = future.result()

    print()
    print("=== Optimization Result ===\n")
    print(f"  {'Iter':>4} {'F1':>7} {'Cost':>10}")
    print(f"  {'-'*4} {'-'*7} {'-'*10}")
    for it in result.iterations:
        marker = " *" if it.prompt == result.best_prompt.system_prompt and it.score == result.best_prompt.score else ""
        print(f"  {it.iteration:>4} {it.score:>6.1f}% ${it.cost:>9.4f}{marker}")
    print()
    print(f"  Best F1:        {result.best_prompt.score:.1f}%")
    print(f"  Improvement:    {result.improvement:+.1f}%")
    print(f"  Stop reason:    {result.stop_reason}")
    print(f"  Evaluation cost: ${result.total_cost:.4f}")
    print(f"  Optimizer cost:  ${result.optimizer_cost:.4f}")
    print()

    results_path = output_dir / f"optimization_results_{run_id}.csv"
    summary_path = output_dir / f"optimization_{run_id}.json"
    prompt_path = output_dir / f"best_prompt_{run_id}.txt"
    rows = []
    for it in result.iterations:
        rows.extend({"iteration": it.iteration, **row} for row in result_rows(it.metrics))
    _save_results(rows, results_path)
    _write_json(optimization_dict(result), summary_path)
    prompt_path.write_text(result.best_prompt.system_prompt, encoding="utf-8")

    print("=== Output ===\n")
    print(f"  Results:     {results_path}")
    print(f"  Summary:     {summary_path}")
    print(f"  Best prompt: {prompt_path}")
    print()


def run_rank(args: argparse.Namespace, config: HarnessConfig, leads, output_dir: Path, run_id: str) -> None:
    system_prompt = resolve_prompt(args.prompt).system_prompt if args.prompt else None
    print(f"=== Ranking leads{' (no prefilter)' if args.skip_prefilter else ''} ===\n")

    def on_progress(step: str, current: int, total: int, lead) -> None:
        if step == STEP_RANK:
            print(f"\r  Ranking company {current}/{total}   ", end="" if current < total else "\n", flush=True)
        else:
            print(f"\r  {step.capitalize()}: lead {current}/{total}   ", end="", flush=True)

    run = rank_leads(
        leads,
        on_progress=on_progress,
        skip_prefilter=args.skip_prefilter,
        system_prompt=system_prompt,
        model_name=args.model,
        config=config,
    )
    print()
    print(f"  Leads:        {run.stats.total}")
    print(f"  Prefiltered:  {run.stats.prefiltered}")
    print(f"  Analyzed:     {run.stats.analyzed}")
    print(f"  Relevant:     {run.stats.relevant}")
    print(f"  Cost:         ${run.total_cost:.4f} ({run.total_tokens} tokens)")
    print()

    print("=== Company Ranking ===\n")
    ranked: dict[str, list] = {}
    for r in run.results:
        if r.company_rank is not None:
            ranked.setdefault(r.company, []).append(r)
    for company, company_results in ranked.items():
        print(f"  {company}")
        for r in sorted(company_results, key=lambda r: r.company_rank):
            print(f"    {r.company_rank}. {r.name} ({r.title or 'Unknown'}) score={r.relevance_score:.0f}")
    if not ranked:
        print("  No relevant leads.")
    print()

    results_path = output_dir / f"ranking_{run_id}.csv"
    summary_path = output_dir / f"ranking_summary_{run_id}.json"
    _save_results(ranking_rows(run), results_path)
    _write_json(
        {
            "model": args.model or config.models.evaluation_model,
            "skip_prefilter": args.skip_prefilter,
            "stats": asdict(run.stats),
            "total_cost": run.total_cost,
            "total_tokens": run.total_tokens,
        },
        summary_path,
    )

    print("=== Output ===\n")
    print(f"  Results: {results_path}")
    print(f"  Summary: {summary_path}")
    print()


COMMANDS = {
    "evaluate": run_evaluate,
    "ab-test": run_ab,
    "optimize": run_optimize,
    "rank": run_rank,
}


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()
    run_id = args.run_id if args.run_id else datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    # Load evaluation set
    print(f"\n=== Loading evaluation set: {args.eval_set} ===\n")
    try:
        leads = load_evaluation_leads(args.eval_set)
        for value in _prompt_args(args):
            resolve_prompt(value)
    except (OSError, KeyError, ValueError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    if not leads:
        print("ERROR: Evaluation set is empty. Exiting.")
        sys.exit(1)

    relevant = sum(1 for lead in leads if lead.expected_relevant)
    companies = len({lead.company for lead in leads})
    print(f"  Leads:     {len(leads)} ({relevant} relevant)")
    print(f"  Companies: {companies}")
    print(f"  Model:     {args.model or config.models.evaluation_model}")
    print(f"  Run ID:    {run_id}")
    print()

    # Health check
    if not args.skip_health_check:
        models = [args.model or config.models.evaluation_model]
        if args.command == "optimize":
            models.append(args.optimizer_model or config.models.optimizer_model)
        _check_models(models, config)

    COMMANDS[args.command](args, config, leads, output_dir, run_id)


if __name__ == "__main__":
    main()
