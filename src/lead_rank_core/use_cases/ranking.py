"""
Lead Ranking

Runs leads through the three-step ranking pipeline:
1. Prefilter: a cheap relevance check that drops obviously irrelevant leads
2. Analysis: the scoring oracle judges each remaining lead
3. Company ranking: the oracle orders the relevant leads of each company
"""

import logging
from typing import Callable

from lead_rank_core.company_size import parse_employee_range
from lead_rank_core.cost_calc import calculate_cost, response_cost
from lead_rank_core.domain.constants import (
    COMPANY_RANKING_MAX_TOKENS,
    COMPANY_RANKING_TEMPERATURE,
    NOT_RELEVANT_BUYER_TYPE,
    PREFILTER_MAX_TOKENS,
    PREFILTER_PASS_THROUGH_SCORE,
    PREFILTER_TEMPERATURE,
    STEP_ANALYZE,
    STEP_PREFILTER,
    STEP_RANK,
)
from lead_rank_core.domain.entities import (
    EvaluationLead,
    LeadRankingRun,
    RankingResult,
    RankingStats,
)
from lead_rank_core.domain.value_objects import (
    CompanyRanking,
    LeadAnalysis,
    OracleJudgment,
    PrefilterResult,
)
from lead_rank_core.harness_config import HarnessConfig, load_config
from lead_rank_core.infrastructure.model_clients.base import ModelClient
from lead_rank_core.prompts import (
    PREFILTER_SYSTEM_PROMPT,
    build_analysis_system_prompt,
    build_company_ranking_system_prompt,
    build_company_ranking_user_prompt,
    build_prefilter_user_prompt,
)
from lead_rank_core.scoring.lead_judge import (
    LeadJudge,
    build_lead_analysis,
    clamp_score,
    coerce_bool,
)
from lead_rank_core.scoring.response_parser import (
    ResponseParseError,
    parse_json_object,
    parse_json_value,
)
from lead_rank_core.use_cases.evaluation import make_judge, resolve_client

logger = logging.getLogger(__name__)

# (step, current, total, lead); lead is None during the company ranking step
RankingProgressCallback = Callable[[str, int, int, EvaluationLead | None], None]

ANALYSIS_ERROR_REASONING = "Error during analysis"
PREFILTER_ERROR_REASON = "Error in prefilter, passing through"


# ---------------------------------------------------------------------------
# Step 1: prefilter
# ---------------------------------------------------------------------------

def prefilter_lead(
    lead: EvaluationLead,
    client: ModelClient,
    *,
    temperature: float = PREFILTER_TEMPERATURE,
    max_tokens: int = PREFILTER_MAX_TOKENS,
) -> PrefilterResult:
    """
    Quick relevance check of a lead.

    Never rejects a lead because of an oracle problem: a failed call or an
    unparsable answer passes the lead through to the full analysis.

    Args:
        lead: Lead to check
        client: Scoring model client

    Returns:
        PrefilterResult
    """
    try:
        response = client.generate(
            build_prefilter_user_prompt(lead),
            system_prompt=PREFILTER_SYSTEM_PROMPT,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=True,
        )
    except Exception as e:
        logger.warning("Prefilter call failed for lead %s, passing through: %s", lead.id, e)
        return PrefilterResult(True, PREFILTER_ERROR_REASON, PREFILTER_PASS_THROUGH_SCORE)

    cost = response_cost(response)
    try:
        payload = parse_json_object(response.output)
    except ResponseParseError as e:
        logger.warning("Unparsable prefilter answer for lead %s, passing through: %s", lead.id, e)
        return PrefilterResult(
            True, PREFILTER_ERROR_REASON, PREFILTER_PASS_THROUGH_SCORE,
            cost=cost, tokens=response.total_tokens,
        )

    reason = payload.get("reason")
    return PrefilterResult(
        should_process=coerce_bool(payload.get("shouldProcess", False)),
        reason=reason if isinstance(reason, str) and reason.strip() else "Unknown",
        quick_score=clamp_score(payload.get("quickScore")),
        cost=cost,
        tokens=response.total_tokens,
    )


# ---------------------------------------------------------------------------
# Step 2: analysis
# ---------------------------------------------------------------------------

def _error_analysis(size_category: str) -> LeadAnalysis:
    return LeadAnalysis(
        is_relevant=False,
        relevance_score=0.0,
        reasoning=ANALYSIS_ERROR_REASONING,
        department=None,
        seniority=None,
        buyer_type=NOT_RELEVANT_BUYER_TYPE,
        company_size_category=size_category,
        positive_signals=[],
        negative_signals=["Analysis error"],
    )


def analyze_lead(
    lead: EvaluationLead,
    judge: LeadJudge,
    system_prompt: str | None = None,
) -> RankingResult:
    """
    Fully analyze one lead with the scoring oracle.

    Oracle failures give a not-relevant result with an error analysis and
    zero cost. company_rank is left for the company ranking step.

    Args:
        lead: Lead to analyze
        judge: Scoring oracle adapter
        system_prompt: Analysis prompt (default: size-aware prompt for the lead)

    Returns:
        RankingResult
    """
    size_category = parse_employee_range(lead.employee_range).category
    outcome = judge.judge(lead, system_prompt or build_analysis_system_prompt(size_category))

    if isinstance(outcome, OracleJudgment):
        analysis = build_lead_analysis(outcome.payload, size_category)
        cost = calculate_cost(outcome.model_name, outcome.input_tokens, outcome.output_tokens)
        tokens = outcome.input_tokens + outcome.output_tokens
    else:
        analysis, cost, tokens = _error_analysis(size_category), 0.0, 0

    return RankingResult(
        lead_id=lead.id,
        name=lead.name,
        company=lead.company,
        title=lead.title,
        is_relevant=analysis.is_relevant,
        relevance_score=analysis.relevance_score,
        analysis=analysis,
        cost=cost,
        tokens=tokens,
    )


# ---------------------------------------------------------------------------
# Step 3: company ranking
# ---------------------------------------------------------------------------

def _ranked_ids(data: dict | list) -> list:
    """The id list of a ranking answer: a bare array or {"ranking": [...]} / {"order": [...]}"""
    if isinstance(data, dict):
        data = data.get("ranking") or data.get("order") or []
    return data if isinstance(data, list) else []


def rank_company_leads(
    company: str,
    employee_range: str | None,
    candidates: list[RankingResult],
    client: ModelClient,
    *,
    temperature: float = COMPANY_RANKING_TEMPERATURE,
    max_tokens: int = COMPANY_RANKING_MAX_TOKENS,
) -> CompanyRanking:
    """
    Order the relevant leads of one company, best contact first.

    Only relevant candidates are ranked, and every one of them appears exactly
    once. Ids the oracle leaves out follow its order by descending score; ids
    it invents are ignored. A failed call falls back to score order. No call
    is made for fewer than two relevant candidates.

    Args:
        company: Company name (for logging)
        employee_range: Employee range of the company
        candidates: Analyzed leads of the company
        client: Scoring model client

    Returns:
        CompanyRanking
    """
    relevant = [c for c in candidates if c.is_relevant]
    if len(relevant) < 2:
        return CompanyRanking(ranking=[c.lead_id for c in relevant])

    by_score = [c.lead_id for c in sorted(relevant, key=lambda c: -c.relevance_score)]
    size_category = parse_employee_range(employee_range).category

    try:
        response = client.generate(
            build_company_ranking_user_prompt(relevant),
            system_prompt=build_company_ranking_system_prompt(size_category),
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=True,
        )
    except Exception as e:
        logger.warning("Ranking call failed for company %s, using score order: %s", company, e)
        return CompanyRanking(ranking=by_score)

    try:
        answer = _ranked_ids(parse_json_value(response.output))
    except ResponseParseError as e:
        logger.warning("Unparsable ranking for company %s, using score order: %s", company, e)
        answer = []

    valid = set(by_score)
    ranking: list[str] = []
    for lead_id in answer:
        if isinstance(lead_id, (dict, list, bool)) or lead_id is None:
            continue
        lead_id = str(lead_id)
        if lead_id in valid and lead_id not in ranking:
            ranking.append(lead_id)
    ranking.extend(lead_id for lead_id in by_score if lead_id not in ranking)

    return CompanyRanking(ranking=ranking, cost=response_cost(response), tokens=response.total_tokens)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def rank_leads(
    leads: list[EvaluationLead],
    model_client: ModelClient | None = None,
    on_progress: RankingProgressCallback | None = None,
    *,
    skip_prefilter: bool = False,
    system_prompt: str | None = None,
    model_name: str | None = None,
    config: HarnessConfig | None = None,
) -> LeadRankingRun:
    """
    Qualify and rank leads.

    Results keep input order. A lead rejected by the prefilter is marked
    skipped and never analyzed. Each result's cost covers its prefilter and
    analysis calls; total_cost adds the company ranking calls on top.

    Args:
        leads: Leads to rank (expected ranks are ignored)
        model_client: Scoring model client (created from config if not provided)
        on_progress: Called with (step, current, total, lead) before each step
        skip_prefilter: Analyze every lead
        system_prompt: Analysis prompt (default: size-aware prompt per lead)
        model_name: Scoring model used when model_client is not provided
        config: HarnessConfig (loads from env if not provided)

    Returns:
        LeadRankingRun

    Raises:
        ValueError: If leads is empty
    """
    if not leads:
        raise ValueError("Cannot rank an empty lead list.")

    if config is None:
        config = load_config()
    client = resolve_client(model_client, model_name, config)
    judge = make_judge(client, config=config)

    def notify(step: str, current: int, total: int, lead: EvaluationLead | None = None) -> None:
        if on_progress:
            on_progress(step, current, total, lead)

    results: list[RankingResult] = []
    prefiltered = analyzed = relevant = 0
    total = len(leads)

    for i, lead in enumerate(leads, start=1):
        prefilter = None
        if not skip_prefilter:
            notify(STEP_PREFILTER, i, total, lead)
            prefilter = prefilter_lead(lead, client)
            if not prefilter.should_process:
                prefiltered += 1
                results.append(RankingResult(
                    lead_id=lead.id,
                    name=lead.name,
                    company=lead.company,
                    title=lead.title,
                    is_relevant=False,
                    relevance_score=prefilter.quick_score,
                    cost=prefilter.cost,
                    tokens=prefilter.tokens,
                    skipped=True,
                    skip_reason=prefilter.reason,
                ))
                continue

        notify(STEP_ANALYZE, i, total, lead)
        result = analyze_lead(lead, judge, system_prompt)
        if prefilter is not None:
            result.cost += prefilter.cost
            result.tokens += prefilter.tokens
        analyzed += 1
        if result.is_relevant:
            relevant += 1
        results.append(result)

    total_cost = sum(r.cost for r in results)
    total_tokens = sum(r.tokens for r in results)

    by_company: dict[str, list[RankingResult]] = {}
    employee_ranges: dict[str, str | None] = {}
    for lead, result in zip(leads, results):
        by_company.setdefault(lead.company, []).append(result)
        employee_ranges.setdefault(lead.company, lead.employee_range)

    for index, (company, company_results) in enumerate(by_company.items(), start=1):
        notify(STEP_RANK, index, len(by_company))
        company_ranking = rank_company_leads(company, employee_ranges[company], company_results, client)
        total_cost += company_ranking.cost
        total_tokens += company_ranking.tokens

        by_id = {r.lead_id: r for r in company_results}
        for position, lead_id in enumerate(company_ranking.ranking, start=1):
            by_id[lead_id].company_rank = position

    logger.info(
        "Ranked %d leads: %d prefiltered, %d analyzed, %d relevant | cost $%.4f",
        total, prefiltered, analyzed, relevant, total_cost,
    )
    return LeadRankingRun(
        results=results,
        total_cost=total_cost,
        total_tokens=total_tokens,
        stats=RankingStats(total=total, prefiltered=prefiltered, analyzed=analyzed, relevant=relevant),
    )


def analyze_single_lead(
    lead: EvaluationLead,
    model_client: ModelClient | None = None,
    *,
    system_prompt: str | None = None,
    model_name: str | None = None,
    config: HarnessConfig | None = None,
) -> RankingResult:
    """Analyze one lead on its own; a relevant lead is rank 1 of its company"""
    result = analyze_lead(lead, make_judge(model_client, model_name, config), system_prompt)
    result.company_rank = 1 if result.is_relevant else None
    return result
