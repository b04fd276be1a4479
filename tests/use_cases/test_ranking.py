"""
Tests for the lead ranking pipeline

Covers the prefilter, single lead analysis, per-company ranking and
rank_leads() end to end with a model that answers each step separately.
"""

import json
from unittest.mock import MagicMock

import pytest

from lead_rank_core.domain.entities import EvaluationLead, RankingResult
from lead_rank_core.domain.value_objects import ModelResponse
from lead_rank_core.harness_config import HarnessConfig
from lead_rank_core.infrastructure.model_clients.base import ModelClient
from lead_rank_core.prompts import PREFILTER_SYSTEM_PROMPT, build_analysis_system_prompt
from lead_rank_core.scoring.lead_judge import LeadJudge
from lead_rank_core.use_cases.ranking import (
    ANALYSIS_ERROR_REASONING,
    PREFILTER_ERROR_REASON,
    analyze_lead,
    analyze_single_lead,
    prefilter_lead,
    rank_company_leads,
    rank_leads,
)

# gpt-4o-mini: 100 * 0.15 / 1M + 20 * 0.60 / 1M
COST_PER_CALL = 0.000027
RANKING_INTRO = "You are an expert at prioritizing sales outreach"


def _response(payload):
    output = payload if isinstance(payload, str) else json.dumps(payload)
    return ModelResponse(
        output=output, latency_ms=1, model_name="gpt-4o-mini", input_tokens=100, output_tokens=20
    )


def _lead(name, company="Acme", title="VP Sales", employee_range="51-200"):
    return EvaluationLead(
        id=f"id-{name}", name=name, company=company, title=title, employee_range=employee_range
    )


def _candidate(lead_id, score, relevant=True):
    return RankingResult(
        lead_id=lead_id,
        name=lead_id.title(),
        company="Acme",
        title="Sales",
        is_relevant=relevant,
        relevance_score=score,
    )


class PipelineClient(ModelClient):
    """
    Answers prefilter, analysis and company ranking calls separately.

    Analysis calls go to a scripted scoring client. Prefilter answers are
    keyed by lead name (default: pass). Ranking answers are consumed in call
    order.
    """

    def __init__(self, scoring, prefilter=None, rankings=None):
        self.scoring = scoring
        self.prefilter = prefilter or {}
        self.rankings = list(rankings or [])
        self.prefilter_calls = []
        self.ranking_calls = []

    def generate(self, prompt, *, system_prompt=None, temperature=0.0, max_tokens=1024, json_mode=False):
        if system_prompt == PREFILTER_SYSTEM_PROMPT:
            self.prefilter_calls.append(prompt)
            answer = next(
                (v for name, v in self.prefilter.items() if f"Lead: {name}\n" in prompt),
                {"shouldProcess": True, "reason": "Sales title", "quickScore": 80},
            )
        elif system_prompt and system_prompt.startswith(RANKING_INTRO):
            self.ranking_calls.append(prompt)
            answer = self.rankings.pop(0)
        else:
            return self.scoring.generate(
                prompt, system_prompt=system_prompt, temperature=temperature,
                max_tokens=max_tokens, json_mode=json_mode,
            )
        if isinstance(answer, Exception):
            raise answer
        return _response(answer)


class TestPrefilterLead:

    def test_lead_passes(self):
        client = MagicMock()
        client.generate.return_value = _response(
            {"shouldProcess": True, "reason": "Sales leader", "quickScore": 85}
        )

        result = prefilter_lead(_lead("Jane"), client)

        assert result.should_process is True
        assert result.reason == "Sales leader"
        assert result.quick_score == 85.0
        assert result.cost == pytest.approx(COST_PER_CALL)
        assert result.tokens == 120
        prompt = client.generate.call_args.args[0]
        assert "Lead: Jane\n" in prompt
        assert "Company Size: 51-200" in prompt
        assert client.generate.call_args.kwargs["system_prompt"] == PREFILTER_SYSTEM_PROMPT
        assert client.generate.call_args.kwargs["json_mode"] is True

    def test_lead_rejected(self):
        client = MagicMock()
        client.generate.return_value = _response(
            {"shouldProcess": False, "reason": "HR role", "quickScore": 10}
        )

        result = prefilter_lead(_lead("Hal", title="HR Manager"), client)

        assert result.should_process is False
        assert result.reason == "HR role"
        assert result.quick_score == 10.0

    def test_missing_fields_reject_with_unknown_reason(self):
        client = MagicMock()
        client.generate.return_value = _response({})

        result = prefilter_lead(_lead("Jane"), client)

        assert result.should_process is False
        assert result.reason == "Unknown"
        assert result.quick_score == 0.0

    def test_failed_call_passes_lead_through(self):
        client = MagicMock()
        client.generate.side_effect = RuntimeError("rate limited")

        result = prefilter_lead(_lead("Jane"), client)

        assert result.should_process is True
        assert result.reason == PREFILTER_ERROR_REASON
        assert result.quick_score == 50.0
        assert result.cost == 0.0
        assert result.tokens == 0

    def test_unparsable_answer_passes_lead_through_and_keeps_cost(self):
        client = MagicMock()
        client.generate.return_value = _response("maybe?")

        result = prefilter_lead(_lead("Jane"), client)

        assert result.should_process is True
        assert result.reason == PREFILTER_ERROR_REASON
        assert result.cost == pytest.approx(COST_PER_CALL)


class TestAnalyzeLead:

    def test_successful_analysis(self, scoring_client, relevant_verdict):
        client = scoring_client({"Jane": relevant_verdict(90)})

        result = analyze_lead(_lead("Jane"), LeadJudge(client))

        assert result.lead_id == "id-Jane"
        assert result.is_relevant is True
        assert result.relevance_score == 90.0
        assert result.company_rank is None
        assert result.skipped is False
        assert result.analysis.buyer_type == "decision_maker"
        assert result.cost == pytest.approx(COST_PER_CALL)
        assert result.tokens == 120
        assert client.calls[0]["system_prompt"] == build_analysis_system_prompt("smb")

    def test_custom_system_prompt(self, scoring_client):
        client = scoring_client()

        analyze_lead(_lead("Jane"), LeadJudge(client), "custom prompt")

        assert client.calls[0]["system_prompt"] == "custom prompt"

    @pytest.mark.parametrize("verdict", [RuntimeError("timeout"), "not json"])
    def test_oracle_failure_gives_error_analysis(self, scoring_client, verdict):
        client = scoring_client({"Jane": verdict})

        result = analyze_lead(_lead("Jane"), LeadJudge(client))

        assert result.is_relevant is False
        assert result.relevance_score == 0.0
        assert result.cost == 0.0
        assert result.analysis.reasoning == ANALYSIS_ERROR_REASONING
        assert result.analysis.buyer_type == "not_relevant"
        assert result.analysis.negative_signals == ["Analysis error"]


class TestRankCompanyLeads:

    def test_no_relevant_leads(self):
        client = MagicMock()

        ranking = rank_company_leads("Acme", "51-200", [_candidate("a", 10, relevant=False)], client)

        assert ranking.ranking == []
        assert ranking.cost == 0.0
        client.generate.assert_not_called()

    def test_single_relevant_lead_needs_no_call(self):
        client = MagicMock()
        candidates = [_candidate("a", 80), _candidate("b", 10, relevant=False)]

        ranking = rank_company_leads("Acme", "51-200", candidates, client)

        assert ranking.ranking == ["a"]
        client.generate.assert_not_called()

    @pytest.mark.parametrize("answer", [["b", "a"], {"ranking": ["b", "a"]}, {"order": ["b", "a"]}])
    def test_oracle_order_is_used(self, answer):
        client = MagicMock()
        client.generate.return_value = _response(answer)

        ranking = rank_company_leads("Acme", "51-200", [_candidate("a", 90), _candidate("b", 70)], client)

        assert ranking.ranking == ["b", "a"]
        assert ranking.cost == pytest.approx(COST_PER_CALL)
        assert ranking.tokens == 120
        assert client.generate.call_args.kwargs["json_mode"] is True
        assert client.generate.call_args.kwargs["system_prompt"].startswith(RANKING_INTRO)

    def test_only_relevant_candidates_are_sent(self):
        client = MagicMock()
        client.generate.return_value = _response(["b", "a"])
        candidates = [_candidate("a", 90), _candidate("b", 70), _candidate("x", 5, relevant=False)]

        rank_company_leads("Acme", "51-200", candidates, client)

        prompt = client.generate.call_args.args[0]
        assert "ID: a" in prompt
        assert "ID: b" in prompt
        assert "ID: x" not in prompt

    def test_unknown_duplicate_and_missing_ids_are_repaired(self):
        client = MagicMock()
        client.generate.return_value = _response(["b", "zzz", "b", "x"])
        candidates = [
            _candidate("a", 70),
            _candidate("b", 60),
            _candidate("c", 90),
            _candidate("x", 5, relevant=False),
        ]

        ranking = rank_company_leads("Acme", "51-200", candidates, client)

        # Leads left out by the oracle follow in score order
        assert ranking.ranking == ["b", "c", "a"]

    def test_numeric_ids_match_string_ids(self):
        client = MagicMock()
        client.generate.return_value = _response([2, 1])

        ranking = rank_company_leads("Acme", None, [_candidate("1", 90), _candidate("2", 70)], client)

        assert ranking.ranking == ["2", "1"]

    def test_failed_call_falls_back_to_score_order(self):
        client = MagicMock()
        client.generate.side_effect = RuntimeError("unavailable")

        ranking = rank_company_leads("Acme", "51-200", [_candidate("a", 70), _candidate("b", 90)], client)

        assert ranking.ranking == ["b", "a"]
        assert ranking.cost == 0.0

    def test_unparsable_answer_falls_back_to_score_order(self):
        client = MagicMock()
        client.generate.return_value = _response("I would start with b")

        ranking = rank_company_leads("Acme", "51-200", [_candidate("a", 70), _candidate("b", 90)], client)

        assert ranking.ranking == ["b", "a"]
        assert ranking.cost == pytest.approx(COST_PER_CALL)


class TestRankLeads:

    LEADS = [
        _lead("Jane"),
        _lead("Bob", title="Sales Manager"),
        _lead("Hal", title="HR Manager"),
        _lead("Ann", company="Beta", title="CEO", employee_range="1-10"),
    ]

    @pytest.fixture
    def client(self, scoring_client, relevant_verdict):
        scoring = scoring_client({
            "Jane": relevant_verdict(90),
            "Bob": relevant_verdict(70),
            "Ann": relevant_verdict(60),
        })
        return PipelineClient(
            scoring,
            prefilter={"Hal": {"shouldProcess": False, "reason": "HR role", "quickScore": 10}},
            rankings=[["id-Bob", "id-Jane"]],
        )

    def test_full_pipeline(self, client):
        run = rank_leads(self.LEADS, client, config=HarnessConfig())

        assert [r.name for r in run.results] == ["Jane", "Bob", "Hal", "Ann"]
        jane, bob, hal, ann = run.results
        assert (bob.company_rank, jane.company_rank, ann.company_rank) == (1, 2, 1)
        assert hal.skipped is True
        assert hal.skip_reason == "HR role"
        assert hal.relevance_score == 10.0
        assert hal.company_rank is None
        assert hal.analysis is None
        assert run.stats.total == 4
        assert run.stats.prefiltered == 1
        assert run.stats.analyzed == 3
        assert run.stats.relevant == 3
        # Beta has a single relevant lead, so only Acme needs a ranking call
        assert len(client.ranking_calls) == 1
        assert len(client.prefilter_calls) == 4
        assert len(client.scoring.calls) == 3

    def test_costs_include_every_call(self, client):
        run = rank_leads(self.LEADS, client, config=HarnessConfig())

        jane = run.results[0]
        assert jane.cost == pytest.approx(2 * COST_PER_CALL)  # prefilter + analysis
        assert jane.tokens == 240
        # 4 prefilter + 3 analysis + 1 company ranking
        assert run.total_cost == pytest.approx(8 * COST_PER_CALL)
        assert run.total_tokens == 960

    def test_progress_is_reported_per_step(self, client):
        events = []

        rank_leads(
            self.LEADS, client,
            on_progress=lambda step, current, total, lead: events.append(
                (step, current, total, lead.name if lead else None)
            ),
            config=HarnessConfig(),
        )

        assert events == [
            ("prefilter", 1, 4, "Jane"),
            ("analyze", 1, 4, "Jane"),
            ("prefilter", 2, 4, "Bob"),
            ("analyze", 2, 4, "Bob"),
            ("prefilter", 3, 4, "Hal"),
            ("prefilter", 4, 4, "Ann"),
            ("analyze", 4, 4, "Ann"),
            ("rank", 1, 2, None),
            ("rank", 2, 2, None),
        ]

    def test_skip_prefilter_analyzes_every_lead(self, client):
        run = rank_leads(self.LEADS, client, skip_prefilter=True, config=HarnessConfig())

        assert client.prefilter_calls == []
        assert run.stats.prefiltered == 0
        assert run.stats.analyzed == 4
        assert run.stats.relevant == 3
        hal = run.results[2]
        assert hal.skipped is False
        assert hal.is_relevant is False
        assert hal.company_rank is None
        assert run.total_cost == pytest.approx(5 * COST_PER_CALL)

    def test_custom_analysis_prompt(self, client):
        rank_leads(self.LEADS, client, system_prompt="custom prompt", config=HarnessConfig())

        assert {c["system_prompt"] for c in client.scoring.calls} == {"custom prompt"}

    def test_default_analysis_prompt_follows_company_size(self, client):
        rank_leads(self.LEADS, client, config=HarnessConfig())

        system_prompts = {c["system_prompt"] for c in client.scoring.calls}
        assert system_prompts == {
            build_analysis_system_prompt("smb"),
            build_analysis_system_prompt("startup"),
        }

    def test_failed_ranking_call_keeps_score_order(self, scoring_client, relevant_verdict):
        scoring = scoring_client({"Jane": relevant_verdict(90), "Bob": relevant_verdict(70)})
        client = PipelineClient(scoring, rankings=[RuntimeError("unavailable")])

        run = rank_leads(self.LEADS[:2], client, config=HarnessConfig())

        assert [r.company_rank for r in run.results] == [1, 2]

    def test_empty_leads_raise(self, client):
        with pytest.raises(ValueError):
            rank_leads([], client, config=HarnessConfig())


class TestAnalyzeSingleLead:

    def test_relevant_lead_is_rank_one(self, scoring_client, relevant_verdict):
        client = scoring_client({"Jane": relevant_verdict(90)})

        result = analyze_single_lead(_lead("Jane"), client, config=HarnessConfig())

        assert result.company_rank == 1
        assert result.relevance_score == 90.0
        assert len(client.calls) == 1

    def test_not_relevant_lead_has_no_rank(self, scoring_client):
        result = analyze_single_lead(_lead("Hal"), scoring_client(), config=HarnessConfig())

        assert result.is_relevant is False
        assert result.company_rank is None
