"""Tests for prompt builders"""

import pytest

from lead_rank_core.company_size import COMPANY_SIZE_CATEGORIES
from lead_rank_core.domain.entities import EvaluationLead, RankingResult
from lead_rank_core.prompts import (
    DEFAULT_BASELINE_PROMPT,
    DEFAULT_PROMPTS,
    PERSONA_SPEC,
    PREFILTER_SYSTEM_PROMPT,
    build_analysis_system_prompt,
    build_company_ranking_system_prompt,
    build_company_ranking_user_prompt,
    build_failure_analysis_prompt,
    build_lead_user_prompt,
    build_prefilter_user_prompt,
    build_prompt_rewrite_prompt,
    truncate,
)

JSON_FIELDS = ["isRelevant", "relevanceScore", "buyerType", "positiveSignals", "negativeSignals"]


class TestAnalysisSystemPrompt:

    @pytest.mark.parametrize("category", COMPANY_SIZE_CATEGORIES)
    def test_contains_persona_and_json_contract(self, category):
        prompt = build_analysis_system_prompt(category)
        assert PERSONA_SPEC in prompt
        for field in JSON_FIELDS:
            assert field in prompt

    def test_mentions_size_label(self):
        assert "**Enterprise**" in build_analysis_system_prompt("enterprise")

    def test_unknown_category_raises(self):
        with pytest.raises(KeyError):
            build_analysis_system_prompt("megacorp")


class TestLeadUserPrompt:

    def test_renders_all_fields(self):
        lead = EvaluationLead(
            id="1", name="Jane Doe", company="Acme", title="CRO",
            employee_range="51-200", industry="Manufacturing", domain="acme.com",
        )
        prompt = build_lead_user_prompt(lead)
        assert "**Name:** Jane Doe" in prompt
        assert "**Job Title:** CRO" in prompt
        assert "**Company:** Acme" in prompt
        assert "**Company Size:** 51-200" in prompt
        assert "**Industry:** Manufacturing" in prompt
        assert "**Domain:** acme.com" in prompt

    def test_missing_fields_have_placeholders(self):
        prompt = build_lead_user_prompt(EvaluationLead(id="1", name="Jane", company="Acme"))
        assert "**Job Title:** Not provided" in prompt
        assert "**Company Size:** Unknown" in prompt


class TestDefaultPrompts:

    def test_baseline_keeps_json_contract(self):
        for field in JSON_FIELDS:
            assert field in DEFAULT_BASELINE_PROMPT

    def test_variants(self):
        assert set(DEFAULT_PROMPTS) == {"detailed", "concise", "cost_optimized"}
        for entry in DEFAULT_PROMPTS.values():
            assert entry["name"]
            assert "isRelevant" in entry["system_prompt"]


class TestOptimizerPrompts:

    def test_truncate(self):
        assert truncate("abc", 5) == "abc"
        assert truncate("abcdef", 3) == "abc..."

    def test_failure_analysis_prompt(self):
        prompt = build_failure_analysis_prompt("PROMPT", "## Current Performance")
        assert "## Current Prompt\nPROMPT" in prompt
        assert "## Current Performance" in prompt
        assert '"improvements"' in prompt

    def test_rewrite_prompt_numbers_improvements(self):
        prompt = build_prompt_rewrite_prompt("PROMPT", "PERSONA", "Too strict", ["Add CRO", "Drop HR"])
        assert "1. Add CRO\n2. Drop HR" in prompt
        assert "## Analysis\nToo strict" in prompt
        assert "PERSONA" in prompt


class TestRankingPipelinePrompts:

    def test_prefilter_system_prompt_asks_for_json(self):
        for field in ("shouldProcess", "reason", "quickScore"):
            assert field in PREFILTER_SYSTEM_PROMPT

    def test_prefilter_user_prompt(self):
        lead = EvaluationLead(id="1", name="Jane Doe", company="Acme", title=None, employee_range="11-50")
        prompt = build_prefilter_user_prompt(lead)
        assert prompt.startswith("Lead: Jane Doe\nTitle: Unknown\nCompany: Acme\nCompany Size: 11-50\n")

    def test_company_ranking_system_prompt_lists_targets(self):
        prompt = build_company_ranking_system_prompt("smb")
        assert "## Primary Targets (Contact First):\n1. " in prompt
        assert "## Champions (Secondary Contacts):" in prompt
        assert "JSON array of lead IDs" in prompt

    def test_startup_ranking_prompt_has_no_champions(self):
        prompt = build_company_ranking_system_prompt("startup")
        assert "Champions" not in prompt
        assert "Founders/CEOs are ideal" in prompt

    def test_company_ranking_user_prompt_lists_relevant_leads_only(self):
        candidates = [
            RankingResult("a", "Jane", "Acme", "VP Sales", True, 90.0),
            RankingResult("b", "Bob", "Acme", None, True, 72.5),
            RankingResult("c", "Hal", "Acme", "HR", False, 5.0),
        ]
        prompt = build_company_ranking_user_prompt(candidates)
        assert "- ID: a | Name: Jane | Title: VP Sales | Score: 90" in prompt
        assert "- ID: b | Name: Bob | Title: Unknown | Score: 72.5" in prompt
        assert "ID: c" not in prompt

    def test_company_ranking_user_prompt_without_relevant_leads(self):
        candidates = [RankingResult("c", "Hal", "Acme", "HR", False, 5.0)]
        assert build_company_ranking_user_prompt(candidates) == "No relevant leads to rank."
