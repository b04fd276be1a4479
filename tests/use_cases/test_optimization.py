"""
Tests for prompt optimization

The scoring model is scripted per lead: Jane is only judged relevant by
prompts containing "IMPROVED", Ann is judged relevant unless the prompt
contains "DROP_ANN". With a "BASE" prompt this gives F1 66.7%, with an
"IMPROVED" prompt 100%.
"""

import json
import threading
from unittest.mock import MagicMock, patch

import pytest

from lead_rank_core.domain.entities import EvaluationLead, EvaluationResult
from lead_rank_core.domain.value_objects import LeadAnalysis, ModelResponse
from lead_rank_core.harness_config import HarnessConfig
from lead_rank_core.prompts import FAILURE_ANALYSIS_SYSTEM_PROMPT, PROMPT_REWRITE_SYSTEM_PROMPT
from lead_rank_core.use_cases.evaluation import build_summary
from lead_rank_core.use_cases.optimization import (
    analyze_failures,
    build_failure_report,
    generate_improved_prompt,
    optimize_prompt,
    partition_failures,
    quick_optimize,
    relative_improvement,
)

# gpt-4o: 1000 * 2.50 / 1M + 100 * 10.0 / 1M
OPTIMIZER_CALL_COST = 0.0035

BASE_PROMPT = "BASE prompt"

LEADS = [
    EvaluationLead(id="1", name="Jane", company="Acme", title="VP Sales", employee_range="51-200", expected_rank=1),
    EvaluationLead(id="2", name="Bob", company="Acme", title="Engineer", employee_range="51-200"),
    EvaluationLead(id="3", name="Ann", company="Beta", title="CRO", employee_range="201-500", expected_rank=1),
]

ANALYSIS = {"analysis": "VP titles are missed", "improvements": ["Treat VP Sales as a primary target"]}


def _response(output):
    return ModelResponse(output=output, latency_ms=1, model_name="gpt-4o", input_tokens=1000, output_tokens=100)


def make_optimizer(rewrites=(), analysis=None):
    """Generation model mock: JSON analysis for analysis calls, the next rewrite otherwise"""
    pending = iter(rewrites)

    def generate(prompt, *, system_prompt=None, **kwargs):
        if system_prompt == FAILURE_ANALYSIS_SYSTEM_PROMPT:
            return _response(json.dumps(ANALYSIS if analysis is None else analysis))
        return _response(next(pending))

    client = MagicMock()
    client.model_name = "gpt-4o"
    client.generate.side_effect = generate
    return client


@pytest.fixture
def evaluation_client(scoring_client, relevant_verdict):
    def jane(system_prompt):
        return relevant_verdict(90) if "IMPROVED" in system_prompt else {"isRelevant": False}

    def ann(system_prompt):
        return {"isRelevant": False} if "DROP_ANN" in system_prompt else relevant_verdict(70)

    return scoring_client({"Jane": jane, "Ann": ann})


def _calls_with(client, system_prompt):
    return [c for c in client.generate.call_args_list if c.kwargs.get("system_prompt") == system_prompt]


class TestOptimizePrompt:

    def test_baseline_meeting_target_stops_immediately(self, evaluation_client):
        optimizer = make_optimizer()

        result = optimize_prompt(
            LEADS, max_iterations=5, target_score=50.0, baseline_prompt=BASE_PROMPT,
            evaluation_client=evaluation_client, optimizer_client=optimizer, config=HarnessConfig(),
        )

        assert result.total_iterations == 1
        assert result.stop_reason == "target_reached"
        assert result.improvement == 0.0
        assert result.best_prompt.system_prompt == BASE_PROMPT
        assert result.iterations[0].analysis == "Baseline evaluation"
        assert result.optimizer_cost == 0.0
        optimizer.generate.assert_not_called()

    @patch("lead_rank_core.infrastructure.model_clients.factory.create_client")
    def test_optimizer_client_created_only_when_needed(self, mock_create, evaluation_client):
        optimize_prompt(
            LEADS, max_iterations=5, target_score=50.0, baseline_prompt=BASE_PROMPT,
            evaluation_client=evaluation_client, config=HarnessConfig(),
        )

        mock_create.assert_not_called()

    def test_better_rewrite_is_adopted(self, evaluation_client):
        optimizer = make_optimizer(["IMPROVED prompt"])

        result = optimize_prompt(
            LEADS, max_iterations=3, target_score=100.0, baseline_prompt=BASE_PROMPT,
            evaluation_client=evaluation_client, optimizer_client=optimizer, config=HarnessConfig(),
        )

        assert [it.score for it in result.iterations] == pytest.approx([200 / 3, 100.0])
        assert result.best_prompt.system_prompt == "IMPROVED prompt"
        assert result.best_prompt.score == 100.0
        assert result.best_prompt.metrics.prompt_name == "Iteration 1"
        assert result.stop_reason == "target_reached"
        assert result.improvement == pytest.approx(50.0)
        assert result.iterations[1].analysis == ANALYSIS["analysis"]
        assert result.iterations[1].improvements == ANALYSIS["improvements"]

    def test_costs_are_accounted(self, evaluation_client):
        optimizer = make_optimizer(["IMPROVED prompt"])

        result = optimize_prompt(
            LEADS, max_iterations=3, target_score=100.0, baseline_prompt=BASE_PROMPT,
            evaluation_client=evaluation_client, optimizer_client=optimizer, config=HarnessConfig(),
        )

        assert result.total_cost == pytest.approx(sum(it.cost for it in result.iterations))
        assert result.total_cost == pytest.approx(sum(it.metrics.total_cost for it in result.iterations))
        # one analysis call and one rewrite call
        assert result.optimizer_cost == pytest.approx(2 * OPTIMIZER_CALL_COST)

    def test_rewrites_that_do_not_beat_best_are_rejected(self, evaluation_client):
        optimizer = make_optimizer(["DROP_ANN prompt", "BASE prompt v2"])

        result = optimize_prompt(
            LEADS, max_iterations=2, target_score=95.0, baseline_prompt=BASE_PROMPT,
            evaluation_client=evaluation_client, optimizer_client=optimizer, config=HarnessConfig(),
        )

        scores = [it.score for it in result.iterations]
        assert scores == pytest.approx([200 / 3, 0.0, 200 / 3])
        assert result.stop_reason == "exhausted"
        assert result.total_iterations == 3
        # equal score is not an improvement
        assert result.best_prompt.system_prompt == BASE_PROMPT
        assert result.best_prompt.score == max(scores)
        assert result.improvement == 0.0
        # the rejected rewrite is not used as the next starting point
        second_rewrite = _calls_with(optimizer, PROMPT_REWRITE_SYSTEM_PROMPT)[1]
        assert "DROP_ANN" not in second_rewrite.args[0]

    def test_no_improvements_stalls(self, evaluation_client):
        optimizer = make_optimizer(analysis={"analysis": "x", "improvements": []})
        progress = []

        result = optimize_prompt(
            LEADS, max_iterations=5, target_score=95.0, baseline_prompt=BASE_PROMPT,
            on_progress=lambda *args: progress.append(args),
            evaluation_client=evaluation_client, optimizer_client=optimizer, config=HarnessConfig(),
        )

        assert result.stop_reason == "stalled"
        assert result.total_iterations == 1
        assert optimizer.generate.call_count == 1
        assert ("Optimization Complete", "No more improvements found") in [(p[3], p[4]) for p in progress]

    def test_failed_analysis_stalls(self, evaluation_client):
        optimizer = MagicMock()
        optimizer.generate.side_effect = RuntimeError("503")

        result = optimize_prompt(
            LEADS, max_iterations=5, target_score=95.0, baseline_prompt=BASE_PROMPT,
            evaluation_client=evaluation_client, optimizer_client=optimizer, config=HarnessConfig(),
        )

        assert result.stop_reason == "stalled"
        assert result.optimizer_cost == 0.0

    def test_cancel_event_stops_between_rounds(self, evaluation_client):
        optimizer = make_optimizer(["IMPROVED prompt"])
        cancel = threading.Event()
        cancel.set()

        result = optimize_prompt(
            LEADS, max_iterations=5, target_score=95.0, baseline_prompt=BASE_PROMPT,
            evaluation_client=evaluation_client, optimizer_client=optimizer,
            config=HarnessConfig(), cancel_event=cancel,
        )

        assert result.stop_reason == "cancelled"
        assert result.total_iterations == 1
        optimizer.generate.assert_not_called()

    def test_zero_iterations_evaluates_baseline_only(self, evaluation_client):
        optimizer = make_optimizer()

        result = optimize_prompt(
            LEADS, max_iterations=0, target_score=95.0, baseline_prompt=BASE_PROMPT,
            evaluation_client=evaluation_client, optimizer_client=optimizer, config=HarnessConfig(),
        )

        assert result.total_iterations == 1
        assert result.stop_reason == "exhausted"

    def test_progress_phases(self, evaluation_client):
        progress = []

        optimize_prompt(
            LEADS, max_iterations=3, target_score=100.0, baseline_prompt=BASE_PROMPT,
            on_progress=lambda *args: progress.append(args),
            evaluation_client=evaluation_client, optimizer_client=make_optimizer(["IMPROVED prompt"]),
            config=HarnessConfig(),
        )

        phases = [p[3] for p in progress]
        assert phases[0] == "Evaluating Baseline"
        assert "Baseline Complete" in phases
        assert "Target Reached!" in phases
        assert phases[-1] == "Done"
        assert all(p[1] == 3 for p in progress)
        lead_details = [p[4] for p in progress if p[4].startswith("Lead ")]
        assert lead_details[:3] == ["Lead 1/3", "Lead 2/3", "Lead 3/3"]

    def test_default_baseline_prompt(self, evaluation_client):
        from lead_rank_core.prompts import DEFAULT_BASELINE_PROMPT

        result = optimize_prompt(
            LEADS, max_iterations=0, evaluation_client=evaluation_client,
            optimizer_client=make_optimizer(), config=HarnessConfig(),
        )

        assert result.iterations[0].prompt == DEFAULT_BASELINE_PROMPT

    def test_invalid_arguments(self, evaluation_client):
        with pytest.raises(ValueError):
            optimize_prompt([], evaluation_client=evaluation_client, config=HarnessConfig())
        with pytest.raises(ValueError):
            optimize_prompt(LEADS, max_iterations=-1, evaluation_client=evaluation_client, config=HarnessConfig())
        assert evaluation_client.calls == []

    @patch("lead_rank_core.use_cases.optimization.optimize_prompt")
    def test_quick_optimize(self, mock_optimize):
        callback = MagicMock()

        quick_optimize(LEADS, callback, config=HarnessConfig())

        kwargs = mock_optimize.call_args.kwargs
        assert kwargs["max_iterations"] == 3
        assert kwargs["target_score"] == 80.0
        assert kwargs["on_progress"] is callback

    @pytest.mark.parametrize("override", [{"max_iterations": 10}, {"target_score": 99.0}])
    def test_quick_optimize_rejects_schedule_overrides(self, override, evaluation_client):
        with pytest.raises(TypeError, match="unexpected keyword argument"):
            quick_optimize(LEADS, evaluation_client=evaluation_client, config=HarnessConfig(), **override)

        assert evaluation_client.calls == []

    def test_quick_optimize_runs_three_rounds_at_most(self, evaluation_client):
        optimizer = make_optimizer(["BASE prompt v1", "BASE prompt v2", "BASE prompt v3"])

        result = quick_optimize(
            LEADS, baseline_prompt=BASE_PROMPT,
            evaluation_client=evaluation_client, optimizer_client=optimizer, config=HarnessConfig(),
        )

        assert result.total_iterations == 4
        assert result.stop_reason == "exhausted"


def _result(name, expected_rank, relevant, predicted_rank=None, rank_error=None, department=None):
    analysis = None
    if department:
        analysis = LeadAnalysis(
            is_relevant=relevant, relevance_score=50.0, reasoning="-", department=department,
            seniority=None, buyer_type="champion", company_size_category="smb",
        )
    return EvaluationResult(
        lead_id=name,
        name=name,
        company="Acme",
        expected_rank=expected_rank,
        predicted_relevant=relevant,
        predicted_score=80.0 if relevant else 10.0,
        is_correct_relevance=(expected_rank is not None) == relevant,
        predicted_rank=predicted_rank,
        rank_error=rank_error,
        analysis=analysis,
    )


@pytest.fixture
def failing_summary():
    results = [
        _result("Missed Mary", 1, False, department="Sales"),
        _result("Wrong Will", None, True, predicted_rank=2, department="Engineering"),
        _result("Shifted Sam", 4, True, predicted_rank=1, rank_error=3),
        _result("Close Carl", 2, True, predicted_rank=3, rank_error=1),
    ]
    return build_summary("baseline", "Baseline Prompt", results)


class TestFailureAnalysis:

    def test_partition_failures(self, failing_summary):
        fn, fp, rank_errors = partition_failures(failing_summary.results, 1)

        assert [r.name for r in fn] == ["Missed Mary"]
        assert [r.name for r in fp] == ["Wrong Will"]
        assert [r.name for r in rank_errors] == ["Shifted Sam"]

    def test_failure_report(self, failing_summary):
        report = build_failure_report(failing_summary, 1, 5)

        assert "## Current Performance" in report
        assert "## Failure Analysis" in report
        assert "Missed Mary (Sales) - Expected rank 1" in report
        assert "Wrong Will (Engineering)" in report
        assert "Shifted Sam: Expected 4, Got 1 (error: 3)" in report
        assert "Close Carl" not in report

    def test_failure_report_caps_examples(self):
        results = [_result(f"Lead {i}", i + 1, False) for i in range(8)]
        report = build_failure_report(build_summary("p", "P", results), 1, 3)

        assert "False Negatives (missed relevant leads): 8" in report
        assert "Lead 2 " in report
        assert "Lead 3 " not in report

    def test_analyze_failures(self, failing_summary):
        client = MagicMock()
        client.generate.return_value = _response(json.dumps(ANALYSIS))

        result = analyze_failures(failing_summary, "current prompt", client)

        assert result.analysis == ANALYSIS["analysis"]
        assert result.improvements == ANALYSIS["improvements"]
        assert (result.false_negatives, result.false_positives, result.rank_errors) == (1, 1, 1)
        assert result.cost == pytest.approx(OPTIMIZER_CALL_COST)
        request = client.generate.call_args.args[0]
        assert "current prompt" in request
        assert "Missed Mary" in request
        assert client.generate.call_args.kwargs["json_mode"] is True

    def test_prompt_excerpt_is_truncated(self, failing_summary):
        client = MagicMock()
        client.generate.return_value = _response(json.dumps(ANALYSIS))

        analyze_failures(failing_summary, "x" * 50 + "TAIL", client, prompt_excerpt_chars=50)

        assert "TAIL" not in client.generate.call_args.args[0]

    def test_call_failure_gives_empty_analysis(self, failing_summary):
        client = MagicMock()
        client.generate.side_effect = TimeoutError("timeout")

        result = analyze_failures(failing_summary, "p", client)

        assert result.analysis == ""
        assert result.improvements == []
        assert result.cost == 0.0
        assert result.false_negatives == 1

    def test_unparsable_output_still_costs(self, failing_summary):
        client = MagicMock()
        client.generate.return_value = _response("I think the prompt is fine.")

        result = analyze_failures(failing_summary, "p", client)

        assert result.improvements == []
        assert result.cost == pytest.approx(OPTIMIZER_CALL_COST)

    def test_invalid_improvements_are_dropped(self, failing_summary):
        client = MagicMock()
        client.generate.return_value = _response(
            json.dumps({"analysis": 5, "improvements": ["keep", "", "   ", 3, None]})
        )

        result = analyze_failures(failing_summary, "p", client)

        assert result.analysis == ""
        assert result.improvements == ["keep"]


class TestGenerateImprovedPrompt:

    def test_rewrite(self):
        client = MagicMock()
        client.generate.return_value = _response("  new prompt \n")

        revision = generate_improved_prompt("old prompt", "analysis", ["fix A", "fix B"], "persona", client)

        assert revision.prompt == "new prompt"
        assert revision.changed is True
        assert revision.cost == pytest.approx(OPTIMIZER_CALL_COST)
        request = client.generate.call_args.args[0]
        assert "old prompt" in request
        assert "1. fix A\n2. fix B" in request

    def test_call_failure_keeps_prompt(self):
        client = MagicMock()
        client.generate.side_effect = RuntimeError("down")

        revision = generate_improved_prompt("old prompt", "a", ["fix"], "persona", client)

        assert revision.prompt == "old prompt"
        assert revision.changed is False
        assert revision.cost == 0.0

    def test_empty_output_keeps_prompt(self):
        client = MagicMock()
        client.generate.return_value = _response("   ")

        revision = generate_improved_prompt("old prompt", "a", ["fix"], "persona", client)

        assert revision.prompt == "old prompt"
        assert revision.changed is False

    def test_identical_output_is_unchanged(self):
        client = MagicMock()
        client.generate.return_value = _response("old prompt")

        assert generate_improved_prompt("old prompt", "a", ["fix"], "persona", client).changed is False


class TestRelativeImprovement:

    def test_zero_baseline(self):
        assert relative_improvement(0.0, 50.0) == 0.0

    def test_relative_gain(self):
        assert relative_improvement(50.0, 75.0) == pytest.approx(50.0)
