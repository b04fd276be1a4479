"""Shared fakes for tests that need a scoring model"""

import json
import threading

import pytest

from lead_rank_core.domain.value_objects import ModelResponse
from lead_rank_core.infrastructure.model_clients.base import ModelClient


class ScriptedScoringClient(ModelClient):
    """
    Scoring model stand-in that answers per lead name.

    verdicts maps lead name -> payload dict, raw string output, an exception
    to raise, or a callable taking the system prompt and returning one of
    those. Leads without a verdict are judged not relevant.
    Thread safe, so it can back the thread pool evaluator.
    """

    def __init__(self, verdicts=None, model_name="gpt-4o-mini", input_tokens=100, output_tokens=20):
        self.model_name = model_name
        self.verdicts = verdicts or {}
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.calls = []
        self._lock = threading.Lock()

    def _verdict_for(self, prompt):
        for name, verdict in self.verdicts.items():
            if f"**Name:** {name}\n" in prompt:
                return verdict
        return {"isRelevant": False, "relevanceScore": 5}

    def generate(self, prompt, *, system_prompt=None, temperature=0.0, max_tokens=1024, json_mode=False):
        with self._lock:
            self.calls.append({"prompt": prompt, "system_prompt": system_prompt, "json_mode": json_mode})
        verdict = self._verdict_for(prompt)
        if callable(verdict):
            verdict = verdict(system_prompt)
        if isinstance(verdict, Exception):
            raise verdict
        output = verdict if isinstance(verdict, str) else json.dumps(verdict)
        return ModelResponse(
            output=output,
            latency_ms=1,
            model_name=self.model_name,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
        )


def relevant(score):
    return {"isRelevant": True, "relevanceScore": score, "buyerType": "decision_maker"}


@pytest.fixture
def scoring_client():
    """Factory for ScriptedScoringClient"""
    return ScriptedScoringClient


@pytest.fixture
def relevant_verdict():
    return relevant
