"""
Lead judging via the scoring oracle

Implements LeadJudge, which asks a model whether a lead is relevant and turns
the answer into a tagged ScoringOutcome, and the normalization of the raw
judgment into a LeadAnalysis.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lead_rank_core.infrastructure.model_clients.base import ModelClient

from lead_rank_core.domain.constants import (
    MAX_RELEVANCE_SCORE,
    MIN_RELEVANCE_SCORE,
    NO_REASONING_PLACEHOLDER,
    NOT_RELEVANT_BUYER_TYPE,
)
from lead_rank_core.domain.entities import EvaluationLead
from lead_rank_core.domain.value_objects import (
    LeadAnalysis,
    MalformedResponse,
    OracleFailure,
    OracleJudgment,
    ScoringOutcome,
)
from lead_rank_core.prompts import build_lead_user_prompt
from lead_rank_core.scoring.response_parser import ResponseParseError, parse_json_object

logger = logging.getLogger(__name__)


class LeadJudge:
    """
    Scoring oracle adapter

    Sends (system prompt, rendered lead) to the model once and never raises:
    every failure is returned as MalformedResponse or OracleFailure.
    """

    def __init__(
        self,
        client: ModelClient,
        *,
        temperature: float = 0.2,
        max_tokens: int = 500,
    ) -> None:
        self._client = client
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def model_name(self) -> str:
        return getattr(self._client, "model_name", "unknown")

    def judge(self, lead: EvaluationLead, system_prompt: str) -> ScoringOutcome:
        """
        Judge one lead

        Args:
            lead: Lead to judge
            system_prompt: Prompt under evaluation

        Returns:
            OracleJudgment on success, MalformedResponse if the output is not a
            JSON object, OracleFailure if the call raised
        """
        try:
            response = self._client.generate(
                build_lead_user_prompt(lead),
                system_prompt=system_prompt,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                json_mode=True,
            )
        except Exception as e:
            logger.warning("Scoring oracle call failed for lead %s: %s", lead.id, e)
            return OracleFailure(error=str(e))

        try:
            payload = parse_json_object(response.output)
        except ResponseParseError as e:
            logger.warning("Malformed scoring response for lead %s: %s", lead.id, e)
            return MalformedResponse(raw_output=response.output, reason=str(e))

        return OracleJudgment(
            payload=payload,
            model_name=response.model_name,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
        )


def coerce_bool(value: object) -> bool:
    """JSON booleans pass through; "true"/"false" strings are accepted too"""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def clamp_score(value: object) -> float:
    """Clamp a score into [0, 100]; non-numeric values count as 0"""
    if isinstance(value, bool):
        return MIN_RELEVANCE_SCORE
    try:
        score = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return MIN_RELEVANCE_SCORE
    if score != score:  # NaN
        return MIN_RELEVANCE_SCORE
    return max(MIN_RELEVANCE_SCORE, min(MAX_RELEVANCE_SCORE, score))


def _string_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


def _optional_text(value: object) -> str | None:
    """Text field of the payload; non-strings are stringified, blanks become None"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value if value.strip() else None
    if isinstance(value, list):
        return ", ".join(str(v) for v in value) or None
    return str(value)


def build_lead_analysis(payload: dict, size_category: str) -> LeadAnalysis:
    """
    Normalize a raw scoring payload

    Missing fields get safe defaults: not relevant, score 0, placeholder
    reasoning, "not_relevant" buyer type, empty signal lists.

    Args:
        payload: JSON object returned by the oracle
        size_category: Company size category of the lead

    Returns:
        LeadAnalysis
    """
    return LeadAnalysis(
        is_relevant=coerce_bool(payload.get("isRelevant", False)),
        relevance_score=clamp_score(payload.get("relevanceScore")),
        reasoning=_optional_text(payload.get("reasoning")) or NO_REASONING_PLACEHOLDER,
        department=_optional_text(payload.get("department")),
        seniority=_optional_text(payload.get("seniority")),
        buyer_type=_optional_text(payload.get("buyerType")) or NOT_RELEVANT_BUYER_TYPE,
        company_size_category=size_category,
        positive_signals=_string_list(payload.get("positiveSignals")),
        negative_signals=_string_list(payload.get("negativeSignals")),
    )
