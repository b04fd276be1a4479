"""
Scoring sub-package

Provides oracle response parsing and the lead judging adapter.
"""

from lead_rank_core.scoring.lead_judge import LeadJudge, build_lead_analysis
from lead_rank_core.scoring.response_parser import (
    ResponseParseError,
    parse_json_object,
    parse_json_value,
)

__all__ = [
    "LeadJudge",
    "build_lead_analysis",
    "ResponseParseError",
    "parse_json_object",
    "parse_json_value",
]
