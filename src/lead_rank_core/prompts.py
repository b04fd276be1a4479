"""
Prompt Builder

Builds the prompts sent to the scoring oracle (prefilter, lead analysis,
company ranking) and to the generation oracle (failure analysis and prompt rewriting).

Every lead analysis prompt must make the oracle answer with the same JSON object:
isRelevant, relevanceScore, reasoning, department, seniority, buyerType,
positiveSignals, negativeSignals.
"""

from lead_rank_core.company_size import COMPANY_SIZE_DEFINITIONS, get_ideal_targets
from lead_rank_core.domain.entities import EvaluationLead, RankingResult


PERSONA_SPEC = """
# Ideal Lead Profile

## Overview
Our ideal customers are B2B companies that **sell into complex verticals** (manufacturing, education, healthcare). These markets have long sales cycles, multiple stakeholders, and buyers who are hard to reach, which makes personalized outbound essential.

Within these companies, the ideal leads are **directly accountable for pipeline generation** and **operationally involved in outbound execution**. The right buyer changes with company size: founders at startups, VPs and Directors at larger organizations.

## Lead Targeting by Company Size

### Startups (1-50 employees)
Founders are operationally involved in sales and make fast purchasing decisions.
**Primary Targets:** Founder/Co-Founder (5/5), CEO/President (5/5), Owner (5/5), Managing Director (4/5), Head of Sales (4/5)

### SMB (51-200 employees)
Sales leadership exists but lacks resources to build outbound infrastructure.
**Primary Targets:** VP of Sales (5/5), Head of Sales (5/5), Sales Director (5/5), Director of Sales Development (5/5), CRO (4/5), Head of Revenue Operations (4/5), VP of Growth (4/5)

### Mid-Market (201-1,000 employees)
Established sales organizations struggling with pipeline quality and BDR productivity.
**Primary Targets:** VP of Sales Development (5/5), VP of Sales (5/5), Head of Sales Development (5/5), Director of Sales Development (5/5), CRO (4/5), VP of Revenue Operations (4/5), VP of GTM (4/5)
**Champions:** Sales Managers, BDR Managers, RevOps Managers

### Enterprise (1,000+ employees)
Complex buying processes. CEOs are too far removed; target VP and Director level leaders.
**Primary Targets:** VP of Sales Development (5/5), VP of Inside Sales (5/5), Head of Sales Development (5/5), CRO (4/5), VP of Revenue Operations (4/5), Director of Sales Development (4/5), VP of Field Sales (4/5)
**Champions (essential):** BDR Managers, Directors of Sales Operations, RevOps Managers

## Department Priority
1. Sales Development (5/5)
2. Sales (5/5)
3. Revenue Operations (4/5)
4. Business Development (4/5)
5. GTM / Growth (4/5)
6. Executive (5/5 at startups, 1/5 at enterprises)

## Seniority Relevance Matrix
| Seniority | Startup | SMB | Mid-Market | Enterprise |
|-----------|---------|-----|------------|------------|
| Founder/Owner | 5/5 | 3/5 | 1/5 | 0/5 |
| C-Level | 5/5 | 3/5 | 2/5 | 1/5 |
| Vice President | 3/5 | 5/5 | 5/5 | 5/5 |
| Director | 2/5 | 4/5 | 5/5 | 4/5 |
| Manager | 1/5 | 2/5 | 3/5 | 3/5 |
| IC | 0/5 | 0/5 | 1/5 | 1/5 |

## Hard Exclusions (never contact)
- CEO/President at Mid-Market and Enterprise
- CFO/Finance
- CTO/Engineering
- HR/Legal/Compliance
- Customer Success
- Product Management

## Soft Exclusions (deprioritize)
- BDRs/SDRs
- Account Executives
- CMO/VP Marketing
- Board Members/Advisors
"""

RESPONSE_FORMAT = """## Response Format
Return ONLY valid JSON matching this exact structure:
{
  "isRelevant": boolean,
  "relevanceScore": number (0-100),
  "reasoning": "2-3 sentence explanation",
  "department": "detected department or null",
  "seniority": "founder|c_level|vp|director|manager|ic|other",
  "buyerType": "decision_maker|champion|influencer|not_relevant",
  "positiveSignals": ["signal1", "signal2"],
  "negativeSignals": ["signal1", "signal2"]
}"""

SCORING_GUIDELINES = """## Scoring Guidelines
- 90-100: Perfect match - Primary target with ideal title for company size
- 70-89: Strong match - Senior sales/revenue role, decision-making authority
- 50-69: Moderate match - Related role, potential champion or influencer
- 30-49: Weak match - Tangentially related, unlikely to convert
- 0-29: Poor match - Wrong department, seniority, or role"""


def _bullets(items: list[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


def build_analysis_system_prompt(size_category: str) -> str:
    """
    Build the size-aware default system prompt for lead analysis

    Args:
        size_category: Company size category (startup / smb / mid_market / enterprise)

    Returns:
        System prompt text
    """
    size_info = COMPANY_SIZE_DEFINITIONS[size_category]
    targets = get_ideal_targets(size_category)

    parts: list[str] = [
        "You are an expert B2B sales lead analyst for a company that provides "
        "AI-powered outbound sales automation.",
        PERSONA_SPEC,
        "## Your Current Analysis Context",
        f"You are analyzing a lead from a **{size_info.label}** company ({size_info.description}).",
        "",
        f"### Primary Targets for {size_info.label} Companies:",
        _bullets(targets.primary_targets),
    ]
    if targets.champions:
        parts += ["", "### Champions (for multi-threading):", _bullets(targets.champions)]
    if targets.avoid_targets:
        parts += ["", "### Roles to Deprioritize at this Company Size:", _bullets(targets.avoid_targets)]
    parts += [
        "",
        "## Your Task",
        "Analyze the provided lead and determine:",
        "1. **Relevance**: Is this person worth contacting for selling a B2B sales platform?",
        "2. **Score**: How well do they match our ideal customer persona? (0-100)",
        "3. **Buyer Type**: Are they a decision_maker, champion, influencer, or not_relevant?",
        "4. **Signals**: What positive/negative signals do you see?",
        "",
        SCORING_GUIDELINES,
        "",
        RESPONSE_FORMAT,
    ]
    return "\n".join(parts)


def build_lead_user_prompt(lead: EvaluationLead) -> str:
    """Render the lead description sent to the scoring oracle"""
    return "\n".join([
        "Analyze this sales lead:",
        "",
        f"**Name:** {lead.name}",
        f"**Job Title:** {lead.title or 'Not provided'}",
        f"**Company:** {lead.company}",
        f"**Company Size:** {lead.employee_range or 'Unknown'}",
        f"**Industry:** {lead.industry or 'Not provided'}",
        f"**Domain:** {lead.domain or 'Not provided'}",
        "",
        "Provide your analysis as JSON only.",
    ])


DEFAULT_BASELINE_PROMPT = f"""You are an expert B2B sales lead analyst. Your task is to determine if a lead is relevant for a sales automation platform targeting sales/revenue leaders.

## Scoring Guidelines
- 90-100: Perfect match - VP/Director of Sales, Sales Development, or Revenue at the right company size
- 70-89: Strong match - Senior sales role with decision-making authority
- 50-69: Moderate match - Related role, potential champion
- 30-49: Weak match - Tangentially related
- 0-29: Not relevant - Wrong department or role

## Key Rules
1. Sales, Revenue, Business Development roles = Relevant
2. HR, Engineering, Finance, Legal, Product = Not relevant
3. At startups (1-50): Founders/CEOs are highly relevant
4. At larger companies: VPs and Directors are ideal, CEOs are too removed
5. Individual contributors (BDRs, SDRs, AEs) are lower priority

{RESPONSE_FORMAT}"""


# Built-in prompt variants for A/B tests
DEFAULT_PROMPTS: dict[str, dict[str, str]] = {
    "detailed": {
        "name": "Detailed Analysis",
        "description": "Comprehensive analysis with full persona spec context",
        "system_prompt": build_analysis_system_prompt("smb"),
    },
    "concise": {
        "name": "Concise Analysis",
        "description": "Streamlined analysis focusing on key signals",
        "system_prompt": """You are a B2B sales lead qualifier. Determine if this lead is worth contacting for a sales automation platform.

Key Rules:
1. Sales/Revenue roles = Relevant
2. HR/Engineering/Finance/Legal = Not relevant
3. Founders relevant at startups, not at enterprises
4. VPs/Directors ideal for mid-size+ companies

Return JSON: {"isRelevant": boolean, "relevanceScore": 0-100, "reasoning": "brief", "department": "string|null", "seniority": "string", "buyerType": "decision_maker|champion|influencer|not_relevant", "positiveSignals": [], "negativeSignals": []}""",
    },
    "cost_optimized": {
        "name": "Cost Optimized",
        "description": "Minimal tokens while maintaining accuracy",
        "system_prompt": 'Sales lead qualifier. Rate 0-100. Sales roles=high, non-sales=0. JSON only: {"isRelevant":bool,"relevanceScore":int,"reasoning":"brief","department":"str","seniority":"str","buyerType":"str","positiveSignals":[],"negativeSignals":[]}',
    },
}


# ---------------------------------------------------------------------------
# Lead ranking pipeline prompts (prefilter, company ranking)
# ---------------------------------------------------------------------------

PREFILTER_SYSTEM_PROMPT = """You are an expert sales lead qualifier for a B2B sales automation platform.

Your task is to QUICKLY determine if a lead should be processed for detailed analysis.

IMMEDIATELY REJECT leads who:
1. Work in excluded departments: HR, Legal, Finance, Engineering, Product, Customer Success, Compliance
2. Have titles indicating non-sales roles: Engineer, Developer, Designer, Analyst (non-sales), Accountant, Lawyer, Recruiter
3. Are clearly advisors/investors/board members (not actual employees)
4. Have student/intern titles

PASS leads who:
1. Have ANY sales-related title
2. Are founders/executives at small companies
3. Work in Sales, Business Development, Revenue Operations, or Growth
4. Have ambiguous titles that MIGHT be relevant (err on the side of passing)

Respond with JSON only: {"shouldProcess": boolean, "reason": "brief reason", "quickScore": 0-100}"""


def build_prefilter_user_prompt(lead: EvaluationLead) -> str:
    """Render the short lead description sent to the prefilter"""
    return "\n".join([
        f"Lead: {lead.name}",
        f"Title: {lead.title or 'Unknown'}",
        f"Company: {lead.company}",
        f"Company Size: {lead.employee_range or 'Unknown'}",
        "",
        "Should this lead be processed for detailed sales analysis? Return JSON only.",
    ])


def _numbered(items: list[str]) -> str:
    return "\n".join(f"{i + 1}. {item}" for i, item in enumerate(items))


def build_company_ranking_system_prompt(size_category: str) -> str:
    """
    Build the system prompt asking for the contact order of one company's leads

    Args:
        size_category: Company size category (startup / smb / mid_market / enterprise)

    Returns:
        System prompt text
    """
    size_info = COMPANY_SIZE_DEFINITIONS[size_category]
    targets = get_ideal_targets(size_category)
    ideal_seniority = "Founders/CEOs are ideal" if size_category == "startup" else "VPs and Directors are ideal"

    parts: list[str] = [
        "You are an expert at prioritizing sales outreach for B2B companies.",
        "",
        f"Given multiple leads at the same {size_info.label} company, "
        "rank them in order of who should be contacted first.",
        "",
        f"## Ranking Criteria for {size_info.label} Companies:",
        "1. **Decision-Making Authority**: Who can actually approve a purchase?",
        "2. **Relevance to Outbound**: Who owns or influences outbound sales?",
        f"3. **Seniority Match**: {ideal_seniority}",
        "4. **Department Fit**: Sales Development > Sales > Revenue Ops > Business Dev",
        "",
        "## Primary Targets (Contact First):",
        _numbered(targets.primary_targets),
    ]
    if targets.champions:
        parts += ["", "## Champions (Secondary Contacts):", _numbered(targets.champions)]
    parts += [
        "",
        "## Response Format",
        "Return ONLY a JSON array of lead IDs in ranked order, best first:",
        '["lead_id_1", "lead_id_2", "lead_id_3"]',
        "",
        "Only include RELEVANT leads. Exclude anyone who should not be contacted.",
    ]
    return "\n".join(parts)


def build_company_ranking_user_prompt(candidates: list[RankingResult]) -> str:
    """List the relevant leads of one company for the ranking call"""
    relevant = [c for c in candidates if c.is_relevant]
    if not relevant:
        return "No relevant leads to rank."

    lead_list = "\n".join(
        f"- ID: {c.lead_id} | Name: {c.name} | Title: {c.title or 'Unknown'} | Score: {c.relevance_score:g}"
        for c in relevant
    )
    return f"""Rank these leads from best to worst for sales outreach:

{lead_list}

Return a JSON array of lead IDs in ranked order."""


# ---------------------------------------------------------------------------
# Generation oracle prompts (optimization)
# ---------------------------------------------------------------------------

FAILURE_ANALYSIS_SYSTEM_PROMPT = """You are an expert at optimizing AI prompts for lead qualification and ranking.
Your task is to analyze failures in a lead ranking system and suggest specific, actionable improvements.

The system ranks B2B sales leads based on their fit with an ideal customer persona (sales/revenue roles).

Focus on:
1. Patterns in false negatives (relevant leads marked as not relevant)
2. Patterns in false positives (irrelevant leads marked as relevant)
3. Ranking accuracy (position within company)
4. Specific wording changes that could help

Be specific and actionable. Don't be generic."""

PROMPT_REWRITE_SYSTEM_PROMPT = """You are an expert at writing AI prompts for lead qualification systems.
Your task is to rewrite and improve a prompt based on specific feedback.

Guidelines:
- Maintain the core structure and JSON output format
- Incorporate the suggested improvements naturally
- Keep the prompt focused and not too long
- Ensure scoring guidelines are clear and actionable
- The prompt should work with the persona spec to qualify B2B sales leads"""


def truncate(text: str, max_chars: int) -> str:
    """Cut text to max_chars, marking the cut with an ellipsis"""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def build_failure_analysis_prompt(prompt_excerpt: str, failure_report: str) -> str:
    """User message asking the generation oracle for a diagnosis and improvements"""
    return "\n".join([
        "Analyze these evaluation results and suggest improvements to the prompt:",
        "",
        "## Current Prompt",
        prompt_excerpt,
        "",
        failure_report,
        "",
        "Provide:",
        "1. A brief analysis of what's going wrong (2-3 sentences)",
        "2. 3-5 specific improvements to make to the prompt",
        "",
        "Format your response as JSON:",
        "{",
        '  "analysis": "Brief analysis of the main issues",',
        '  "improvements": ["Specific improvement 1", "Specific improvement 2", ...]',
        "}",
    ])


def build_prompt_rewrite_prompt(
    current_prompt: str,
    persona_excerpt: str,
    analysis: str,
    improvements: list[str],
) -> str:
    """User message asking the generation oracle to rewrite the prompt"""
    numbered = "\n".join(f"{i + 1}. {imp}" for i, imp in enumerate(improvements))
    return "\n".join([
        "Rewrite this prompt to address the issues identified:",
        "",
        "## Current Prompt",
        current_prompt,
        "",
        "## Persona Spec (for reference)",
        persona_excerpt,
        "",
        "## Analysis",
        analysis,
        "",
        "## Required Improvements",
        numbered,
        "",
        "Generate an improved version of the prompt. Return ONLY the new prompt text, nothing else.",
        "Keep the same JSON output format requirement.",
    ])
