"""
Company Size Categorization

Maps an employee range string (e.g. "51-200", "10001+") to a company size
category. The category decides which roles count as ideal targets.

Buckets:
- startup:    up to 50 employees
- smb:        51-200
- mid_market: 201-1,000
- enterprise: more than 1,000

Unknown or blank ranges fall into the smallest bucket (startup).
"""

import re
from dataclasses import dataclass

STARTUP = "startup"
SMB = "smb"
MID_MARKET = "mid_market"
ENTERPRISE = "enterprise"

COMPANY_SIZE_CATEGORIES = [STARTUP, SMB, MID_MARKET, ENTERPRISE]


@dataclass(frozen=True)
class CompanySizeInfo:
    """Definition of a company size category"""
    category: str
    min_employees: int
    max_employees: int | None
    label: str
    description: str


@dataclass(frozen=True)
class EmployeeRange:
    """Parsed employee range"""
    category: str
    min_employees: int
    max_employees: int | None
    raw_range: str


@dataclass(frozen=True)
class IdealTargets:
    """Roles to target, use as champions, or deprioritize for a company size"""
    primary_targets: list[str]
    champions: list[str]
    avoid_targets: list[str]


COMPANY_SIZE_DEFINITIONS: dict[str, CompanySizeInfo] = {
    STARTUP: CompanySizeInfo(
        STARTUP, 1, 50, "Startup",
        "Early-stage companies where founders are operationally involved in sales",
    ),
    SMB: CompanySizeInfo(
        SMB, 51, 200, "SMB",
        "Sales leadership exists but lacks resources for sophisticated outbound",
    ),
    MID_MARKET: CompanySizeInfo(
        MID_MARKET, 201, 1000, "Mid-Market",
        "Established sales organizations with multiple stakeholders",
    ),
    ENTERPRISE: CompanySizeInfo(
        ENTERPRISE, 1001, None, "Enterprise",
        "Complex buying processes with VP and Director level decision makers",
    ),
}

# Exact matches for common range labels: label -> (category, min, max)
_KNOWN_RANGES: dict[str, tuple[str, int, int | None]] = {
    "1-10": (STARTUP, 1, 50),
    "2-10": (STARTUP, 1, 50),
    "1-50": (STARTUP, 1, 50),
    "11-50": (STARTUP, 11, 50),
    "51-200": (SMB, 51, 200),
    "201-500": (MID_MARKET, 201, 1000),
    "201-1000": (MID_MARKET, 201, 1000),
    "501-1000": (MID_MARKET, 501, 1000),
    "1001-5000": (ENTERPRISE, 1001, 5000),
    "5001-10000": (ENTERPRISE, 5001, 10000),
    "10001+": (ENTERPRISE, 10001, None),
    "10000+": (ENTERPRISE, 10001, None),
}

_RANGE_RE = re.compile(r"(\d+)\s*[-–]\s*(\d+)")
_PLUS_RE = re.compile(r"(\d+)\+")


def _category_for(count: int) -> str:
    """Bucket a head count"""
    if count <= 50:
        return STARTUP
    if count <= 200:
        return SMB
    if count <= 1000:
        return MID_MARKET
    return ENTERPRISE


def parse_employee_range(employee_range: str | None) -> EmployeeRange:
    """
    Parse an employee range string and determine the company size category

    "X-Y" ranges are bucketed by their upper bound, "X+" ranges by their lower bound.

    Args:
        employee_range: Raw range (e.g. "51-200", "1,001-5,000", "10001+"), may be None

    Returns:
        EmployeeRange
    """
    if not employee_range or not employee_range.strip():
        return EmployeeRange(STARTUP, 1, 50, "unknown")

    normalized = employee_range.strip().lower().replace(",", "")

    known = _KNOWN_RANGES.get(normalized)
    if known is not None:
        category, min_employees, max_employees = known
        return EmployeeRange(category, min_employees, max_employees, employee_range)

    m = _RANGE_RE.search(normalized)
    if m:
        min_employees, max_employees = int(m.group(1)), int(m.group(2))
        return EmployeeRange(_category_for(max_employees), min_employees, max_employees, employee_range)

    m = _PLUS_RE.search(normalized)
    if m:
        min_employees = int(m.group(1))
        return EmployeeRange(_category_for(min_employees), min_employees, None, employee_range)

    return EmployeeRange(STARTUP, 1, 50, employee_range)


def get_ideal_targets(category: str) -> IdealTargets:
    """
    Get the ideal targets for a company size category

    Raises:
        ValueError: If the category is unknown
    """
    if category == STARTUP:
        return IdealTargets(
            primary_targets=[
                "Founder", "Co-Founder", "CEO", "President", "Owner",
                "Co-Owner", "Managing Director", "Head of Sales",
            ],
            champions=[],
            avoid_targets=[],
        )
    if category == SMB:
        return IdealTargets(
            primary_targets=[
                "VP of Sales", "Head of Sales", "Sales Director",
                "Director of Sales Development", "CRO", "Chief Revenue Officer",
                "Head of Revenue Operations", "VP of Growth",
            ],
            champions=["Sales Manager", "BDR Manager"],
            avoid_targets=["CEO", "President", "Founder"],
        )
    if category == MID_MARKET:
        return IdealTargets(
            primary_targets=[
                "VP of Sales Development", "VP of Sales", "Head of Sales Development",
                "Director of Sales Development", "CRO", "Chief Revenue Officer",
                "VP of Revenue Operations", "VP of GTM",
            ],
            champions=["Sales Manager", "BDR Manager", "RevOps Manager"],
            avoid_targets=["CEO", "President", "Founder"],
        )
    if category == ENTERPRISE:
        return IdealTargets(
            primary_targets=[
                "VP of Sales Development", "VP of Inside Sales", "Head of Sales Development",
                "CRO", "Chief Revenue Officer", "VP of Revenue Operations",
                "Director of Sales Development", "VP of Field Sales",
            ],
            champions=["BDR Manager", "Director of Sales Operations", "RevOps Manager"],
            avoid_targets=["CEO", "President", "Founder", "CFO", "CTO"],
        )
    raise ValueError(f"Unknown company size category: {category} (available: {COMPANY_SIZE_CATEGORIES})")
