"""
Evaluation Set Loader

Loads labeled evaluation leads from JSON or CSV files.

JSON files hold either a list of lead objects or {"leads": [...]}. CSV files
have one lead per row. The ground-truth rank comes from a "rank" or
"expected_rank" field; "-", blank, non-numeric or non-positive values mean
the lead is not relevant.
"""

import json
from pathlib import Path

import pandas as pd

from lead_rank_core.domain.entities import EvaluationLead


REQUIRED_FIELDS = ("name", "company")
RANK_FIELDS = ("expected_rank", "rank")

# Accepted spellings for the optional columns
_FIELD_ALIASES = {
    "title": ("title", "job_title"),
    "employee_range": ("employee_range", "employees", "company_size"),
    "industry": ("industry",),
    "domain": ("domain", "website"),
}


def parse_expected_rank(value) -> int | None:
    """
    Convert a raw rank cell into an expected rank

    Returns:
        Positive int, or None for "not relevant"
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if pd.isna(value) or not value.is_integer():
            return None
        rank = int(value)
    elif isinstance(value, int):
        rank = value
    else:
        text = str(value).strip()
        if not text or text == "-":
            return None
        try:
            number = float(text)
        except ValueError:
            return None
        if not number.is_integer():
            return None
        rank = int(number)
    return rank if rank > 0 else None


def _optional_str(record: dict, keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = record.get(key)
        if value is None or (isinstance(value, float) and pd.isna(value)):
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def lead_from_record(record: dict, index: int, source: str = "") -> EvaluationLead:
    """
    Build an EvaluationLead from a raw record

    Args:
        record: Field mapping (JSON object or CSV row)
        index: Position in the file, used for generated ids
        source: File path for error messages

    Returns:
        EvaluationLead

    Raises:
        KeyError: If a required field is missing or blank
    """
    values = {}
    for field in REQUIRED_FIELDS:
        value = _optional_str(record, (field,))
        if value is None:
            raise KeyError(f"Required field '{field}' is missing (lead {index}): {source}")
        values[field] = value

    raw_rank = None
    for key in RANK_FIELDS:
        if key in record:
            raw_rank = record[key]
            break

    return EvaluationLead(
        id=_optional_str(record, ("id",)) or f"eval-{index}",
        name=values["name"],
        company=values["company"],
        title=_optional_str(record, _FIELD_ALIASES["title"]),
        employee_range=_optional_str(record, _FIELD_ALIASES["employee_range"]),
        expected_rank=parse_expected_rank(raw_rank),
        industry=_optional_str(record, _FIELD_ALIASES["industry"]),
        domain=_optional_str(record, _FIELD_ALIASES["domain"]),
    )


def load_leads_from_json(file_path: str) -> list[EvaluationLead]:
    """
    Load leads from a JSON file

    Raises:
        ValueError: If the file holds neither a list nor {"leads": [...]}
        KeyError: If a lead lacks a required field
    """
    with open(file_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get("leads")
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of leads or {{\"leads\": [...]}}: {file_path}")

    return [lead_from_record(record, i, file_path) for i, record in enumerate(data)]


def load_leads_from_csv(file_path: str) -> list[EvaluationLead]:
    """
    Load leads from a CSV file with a header row

    Column names are matched case-insensitively; spaces become underscores.
    """
    df = pd.read_csv(file_path, dtype=str, keep_default_na=False)
    df.columns = [str(c).strip().lower().replace(" ", "_") for c in df.columns]
    return [
        lead_from_record(record, i, file_path)
        for i, record in enumerate(df.to_dict(orient="records"))
    ]


def load_evaluation_leads(file_path: str) -> list[EvaluationLead]:
    """
    Load an evaluation set, choosing the parser by file extension

    Args:
        file_path: Path to a .json or .csv file

    Returns:
        List of EvaluationLead in file order

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the extension is not supported
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Evaluation set does not exist: {file_path}")

    suffix = path.suffix.lower()
    if suffix == ".json":
        return load_leads_from_json(str(path))
    if suffix == ".csv":
        return load_leads_from_csv(str(path))
    raise ValueError(f"Unsupported evaluation set format '{suffix}': {file_path}")
