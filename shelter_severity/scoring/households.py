"""
Household Dataset Processor
Builds HouseholdRecords from already-parsed survey rows and links them to admin units by pcode
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from .schemas import HouseholdRecord
from .validation import ValidationReport

logger = logging.getLogger(__name__)


PCODE_PATTERNS = [
    re.compile(r"pcode", re.I),
    re.compile(r"p_code", re.I),
    re.compile(r"admin.*code", re.I),
    re.compile(r"adm\d+.*code", re.I),
]

HOUSEHOLD_ID_PATTERNS = [
    re.compile(r"household.*id", re.I),
    re.compile(r"hh.*id", re.I),
    re.compile(r"hhid", re.I),
    re.compile(r"(^|_)id$", re.I),
]

POPULATION_GROUP_PATTERNS = [
    re.compile(r"population.*group", re.I),
    re.compile(r"pop.*group", re.I),
    re.compile(r"displacement.*status", re.I),
    re.compile(r"displacement.*type", re.I),
    re.compile(r"group", re.I),
]


@dataclass
class DetectedFields:
    pcode: Optional[str] = None
    household_id: Optional[str] = None
    population_group: Optional[str] = None
    admin1: Optional[str] = None
    admin2: Optional[str] = None
    admin3: Optional[str] = None
    admin1_pcode: Optional[str] = None
    admin2_pcode: Optional[str] = None
    admin3_pcode: Optional[str] = None


@dataclass
class HouseholdProcessingResult:
    records: List[HouseholdRecord]
    detected_fields: DetectedFields
    skipped_rows: int = 0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def total_records(self) -> int:
        return len(self.records)


def _first_match(headers: Sequence[str], patterns: Sequence[re.Pattern], exclude: Sequence[re.Pattern] = ()) -> Optional[str]:
    # Pattern priority wins over column order
    for pattern in patterns:
        for header in headers:
            if pattern.search(header) and not any(x.search(header) for x in exclude):
                return header
    return None


def detect_fields(headers: Sequence[str]) -> DetectedFields:
    """Guess which columns hold pcodes, household ids, population groups and admin names."""
    detected = DetectedFields(
        pcode=_first_match(headers, PCODE_PATTERNS),
        household_id=_first_match(headers, HOUSEHOLD_ID_PATTERNS, exclude=PCODE_PATTERNS),
        population_group=_first_match(headers, POPULATION_GROUP_PATTERNS),
    )
    for header in headers:
        lower = header.lower()
        for level in (1, 2, 3):
            if f"admin{level}" not in lower and f"adm{level}" not in lower:
                continue
            if "code" in lower:
                setattr(detected, f"admin{level}_pcode", header)
            else:
                setattr(detected, f"admin{level}", header)
    return detected


def _cell(row: Mapping[str, Any], column: Optional[str]) -> Optional[str]:
    if not column:
        return None
    value = row.get(column)
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def extract_pcode(row: Mapping[str, Any], detected: DetectedFields) -> Optional[str]:
    """Most specific admin pcode available in ``row``."""
    for column in (detected.admin3_pcode, detected.admin2_pcode, detected.admin1_pcode, detected.pcode):
        value = _cell(row, column)
        if value:
            return value
    return None


def build_household_records(
    rows: Sequence[Mapping[str, Any]],
    headers: Optional[Sequence[str]] = None,
) -> HouseholdProcessingResult:
    if headers is None:
        headers = list(dict.fromkeys(key for row in rows for key in row.keys()))
    detected = detect_fields(headers)

    result = HouseholdProcessingResult(records=[], detected_fields=detected)
    if not any((detected.pcode, detected.admin1_pcode, detected.admin2_pcode, detected.admin3_pcode)):
        result.warnings.append("No pcode field detected. Households will not be linked to admin boundaries.")

    for index, row in enumerate(rows):
        pcode = extract_pcode(row, detected)
        if not pcode:
            # Header repeats and summary rows carry no pcode
            result.skipped_rows += 1
            continue

        responses: Dict[str, Any] = {
            header: row[header]
            for header in headers
            if header in row and row[header] is not None and row[header] != ""
        }
        try:
            record = HouseholdRecord(
                household_id=_cell(row, detected.household_id),
                pcode=pcode,
                population_group=_cell(row, detected.population_group),
                admin1=_cell(row, detected.admin1),
                admin2=_cell(row, detected.admin2),
                admin3=_cell(row, detected.admin3),
                admin1_pcode=_cell(row, detected.admin1_pcode),
                admin2_pcode=_cell(row, detected.admin2_pcode),
                admin3_pcode=_cell(row, detected.admin3_pcode),
                survey_responses=responses,
            )
        except ValidationError as e:
            result.errors.append(f"Error processing row {index}: {e.error_count()} validation error(s)")
            continue
        result.records.append(record)

    if result.skipped_rows:
        logger.info(f"Skipped {result.skipped_rows} row(s) without a pcode")
    return result


def validate_household_dataset(result: HouseholdProcessingResult) -> ValidationReport:
    report = ValidationReport(errors=list(result.errors), warnings=list(result.warnings))

    if result.total_records == 0:
        report.errors.insert(0, "No household records found in dataset")

    missing_pcode = sum(1 for r in result.records if not r.pcode)
    if missing_pcode:
        report.warnings.append(
            f"{missing_pcode} records are missing pcodes and will not be linked to admin boundaries"
        )

    household_ids = [r.household_id for r in result.records if r.household_id]
    duplicates = len(household_ids) - len(set(household_ids))
    if duplicates:
        report.warnings.append(f"Found {duplicates} duplicate household IDs")

    return report
