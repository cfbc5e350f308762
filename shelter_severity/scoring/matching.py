"""Rule matching for sub-indicator scoring.

A sub-indicator is scored by testing one household's survey responses against
the analysis-grid rules of that sub-indicator. Rules are tried from the most
severe score down, so a household that satisfies several rules is scored by
its worst documented condition.
"""

import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .schemas import RuleMapping


# Lenient numeric prefix, "3 rooms" -> 3.0
_LEADING_NUMBER = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True)
class RuleMatch:
    rule: RuleMapping
    score: float
    matched_field: str
    symbolic: bool = False


def normalize_value(value: Any) -> str:
    """Trimmed, lower-cased text form of a response or accepted value."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip().lower()


def parse_leading_number(text: str) -> Optional[float]:
    match = _LEADING_NUMBER.match(text)
    if not match:
        return None
    try:
        return float(match.group(0))
    except ValueError:
        return None


def matches_condition(response: Any, condition: Any) -> bool:
    """Check one response value against one accepted value.

    Exact match after normalization, substring containment in either
    direction, then numeric equality of the leading numbers. Blank values
    never match.
    """
    normalized_response = normalize_value(response)
    normalized_condition = normalize_value(condition)
    if not normalized_response or not normalized_condition:
        return False

    if normalized_response == normalized_condition:
        return True

    if normalized_response in normalized_condition or normalized_condition in normalized_response:
        return True

    response_num = parse_leading_number(normalized_response)
    condition_num = parse_leading_number(normalized_condition)
    if response_num is not None and condition_num is not None:
        return response_num == condition_num

    return False


def _response_values(raw: Any) -> List[Any]:
    # Multi-select answers arrive as lists
    if isinstance(raw, (list, tuple, set, frozenset)):
        return [v for v in raw if v is not None]
    return [raw]


def matching_field(responses: Mapping[str, Any], rule: RuleMapping) -> Optional[str]:
    """Return the first question field of ``rule`` whose response matches, if any."""
    for mapping in rule.question_mappings:
        raw = responses.get(mapping.question_field)
        if raw is None:
            continue
        for value in _response_values(raw):
            for accepted in mapping.response_values:
                if matches_condition(value, accepted):
                    return mapping.question_field
    return None


def rank_rules(rules: Iterable[RuleMapping]) -> List[RuleMapping]:
    """Most severe score first; equal scores keep their grid order."""
    return sorted(rules, key=lambda r: -r.score_value.sort_value)


def match_sub_indicator(
    responses: Mapping[str, Any],
    rules: Sequence[RuleMapping],
    symbolic_value: float = 0.0,
    ranked: bool = False,
) -> Optional[RuleMatch]:
    """Find the rule that scores a sub-indicator for one household.

    ``ranked`` skips the severity sort when the caller already ranked ``rules``.
    Returns None when no rule applies; missing data is never scored as zero.
    """
    candidates = rules if ranked else rank_rules(rules)
    for rule in candidates:
        field = matching_field(responses, rule)
        if field is None:
            continue
        if rule.score_value.is_symbolic:
            return RuleMatch(rule=rule, score=symbolic_value, matched_field=field, symbolic=True)
        return RuleMatch(rule=rule, score=rule.score_value.value, matched_field=field)
    return None


def score_sub_indicator(
    responses: Mapping[str, Any],
    rules: Sequence[RuleMapping],
    symbolic_value: float = 0.0,
) -> Optional[float]:
    match = match_sub_indicator(responses, rules, symbolic_value=symbolic_value)
    return match.score if match else None
