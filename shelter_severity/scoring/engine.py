import math
from fractions import Fraction
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

from ..core.config import DecisionTreePolicy
from ..core.exceptions import ConfigurationError
from .mappings import MAX_SEVERITY, MIN_SEVERITY, NO_DATA_SCORE, PHASES
from .schemas import (
    AreaSeverityResult,
    DecisionRule,
    SeverityDistribution,
    SeverityProportions,
)


def round_half_up(value: Union[float, Fraction]) -> int:
    """Round to the nearest integer with .5 going up (2.5 -> 3)."""
    return int(math.floor(value + Fraction(1, 2)))


def clamp_severity(value: float) -> int:
    return max(MIN_SEVERITY, min(MAX_SEVERITY, int(value)))


# --- Pillar aggregation ----------------------------------------------------

def aggregate_pillar_score(pillar_number: int, sub_scores: Mapping[str, Optional[float]]) -> int:
    """Combine a pillar's sub-indicator scores into one pillar score.

    Pillar 1 adds every known score to a baseline of 1. Other pillars bucket
    the sum of known scores into a band. A pillar with no known score at all
    returns 0, which is distinct from a genuine "no issue" score of 1.
    """
    known = [s for s in sub_scores.values() if s is not None]
    if not known:
        return NO_DATA_SCORE

    total = sum(known)
    if pillar_number == 1:
        return clamp_severity(round_half_up(1 + total))

    if total >= 3:
        return 5
    if total >= 2:
        return 4
    if total >= 1:
        return 3
    if total > 0:
        return 2
    return 1


# --- Decision tree ---------------------------------------------------------

@dataclass(frozen=True)
class DecisionOutcome:
    final_severity: int
    triplet: Tuple[int, int, int]
    exact: bool
    rule: DecisionRule


def lookup_triplet(pillar1: int, pillar2: int, pillar3: int) -> Tuple[int, int, int]:
    """Substitute missing pillars before a decision-tree lookup.

    A missing pillar 1 becomes 1; missing pillars 2 and 3 take pillar 1's value.
    """
    first = clamp_severity(pillar1) if pillar1 else MIN_SEVERITY
    second = clamp_severity(pillar2) if pillar2 else first
    third = clamp_severity(pillar3) if pillar3 else first
    return (first, second, third)


def _pillar_priority_key(rule: DecisionRule, triplet: Tuple[int, int, int]) -> Tuple[bool, bool, bool]:
    return (
        rule.pillar1 != triplet[0],
        rule.pillar2 != triplet[1],
        rule.pillar3 != triplet[2],
    )


def weighted_distance(rule: DecisionRule, triplet: Tuple[int, int, int], weights: Sequence[float]) -> float:
    return math.sqrt(sum(w * (a - b) ** 2 for w, a, b in zip(weights, rule.triplet, triplet)))


def resolve_final_severity(
    pillar1: int,
    pillar2: int,
    pillar3: int,
    decision_tree: Sequence[DecisionRule],
    policy: Union[DecisionTreePolicy, str] = DecisionTreePolicy.PILLAR_PRIORITY,
    weights: Sequence[float] = (1.0, 1.0, 1.0),
) -> DecisionOutcome:
    """Map a pillar triplet to a final household severity.

    An exact row wins. Otherwise ``policy`` picks the nearest row:
    PILLAR_PRIORITY prefers rows agreeing on pillar 1, then pillar 2, then
    pillar 3; WEIGHTED_DISTANCE takes the smallest weighted Euclidean
    distance. Ties keep table order in both cases.
    """
    if not decision_tree:
        raise ConfigurationError("Decision tree is empty; cannot resolve household severity")

    triplet = lookup_triplet(pillar1, pillar2, pillar3)
    for rule in decision_tree:
        if rule.triplet == triplet:
            return DecisionOutcome(final_severity=rule.final_score, triplet=triplet, exact=True, rule=rule)

    policy = DecisionTreePolicy(policy)
    if policy == DecisionTreePolicy.WEIGHTED_DISTANCE:
        best = min(decision_tree, key=lambda r: weighted_distance(r, triplet, weights))
    else:
        best = min(decision_tree, key=lambda r: _pillar_priority_key(r, triplet))

    return DecisionOutcome(
        final_severity=clamp_severity(best.final_score),
        triplet=triplet,
        exact=False,
        rule=best,
    )


# --- Area aggregation (20% rule) -------------------------------------------

@dataclass(frozen=True)
class AreaAggregate:
    total_households: int
    counts: Dict[int, int]
    proportions: Dict[int, float]
    area_severity: int
    pin_count: int


def count_phases(final_severities: Iterable[int]) -> Dict[int, int]:
    counts = {phase: 0 for phase in PHASES}
    for severity in final_severities:
        if severity not in counts:
            raise ValueError(f"Household severity out of range: {severity}")
        counts[severity] += 1
    return counts


def classify_area(counts: Mapping[int, int], threshold: float = 0.20) -> int:
    """Highest phase at which the share of households at that phase or worse reaches ``threshold``."""
    total = sum(counts.values())
    if total == 0:
        return MIN_SEVERITY
    cumulative = 0
    for phase in sorted(PHASES, reverse=True):
        cumulative += counts.get(phase, 0)
        if cumulative / total >= threshold:
            return phase
    return MIN_SEVERITY


def compute_pin(population: float, counts: Mapping[int, int], pin_min_phase: int = 3) -> int:
    """People in need: ``population`` times the share of households at ``pin_min_phase`` or worse.

    Computed on exact fractions of the counts so a true .5 rounds up.
    """
    total = sum(counts.values())
    if total == 0:
        return 0
    in_need = sum(counts.get(phase, 0) for phase in PHASES if phase >= pin_min_phase)
    return max(0, round_half_up(Fraction(population) * in_need / total))


def aggregate_area(
    final_severities: Iterable[int],
    population: float = 0.0,
    threshold: float = 0.20,
    pin_min_phase: int = 3,
) -> AreaAggregate:
    counts = count_phases(final_severities)
    total = sum(counts.values())
    proportions = {phase: (counts[phase] / total if total > 0 else 0.0) for phase in PHASES}
    return AreaAggregate(
        total_households=total,
        counts=counts,
        proportions=proportions,
        area_severity=classify_area(counts, threshold),
        pin_count=compute_pin(population, counts, pin_min_phase),
    )


def build_area_result(
    pcode: str,
    final_severities: Iterable[int],
    name: Optional[str] = None,
    level: int = 0,
    population: float = 0.0,
    population_group: Optional[str] = None,
    admin_boundary_id: Optional[str] = None,
    threshold: float = 0.20,
    pin_min_phase: int = 3,
) -> AreaSeverityResult:
    aggregate = aggregate_area(final_severities, population, threshold, pin_min_phase)
    return AreaSeverityResult(
        admin_boundary_id=admin_boundary_id,
        pcode=pcode,
        name=name or pcode,
        level=level,
        total_households=aggregate.total_households,
        severity_distribution=SeverityDistribution.from_counts(aggregate.counts),
        severity_proportions=SeverityProportions.from_proportions(aggregate.proportions),
        area_severity=aggregate.area_severity,
        pin_count=aggregate.pin_count,
        population=population,
        population_group=population_group,
    )
