from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import Executor
from dataclasses import dataclass, field
from itertools import groupby
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..core.config import SeveritySettings, settings
from .engine import DecisionOutcome, aggregate_pillar_score, build_area_result, resolve_final_severity
from .mappings import PHASES, PILLARS, STANDARD_SUB_INDICATORS
from .matching import match_sub_indicator, rank_rules
from .schemas import (
    AdminBoundary,
    AreaSeverityResult,
    CalculationDiagnostics,
    CalculationModel,
    CalculationOptions,
    CalculationResult,
    CalculationSummary,
    HouseholdRecord,
    HouseholdSeverity,
    PillarScores,
    RuleMapping,
    SeverityDistribution,
)
from .validation import ValidationReport, ensure_calculable, load_calculation_model

logger = logging.getLogger(__name__)


@dataclass
class HouseholdScoring:
    """One household's severity plus the trace of how it was reached."""
    severity: HouseholdSeverity
    decision: DecisionOutcome
    applied_rules: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    unmatched: List[Tuple[int, str]] = field(default_factory=list)
    symbolic_hits: int = 0


class SeverityCalculationService:
    def __init__(
        self,
        model: Union[CalculationModel, Mapping[str, Any]],
        config: Optional[SeveritySettings] = None,
        executor: Optional[Executor] = None,
    ):
        self.model = load_calculation_model(model)
        self.config = config or settings
        self.executor = executor
        # Raises ConfigurationError before any household is touched
        self.validation: ValidationReport = ensure_calculable(self.model, self.config)

        self._sub_indicators: Dict[int, Tuple[str, ...]] = {
            p: self.model.sub_indicators_for(p) for p in PILLARS
        }
        self._rules: Dict[Tuple[int, str], List[RuleMapping]] = {
            (p, sub): rank_rules(self.model.rules_for(p, sub))
            for p in PILLARS
            for sub in self._sub_indicators[p]
        }

    def __getstate__(self) -> Dict[str, Any]:
        # Process pools pickle score_household with its service; executors hold locks
        state = self.__dict__.copy()
        state["executor"] = None
        return state

    # --- Household scoring ---
    def score_household(self, household: Union[HouseholdRecord, Mapping[str, Any]]) -> HouseholdScoring:
        if not isinstance(household, HouseholdRecord):
            household = HouseholdRecord.model_validate(household)

        responses = household.survey_responses
        applied_rules: List[str] = []
        warnings: List[str] = []
        unmatched: List[Tuple[int, str]] = []
        symbolic_hits = 0
        pillar_values: Dict[int, int] = {}
        sub_indicator_scores: Dict[str, Dict[str, float]] = {}

        for pillar in PILLARS:
            scores: Dict[str, Optional[float]] = {}
            for sub in self._sub_indicators[pillar]:
                match = match_sub_indicator(
                    responses,
                    self._rules[(pillar, sub)],
                    symbolic_value=self.config.SYMBOLIC_SCORE_VALUE,
                    ranked=True,
                )
                if match is None:
                    scores[sub] = None
                    unmatched.append((pillar, sub))
                    continue
                scores[sub] = match.score
                if match.symbolic:
                    symbolic_hits += 1
                    warnings.append(
                        f"Pillar {pillar}, Sub-indicator {sub}: matched symbolic score "
                        f"'{match.rule.score_value.note}', scored {match.score:g}"
                    )
                applied_rules.append(f"{match.rule.label}: {match.score:g}")

            pillar_values[pillar] = aggregate_pillar_score(pillar, scores)
            sub_indicator_scores[f"pillar{pillar}"] = {k: v for k, v in scores.items() if v is not None}

            missing_standard = [
                sub for sub in STANDARD_SUB_INDICATORS.get(pillar, ())
                if scores.get(sub) is None
            ]
            if missing_standard:
                warnings.append(f"Missing data for Pillar {pillar} sub-indicators: {', '.join(missing_standard)}")

        decision = resolve_final_severity(
            pillar_values[1],
            pillar_values[2],
            pillar_values[3],
            self.model.decision_tree,
            policy=self.config.DECISION_TREE_POLICY,
            weights=self.config.DISTANCE_WEIGHTS,
        )

        severity = HouseholdSeverity(
            household_id=household.household_id,
            pcode=household.pcode,
            population_group=household.population_group,
            pillar_scores=PillarScores(
                pillar1=pillar_values[1],
                pillar2=pillar_values[2],
                pillar3=pillar_values[3],
                sub_indicator_scores=sub_indicator_scores,
            ),
            final_severity=decision.final_severity,
        )
        logger.debug(
            f"Household {household.household_id or '-'} ({household.pcode or 'no pcode'}): "
            f"pillars={decision.triplet} final={decision.final_severity} exact={decision.exact}"
        )
        return HouseholdScoring(
            severity=severity,
            decision=decision,
            applied_rules=applied_rules,
            warnings=warnings,
            unmatched=unmatched,
            symbolic_hits=symbolic_hits,
        )

    def score_households(self, households: Iterable[Union[HouseholdRecord, Mapping[str, Any]]]) -> List[HouseholdScoring]:
        """Score every household; the map step runs on ``self.executor`` when one is set."""
        if self.executor is not None:
            return list(self.executor.map(self.score_household, households))
        return [self.score_household(h) for h in households]

    # --- Full run ---
    def calculate(
        self,
        households: Iterable[Union[HouseholdRecord, Mapping[str, Any]]],
        options: Union[CalculationOptions, Mapping[str, Any], None] = None,
    ) -> CalculationResult:
        if options is None:
            options = CalculationOptions()
        elif not isinstance(options, CalculationOptions):
            options = CalculationOptions.model_validate(options)

        records = [h if isinstance(h, HouseholdRecord) else HouseholdRecord.model_validate(h) for h in households]
        logger.info(
            f"Starting severity calculation: {len(records)} households, "
            f"model '{self.model.name}' v{self.model.version}, policy={self.config.DECISION_TREE_POLICY.value}"
        )

        scorings = self.score_households(records)
        severities = tuple(s.severity for s in scorings)

        area_severities, empty_groups = self._aggregate_areas(severities, options)

        breakdown = SeverityDistribution.from_counts(
            {phase: sum(1 for s in severities if s.final_severity == phase) for phase in PHASES}
        )
        summary = CalculationSummary(
            total_households=len(severities),
            total_areas=len(area_severities),
            total_pin=sum(a.pin_count for a in area_severities),
            severity_breakdown=breakdown,
        )
        diagnostics = self._build_diagnostics(records, scorings, empty_groups)

        logger.info(
            f"Severity calculation complete: {summary.total_households} households, "
            f"{summary.total_areas} areas, total PIN {summary.total_pin}"
        )
        return CalculationResult(
            household_severities=severities,
            area_severities=area_severities,
            summary=summary,
            diagnostics=diagnostics,
        )

    # --- Area aggregation ---
    def _aggregate_areas(
        self,
        severities: Sequence[HouseholdSeverity],
        options: CalculationOptions,
    ) -> Tuple[Tuple[AreaSeverityResult, ...], int]:
        boundaries: Dict[str, AdminBoundary] = {}
        for boundary in options.admin_boundaries:
            boundaries.setdefault(boundary.pcode, boundary)

        # pcodes in first-seen order; households keep their input order inside a group
        rank: Dict[str, int] = {}
        for s in severities:
            if s.pcode:
                rank.setdefault(s.pcode, len(rank))
        assigned = sorted((s for s in severities if s.pcode), key=lambda s: rank[s.pcode])
        grouped = [(pcode, tuple(items)) for pcode, items in groupby(assigned, key=lambda s: s.pcode)]

        results: List[AreaSeverityResult] = []
        empty_groups = 0
        for pcode, members in grouped:
            boundary = boundaries.get(pcode)
            area_name = boundary.name if boundary and boundary.name else pcode
            area_level = boundary.level if boundary else 0
            boundary_id = boundary.id if boundary else None

            if options.population_groups:
                for group in options.population_groups:
                    group_members = tuple(s for s in members if s.population_group == group)
                    if not group_members:
                        empty_groups += 1
                        logger.debug(f"Area {pcode}: no households for population group '{group}', skipped")
                        continue
                    results.append(self._area_result(
                        pcode=pcode,
                        members=group_members,
                        name=f"{area_name} ({group})",
                        level=area_level,
                        population=self._population_for(options, pcode, group),
                        population_group=group,
                        admin_boundary_id=boundary_id,
                    ))
            else:
                results.append(self._area_result(
                    pcode=pcode,
                    members=members,
                    name=area_name,
                    level=area_level,
                    population=self._population_for(options, pcode, None),
                    population_group=None,
                    admin_boundary_id=boundary_id,
                ))
        return tuple(results), empty_groups

    def _area_result(self, pcode: str, members: Sequence[HouseholdSeverity], **kwargs: Any) -> AreaSeverityResult:
        return build_area_result(
            pcode,
            [m.final_severity for m in members],
            threshold=self.config.AREA_THRESHOLD,
            pin_min_phase=self.config.PIN_MIN_PHASE,
            **kwargs,
        )

    @staticmethod
    def _population_for(options: CalculationOptions, pcode: str, group: Optional[str]) -> float:
        """Population denominator for an area or an area/group pair.

        Ungrouped areas use the entry without a group, else the sum of the
        area's group entries. Missing data gives 0.
        """
        entries = [p for p in options.population_data if p.pcode == pcode]
        if group is not None:
            for entry in entries:
                if entry.population_group == group:
                    return entry.population
            return 0.0
        for entry in entries:
            if entry.population_group is None:
                return entry.population
        return float(sum(e.population for e in entries))

    # --- Diagnostics ---
    def _build_diagnostics(
        self,
        records: Sequence[HouseholdRecord],
        scorings: Sequence[HouseholdScoring],
        empty_groups: int,
    ) -> CalculationDiagnostics:
        missing_pcode = sum(1 for r in records if not r.pcode)
        without_responses = sum(1 for r in records if not r.survey_responses)
        without_pillar = {
            f"pillar{p}": sum(1 for s in scorings if s.severity.pillar_scores.get(p) == 0)
            for p in PILLARS
        }
        fallbacks = sum(1 for s in scorings if not s.decision.exact)
        symbolic_hits = sum(s.symbolic_hits for s in scorings)

        misses = Counter(f"{p}:{sub}" for s in scorings for p, sub in s.unmatched)
        unmatched = {
            sub: misses[f"{p}:{sub}"]
            for p in PILLARS
            for sub in self._sub_indicators[p]
            if misses[f"{p}:{sub}"]
        }

        warnings: List[str] = []
        if missing_pcode:
            warnings.append(f"{missing_pcode} household(s) have no pcode and were excluded from area aggregation")
        if without_responses:
            warnings.append(f"{without_responses} household(s) have no survey responses")
        for key, count in without_pillar.items():
            if count:
                warnings.append(f"{count} household(s) have insufficient data for {key}")
        if fallbacks:
            warnings.append(f"{fallbacks} household(s) had no exact decision tree match and used the fallback policy")
        if symbolic_hits:
            warnings.append(f"{symbolic_hits} sub-indicator score(s) came from symbolic score placeholders")
        for message in warnings:
            logger.info(message)

        return CalculationDiagnostics(
            config_warnings=tuple(self.validation.errors + self.validation.warnings),
            households_missing_pcode=missing_pcode,
            households_without_responses=without_responses,
            households_without_pillar_data=without_pillar,
            decision_tree_fallbacks=fallbacks,
            symbolic_score_hits=symbolic_hits,
            unmatched_sub_indicators=unmatched,
            empty_groups_skipped=empty_groups,
            warnings=tuple(warnings),
        )


def calculate_severity(
    households: Iterable[Union[HouseholdRecord, Mapping[str, Any]]],
    model: Union[CalculationModel, Mapping[str, Any]],
    options: Union[CalculationOptions, Mapping[str, Any], None] = None,
    config: Optional[SeveritySettings] = None,
) -> CalculationResult:
    """Run a complete severity calculation over ``households``."""
    return SeverityCalculationService(model, config=config).calculate(households, options)
