"""Boundary validation for calculation models.

Models arrive as JSON produced by the template parser. They are validated once
against the pydantic schema, then checked for the conditions that make a run
impossible (empty decision tree, a missing pillar) or merely suspicious.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError

from ..core.config import SeveritySettings, settings
from ..core.exceptions import ConfigurationError
from .mappings import PILLARS
from .schemas import CalculationModel

logger = logging.getLogger(__name__)


@dataclass
class ValidationReport:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def load_calculation_model(payload: Union[CalculationModel, Mapping[str, Any], str, bytes]) -> CalculationModel:
    """Validate a raw model payload (dict or JSON text) into a CalculationModel."""
    if isinstance(payload, CalculationModel):
        return payload
    try:
        if isinstance(payload, (str, bytes)):
            return CalculationModel.model_validate_json(payload)
        return CalculationModel.model_validate(payload)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise ConfigurationError(
            f"Invalid calculation model: {e.error_count()} validation error(s)",
            errors=errors,
        ) from e


def _missing_pillars(model: CalculationModel) -> List[int]:
    declared = set(model.declared_pillars)
    return [p for p in PILLARS if p not in declared]


def validate_calculation_model(model: CalculationModel, config: Optional[SeveritySettings] = None) -> ValidationReport:
    config = config or settings
    report = ValidationReport()

    if not model.name:
        report.errors.append("Calculation model name is required")
    if not model.version:
        report.errors.append("Calculation model version is required")
    if not model.core_indicators:
        report.errors.append("No core indicators defined")
    if not model.analysis_grid:
        report.errors.append("No analysis grid mappings defined")
    if not model.decision_tree:
        report.errors.append("No decision tree rules defined")

    missing = _missing_pillars(model)
    if model.core_indicators and missing:
        report.warnings.append(
            f"Missing pillar(s) {', '.join(str(p) for p in missing)}. Expected Pillar 1, 2, and 3."
        )

    if model.decision_tree and len(model.decision_tree) < config.MIN_DECISION_TREE_RULES:
        report.warnings.append("Decision tree has relatively few rules. May not cover all combinations.")

    seen = set()
    duplicates = 0
    for rule in model.decision_tree:
        if rule.triplet in seen:
            duplicates += 1
        seen.add(rule.triplet)
    if duplicates:
        report.warnings.append(f"{duplicates} decision tree rule(s) repeat an earlier triplet; the first one wins")

    without_questions = [m for m in model.analysis_grid if not m.question_mappings]
    if without_questions:
        report.warnings.append(f"{len(without_questions)} analysis grid mappings have no question mappings")

    symbolic = [m for m in model.analysis_grid if m.score_value.is_symbolic]
    if symbolic:
        report.warnings.append(
            f"{len(symbolic)} analysis grid mappings carry a symbolic score and will score "
            f"{config.SYMBOLIC_SCORE_VALUE:g} when matched"
        )

    off_pillar = [m for m in model.analysis_grid if m.pillar_number not in PILLARS]
    if off_pillar:
        report.warnings.append(f"{len(off_pillar)} analysis grid mappings reference an unknown pillar and are ignored")

    declared = {(ci.pillar_number, ci.sub_indicator_number) for ci in model.core_indicators}
    undeclared = sorted({
        m.sub_indicator_number for m in model.analysis_grid
        if m.pillar_number in PILLARS and (m.pillar_number, m.sub_indicator_number) not in declared
    })
    if model.core_indicators and undeclared:
        report.warnings.append(f"Analysis grid sub-indicators not declared as core indicators: {', '.join(undeclared)}")

    return report


def ensure_calculable(model: CalculationModel, config: Optional[SeveritySettings] = None) -> ValidationReport:
    """Raise ConfigurationError when ``model`` cannot drive a calculation run.

    Only an empty decision tree or a pillar absent from the core indicators is
    fatal; everything else is returned as report content and logged.
    """
    fatal = []
    if not model.decision_tree:
        fatal.append("No decision tree rules defined")
    missing = _missing_pillars(model)
    if missing:
        fatal.append(f"Core indicators do not cover pillar(s) {', '.join(str(p) for p in missing)}")
    if fatal:
        raise ConfigurationError("Calculation model cannot be used: " + "; ".join(fatal), errors=fatal)

    report = validate_calculation_model(model, config)
    for message in report.errors:
        logger.warning(f"Calculation model '{model.name}': {message}")
    for message in report.warnings:
        logger.warning(f"Calculation model '{model.name}': {message}")
    return report
