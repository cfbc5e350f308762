import math
import re
from typing import Annotated, Any, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from .mappings import PHASES, SEVERITY_LEVELS, phase_key


# First signed number in a score cell, e.g. "Score 2" -> 2.0, "-1" -> -1.0
_SCORE_NUMBER = re.compile(r"([+-]?\d+\.?\d*)")


def _to_optional_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    if isinstance(v, float) and v.is_integer():
        v = int(v)
    text = str(v).strip()
    return text or None


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


# --- Calculation model -----------------------------------------------------

class CoreIndicator(_FrozenModel):
    pillar: str = ""
    pillar_number: int = Field(..., alias="pillarNumber")
    indicator: str = ""
    sub_indicator: str = Field("", alias="subIndicator")
    sub_indicator_number: str = Field(..., alias="subIndicatorNumber")

    @field_validator("sub_indicator_number", mode="before")
    @classmethod
    def _sub_indicator_as_str(cls, v: Any) -> str:
        return _to_optional_str(v) or ""


class QuestionMapping(_FrozenModel):
    question_field: str = Field(..., alias="questionField")
    response_values: Tuple[str, ...] = Field(default=(), alias="responseValues")

    @field_validator("response_values", mode="before")
    @classmethod
    def _coerce_values(cls, v: Any) -> Tuple[str, ...]:
        if v is None:
            return ()
        if isinstance(v, (str, int, float)):
            v = [v]
        return tuple(str(x) for x in v if x is not None)


class NumericScore(_FrozenModel):
    kind: Literal["numeric"] = "numeric"
    value: float

    @field_validator("value")
    @classmethod
    def _finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("numeric score must be finite")
        return v

    @property
    def is_symbolic(self) -> bool:
        return False

    @property
    def sort_value(self) -> float:
        return self.value


class SymbolicScore(_FrozenModel):
    """A scoring note such as "One of the three scores" with no number in it"""
    kind: Literal["symbolic"] = "symbolic"
    note: str

    @property
    def is_symbolic(self) -> bool:
        return True

    @property
    def sort_value(self) -> float:
        return 0.0


ScoreValue = Annotated[Union[NumericScore, SymbolicScore], Field(discriminator="kind")]


def coerce_score_value(raw: Any) -> Any:
    """Turn a raw template score cell into the tagged score representation."""
    if isinstance(raw, (NumericScore, SymbolicScore, dict)):
        return raw
    if isinstance(raw, bool):
        raise ValueError("score value cannot be a boolean")
    if isinstance(raw, (int, float)):
        return {"kind": "numeric", "value": raw}
    if isinstance(raw, str):
        match = _SCORE_NUMBER.search(raw)
        if match:
            return {"kind": "numeric", "value": float(match.group(1))}
        if raw.strip():
            return {"kind": "symbolic", "note": raw.strip()}
    raise ValueError("score value must be a number or a scoring note")


class RuleMapping(_FrozenModel):
    pillar: str = ""
    pillar_number: int = Field(..., alias="pillarNumber")
    indicator: str = ""
    sub_indicator: str = Field("", alias="subIndicator")
    sub_indicator_number: str = Field(..., alias="subIndicatorNumber")
    criteria: str = ""
    score_value: ScoreValue = Field(..., alias="scoreValue")
    scoring_note: Optional[str] = Field(None, alias="scoringNote")
    question_mappings: Tuple[QuestionMapping, ...] = Field(default=(), alias="questionMappings")
    response_conditions: Tuple[str, ...] = Field(default=(), alias="responseConditions")

    @field_validator("score_value", mode="before")
    @classmethod
    def _tag_score(cls, v: Any) -> Any:
        return coerce_score_value(v)

    @field_validator("sub_indicator_number", mode="before")
    @classmethod
    def _sub_indicator_as_str(cls, v: Any) -> str:
        return _to_optional_str(v) or ""

    @field_validator("response_conditions", mode="before")
    @classmethod
    def _coerce_conditions(cls, v: Any) -> Tuple[str, ...]:
        if v is None:
            return ()
        return tuple(str(x) for x in v if x is not None)

    @property
    def numeric_score(self) -> Optional[float]:
        if isinstance(self.score_value, NumericScore):
            return self.score_value.value
        return None

    @property
    def label(self) -> str:
        return f"Pillar {self.pillar_number}, Sub-indicator {self.sub_indicator_number}"


class DecisionRule(_FrozenModel):
    pillar1: int = Field(..., ge=1, le=5)
    pillar2: int = Field(..., ge=1, le=5)
    pillar3: int = Field(..., ge=1, le=5)
    final_score: int = Field(..., alias="finalScore", ge=1, le=5)
    rationale: Optional[str] = None

    @property
    def triplet(self) -> Tuple[int, int, int]:
        return (self.pillar1, self.pillar2, self.pillar3)


class ModelMetadata(_FrozenModel):
    source_file: Optional[str] = Field(None, alias="sourceFile")
    country: Optional[str] = None
    context: Optional[str] = None
    parsed_at: Optional[str] = Field(None, alias="parsedAt")


class CalculationModel(_FrozenModel):
    name: str = ""
    version: str = ""
    description: Optional[str] = None
    core_indicators: Tuple[CoreIndicator, ...] = Field(default=(), alias="coreIndicators")
    analysis_grid: Tuple[RuleMapping, ...] = Field(default=(), alias="analysisGrid")
    decision_tree: Tuple[DecisionRule, ...] = Field(default=(), alias="decisionTree")
    metadata: Optional[ModelMetadata] = None

    @property
    def declared_pillars(self) -> Tuple[int, ...]:
        return tuple(sorted({ci.pillar_number for ci in self.core_indicators}))

    def rules_for(self, pillar_number: int, sub_indicator_number: str) -> Tuple[RuleMapping, ...]:
        return tuple(
            m for m in self.analysis_grid
            if m.pillar_number == pillar_number and m.sub_indicator_number == sub_indicator_number
        )

    def sub_indicators_for(self, pillar_number: int) -> Tuple[str, ...]:
        """Sub-indicator ids of a pillar: core indicators first, then any extra grid ids."""
        ids = [ci.sub_indicator_number for ci in self.core_indicators if ci.pillar_number == pillar_number]
        ids += [m.sub_indicator_number for m in self.analysis_grid if m.pillar_number == pillar_number]
        return tuple(dict.fromkeys(i for i in ids if i))


# --- Inputs ----------------------------------------------------------------

class HouseholdRecord(_FrozenModel):
    household_id: Optional[str] = None
    pcode: Optional[str] = None
    population_group: Optional[str] = None
    admin1: Optional[str] = None
    admin2: Optional[str] = None
    admin3: Optional[str] = None
    admin1_pcode: Optional[str] = None
    admin2_pcode: Optional[str] = None
    admin3_pcode: Optional[str] = None
    survey_responses: Dict[str, Any] = Field(default_factory=dict)

    @field_validator(
        "household_id", "pcode", "population_group",
        "admin1", "admin2", "admin3", "admin1_pcode", "admin2_pcode", "admin3_pcode",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, v: Any) -> Optional[str]:
        return _to_optional_str(v)

    @field_validator("survey_responses", mode="before")
    @classmethod
    def _responses_default(cls, v: Any) -> Dict[str, Any]:
        return {} if v is None else v


class AdminBoundary(_FrozenModel):
    id: str
    pcode: str
    name: str
    level: int = 0

    @field_validator("id", "pcode", "name", mode="before")
    @classmethod
    def _as_str(cls, v: Any) -> str:
        return _to_optional_str(v) or ""


class PopulationData(_FrozenModel):
    pcode: str
    population: float = Field(..., ge=0)
    population_group: Optional[str] = None

    @field_validator("pcode", mode="before")
    @classmethod
    def _pcode_as_str(cls, v: Any) -> str:
        return _to_optional_str(v) or ""

    @field_validator("population_group", mode="before")
    @classmethod
    def _group_blank_to_none(cls, v: Any) -> Optional[str]:
        return _to_optional_str(v)


class CalculationOptions(_FrozenModel):
    admin_boundaries: Tuple[AdminBoundary, ...] = Field(default=(), alias="adminBoundaries")
    population_data: Tuple[PopulationData, ...] = Field(default=(), alias="populationData")
    population_groups: Tuple[str, ...] = Field(default=(), alias="populationGroups")

    @field_validator("admin_boundaries", "population_data", "population_groups", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return () if v is None else v


# --- Results ---------------------------------------------------------------

class PillarScores(_FrozenModel):
    pillar1: int = Field(0, ge=0, le=5)
    pillar2: int = Field(0, ge=0, le=5)
    pillar3: int = Field(0, ge=0, le=5)
    sub_indicator_scores: Dict[str, Dict[str, float]] = Field(default_factory=dict, alias="subIndicatorScores")

    def get(self, pillar_number: int) -> int:
        return getattr(self, f"pillar{pillar_number}")


class HouseholdSeverity(_FrozenModel):
    household_id: Optional[str] = None
    pcode: Optional[str] = None
    population_group: Optional[str] = None
    pillar_scores: PillarScores = Field(..., alias="pillarScores")
    final_severity: int = Field(..., alias="finalSeverity", ge=1, le=5)


class SeverityDistribution(_FrozenModel):
    phase1: int = 0
    phase2: int = 0
    phase3: int = 0
    phase4: int = 0
    phase5: int = 0

    @classmethod
    def from_counts(cls, counts: Dict[int, int]) -> "SeverityDistribution":
        return cls(**{phase_key(p): counts.get(p, 0) for p in PHASES})

    def get(self, phase: int) -> int:
        return getattr(self, phase_key(phase))

    def total(self) -> int:
        return sum(self.get(p) for p in PHASES)


class SeverityProportions(_FrozenModel):
    phase1: float = 0.0
    phase2: float = 0.0
    phase3: float = 0.0
    phase4: float = 0.0
    phase5: float = 0.0

    @classmethod
    def from_proportions(cls, proportions: Dict[int, float]) -> "SeverityProportions":
        return cls(**{phase_key(p): proportions.get(p, 0.0) for p in PHASES})

    def get(self, phase: int) -> float:
        return getattr(self, phase_key(phase))

    def total(self) -> float:
        return sum(self.get(p) for p in PHASES)


class AreaSeverityResult(_FrozenModel):
    admin_boundary_id: Optional[str] = None
    pcode: str
    name: str
    level: int = 0
    total_households: int = Field(..., ge=0)
    severity_distribution: SeverityDistribution
    severity_proportions: SeverityProportions
    area_severity: int = Field(..., ge=1, le=5)
    pin_count: int = Field(..., ge=0)
    population: float = 0.0
    population_group: Optional[str] = None

    @computed_field  # type: ignore[misc]
    @property
    def severity_level(self) -> str:
        return SEVERITY_LEVELS[self.area_severity]


class CalculationSummary(_FrozenModel):
    total_households: int
    total_areas: int
    total_pin: int
    severity_breakdown: SeverityDistribution


class CalculationDiagnostics(_FrozenModel):
    config_warnings: Tuple[str, ...] = ()
    households_missing_pcode: int = 0
    households_without_responses: int = 0
    households_without_pillar_data: Dict[str, int] = Field(default_factory=dict)
    decision_tree_fallbacks: int = 0
    symbolic_score_hits: int = 0
    unmatched_sub_indicators: Dict[str, int] = Field(default_factory=dict)
    empty_groups_skipped: int = 0
    warnings: Tuple[str, ...] = ()


class CalculationResult(_FrozenModel):
    household_severities: Tuple[HouseholdSeverity, ...] = Field(default=(), alias="householdSeverities")
    area_severities: Tuple[AreaSeverityResult, ...] = Field(default=(), alias="areaSeverities")
    summary: CalculationSummary
    diagnostics: CalculationDiagnostics = Field(default_factory=CalculationDiagnostics)
