from typing import List
from enum import Enum

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DecisionTreePolicy(str, Enum):
    """How a pillar triplet with no exact decision-tree row is resolved"""
    PILLAR_PRIORITY = "pillar_priority"
    WEIGHTED_DISTANCE = "weighted_distance"


class SeveritySettings(BaseSettings):
    # Logging
    LOG_LEVEL: str = "INFO"

    # Area classification (20% rule)
    AREA_THRESHOLD: float = 0.20
    PIN_MIN_PHASE: int = 3  # phases at or above this count towards PIN

    # Decision tree resolution
    DECISION_TREE_POLICY: DecisionTreePolicy = DecisionTreePolicy.PILLAR_PRIORITY
    DISTANCE_WEIGHTS: List[float] = [1.0, 1.0, 1.0]  # pillar1, pillar2, pillar3

    # Score used when a matched rule carries a symbolic placeholder
    SYMBOLIC_SCORE_VALUE: float = 0.0

    # Model validation
    MIN_DECISION_TREE_RULES: int = 10  # fewer rules only produce a warning

    # --- Validators ---
    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        if v is None or str(v).strip() == "":
            return "INFO"
        return str(v).strip().upper()

    @model_validator(mode="after")
    def _validate_ranges(self) -> "SeveritySettings":
        if not 0.0 < self.AREA_THRESHOLD <= 1.0:
            raise ValueError("AREA_THRESHOLD must be within (0, 1]")
        if not 1 <= self.PIN_MIN_PHASE <= 5:
            raise ValueError("PIN_MIN_PHASE must be a phase between 1 and 5")
        if len(self.DISTANCE_WEIGHTS) != 3:
            raise ValueError("DISTANCE_WEIGHTS needs exactly one weight per pillar")
        if any(w < 0 for w in self.DISTANCE_WEIGHTS):
            raise ValueError("DISTANCE_WEIGHTS must be non-negative")
        return self

    model_config = SettingsConfigDict(env_prefix="SSC_", case_sensitive=True, env_file=".env", extra="ignore")


settings = SeveritySettings()
